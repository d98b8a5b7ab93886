"""
Natural photograph detection.
Camera images carry sensor noise, irregular textures, a broad tonal range
and imperfect edges and gradients; these checks measure each of them.
"""

import cv2
import numpy as np
from scipy.stats import entropy

from . import metadata
from .sampling import channel_diff, percent, split_channels

PRESENT_SCORE = 0.8
ABSENT_SCORE = 0.3

# Natural photos land around 4.5-6.5 nats of mean HSV histogram entropy
LOW_COLOR_ENTROPY = 3.8


def noise_profile(ctx):
    """High-pass residual of the lightness channel and its spread per quadrant"""

    def compute(ctx):
        lab = cv2.cvtColor(ctx.rgb, cv2.COLOR_RGB2LAB)
        lightness = lab[:, :, 0]
        blurred = cv2.GaussianBlur(lightness, (5, 5), 0)
        noise = cv2.absdiff(lightness, blurred)

        h, w = noise.shape
        quadrants = [
            noise[0:h // 2, 0:w // 2],
            noise[0:h // 2, w // 2:w],
            noise[h // 2:h, 0:w // 2],
            noise[h // 2:h, w // 2:w],
        ]
        stds = [float(np.std(q)) for q in quadrants if q.size]

        return {
            'noiseStd': float(np.std(noise)),
            'noiseMean': float(np.mean(noise)),
            'quadrantStds': stds,
            'quadrantVariance': float(np.var(stds)) if stds else 0.0,
            'residualRatio': float((noise > 3).mean()),
        }

    return ctx.derived('noise_profile', compute)


def color_entropy(ctx):
    """Mean entropy of the hue, saturation and value histograms"""

    def compute(ctx):
        hsv = ctx.hsv
        h_hist = cv2.calcHist([hsv], [0], None, [180], [0, 180]).flatten()
        s_hist = cv2.calcHist([hsv], [1], None, [256], [0, 256]).flatten()
        v_hist = cv2.calcHist([hsv], [2], None, [256], [0, 256]).flatten()

        values = [entropy(hist / hist.sum() + 1e-10) for hist in (h_hist, s_hist, v_hist)]
        return float(sum(values) / 3)

    return ctx.derived('color_entropy', compute)


def color_diversity(ctx):
    """Distinct colours (quantised to 32 levels) per sampled pixel"""
    pixels = ctx.sample(4).reshape(-1, 3)
    if not len(pixels):
        return 0.0
    return len(np.unique(pixels // 8, axis=0)) / float(len(pixels))


def count_neon_colors(ctx):
    r, g, b = split_channels(ctx.rgb_i)
    neon = (
        ((r > 200) & (g < 100) & (b > 200))
        | ((r > 200) & (g < 100) & (b < 100))
        | ((r < 100) & (g > 200) & (b < 100))
        | ((r < 100) & (g < 100) & (b > 200))
        | ((r > 200) & (g > 200) & (b < 100))
    )
    return int(neon.sum())


def detect_cyberpunk_aesthetic(ctx):
    """
    Neon palette, or a mostly dark frame lit by small saturated light
    sources (a night cityscape).
    """

    def compute(ctx):
        neon_pct = percent(count_neon_colors(ctx), ctx.pixel_count)

        s = ctx.hsv[:, :, 1]
        v = ctx.hsv[:, :, 2]
        dark_ratio = float((v < 60).mean())
        light_ratio = float(((s > 150) & (v > 200)).mean())
        night_cityscape = dark_ratio > 0.4 and light_ratio > 0.02

        is_cyberpunk = neon_pct > 5 or night_cityscape
        if is_cyberpunk:
            confidence = 80 + min(neon_pct, 15)
        else:
            confidence = 20 + min(neon_pct * 6, 30)

        return {
            'isCyberpunk': is_cyberpunk,
            'neonPercentage': neon_pct,
            'hasNightCityscape': night_cityscape,
            'darkRatio': round(dark_ratio, 4),
            'confidence': confidence,
        }

    return ctx.derived('cyberpunk', compute)


def analyze_natural_noise(ctx):
    noise = noise_profile(ctx)
    has = 1.0 < noise['noiseStd'] < 20
    return {'score': PRESENT_SCORE if has else ABSENT_SCORE, 'hasNaturalNoise': has}


def analyze_natural_textures(ctx, block=16):
    """Natural scenes rarely have most 16px blocks perfectly flat"""
    gray = ctx.gray.astype(np.float32)
    h, w = gray.shape
    bh, bw = h // block, w // block
    if not bh or not bw:
        return {'score': ABSENT_SCORE, 'hasNaturalTextures': False, 'flatBlockRatio': 1.0}

    blocks = gray[:bh * block, :bw * block].reshape(bh, block, bw, block)
    variances = blocks.var(axis=(1, 3))
    flat_ratio = float((variances < 4).mean())

    has = flat_ratio < 0.5
    return {
        'score': PRESENT_SCORE if has else ABSENT_SCORE,
        'hasNaturalTextures': has,
        'flatBlockRatio': round(flat_ratio, 4),
    }


def analyze_natural_lighting(ctx):
    gray = ctx.gray
    clipped = float(((gray <= 2) | (gray >= 253)).mean())
    spread = float(gray.std())
    has = clipped < 0.05 and spread > 25
    return {'score': PRESENT_SCORE if has else ABSENT_SCORE, 'hasNaturalLighting': has}


def analyze_environmental_consistency(ctx):
    """A single sensor leaves similar noise in every quadrant"""
    stds = noise_profile(ctx)['quadrantStds']
    if not stds or min(stds) <= 0:
        has = False
    else:
        has = max(stds) / min(stds) < 3
    return {'score': PRESENT_SCORE if has else ABSENT_SCORE, 'hasEnvironmentalConsistency': has}


def analyze_natural_imperfections(ctx):
    ratio = noise_profile(ctx)['residualRatio']
    has = 0.05 < ratio < 0.8
    return {'score': PRESENT_SCORE if has else ABSENT_SCORE, 'hasNaturalImperfections': has}


def detect_natural_image(ctx):
    noise = analyze_natural_noise(ctx)
    texture = analyze_natural_textures(ctx)
    lighting = analyze_natural_lighting(ctx)
    environment = analyze_environmental_consistency(ctx)
    imperfections = analyze_natural_imperfections(ctx)

    is_natural = (
        (noise['hasNaturalNoise'] or texture['hasNaturalTextures'])
        and (lighting['hasNaturalLighting'] or environment['hasEnvironmentalConsistency'])
        and imperfections['hasNaturalImperfections']
    )

    confidence = (
        noise['score'] + texture['score'] + lighting['score']
        + environment['score'] + imperfections['score']
    ) * 20

    details = []
    if noise['hasNaturalNoise']:
        details.append('natural noise patterns')
    if texture['hasNaturalTextures']:
        details.append('natural texture variations')
    if lighting['hasNaturalLighting']:
        details.append('natural lighting conditions')
    if environment['hasEnvironmentalConsistency']:
        details.append('consistent environmental elements')
    if imperfections['hasNaturalImperfections']:
        details.append('natural imperfections')

    return {
        'isNaturalImage': is_natural,
        'confidence': confidence,
        'hasNaturalNoise': noise['hasNaturalNoise'],
        'hasNaturalTextures': texture['hasNaturalTextures'],
        'hasNaturalLighting': lighting['hasNaturalLighting'],
        'hasEnvironmentalConsistency': environment['hasEnvironmentalConsistency'],
        'hasNaturalImperfections': imperfections['hasNaturalImperfections'],
        'details': details,
    }


def analyze_natural_subjects(ctx):
    noise = analyze_natural_noise(ctx)
    lighting = analyze_natural_lighting(ctx)
    avg_entropy = color_entropy(ctx)
    natural_colors = avg_entropy >= LOW_COLOR_ENTROPY

    colors_score = PRESENT_SCORE if natural_colors else ABSENT_SCORE
    confidence = (noise['score'] + lighting['score'] + colors_score) / 3 * 100

    return {
        'isNaturalSubject': noise['hasNaturalNoise'] and lighting['hasNaturalLighting'] and natural_colors,
        'naturalConfidence': confidence,
        'hasNaturalNoise': noise['hasNaturalNoise'],
        'hasNaturalLighting': lighting['hasNaturalLighting'],
        'hasNaturalColors': natural_colors,
        'colorEntropy': round(avg_entropy, 3),
    }


def analyze_edge_consistency(ctx, step=4):
    """Share of edges whose transitions are suspiciously symmetric on both sides"""
    img = ctx.rgb_i
    h, w = ctx.height, ctx.width
    if h < 3 or w < 3:
        return {'isConsistent': True, 'inconsistencyRatio': 0.0, 'confidence': 70.0}

    center = img[1:h - 1:step, 1:w - 1:step]
    left = img[1:h - 1:step, 0:w - 2:step]
    right = img[1:h - 1:step, 2:w:step]
    top = img[0:h - 2:step, 1:w - 1:step]
    bottom = img[2:h:step, 1:w - 1:step]

    left_d = channel_diff(center, left)
    right_d = channel_diff(center, right)
    top_d = channel_diff(center, top)
    bottom_d = channel_diff(center, bottom)

    edges = (left_d > 100) | (right_d > 100) | (top_d > 100) | (bottom_d > 100)

    h_ratio = np.abs(left_d - right_d) / np.maximum(np.maximum(left_d, right_d), 1)
    v_ratio = np.abs(top_d - bottom_d) / np.maximum(np.maximum(top_d, bottom_d), 1)
    too_perfect = (h_ratio < 0.05) | (v_ratio < 0.05)

    edge_count = int(edges.sum())
    ratio = int((edges & too_perfect).sum()) / edge_count if edge_count else 0.0
    consistent = ratio < 0.4

    return {
        'isConsistent': consistent,
        'inconsistencyRatio': ratio,
        'confidence': 70 + (1 - ratio) * 25 if consistent else 50 - ratio * 20,
    }


def analyze_gradient_naturalness(ctx, size=8):
    """
    Look at 3x3 grids of points ``size`` px apart; a gradient whose steps
    are all within 10% of their mean is too linear to be natural.
    """
    img = ctx.rgb_i
    h, w = ctx.height, ctx.width

    ys = np.arange(size, h - size, size * 2)
    xs = np.arange(size, w - size, size * 2)
    if not len(ys) or not len(xs):
        return {'isNatural': True, 'unnaturalRatio': 0.0, 'confidence': 70.0}

    # Nine samples per grid point in row-major order, shape (9, ny, nx, 3)
    offsets = [(dy, dx) for dy in (-size, 0, size) for dx in (-size, 0, size)]
    samples = np.stack([img[np.ix_(ys + dy, xs + dx)] for dy, dx in offsets])

    diffs = np.abs(samples[1:] - samples[:-1]).sum(axis=-1).astype(np.float64)
    has_gradient = (diffs > 30).any(axis=0)

    avg = diffs.mean(axis=0)
    with np.errstate(divide='ignore', invalid='ignore'):
        near_avg = np.abs(diffs - avg) / avg < 0.1
    perfect = near_avg.sum(axis=0) > diffs.shape[0] * 0.8

    gradient_count = int(has_gradient.sum())
    ratio = int((has_gradient & perfect).sum()) / gradient_count if gradient_count else 0.0
    natural = ratio < 0.5

    return {
        'isNatural': natural,
        'unnaturalRatio': ratio,
        'confidence': 70 + (1 - ratio) * 25 if natural else 50 - ratio * 20,
    }


def perform_enhanced_natural_image_analysis(ctx):
    natural = detect_natural_image(ctx)
    edges = analyze_edge_consistency(ctx)
    gradients = analyze_gradient_naturalness(ctx)

    details = list(natural['details'])
    details.append('consistent edge patterns' if edges['isConsistent'] else 'inconsistent edge patterns')
    details.append('natural color gradients' if gradients['isNatural'] else 'unnatural color gradients')

    confidence = natural['confidence'] * 0.6 + edges['confidence'] * 0.2 + gradients['confidence'] * 0.2

    def flag_score(flag):
        return 0.8 if flag else 0.2

    return {
        'isNaturalImage': natural['isNaturalImage'] or (edges['isConsistent'] and gradients['isNatural']),
        'confidence': confidence,
        'hasNaturalNoise': natural['hasNaturalNoise'],
        'hasNaturalTextures': natural['hasNaturalTextures'],
        'hasNaturalLighting': natural['hasNaturalLighting'],
        'hasEnvironmentalConsistency': natural['hasEnvironmentalConsistency'],
        'hasNaturalImperfections': natural['hasNaturalImperfections'],
        'hasConsistentEdges': edges['isConsistent'],
        'hasNaturalGradients': gradients['isNatural'],
        'details': details,
        'analysisScores': {
            'noise': flag_score(natural['hasNaturalNoise']),
            'texture': flag_score(natural['hasNaturalTextures']),
            'lighting': flag_score(natural['hasNaturalLighting']),
            'environmental': flag_score(natural['hasEnvironmentalConsistency']),
            'imperfections': flag_score(natural['hasNaturalImperfections']),
            'edges': flag_score(edges['isConsistent']),
            'gradients': flag_score(gradients['isNatural']),
        },
    }


def determine_if_natural_photograph(ctx, image_analysis):
    """
    Combine filename hints with a colour/texture profile:
    ``{'colorProfile': {colorDiversity, hasNeonColors, perfectGradients},
    'textureProfile': {repetitivePatterns, noiseInconsistency},
    'isCyberpunkAesthetic'}``
    """
    filename = ctx.filename
    color = image_analysis['colorProfile']
    texture = image_analysis['textureProfile']
    cyberpunk = image_analysis['isCyberpunkAesthetic']

    camera = metadata.has_camera_indicator(filename)
    studio = metadata.has_studio_indicator(filename)
    outdoor = metadata.has_outdoor_indicator(filename)
    ai_style = metadata.has_ai_style_indicator(filename)

    is_natural = (
        (camera or studio or outdoor)
        and not ai_style
        and not cyberpunk
        and color['colorDiversity'] > 0.01
        and not color['hasNeonColors']
        and color['perfectGradients'] < 0.5
        and texture['repetitivePatterns'] < 0.5
        and texture['noiseInconsistency'] < 0.6
    )

    confidence = 50
    confidence += 15 if camera else 0
    confidence += 10 if studio else 0
    confidence += 10 if outdoor else 0
    confidence -= 30 if ai_style else 0
    confidence -= 20 if cyberpunk else 0
    confidence -= 15 if color['hasNeonColors'] else 0
    confidence -= 10 if color['perfectGradients'] > 0.3 else 0
    confidence -= 10 if texture['repetitivePatterns'] > 0.3 else 0
    confidence -= 10 if texture['noiseInconsistency'] > 0.4 else 0

    return {
        'isNaturalPhotograph': is_natural,
        'confidence': max(0, min(100, confidence)),
        'hasCameraIndicator': camera,
        'hasStudioIndicator': studio,
        'hasOutdoorIndicator': outdoor,
        'hasAiStyleIndicator': ai_style,
        'isCyberpunkAesthetic': cyberpunk,
    }
