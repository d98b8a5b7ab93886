"""
Texture analysis: smoothness, regular and repetitive patterns, block noise
and colour distribution
"""

import numpy as np

REGION = 32
PATTERN_REGION = 64
MATCH_DIFF = 30


def _blocks(arr, size):
    """View an (H, W, ...) array as (rows, cols, size, size, ...) tiles, dropping ragged edges"""
    rows, cols = arr.shape[0] // size, arr.shape[1] // size
    trimmed = arr[:rows * size, :cols * size]
    shape = (rows, size, cols, size) + arr.shape[2:]
    return np.swapaxes(trimmed.reshape(shape), 1, 2)


def analyze_smoothness(ctx):
    img = ctx.rgb_i
    h, w = ctx.height, ctx.width
    if h < 2 or w < 2:
        return {'tooSmooth': False, 'smoothnessScore': 0.0, 'confidence': 0.7}

    # Every second pixel, against its right and lower neighbours
    base = img[:h - 1:2, :w - 1:2]
    right = img[:h - 1:2, 1:w:2]
    below = img[1:h:2, :w - 1:2]
    variation = np.abs(base - right).sum(axis=-1) + np.abs(base - below).sum(axis=-1)

    avg_variation = float(variation.mean())
    tiles = _blocks(variation, REGION // 2)
    smooth_ratio = float((tiles.mean(axis=(2, 3)) < 15).mean()) if tiles.size else 0.0

    smoothness = max(0.0, min(1.0, 1 - avg_variation / 60))
    return {
        'tooSmooth': avg_variation < 20 or smooth_ratio > 0.7,
        'smoothnessScore': smoothness,
        'confidence': 0.7 + abs(smoothness - 0.5) * 0.6,
    }


def analyze_regularity(ctx):
    """Share of 64px regions nearly identical to the region right of or below them"""
    tiles = _blocks(ctx.rgb_i, PATTERN_REGION)[:, :, ::4, ::4]
    rows, cols = tiles.shape[:2]
    if rows < 2 or cols < 2:
        return {'tooRegular': False, 'regularityScore': 0.0, 'confidence': 0.7}

    base = tiles[:-1, :-1]
    to_right = (np.abs(base - tiles[:-1, 1:]).sum(axis=-1) < MATCH_DIFF).mean(axis=(2, 3))
    to_bottom = (np.abs(base - tiles[1:, :-1]).sum(axis=-1) < MATCH_DIFF).mean(axis=(2, 3))

    ratio = float(((to_right > 0.8) | (to_bottom > 0.8)).mean())
    return {
        'tooRegular': ratio > 0.3,
        'regularityScore': ratio,
        'confidence': 0.7 + ratio * 0.3,
    }


def detect_artificial_patterns(ctx):
    smooth = analyze_smoothness(ctx)
    regular = analyze_regularity(ctx)
    return {
        'hasArtificialPatterns': smooth['tooSmooth'] or regular['tooRegular'],
        'tooSmooth': smooth['tooSmooth'],
        'tooRegular': regular['tooRegular'],
        'confidence': (smooth['confidence'] + regular['confidence']) / 2,
    }


def detect_repetitive_textures(ctx):
    """32px regions that match themselves shifted by 4px"""
    tiles = _blocks(ctx.rgb_i, REGION)
    rows, cols = tiles.shape[:2]
    if rows < 2 or cols < 2:
        return {'hasRepetitiveTextures': False, 'repetitiveScore': 0.0, 'confidence': 0.7}

    tiles = tiles[:-1, :-1]
    repetitive = np.zeros(tiles.shape[:2], dtype=bool)
    for dy, dx in ((0, 4), (4, 0), (4, 4)):
        a = tiles[:, :, :REGION - dy:2, :REGION - dx:2]
        b = tiles[:, :, dy::2, dx::2][:, :, :a.shape[2], :a.shape[3]]
        similarity = (np.abs(a - b).sum(axis=-1) < MATCH_DIFF).mean(axis=(2, 3))
        repetitive |= similarity > 0.8

    score = float(repetitive.mean())
    return {
        'hasRepetitiveTextures': score > 0.3,
        'repetitiveScore': score,
        'confidence': 0.7 + score * 0.3,
    }


def analyze_noise_levels(ctx):
    """Mean horizontal pixel variation per 32px region and its spread"""
    img = ctx.rgb_i
    variation = np.abs(img[:, :-1] - img[:, 1:]).sum(axis=-1)
    tiles = _blocks(variation, REGION)
    if not tiles.size:
        return {'noiseLevel': 0.0, 'noiseInconsistency': 0.0, 'confidence': 0.0}

    region_noise = tiles.mean(axis=(2, 3))
    level = min(float(region_noise.mean()) / 30, 1.0)
    inconsistency = min(float(region_noise.std()) / 15, 1.0)

    return {
        'noiseLevel': level,
        'noiseInconsistency': inconsistency,
        'confidence': 0.7 + abs(level - 0.5) * 0.6,
    }


def analyze_color_histogram(ctx):
    """64-bin (2 bits per channel) histogram entropy plus dominant colour share"""
    pixels = ctx.rgb.reshape(-1, 3)[::4]
    if not len(pixels):
        return {'isUnnatural': False, 'naturalScore': 50.0, 'confidence': 0.0, 'dominantColors': []}

    bins = (pixels[:, 0] >> 6).astype(np.int32) << 4 | (pixels[:, 1] >> 6) << 2 | (pixels[:, 2] >> 6)
    hist = np.bincount(bins, minlength=64) / float(len(pixels))
    nonzero = hist[hist > 0]

    normalized_entropy = float(-(nonzero * np.log2(nonzero)).sum() / np.log2(64))
    utilization = len(nonzero) / 64.0
    hist_unnatural = normalized_entropy < 0.5 or utilization < 0.3
    hist_score = (normalized_entropy * 0.6 + utilization * 0.4) * 100
    hist_conf = 0.7 + abs(normalized_entropy - 0.5) * 0.6

    quantised = (pixels // 32) * 32
    colors, counts = np.unique(quantised, axis=0, return_counts=True)
    order = np.argsort(-counts, kind='stable')
    top_ratio = counts[order[0]] / float(len(pixels))
    variety = len(colors) / 512.0
    dominant_unnatural = top_ratio > 0.5 or variety < 0.1
    dominant_score = ((1 - top_ratio) * 0.5 + variety * 0.5) * 100
    dominant_conf = 0.7 + abs(variety - 0.5) * 0.6

    return {
        'isUnnatural': hist_unnatural or dominant_unnatural,
        'naturalScore': (hist_score + dominant_score) / 2,
        'confidence': (hist_conf + dominant_conf) / 2,
        'dominantColors': ['rgb({},{},{})'.format(*colors[i]) for i in order[:5]],
    }


def analyze_texture(ctx):
    patterns = detect_artificial_patterns(ctx)
    histogram = analyze_color_histogram(ctx)
    repetitive = detect_repetitive_textures(ctx)
    noise = analyze_noise_levels(ctx)

    details = []
    if patterns['hasArtificialPatterns']:
        details.append('artificial texture patterns detected')
        if patterns['tooSmooth']:
            details.append('unnaturally smooth texture areas')
        if patterns['tooRegular']:
            details.append('too regular pattern distribution')
    if repetitive['hasRepetitiveTextures']:
        details.append('repetitive texture patterns detected')
    if noise['noiseInconsistency'] > 0.5:
        details.append('inconsistent noise distribution')
    if histogram['isUnnatural']:
        details.append('unnatural color distribution')
    if not details:
        details.append('natural texture patterns')

    return {
        'hasArtificialPatterns': (
            patterns['hasArtificialPatterns']
            or repetitive['hasRepetitiveTextures']
            or noise['noiseInconsistency'] > 0.5
        ),
        'confidence': (patterns['confidence'] + repetitive['confidence'] + noise['confidence']) / 3,
        'noiseLevel': noise['noiseLevel'],
        'noiseConsistency': 1 - noise['noiseInconsistency'],
        'repetitiveTextures': repetitive['repetitiveScore'],
        'colorHistogramScore': histogram['naturalScore'],
        'details': details,
    }
