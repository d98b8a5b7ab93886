"""
Portrait detection: skin tones, studio and outdoor backgrounds, lighting
"""

import numpy as np

from .sampling import percent, split_channels

SKIN_STEP = 4
BACKGROUND_STEP = 4
PORTRAIT_STEP = 5


def skin_mask(r, g, b):
    return (
        (r > 50) & (g > 30) & (b > 15)
        & (r > g) & (g > b)
        & (r - g > 3) & (g - b > 3)
        & (r < 250) & (g < 250) & (b < 250)
    )


def count_skin_tone_pixels(ctx):
    """Number of sampled pixels (every 4th in both directions) with a skin tone"""
    r, g, b = split_channels(ctx.sample(SKIN_STEP))
    return int(skin_mask(r, g, b).sum())


def skin_tone_percentage(ctx):
    sampled = ctx.sample(SKIN_STEP)
    return percent(count_skin_tone_pixels(ctx), sampled.shape[0] * sampled.shape[1])


def _background_pixels(ctx):
    img = ctx.rgb_i
    h, w = ctx.height, ctx.width
    regions = [
        img[:int(h * 0.2):BACKGROUND_STEP, ::BACKGROUND_STEP],
        img[::BACKGROUND_STEP, :int(w * 0.1):BACKGROUND_STEP],
        img[::BACKGROUND_STEP, int(w * 0.9)::BACKGROUND_STEP],
    ]
    return np.concatenate([region.reshape(-1, 3) for region in regions if region.size])


def analyze_background(ctx):
    """Classify the top strip and side edges as outdoor scenery or a studio backdrop"""
    pixels = _background_pixels(ctx)
    if not len(pixels):
        return {'isOutdoor': False, 'isStudio': False, 'outdoorPercentage': 0.0, 'studioPercentage': 0.0}

    r, g, b = split_channels(pixels)

    sky = (b > r) & (b > g)
    foliage = (g > r) & (g > b)
    earth = (r > g) & (g > b)
    outdoor = sky | foliage | earth

    uniform = (np.abs(r - g) < 20) & (np.abs(r - b) < 20) & (np.abs(g - b) < 20)
    white = (r > 200) & (g > 200) & (b > 200)
    gray = (np.abs(r - g) < 15) & (np.abs(r - b) < 15) & (r > 50) & (r < 200)
    studio = uniform & (white | gray)

    outdoor_pct = percent(int(outdoor.sum()), len(pixels))
    studio_pct = percent(int(studio.sum()), len(pixels))

    return {
        'isOutdoor': outdoor_pct > 30,
        'isStudio': studio_pct > 40,
        'outdoorPercentage': round(outdoor_pct, 2),
        'studioPercentage': round(studio_pct, 2),
    }


def analyze_studio_lighting(ctx):
    """
    Even lighting over skin in the centre of the frame, where a posed
    subject's face sits.
    """
    img = ctx.rgb_i
    h, w = ctx.height, ctx.width
    y1, y2 = int(h * 0.1), int(h * 0.6)
    x1, x2 = int(w * 0.3), int(w * 0.7)

    ys = np.arange(y1, min(y2 + 1, h - 1), PORTRAIT_STEP)
    xs = np.arange(x1, min(x2 + 1, w - 1), PORTRAIT_STEP)
    if not len(ys) or not len(xs):
        return {'isStudioLighting': False, 'hasCenteredFace': False, 'evenLightingPercentage': 0.0}

    center = img[np.ix_(ys, xs)]
    right = img[np.ix_(ys, xs + 1)]
    below = img[np.ix_(ys + 1, xs)]
    r, g, b = split_channels(center)

    skin = skin_mask(r, g, b) & (r - g > 5) & (g - b > 5)
    brightness = center.mean(axis=-1)
    even = (
        (np.abs(brightness - right.mean(axis=-1)) < 20)
        & (np.abs(brightness - below.mean(axis=-1)) < 20)
    )

    skin_count = int(skin.sum())
    centered_face = percent(skin_count, skin.size) > 10
    even_pct = percent(int((skin & even).sum()), skin_count)

    return {
        'isStudioLighting': centered_face and even_pct > 60,
        'hasCenteredFace': centered_face,
        'evenLightingPercentage': round(even_pct, 2),
    }


def analyze_natural_lighting_conditions(ctx):
    """Daylight scenes: a brighter top than bottom, or a wide tonal range without clipping"""
    gray = ctx.gray
    h = ctx.height
    third = max(1, h // 3)

    top = float(gray[:third].mean())
    bottom = float(gray[-third:].mean())
    spread = float(gray.std())
    clipped = float(((gray <= 2) | (gray >= 253)).mean())

    is_natural = clipped < 0.05 and (top > bottom + 5 or spread > 40)

    return {
        'isNaturalLighting': is_natural,
        'topBrightness': round(top, 2),
        'bottomBrightness': round(bottom, 2),
        'tonalSpread': round(spread, 2),
        'clippedRatio': round(clipped, 4),
    }


def detect_studio_portrait(ctx):
    background = analyze_background(ctx)
    lighting = analyze_studio_lighting(ctx)
    return background['isStudio'] and lighting['isStudioLighting']


def detect_outdoor_portrait(ctx):
    background = analyze_background(ctx)
    if not background['isOutdoor'] or skin_tone_percentage(ctx) <= 5:
        return False
    return analyze_natural_lighting_conditions(ctx)['isNaturalLighting']


def detect_enhanced_portrait(ctx):
    lower = ctx.filename.lower()

    has_portrait_indicator = any(t in lower for t in ('portrait', 'photo', 'pic', 'img', 'dsc', 'jpg', 'jpeg'))
    has_outdoor_indicator = any(t in lower for t in ('outdoor', 'nature', 'outside', 'landscape'))
    has_studio_indicator = any(t in lower for t in ('studio', 'professional', 'headshot'))

    skin_pct = skin_tone_percentage(ctx)
    background = analyze_background(ctx)

    is_portrait = skin_pct > 5 or has_portrait_indicator
    is_outdoor = is_portrait and (background['isOutdoor'] or has_outdoor_indicator)
    is_studio = is_portrait and (background['isStudio'] or has_studio_indicator)

    confidence = 0
    if is_portrait:
        confidence = 70
        confidence += 10 if skin_pct > 10 else 0
        confidence += 10 if has_portrait_indicator else 0
        if is_outdoor:
            confidence += 10 if background['isOutdoor'] else 0
            confidence += 10 if has_outdoor_indicator else 0
        if is_studio:
            confidence += 10 if background['isStudio'] else 0
            confidence += 10 if has_studio_indicator else 0
        confidence = min(confidence, 95)

    return {
        'isPortraitPhoto': is_portrait,
        'isOutdoorPortrait': is_outdoor,
        'isStudioPortrait': is_studio,
        'confidence': confidence,
        'skinTonePercentage': round(skin_pct, 2),
        'backgroundAnalysis': background,
    }
