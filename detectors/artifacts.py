"""
Direct detection of visual artifacts common in AI-generated images
"""

import numpy as np

from .sampling import channel_diff, grid, interior, neighbor, percent, split_channels

STEP = 3

# Percent of sampled pixels above which an artifact counts as present
THRESHOLDS = {
    'symmetry': 50,
    'uncanny': 20,
    'artificialTexture': 40,
    'impossibleLighting': 8,
    'impossibleReflection': 12,
    'digitalArtifact': 20,
    'sciFi': 15,
    'anime': 12,
    'fantasy': 12,
    'unrealisticColor': 15,
}

# Fraction of the top region covered by fox-like ear colors
ANIMAL_EAR_RATIO = 0.05

CONFIDENCE_BONUS = {
    'hasPerfectSymmetry': 10,
    'hasUncannyFeatures': 10,
    'hasArtificialTextures': 10,
    'hasImpossibleLighting': 10,
    'hasImpossibleReflections': 10,
    'hasDigitalArtifacts': 10,
    'hasSciFiElements': 10,
    'hasAnimeFeatures': 20,
    'hasFantasyElements': 15,
    'hasUnrealisticColors': 15,
    'hasAnimalHumanHybrids': 25,
}

ARTIFACT_LABELS = [
    ('hasPerfectSymmetry', 'perfect symmetry'),
    ('hasUncannyFeatures', 'uncanny valley features'),
    ('hasArtificialTextures', 'artificial textures'),
    ('hasImpossibleLighting', 'impossible lighting'),
    ('hasImpossibleReflections', 'impossible reflections'),
    ('hasDigitalArtifacts', 'digital artifacts'),
    ('hasSciFiElements', 'sci-fi elements'),
    ('hasAnimeFeatures', 'anime-style features'),
    ('hasFantasyElements', 'fantasy elements'),
    ('hasUnrealisticColors', 'unrealistic colors'),
    ('hasAnimalHumanHybrids', 'animal-human hybrid features'),
]


def _neon_mask(r, g, b):
    return (
        ((r > 200) & (g < 100) & (b > 200))
        | ((r < 100) & (g > 200) & (b > 200))
        | ((r > 200) & (g > 200) & (b < 100))
        | ((r < 100) & (g > 200) & (b < 100))
        | ((r > 200) & (g < 100) & (b < 100))
        | ((r < 100) & (g < 100) & (b > 200))
    )


def _scifi_mask(r, g, b):
    return (
        ((b > 180) & (g > 180) & (r < 100))
        | ((r > 180) & (b > 180) & (g < 100))
        | ((g > 200) & (b > 150) & (r < 100))
    )


def _anime_eye_mask(r, g, b):
    return (
        ((r > 180) & (g > 180) & (b < 100))
        | ((r < 100) & (g > 180) & (b < 100))
        | ((r < 100) & (g < 100) & (b > 180))
        | ((r > 180) & (g < 100) & (b > 180))
        | ((r > 180) & (g < 100) & (b < 100))
    )


def _anime_hair_mask(r, g, b):
    return (
        ((r > 200) & (g < 150) & (b > 200))
        | ((r < 150) & (g < 150) & (b > 200))
        | ((r > 200) & (g > 150) & (b < 150))
        | ((r < 150) & (g > 200) & (b < 150))
        | ((r > 200) & (g > 200) & (b < 150))
        | ((r > 200) & (g < 150) & (b < 150))
    )


def _fantasy_mask(r, g, b):
    return (
        ((r > 180) & (g > 180) & (b < 100) & (g > r))
        | ((r < 100) & (g > 180) & (b > 180))
        | ((r > 180) & (g < 100) & (b > 180))
    )


def _unrealistic_mask(r, g, b):
    return (
        ((r > 240) & (g > 240) & (b < 100))
        | ((r > 240) & (g < 100) & (b > 240))
        | ((r < 100) & (g > 240) & (b > 240))
        | ((r > 240) & (g < 100) & (b < 100))
        | ((r < 100) & (g > 240) & (b < 100))
        | ((r < 100) & (g < 100) & (b > 240))
    )


def detect_ai_generated_image(ctx):
    """
    Scan a strided sample of the image for AI generation artifacts:
    mirror symmetry, flat or too-regular texture, abrupt lighting jumps,
    reflection-like repeats, and saturated "digital" palettes.
    """
    return ctx.derived('ai_artifacts', _detect_artifacts)


def _detect_artifacts(ctx):
    img = ctx.rgb_i
    h, w = ctx.height, ctx.width
    ys, xs = grid(h, w, STEP)
    sample = img[np.ix_(ys, xs)]
    r, g, b = split_channels(sample)
    total = r.size

    # Mirror symmetry on the left half
    mirror = neighbor(img, ys, w - 1 - xs, 0, 0)
    left_half = np.broadcast_to(xs < w / 2, r.shape)
    symmetry = int((left_half & (channel_diff(sample, mirror) < 30)).sum())

    # Flat or perfectly regular micro texture
    horiz = channel_diff(sample, neighbor(img, ys, xs, 0, 1))
    vert = channel_diff(sample, neighbor(img, ys, xs, 1, 0))
    flat = ((horiz < 5) & (vert < 5)) | (np.abs(horiz - vert) < 2)
    artificial_texture = int((interior(ys, xs, h, w, 1) & flat).sum())

    # Abrupt lighting changes over 10 pixels
    far_h = channel_diff(sample, neighbor(img, ys, xs, 0, 10))
    far_v = channel_diff(sample, neighbor(img, ys, xs, 10, 0))
    jumps = (far_h > 200) | (far_v > 200)
    impossible_lighting = int((interior(ys, xs, h, w, 11) & jumps).sum())

    # Reflection-like repeat 5px below with a different scene 5px above
    above = neighbor(img, ys, xs, -5, 0)
    below = neighbor(img, ys, xs, 5, 0)
    reflection_like = (np.abs(sample - below) < 30).all(axis=-1)
    env_different = (np.abs(sample - above) > 100).any(axis=-1)
    impossible_reflection = int(
        (interior(ys, xs, h, w, 6) & reflection_like & env_different).sum()
    )

    digital = int(_neon_mask(r, g, b).sum())
    scifi = int(_scifi_mask(r, g, b).sum())

    hair_mask = _anime_hair_mask(r, g, b)
    anime = int(_anime_eye_mask(r, g, b).sum()) * 2 + int(hair_mask.sum())
    fantasy = int(_fantasy_mask(r, g, b).sum())
    unrealistic = int(_unrealistic_mask(r, g, b).sum())

    on_shadow_grid = np.outer(ys % 20 == 0, np.ones_like(xs, dtype=bool)) | np.outer(
        np.ones_like(ys, dtype=bool), xs % 20 == 0
    )
    uncanny = int((
        ((r > 220) & (g > 180) & (b > 170) & (g < 210) & (b < 190))
        | ((r > 240) & (g > 240) & (b > 240))
        | ((r < 30) & (g < 30) & (b < 30) & on_shadow_grid)
    ).sum())

    # Several distinct saturated hair hues is typical of anime/fantasy renders
    hair_pixels = sample[hair_mask]
    hair_colors = 0
    if len(hair_pixels):
        hair_colors = len(np.unique(hair_pixels // 20, axis=0))
        if hair_colors > 3:
            anime += hair_colors * 2
            unrealistic += hair_colors

    # Fox-like ear colors concentrated in the top 30% of the frame
    top = img[: max(1, int(h * 0.3)):STEP, ::STEP]
    tr, tg, tb = split_channels(top)
    ear_ratio = float(((tr > 200) & (tg > 150) & (tb < 150) & (tr - tg > 30)).mean())
    has_hybrid = ear_ratio > ANIMAL_EAR_RATIO
    if has_hybrid:
        fantasy += int(total * 0.05)

    scores = {
        'symmetry': percent(symmetry, total / 2),
        'uncanny': percent(uncanny, total),
        'artificialTexture': percent(artificial_texture, total),
        'impossibleLighting': percent(impossible_lighting, total),
        'impossibleReflection': percent(impossible_reflection, total),
        'digitalArtifact': percent(digital, total),
        'sciFi': percent(scifi, total),
        'anime': percent(anime, total),
        'fantasy': percent(fantasy, total),
        'unrealisticColor': percent(unrealistic, total),
    }

    flags = {
        'hasPerfectSymmetry': scores['symmetry'] > THRESHOLDS['symmetry'],
        'hasUncannyFeatures': scores['uncanny'] > THRESHOLDS['uncanny'],
        'hasArtificialTextures': scores['artificialTexture'] > THRESHOLDS['artificialTexture'],
        'hasImpossibleLighting': scores['impossibleLighting'] > THRESHOLDS['impossibleLighting'],
        'hasImpossibleReflections': scores['impossibleReflection'] > THRESHOLDS['impossibleReflection'],
        'hasDigitalArtifacts': scores['digitalArtifact'] > THRESHOLDS['digitalArtifact'],
        'hasSciFiElements': scores['sciFi'] > THRESHOLDS['sciFi'],
        'hasAnimeFeatures': scores['anime'] > THRESHOLDS['anime'],
        'hasFantasyElements': scores['fantasy'] > THRESHOLDS['fantasy'],
        'hasUnrealisticColors': scores['unrealisticColor'] > THRESHOLDS['unrealisticColor'],
        'hasAnimalHumanHybrids': has_hybrid,
    }

    detected = [label for key, label in ARTIFACT_LABELS if flags[key]]

    is_ai = (
        len(detected) >= 3
        or (flags['hasPerfectSymmetry'] and (flags['hasUncannyFeatures'] or flags['hasArtificialTextures']))
        or (flags['hasDigitalArtifacts'] and flags['hasSciFiElements'])
        or (flags['hasUncannyFeatures'] and flags['hasArtificialTextures'])
        or flags['hasAnimeFeatures']
        or flags['hasFantasyElements']
        or flags['hasAnimalHumanHybrids']
        or (flags['hasUnrealisticColors'] and flags['hasDigitalArtifacts'] and flags['hasSciFiElements'])
    )

    confidence = 0
    if is_ai:
        confidence = 70 + sum(bonus for key, bonus in CONFIDENCE_BONUS.items() if flags[key])
        confidence = min(confidence, 98)

    return {
        'isAIGenerated': bool(is_ai),
        'confidence': confidence,
        **{key: bool(value) for key, value in flags.items()},
        'detectedArtifacts': detected,
        'hairColorCount': hair_colors,
        'scores': {key: round(value, 2) for key, value in scores.items()},
    }


def describe_artifacts(result):
    """Human readable findings for the classifier's artifact list"""
    details = []
    if result.get('hasPerfectSymmetry'):
        details.append('perfect symmetry detected')
    if result.get('hasUncannyFeatures'):
        details.append('uncanny valley features detected')
    if result.get('hasArtificialTextures'):
        details.append('artificial texture patterns detected')
    if result.get('hasImpossibleLighting'):
        details.append('impossible lighting detected')
    if result.get('hasImpossibleReflections'):
        details.append('impossible reflections detected')
    if result.get('hasDigitalArtifacts'):
        details.append('digital artifacts detected')
    if result.get('hasSciFiElements'):
        details.append('sci-fi elements detected')
    return details


def empty_result():
    """Neutral result used when artifact analysis fails"""
    return {
        'isAIGenerated': False,
        'confidence': 0,
        **{key: False for key in CONFIDENCE_BONUS},
        'detectedArtifacts': [],
        'hairColorCount': 0,
        'scores': {},
    }
