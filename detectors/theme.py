"""
Theme analysis: cyberpunk, mechanical hybrid, science fiction and fantasy
colour and edge cues
"""

import cv2
import numpy as np

from .anime import detect_anime_style_image
from .face import measure_face
from .natural import detect_cyberpunk_aesthetic
from .portrait import skin_mask
from .sampling import percent, split_channels

DETECTED_CONFIDENCE = 0.85
ABSENT_CONFIDENCE = 0.6


def analyze_neon_colors(ctx):
    r, g, b = split_channels(ctx.rgb_i.reshape(-1, 3)[::4])
    neon = (
        ((r > 200) & (g < 100) & (b > 150))
        | ((r < 100) & (g > 100) & (b > 200))
        | ((r < 100) & (g > 200) & (b < 100))
        | ((r > 150) & (g < 100) & (b > 200))
        | ((r < 100) & (g > 200) & (b > 200))
    )
    neon_pct = percent(int(neon.sum()), r.size)
    return {
        'hasNeonColors': neon_pct > 10,
        'neonPercentage': neon_pct,
        'confidence': min(0.7 + neon_pct / 100, 1.0),
    }


def detect_cyberpunk_elements(ctx):
    neon = analyze_neon_colors(ctx)
    cityscape = detect_cyberpunk_aesthetic(ctx)['hasNightCityscape']
    city_conf = DETECTED_CONFIDENCE if cityscape else ABSENT_CONFIDENCE
    return {
        'hasCyberpunkElements': neon['hasNeonColors'] or cityscape,
        'hasNeonLighting': neon['hasNeonColors'],
        'hasFuturisticCityscape': cityscape,
        'confidence': (neon['confidence'] + city_conf) / 2,
    }


def detect_mechanical_hybrid_elements(ctx):
    """Hard-edged metallic surfaces next to skin, or glowing spots on a face"""
    hsv = ctx.hsv
    edges = cv2.Canny(ctx.gray, 60, 150) > 0
    edges = cv2.dilate(edges.astype(np.uint8), np.ones((5, 5), np.uint8)) > 0
    metallic = (hsv[:, :, 1] < 30) & (hsv[:, :, 2] > 120) & (hsv[:, :, 2] < 235) & edges

    r, g, b = split_channels(ctx.rgb_i)
    skin_ratio = float(skin_mask(r, g, b).mean())
    body_parts = float(metallic.mean()) > 0.15 and skin_ratio > 0.05

    implants = False
    face = measure_face(ctx)
    if face is not None:
        x, y, w, h = face['faceBox']
        face_hsv = hsv[y:y + h, x:x + w]
        glow = (face_hsv[:, :, 1] > 150) & (face_hsv[:, :, 2] > 220)
        implants = float(glow.mean()) > 0.03 if glow.size else False

    detected = body_parts or implants
    return {
        'hasMechanicalHybridElements': detected,
        'hasMechanicalBodyParts': body_parts,
        'hasImplants': implants,
        'confidence': DETECTED_CONFIDENCE if detected else ABSENT_CONFIDENCE,
    }


def detect_science_fiction_themes(ctx):
    h = ctx.hsv[:, :, 0]
    s = ctx.hsv[:, :, 1]
    v = ctx.hsv[:, :, 2]

    # Magenta/violet dominated scenery (OpenCV hue 130-170)
    alien = float(((h >= 130) & (h <= 170) & (s > 100)).mean()) > 0.25
    # Glowing cyan and blue panels
    tech = float(((h >= 85) & (h <= 110) & (s > 150) & (v > 200)).mean()) > 0.05

    detected = alien or tech
    return {
        'hasScienceFictionThemes': detected,
        'hasAlienEnvironment': alien,
        'hasFuturisticTechnology': tech,
        'confidence': DETECTED_CONFIDENCE if detected else ABSENT_CONFIDENCE,
    }


def detect_fantasy_elements(ctx):
    img = ctx.rgb_i
    height = ctx.height
    top = img[:max(1, int(height * 0.3)):3, ::3]
    tr, tg, tb = split_channels(top)
    creatures = float(((tr > 200) & (tg > 150) & (tb < 150) & (tr - tg > 30)).mean()) > 0.05

    sky = ctx.hsv[:max(1, height // 3)]
    landscape = float(((sky[:, :, 0] >= 125) & (sky[:, :, 0] <= 165) & (sky[:, :, 1] > 100)).mean()) > 0.3

    unreal_colors = detect_anime_style_image(ctx)['hasUnrealColors']

    detected = creatures or landscape or unreal_colors
    return {
        'hasFantasyElements': detected,
        'hasMagicalCreatures': creatures,
        'hasFantasyLandscape': landscape,
        'hasUnrealColors': unreal_colors,
        'confidence': DETECTED_CONFIDENCE if detected else ABSENT_CONFIDENCE,
    }


def analyze_theme(ctx):
    cyberpunk = detect_cyberpunk_elements(ctx)
    mechanical = detect_mechanical_hybrid_elements(ctx)
    scifi = detect_science_fiction_themes(ctx)
    fantasy = detect_fantasy_elements(ctx)

    details = []
    if cyberpunk['hasCyberpunkElements']:
        details.append('cyberpunk aesthetic detected')
        if cyberpunk['hasNeonLighting']:
            details.append('neon lighting effects')
        if cyberpunk['hasFuturisticCityscape']:
            details.append('futuristic cityscape')
    if mechanical['hasMechanicalHybridElements']:
        details.append('mechanical human hybrid elements detected')
        if mechanical['hasMechanicalBodyParts']:
            details.append('mechanical body parts')
        if mechanical['hasImplants']:
            details.append('technological implants')
    if scifi['hasScienceFictionThemes']:
        details.append('science fiction theme detected')
        if scifi['hasAlienEnvironment']:
            details.append('alien/other-worldly environment')
        if scifi['hasFuturisticTechnology']:
            details.append('futuristic technology')
    if fantasy['hasFantasyElements']:
        details.append('fantasy elements detected')
        if fantasy['hasMagicalCreatures']:
            details.append('magical creatures')
        if fantasy['hasFantasyLandscape']:
            details.append('fantasy landscape')
        if fantasy['hasUnrealColors']:
            details.append('unrealistic color palette')

    return {
        'hasCyberpunkElements': cyberpunk['hasCyberpunkElements'],
        'hasMechanicalHybridElements': mechanical['hasMechanicalHybridElements'],
        'hasScienceFictionThemes': scifi['hasScienceFictionThemes'],
        'hasFantasyElements': fantasy['hasFantasyElements'],
        'confidence': (
            cyberpunk['confidence'] + mechanical['confidence']
            + scifi['confidence'] + fantasy['confidence']
        ) / 4,
        'details': details,
    }
