"""
Rendering style analysis: anime, cartoon, hyper-realistic and generic
digital art
"""

import cv2
import numpy as np

from .anime import detect_anime_style_image
from .natural import LOW_COLOR_ENTROPY, color_entropy, noise_profile

DETECTED_CONFIDENCE = 0.85
ABSENT_CONFIDENCE = 0.6


def _palette_concentration(ctx, top=8):
    """Share of pixels in the ``top`` most common hue/value cells"""
    hsv = ctx.hsv[::2, ::2]
    cells = (hsv[:, :, 0].astype(np.int32) // 10) * 16 + hsv[:, :, 2] // 16
    counts = np.bincount(cells.ravel())
    if not counts.sum():
        return 0.0
    return float(np.sort(counts)[::-1][:top].sum()) / counts.sum()


def detect_anime_style(ctx):
    anime = detect_anime_style_image(ctx)
    anime_eyes = anime['isAnimeStyle'] and anime['hasUnrealColors']
    # Cel shading: few flat tones separated by hard lines
    cel_shading = anime['hasSharpLines'] and _palette_concentration(ctx) > 0.6

    has_style = anime_eyes or cel_shading
    return {
        'hasAnimeStyle': has_style,
        'hasAnimeEyes': anime_eyes,
        'hasAnimeShadingPatterns': cel_shading,
        'confidence': max(anime['confidence'] / 100.0, DETECTED_CONFIDENCE) if has_style else ABSENT_CONFIDENCE,
    }


def detect_cartoon_style(ctx):
    edges = cv2.Canny(ctx.gray, 80, 160) > 0
    edge_density = float(edges.mean())
    dark = ctx.hsv[:, :, 2] < 60
    dark_edge_ratio = float((edges & dark).sum()) / edges.sum() if edges.any() else 0.0
    outlines = edge_density > 0.04 and dark_edge_ratio > 0.5

    pixels = ctx.sample(4).reshape(-1, 3)
    palette = len(np.unique(pixels // 32, axis=0)) if len(pixels) else 0
    colors = palette < 40 and float(ctx.hsv[:, :, 1].mean()) > 100

    has_style = outlines or colors
    return {
        'hasCartoonStyle': has_style,
        'hasCartoonOutlines': outlines,
        'hasCartoonColors': colors,
        'paletteSize': palette,
        'confidence': DETECTED_CONFIDENCE if has_style else ABSENT_CONFIDENCE,
    }


def detect_hyper_realistic_style(ctx):
    """Rich detail with no sensor noise underneath it"""
    noise = noise_profile(ctx)['noiseStd']
    detail = float(cv2.Laplacian(ctx.gray, cv2.CV_64F).var())
    saturation = float(ctx.hsv[:, :, 1].mean())

    perfect_textures = noise < 1.0
    too_much_detail = perfect_textures and detail > 500
    has_style = perfect_textures and (too_much_detail or saturation > 110)

    return {
        'hasHyperRealisticStyle': has_style,
        'hasTooMuchDetail': too_much_detail,
        'hasPerfectTextures': perfect_textures,
        'confidence': DETECTED_CONFIDENCE if has_style else ABSENT_CONFIDENCE,
    }


def analyze_style(ctx):
    anime = detect_anime_style(ctx)
    cartoon = detect_cartoon_style(ctx)
    hyper = detect_hyper_realistic_style(ctx)

    low_entropy = color_entropy(ctx) < LOW_COLOR_ENTROPY
    confidences = (anime['confidence'], cartoon['confidence'], hyper['confidence'])
    digital_art = low_entropy or max(confidences) > 0.7
    digital_conf = max(confidences + ((DETECTED_CONFIDENCE,) if low_entropy else ()))

    details = []
    if anime['hasAnimeStyle']:
        details.append('anime style detected')
        if anime['hasAnimeEyes']:
            details.append('anime-style eyes')
        if anime['hasAnimeShadingPatterns']:
            details.append('anime-style cell shading')
    if cartoon['hasCartoonStyle']:
        details.append('cartoon style detected')
        if cartoon['hasCartoonOutlines']:
            details.append('cartoon-style outlines')
        if cartoon['hasCartoonColors']:
            details.append('cartoon-style color palette')
    if hyper['hasHyperRealisticStyle']:
        details.append('hyper-realistic style detected')
        if hyper['hasTooMuchDetail']:
            details.append('unnaturally high level of detail')
        if hyper['hasPerfectTextures']:
            details.append('too-perfect textures')
    if digital_art and not (anime['hasAnimeStyle'] or cartoon['hasCartoonStyle'] or hyper['hasHyperRealisticStyle']):
        details.append('digital art style detected')

    return {
        'hasAnimeStyle': anime['hasAnimeStyle'],
        'hasCartoonStyle': cartoon['hasCartoonStyle'],
        'hasDigitalArtStyle': digital_art,
        'hasHyperRealisticStyle': hyper['hasHyperRealisticStyle'],
        'confidence': (sum(confidences) + digital_conf) / 4,
        'details': details,
    }
