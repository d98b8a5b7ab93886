"""
Lighting analysis: shadow direction agreement, highlight clipping,
reflection brightness and light source count
"""

import math

import cv2
import numpy as np

# Illumination gradients weaker than this (grey levels per pixel) carry no direction
MIN_GRADIENT = 0.05
SHADOW_ANGLE = 90
HIGHLIGHT_CLIP = 0.05
MIN_LIGHT_AREA = 0.001


def _illumination(ctx):
    """Luminance with detail blurred away, leaving the lighting falloff"""
    size = max(3, (min(ctx.width, ctx.height) // 16) | 1)
    return cv2.GaussianBlur(ctx.gray.astype(np.float32), (size, size), 0)


def _angle_between(a, b):
    diff = abs(a - b) % 360
    return min(diff, 360 - diff)


def analyze_shadow_directions(ctx):
    """Compare the dominant illumination gradient of each quadrant"""
    light = _illumination(ctx)
    gx = cv2.Sobel(light, cv2.CV_32F, 1, 0, ksize=3) / 8.0
    gy = cv2.Sobel(light, cv2.CV_32F, 0, 1, ksize=3) / 8.0

    h, w = light.shape
    directions = []
    for ys, xs in (
        (slice(0, h // 2), slice(0, w // 2)),
        (slice(0, h // 2), slice(w // 2, w)),
        (slice(h // 2, h), slice(0, w // 2)),
        (slice(h // 2, h), slice(w // 2, w)),
    ):
        mx = float(gx[ys, xs].mean()) if gx[ys, xs].size else 0.0
        my = float(gy[ys, xs].mean()) if gy[ys, xs].size else 0.0
        if math.hypot(mx, my) > MIN_GRADIENT:
            directions.append(math.degrees(math.atan2(my, mx)) % 360)

    spread = 0.0
    for i, a in enumerate(directions):
        for b in directions[i + 1:]:
            spread = max(spread, _angle_between(a, b))

    return {
        'multipleShadowDirections': len(directions) >= 2 and spread > SHADOW_ANGLE,
        'shadowDirections': [round(d, 1) for d in directions],
        'confidence': 0.7,
    }


def analyze_highlight_consistency(ctx):
    v = ctx.hsv[:, :, 2]
    s = ctx.hsv[:, :, 1]
    clipped = float((v >= 253).mean())
    specular = (v > 245) & (s < 40)

    # Blown highlights on both sides of the frame at once
    h, w = specular.shape
    left = float(specular[:, :w // 3].mean()) if w >= 3 else 0.0
    right = float(specular[:, w - w // 3:].mean()) if w >= 3 else 0.0
    both_sides = left > 0.02 and right > 0.02

    return {
        'inconsistentHighlights': clipped > HIGHLIGHT_CLIP or both_sides,
        'clippedRatio': round(clipped, 4),
        'confidence': 0.7,
    }


def detect_impossible_lighting(ctx):
    shadows = analyze_shadow_directions(ctx)
    highlights = analyze_highlight_consistency(ctx)
    return {
        'hasImpossibleLighting': shadows['multipleShadowDirections'] or highlights['inconsistentHighlights'],
        'multipleShadowDirections': shadows['multipleShadowDirections'],
        'inconsistentHighlights': highlights['inconsistentHighlights'],
        'confidence': (shadows['confidence'] + highlights['confidence']) / 2,
    }


def analyze_reflection_consistency(ctx):
    """
    A lower half that mirrors the upper half is a reflection; real ones are
    darker than what they reflect.
    """
    gray = ctx.gray.astype(np.int16)
    h = gray.shape[0]
    half = h // 2
    if half < 4:
        return {'hasInconsistentReflections': False, 'consistencyScore': 1.0, 'confidence': 0.7}

    top = gray[:half]
    bottom = np.flipud(gray[h - half:])
    mirror_similarity = float((np.abs(top - bottom) < 12).mean())
    is_reflection = mirror_similarity > 0.6
    too_bright = float(bottom.mean()) >= float(top.mean())

    inconsistent = is_reflection and too_bright
    score = 1 - mirror_similarity if inconsistent else 1.0

    return {
        'hasInconsistentReflections': inconsistent,
        'consistencyScore': round(score, 4),
        'confidence': 0.7,
    }


def detect_light_sources(ctx):
    """Bright blobs covering at least 0.1% of the frame"""
    light = _illumination(ctx)
    mask = (light > max(230.0, float(light.mean()) + 60)).astype(np.uint8)
    count, _labels, stats, centroids = cv2.connectedComponentsWithStats(mask, connectivity=8)

    min_area = MIN_LIGHT_AREA * ctx.pixel_count
    sources = []
    for i in range(1, count):
        if stats[i, cv2.CC_STAT_AREA] >= min_area:
            x, y = centroids[i]
            sources.append({'x': float(x), 'y': float(y), 'area': int(stats[i, cv2.CC_STAT_AREA])})
    return sources


def analyze_lighting(ctx):
    impossible = detect_impossible_lighting(ctx)
    reflections = analyze_reflection_consistency(ctx)
    sources = detect_light_sources(ctx)
    inconsistent_sources = len(sources) > 2

    details = []
    if impossible['hasImpossibleLighting']:
        details.append('physically impossible lighting detected')
        if impossible['multipleShadowDirections']:
            details.append('inconsistent shadow directions')
        if impossible['inconsistentHighlights']:
            details.append('inconsistent highlight positions')
    if reflections['hasInconsistentReflections']:
        details.append('inconsistent reflection patterns')
    if inconsistent_sources:
        details.append('inconsistent light source positions')
        details.append(f"{len(sources)} conflicting light sources")

    consistent = (
        not impossible['hasImpossibleLighting']
        and not reflections['hasInconsistentReflections']
        and not inconsistent_sources
    )
    if consistent:
        details.append('consistent lighting')
    else:
        details.insert(0, 'inconsistent lighting')

    return {
        'hasConsistentLighting': consistent,
        'confidence': (impossible['confidence'] + reflections['confidence'] + 0.7) / 3,
        'lightSourceCount': len(sources),
        'reflectionConsistency': reflections['consistencyScore'],
        'impossibleLighting': impossible['hasImpossibleLighting'],
        'details': details,
    }
