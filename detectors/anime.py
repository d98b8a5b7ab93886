"""
Anime and cartoon style detection from saturated palettes, hard outlines
and flat shading
"""

import numpy as np

from .sampling import channel_diff, grid, interior, neighbor, split_channels

STEP = 5


def detect_anime_style_image(ctx):
    return ctx.derived('anime_style', _detect_anime_style)


def _detect_anime_style(ctx):
    img = ctx.rgb_i
    h, w = ctx.height, ctx.width
    ys, xs = grid(h, w, STEP)
    sample = img[np.ix_(ys, xs)]
    r, g, b = split_channels(sample)
    total = r.size

    # Flat blue (ID photo) and bright gray/white (portrait) backdrops are skipped
    blue_bg = (b > 120) & (b > r * 1.5) & (b > g * 1.2)
    gray_bg = (
        (np.abs(r - g) < 15) & (np.abs(g - b) < 15) & (np.abs(r - b) < 15)
        & (r > 180) & (g > 180) & (b > 180)
    )
    counted = ~(blue_bg | gray_bg)

    mx = sample.max(axis=-1)
    mn = sample.min(axis=-1)
    saturation = np.where(mx == 0, 0.0, (mx - mn) / np.maximum(mx, 1))
    bright = counted & (saturation > 0.8) & (mx > 200)

    def bright_count(mask):
        return int((bright & mask).sum())

    purple = bright_count((r > 220) & (g < 120) & (b > 220))
    pink = bright_count((r > 220) & (g < 80) & (b > 150))
    cyan = bright_count((r < 120) & (g > 220) & (b > 220))
    bright_green = bright_count((r < 120) & (g > 220) & (b < 120))
    bright_orange = bright_count((r > 220) & (g > 150) & (b < 80))
    bright_blue = bright_count((r < 120) & (g < 120) & (b > 220))
    bright_red = bright_count((r > 220) & (g < 80) & (b < 80))

    unreal = int((counted & (
        ((r > 200) & (g < 80) & (b > 200))
        | ((r > 200) & (g < 80) & (b < 80))
        | ((r < 80) & (g > 200) & (b < 80))
        | ((r < 80) & (g < 80) & (b > 200))
        | ((r > 200) & (g > 200) & (b < 80))
        | ((r < 80) & (g > 200) & (b > 200))
        | ((r > 200) & (g < 80) & (b > 120))
    )).sum())

    horiz = channel_diff(sample, neighbor(img, ys, xs, 0, 1))
    vert = channel_diff(sample, neighbor(img, ys, xs, 1, 0))
    sharp = int((counted & interior(ys, xs, h, w, 1) & ((horiz > 120) | (vert > 120))).sum())

    variation = np.abs(r - g) + np.abs(g - b) + np.abs(r - b)
    uniform = int((counted & (variation < 20)).sum())

    unreal_pct = unreal / total * 100
    bright_pct = int(bright.sum()) / total * 100
    sharp_pct = sharp / total * 100
    uniform_pct = uniform / total * 100

    has_rainbow_hair = (
        (bright_orange > total * 0.08 and bright_blue > total * 0.03)
        or (bright_red > total * 0.08 and bright_blue > total * 0.03)
        or (bright_orange > total * 0.08 and cyan > total * 0.03)
        or (purple > total * 0.05 and bright_green > total * 0.05)
        or (pink > total * 0.05 and cyan > total * 0.05)
    )
    has_animal_ears = bright_orange > total * 0.08 and sharp_pct > 8 and uniform_pct > 25

    has_unreal_colors = unreal_pct > 8 or bright_pct > 15
    has_sharp_lines = sharp_pct > 8
    has_uniform_textures = uniform_pct > 25

    is_anime = (
        (has_unreal_colors and has_sharp_lines and has_uniform_textures)
        or has_rainbow_hair
        or has_animal_ears
        or bright_pct > 25
        or unreal_pct > 20
    )

    confidence = 0
    if is_anime:
        confidence = 70
        confidence += 10 if has_unreal_colors else 0
        confidence += 10 if has_sharp_lines else 0
        confidence += 10 if has_uniform_textures else 0
        confidence += 20 if has_rainbow_hair else 0
        confidence += 20 if has_animal_ears else 0
        confidence += 15 if bright_pct > 25 else 0
        confidence += 10 if purple > total * 0.08 else 0
        confidence += 10 if pink > total * 0.08 else 0
        confidence += 10 if cyan > total * 0.08 else 0

    return {
        'isAnimeStyle': bool(is_anime),
        'confidence': min(confidence, 95),
        'hasUnrealColors': bool(has_unreal_colors),
        'hasSharpLines': bool(has_sharp_lines),
        'hasUniformTextures': bool(has_uniform_textures),
        'hasAnimalEars': bool(has_animal_ears),
        'hasRainbowHair': bool(has_rainbow_hair),
        'brightColorPercentage': round(bright_pct, 2),
        'unrealColorPercentage': round(unreal_pct, 2),
    }
