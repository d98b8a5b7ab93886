"""
Frequency domain analysis.
GAN and diffusion generators often leave grid and periodic patterns and
lack natural high-frequency content.
"""

import numpy as np
from scipy import fftpack

GRID_SIZES = (8, 16, 32)
PERIODS = (4, 8, 16, 32, 64)

WEIGHTS = {
    'grid': 0.3,
    'smoothness': 0.25,
    'bandDistribution': 0.25,
    'periodicArtifacts': 0.2,
}

GAN_THRESHOLD = 0.6


def detect_grid_patterns(gray):
    """Share of pixel pairs across 8/16/32px grid lines that form an edge"""
    h, w = gray.shape
    grid_score = 0.0

    for size in GRID_SIZES:
        rows = np.arange(size, h, size)
        cols = np.arange(size, w, size)

        horizontal = np.abs(gray[rows, :w - 1] - gray[rows - 1, :w - 1]) > 10
        vertical = np.abs(gray[:h - 1, cols] - gray[:h - 1, cols - 1]) > 10

        checks = horizontal.size + vertical.size
        if not checks:
            continue

        ratio = (int(horizontal.sum()) + int(vertical.sum())) / checks
        if ratio > 0.1:
            grid_score = max(grid_score, ratio)

    return grid_score


def detect_unnatural_smoothness(gray):
    """1 for a perfectly flat image, 0 once mean local variation reaches 40"""
    h, w = gray.shape
    if h < 3 or w < 3:
        return 0.0

    center = gray[1:h - 1:3, 1:w - 1:3]
    left = gray[1:h - 1:3, 0:w - 2:3]
    right = gray[1:h - 1:3, 2:w:3]
    top = gray[0:h - 2:3, 1:w - 1:3]
    bottom = gray[2:h:3, 1:w - 1:3]

    variation = (
        np.abs(center - left) + np.abs(center - right)
        + np.abs(center - top) + np.abs(center - bottom)
    )
    return max(0.0, 1 - float(variation.mean()) / 40)


def frequency_bands(gray):
    """Energy of the centred magnitude spectrum split into radial bands"""
    spectrum = np.abs(fftpack.fftshift(fftpack.fft2(gray.astype(np.float64))))

    rows, cols = gray.shape
    crow, ccol = rows // 2, cols // 2
    y, x = np.ogrid[:rows, :cols]
    dist = np.sqrt((x - ccol) ** 2 + (y - crow) ** 2)
    radius = max(min(rows, cols) / 2.0, 1.0)

    low = float(spectrum[dist <= radius * 0.1].sum())
    mid = float(spectrum[(dist > radius * 0.1) & (dist <= radius * 0.6)].sum())
    high = float(spectrum[dist > radius * 0.6].sum())
    total = low + mid + high

    return {
        'low': low,
        'mid': mid,
        'high': high,
        'highFrequencyRatio': high / total if total > 0 else 0.0,
        'lowToHighRatio': low / high if high > 0 else 1000.0,
        'midToHighRatio': mid / high if high > 0 else 1000.0,
    }


def score_band_distribution(bands):
    # Natural photos keep 15-30% of spectral energy in the outer band
    ratio = bands['highFrequencyRatio']
    if ratio < 0.12:
        return 0.8
    if ratio < 0.18:
        return 0.5
    return 0.0


def detect_periodic_artifacts(gray):
    """Similarity of pixels a fixed period apart, strongest period wins"""
    h, w = gray.shape
    best = 0.0

    for period in PERIODS:
        horizontal = vertical = None
        if w > period:
            xs = np.arange(0, w - period, 4)
            a = gray[::4][:, xs]
            horizontal = np.abs(a - gray[::4][:, xs + period]) < 10
        if h > period:
            ys = np.arange(0, h - period, 4)
            a = gray[ys][:, ::4]
            vertical = np.abs(a - gray[ys + period][:, ::4]) < 10

        checks = sum(m.size for m in (horizontal, vertical) if m is not None)
        if not checks:
            continue

        h_ratio = int(horizontal.sum()) / checks if horizontal is not None else 0.0
        v_ratio = int(vertical.sum()) / checks if vertical is not None else 0.0
        best = max(best, h_ratio, v_ratio)

    return best if best > 0.3 else 0.0


def analyze_frequency_domain(ctx):
    return ctx.derived('frequency', _analyze_frequency)


def _analyze_frequency(ctx):
    gray = ctx.gray.astype(np.int16)

    grid_score = detect_grid_patterns(gray)
    smoothness_score = detect_unnatural_smoothness(gray)
    bands = frequency_bands(ctx.gray)
    band_score = score_band_distribution(bands)
    periodic_score = detect_periodic_artifacts(gray)

    total = (
        grid_score * WEIGHTS['grid']
        + smoothness_score * WEIGHTS['smoothness']
        + band_score * WEIGHTS['bandDistribution']
        + periodic_score * WEIGHTS['periodicArtifacts']
    )

    return {
        'hasGanArtifacts': total > GAN_THRESHOLD,
        'confidence': min(total * 100, 95),
        'gridScore': grid_score,
        'smoothnessScore': smoothness_score,
        'bandDistributionScore': band_score,
        'periodicArtifactScore': periodic_score,
        'totalScore': total,
        'bands': {
            'highFrequencyRatio': round(bands['highFrequencyRatio'], 4),
            'lowToHighRatio': round(bands['lowToHighRatio'], 4),
            'midToHighRatio': round(bands['midToHighRatio'], 4),
        },
    }


def detect_gan_architecture(frequency):
    """Guess the generator family from which frequency signal dominates"""
    architecture = 'unknown'
    confidence = 0

    if frequency['gridScore'] > 0.7:
        architecture = 'StyleGAN'
        confidence = frequency['gridScore'] * 90
    elif frequency['bandDistributionScore'] > 0.7:
        architecture = 'DALL-E'
        confidence = frequency['bandDistributionScore'] * 85
    elif frequency['smoothnessScore'] > 0.8:
        architecture = 'Midjourney'
        confidence = frequency['smoothnessScore'] * 80
    elif frequency['periodicArtifactScore'] > 0.6:
        architecture = 'Stable Diffusion'
        confidence = frequency['periodicArtifactScore'] * 85

    return {
        'detectedArchitecture': architecture,
        'confidence': confidence,
        'isKnownGan': architecture != 'unknown',
    }


def detect_gan_frequency_artifacts(ctx, frequency=None):
    if frequency is None:
        frequency = analyze_frequency_domain(ctx)

    return {
        'isGanGenerated': frequency['hasGanArtifacts'],
        'confidence': frequency['confidence'],
        'frequencyAnalysis': frequency,
        'architectureDetection': detect_gan_architecture(frequency),
    }
