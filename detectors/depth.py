"""
Depth of field analysis from per-region sharpness and bokeh highlights
"""

import cv2
import numpy as np

GRID = 4
BOKEH_EDGE = 256


def sharpness_map(ctx):
    """Laplacian variance of each cell of a GRID x GRID split"""

    def compute(ctx):
        gray = ctx.gray
        h, w = gray.shape
        lap = cv2.Laplacian(gray, cv2.CV_64F)
        cells = np.zeros((GRID, GRID))
        for row in range(GRID):
            for col in range(GRID):
                cell = lap[row * h // GRID:(row + 1) * h // GRID, col * w // GRID:(col + 1) * w // GRID]
                cells[row, col] = cell.var() if cell.size else 0.0
        return cells

    return ctx.derived('sharpness_map', compute)


def analyze_background_blur(ctx):
    cells = sharpness_map(ctx)
    center = float(cells[1:GRID - 1, 1:GRID - 1].mean())
    border_mask = np.ones_like(cells, dtype=bool)
    border_mask[1:GRID - 1, 1:GRID - 1] = False
    border = float(cells[border_mask].mean())

    spread = (cells.max() + 1) / (cells.min() + 1)
    # Subject in focus with a soft surround, or evenly focused throughout
    natural = center >= border * 0.8 or spread < 50

    return {
        'hasNaturalBlur': bool(natural),
        'centerSharpness': round(center, 2),
        'borderSharpness': round(border, 2),
        'confidence': 0.75 if natural else 0.6,
    }


def analyze_depth_consistency(ctx):
    """
    Focus should change gradually between neighbouring regions; sharp
    islands inside blurred areas suggest composited elements.
    """
    cells = np.log1p(sharpness_map(ctx))
    horizontal = np.abs(np.diff(cells, axis=1))
    vertical = np.abs(np.diff(cells, axis=0))
    jumps = np.concatenate([horizontal.ravel(), vertical.ravel()])
    overlapping = float((jumps > 3).mean()) > 0.3

    # Rows should get steadily sharper or blurrier toward the ground plane
    row_means = cells.mean(axis=1)
    turns = int((np.diff(np.sign(np.diff(row_means))) != 0).sum())
    inconsistent_scale = turns > 1

    consistent = not (overlapping and inconsistent_scale)
    return {
        'hasConsistentDepth': consistent,
        'hasOverlappingElements': overlapping,
        'hasInconsistentScale': inconsistent_scale,
        'confidence': 0.8 if consistent else 0.55,
    }


def detect_unrealistic_bokeh(ctx):
    """Many equally sized, perfectly round highlight discs"""
    gray = ctx.gray
    h, w = gray.shape
    scale = min(1.0, BOKEH_EDGE / float(max(h, w)))
    if scale < 1.0:
        gray = cv2.resize(gray, (max(1, int(w * scale)), max(1, int(h * scale))), interpolation=cv2.INTER_AREA)

    blurred = cv2.medianBlur(gray, 5)
    min_side = min(blurred.shape)
    circles = None
    if min_side >= 32:
        circles = cv2.HoughCircles(
            blurred, cv2.HOUGH_GRADIENT, dp=1.2, minDist=max(4, min_side // 16),
            param1=120, param2=30, minRadius=3, maxRadius=max(4, min_side // 8),
        )

    # Radii of circles centred on a bright pixel
    bright = []
    if circles is not None:
        bh, bw = blurred.shape
        for cx, cy, radius in circles[0]:
            if blurred[min(int(cy), bh - 1), min(int(cx), bw - 1)] > 180:
                bright.append(float(radius))

    perfect_circles = len(bright) >= 5
    uniform = perfect_circles and float(np.std(bright)) / max(float(np.mean(bright)), 1e-6) < 0.1
    unrealistic = perfect_circles and uniform

    return {
        'hasUnrealisticBokeh': unrealistic,
        'hasPerfectCircles': perfect_circles,
        'hasUniformDistribution': uniform,
        'bokehCount': len(bright),
        'confidence': 0.8 if unrealistic else 0.55,
    }


def analyze_depth(ctx):
    blur = analyze_background_blur(ctx)
    consistency = analyze_depth_consistency(ctx)
    bokeh = detect_unrealistic_bokeh(ctx)

    details = []
    details.append('natural background blur' if blur['hasNaturalBlur'] else 'unnatural background blur patterns')
    if consistency['hasConsistentDepth']:
        details.append('consistent depth mapping')
    else:
        details.append('inconsistent depth mapping')
        if consistency['hasOverlappingElements']:
            details.append('overlapping elements at different depths')
        if consistency['hasInconsistentScale']:
            details.append('inconsistent scaling with depth')
    if bokeh['hasUnrealisticBokeh']:
        details.append('unrealistic bokeh effect')
        if bokeh['hasPerfectCircles']:
            details.append('unnaturally perfect bokeh circles')
        if bokeh['hasUniformDistribution']:
            details.append('unnaturally uniform bokeh distribution')

    natural = consistency['hasConsistentDepth'] and blur['hasNaturalBlur'] and not bokeh['hasUnrealisticBokeh']
    details.insert(0, 'natural depth of field' if natural else 'unnatural depth of field')

    return {
        'hasConsistentDepth': consistency['hasConsistentDepth'],
        'hasNaturalBlur': blur['hasNaturalBlur'],
        'hasUnrealisticBokeh': bokeh['hasUnrealisticBokeh'],
        'confidence': (blur['confidence'] + consistency['confidence'] + bokeh['confidence']) / 3,
        'details': details,
    }
