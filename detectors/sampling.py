"""Helpers for strided pixel sampling shared by the detectors"""

import numpy as np


def grid(height, width, step, y_stop=None):
    """Row and column coordinates of a strided sample"""
    ys = np.arange(0, height if y_stop is None else y_stop, step)
    xs = np.arange(0, width, step)
    return ys, xs


def neighbor(img, ys, xs, dy, dx):
    """Pixels offset by (dy, dx) from each sample point, clipped to the image"""
    yy = np.clip(ys + dy, 0, img.shape[0] - 1)
    xx = np.clip(xs + dx, 0, img.shape[1] - 1)
    return img[np.ix_(yy, xx)]


def interior(ys, xs, height, width, margin):
    """Mask of sample points at least ``margin`` pixels from every border"""
    row_ok = (ys > margin - 1) & (ys < height - margin)
    col_ok = (xs > margin - 1) & (xs < width - margin)
    return np.outer(row_ok, col_ok)


def channel_diff(a, b):
    """Sum of absolute per-channel differences"""
    return np.abs(a - b).sum(axis=-1)


def percent(count, total):
    return (float(count) / total) * 100 if total else 0.0


def split_channels(pixels):
    return pixels[..., 0], pixels[..., 1], pixels[..., 2]
