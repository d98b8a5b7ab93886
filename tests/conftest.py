import io

import numpy as np
import pytest
from PIL import Image

from app import create_app
from config import TestingConfig
from utils.image_processor import ImageContext


def encode(array, fmt='PNG', **save_kwargs):
    buf = io.BytesIO()
    Image.fromarray(array).save(buf, format=fmt, **save_kwargs)
    return buf.getvalue()


def photo_array(width=240, height=180, seed=0):
    """Sky-to-ground gradient with sensor-like noise"""
    rng = np.random.default_rng(seed)
    y = np.linspace(0, 1, height)[:, None]
    x = np.linspace(0, 1, width)[None, :]
    r = 90 + 80 * y + 20 * x
    g = 130 + 40 * y - 10 * x
    b = 210 - 120 * y
    img = np.stack([r * np.ones_like(x), g * np.ones_like(x), b * np.ones_like(x)], axis=-1)
    img += rng.normal(0, 6, img.shape)
    return np.clip(img, 0, 255).astype(np.uint8)


def neon_array(width=200, height=160):
    """Left half saturated magenta, right half black"""
    img = np.zeros((height, width, 3), dtype=np.uint8)
    img[:, :width // 2] = (255, 0, 255)
    return img


@pytest.fixture
def app():
    return create_app(TestingConfig)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def predictor(app):
    return app.extensions['predictor']


@pytest.fixture
def photo_bytes():
    return encode(photo_array(), 'JPEG', quality=92)


@pytest.fixture
def neon_bytes():
    return encode(neon_array())


@pytest.fixture
def photo_ctx(photo_bytes):
    return ImageContext.from_bytes(photo_bytes, filename='holiday.jpg', max_edge=256)


@pytest.fixture
def neon_ctx(neon_bytes):
    return ImageContext.from_bytes(neon_bytes, filename='neon_city.png', max_edge=256)
