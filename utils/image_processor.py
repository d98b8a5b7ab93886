import io
import logging

import cv2
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .exceptions import ImageDecodeError

logger = logging.getLogger(__name__)


class FaceDetector:
    """Face and eye detector using OpenCV's bundled Haar cascades"""

    def __init__(self):
        self.face_cascade = cv2.CascadeClassifier(
            cv2.data.haarcascades + 'haarcascade_frontalface_default.xml'
        )
        self.eye_cascade = cv2.CascadeClassifier(
            cv2.data.haarcascades + 'haarcascade_eye.xml'
        )

    def detect(self, image):
        """Detect faces in image, returns list of (x, y, w, h)"""
        gray = _to_gray(image)
        min_side = max(24, min(gray.shape[:2]) // 10)

        faces = self.face_cascade.detectMultiScale(
            gray, scaleFactor=1.1, minNeighbors=5, minSize=(min_side, min_side)
        )

        return [tuple(int(v) for v in face) for face in faces]

    def detect_eyes(self, face_gray):
        """Detect eyes inside a grayscale face crop"""
        eyes = self.eye_cascade.detectMultiScale(
            face_gray, scaleFactor=1.1, minNeighbors=6, minSize=(8, 8)
        )
        return [tuple(int(v) for v in eye) for eye in eyes]


def _to_gray(image):
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
    return image


_face_detector = None


def get_face_detector():
    global _face_detector
    if _face_detector is None:
        _face_detector = FaceDetector()
    return _face_detector


def largest_face(faces):
    if not faces:
        return None
    return max(faces, key=lambda f: f[2] * f[3])


def load_image(data):
    """Decode upload bytes into a PIL image"""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e

    if not img.width or not img.height:
        raise ImageDecodeError("Could not determine image dimensions")

    return img


def cap_long_edge(img, max_edge):
    w, h = img.size
    longest = max(w, h)
    if not max_edge or longest <= max_edge:
        return img
    scale = max_edge / float(longest)
    return img.resize(
        (max(1, int(w * scale)), max(1, int(h * scale))), Image.Resampling.LANCZOS
    )


class ImageContext:
    """
    Decoded image plus the derived arrays every detector needs.
    Built once per request so detectors don't redo conversions.
    """

    def __init__(self, image, filename='', data=b'', max_edge=1024):
        self.source = image
        self.filename = filename or ''
        self.data = data
        self.format = (image.format or '').upper()
        self.original_size = image.size

        rgb_img = ImageOps.exif_transpose(image).convert('RGB')
        rgb_img = cap_long_edge(rgb_img, max_edge)

        self.image = rgb_img
        self.width, self.height = rgb_img.size
        self.rgb = np.asarray(rgb_img, dtype=np.uint8)
        # Signed copy so channel differences don't wrap
        self.rgb_i = self.rgb.astype(np.int16)
        self.gray = cv2.cvtColor(self.rgb, cv2.COLOR_RGB2GRAY)
        self.hsv = cv2.cvtColor(self.rgb, cv2.COLOR_RGB2HSV)
        self._derived = {}

    @classmethod
    def from_bytes(cls, data, filename='', max_edge=1024):
        return cls(load_image(data), filename=filename, data=data, max_edge=max_edge)

    @classmethod
    def from_array(cls, rgb, filename='', max_edge=1024):
        """Wrap an RGB uint8 array, e.g. a decoded video frame"""
        return cls(Image.fromarray(rgb), filename=filename, max_edge=max_edge)

    @property
    def pixel_count(self):
        return self.width * self.height

    def derived(self, key, compute):
        """Compute a per-image result once and reuse it across detectors"""
        if key not in self._derived:
            self._derived[key] = compute(self)
        return self._derived[key]

    def sample(self, step):
        """Every ``step``-th pixel in both directions, as signed RGB"""
        return self.rgb_i[::step, ::step]
