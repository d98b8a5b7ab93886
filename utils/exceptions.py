class DetectionError(Exception):
    """Base error for the detection pipeline"""


class ImageDecodeError(DetectionError):
    """Upload could not be decoded as an image"""


class VideoDecodeError(DetectionError):
    """Upload could not be opened as a video"""
