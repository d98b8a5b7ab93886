import logging
import os
import tempfile

import cv2
import numpy as np

from .exceptions import VideoDecodeError

logger = logging.getLogger(__name__)


class VideoProcessor:
    """Sample frames from uploaded videos for per-frame analysis"""

    def __init__(self, frames_to_analyze=20):
        self.frames_to_analyze = frames_to_analyze

    def extract_frames(self, video_path):
        """Extract frames uniformly from video, as RGB arrays"""
        cap = cv2.VideoCapture(video_path)

        if not cap.isOpened():
            raise VideoDecodeError(f"Cannot open video: {video_path}")

        try:
            total_frames = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
            fps = cap.get(cv2.CAP_PROP_FPS)
            duration = total_frames / fps if fps > 0 else 0

            # Calculate frame indices to sample
            if total_frames <= self.frames_to_analyze:
                frame_indices = list(range(total_frames))
            else:
                frame_indices = np.linspace(
                    0, total_frames - 1, self.frames_to_analyze, dtype=int
                )

            frames = []
            for idx in frame_indices:
                cap.set(cv2.CAP_PROP_POS_FRAMES, int(idx))
                ret, frame = cap.read()

                if ret:
                    frames.append(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        finally:
            cap.release()

        metadata = {
            'totalFrames': total_frames,
            'fps': round(fps, 2),
            'duration': round(duration, 2),
            'framesAnalyzed': len(frames),
        }

        return frames, metadata

    def extract_frames_from_bytes(self, data, filename):
        """OpenCV only reads from paths, so spool the upload to a temp file"""
        suffix = os.path.splitext(filename)[1] or '.mp4'
        fd, path = tempfile.mkstemp(suffix=suffix)

        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            return self.extract_frames(path)
        finally:
            os.remove(path)
