import cv2
import numpy as np
import pytest

from utils.exceptions import VideoDecodeError
from utils.video_processor import VideoProcessor

from conftest import photo_array


@pytest.fixture
def video_bytes(tmp_path):
    path = str(tmp_path / 'clip.avi')
    writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*'MJPG'), 10, (120, 90))
    for i in range(8):
        frame = photo_array(width=120, height=90, seed=i)
        writer.write(cv2.cvtColor(frame, cv2.COLOR_RGB2BGR))
    writer.release()
    with open(path, 'rb') as f:
        return f.read()


def test_extract_frames_samples_evenly(video_bytes):
    frames, metadata = VideoProcessor(frames_to_analyze=4).extract_frames_from_bytes(video_bytes, 'clip.avi')

    assert len(frames) == 4
    assert frames[0].shape == (90, 120, 3)
    assert metadata['framesAnalyzed'] == 4
    assert metadata['totalFrames'] >= 4


def test_unreadable_video_raises(predictor):
    with pytest.raises(VideoDecodeError):
        predictor.predict_video(b'\x00' * 64, 'broken.mp4')


def test_video_prediction_payload(predictor, video_bytes):
    result = predictor.analyze(video_bytes, 'clip.avi')

    assert isinstance(result['isReal'], bool)
    assert 50 <= result['confidence'] <= 100
    details = result['analysisDetails']
    assert details['imageCategory'] == 'video'
    video = details['videoAnalysis']
    assert video['framesAnalyzed'] == 4
    assert len(video['framePredictions']) == 4
    assert 0 <= video['fakeFrameRatio'] <= 100

    cached = predictor.analyze(video_bytes, 'clip.avi')
    assert cached['cached'] is True


def test_frame_ai_probabilities_match_verdict(predictor, video_bytes):
    result = predictor.analyze(video_bytes, 'clip.avi')
    probabilities = [f['aiProbability'] for f in result['analysisDetails']['videoAnalysis']['framePredictions']]
    assert result['isReal'] == (np.mean(probabilities) <= 0.5)
