import os


def _env_list(name, default):
    value = os.environ.get(name)
    if not value:
        return default
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Upload settings
    MAX_CONTENT_LENGTH = 100 * 1024 * 1024  # 100MB max
    ALLOWED_IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'webp', 'bmp', 'gif'}
    ALLOWED_VIDEO_EXTENSIONS = {'mp4', 'avi', 'mov', 'mkv'}

    # Model settings
    MODEL_PATH = os.environ.get('MODEL_PATH', 'model/weights/ai_image_detector.pth')
    DEVICE = os.environ.get('DEVICE', 'cpu')  # 'cuda' to run the CNN on a GPU
    IMAGE_SIZE = 224

    # Analysis
    DEFAULT_CONFIDENCE_THRESHOLD = 65
    MAX_ANALYSIS_EDGE = 1024
    BORDERLINE_SCORE_GAP = 20
    # Artificial minimum response time in seconds, 0 disables it
    MIN_PROCESSING_SECONDS = float(os.environ.get('MIN_PROCESSING_SECONDS', '0'))

    # Video processing
    FRAMES_TO_ANALYZE = 20

    # Result cache
    CACHE_MAX_ENTRIES = 100

    # External detector backend
    BACKEND_ENABLED = os.environ.get('BACKEND_ENABLED', 'true').lower() != 'false'
    BACKEND_URLS = _env_list('BACKEND_URLS', [
        'http://localhost:5000/api/detect',
        'http://127.0.0.1:5000/api/detect',
    ])
    BACKEND_TIMEOUT = 8
    STATUS_PROBE_URLS = _env_list('STATUS_PROBE_URLS', [
        'http://localhost:5000/health',
        'http://127.0.0.1:5000/health',
        'http://localhost:5000/',
        'http://127.0.0.1:5000/',
        'http://localhost:5000/api/detect',
        'http://127.0.0.1:5000/api/detect',
    ])
    STATUS_TIMEOUT = 3

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


class TestingConfig(Config):
    TESTING = True
    BACKEND_ENABLED = False
    MIN_PROCESSING_SECONDS = 0
    MODEL_PATH = None
    MAX_ANALYSIS_EDGE = 256
    FRAMES_TO_ANALYZE = 4
