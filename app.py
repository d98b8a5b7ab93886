import logging

import numpy as np
from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

from config import Config
from model.predictor import DetectionPredictor, error_payload
from utils.backend_client import probe_backend_status

logging.basicConfig(level=Config.LOG_LEVEL, format=Config.LOG_FORMAT)
logger = logging.getLogger(__name__)


class NumpyJSONProvider(DefaultJSONProvider):
    """Serialise numpy scalars and arrays that detectors return"""

    @staticmethod
    def default(o):
        if isinstance(o, np.generic):
            return o.item()
        if isinstance(o, np.ndarray):
            return o.tolist()
        return DefaultJSONProvider.default(o)


def get_file_type(filename, config):
    """Determine if file is image or video"""
    if '.' not in filename:
        return None

    ext = filename.rsplit('.', 1)[1].lower()

    if ext in config['ALLOWED_IMAGE_EXTENSIONS']:
        return 'image'
    elif ext in config['ALLOWED_VIDEO_EXTENSIONS']:
        return 'video'
    return None


def parse_threshold(value, default):
    try:
        threshold = int(value)
    except (TypeError, ValueError):
        return default
    return threshold or default


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.json = NumpyJSONProvider(app)

    logger.info("Initializing detection predictor...")
    predictor = DetectionPredictor.from_config(app.config)
    app.extensions['predictor'] = predictor

    @app.route('/')
    def index():
        """Service description"""
        return jsonify({
            'service': 'AI-generated image detector',
            'endpoints': ['/api/detect', '/api/detect/status', '/api/model-info', '/health'],
            'model': predictor.get_model_info(),
        })

    @app.route('/api/detect', methods=['POST'])
    def detect():
        """Analyze an uploaded image or video"""
        if 'file' not in request.files:
            return jsonify({'error': 'No file provided'}), 400

        file = request.files['file']

        if file.filename == '':
            return jsonify({'error': 'No file provided'}), 400

        filename = secure_filename(file.filename) or file.filename
        file_type = get_file_type(filename, app.config)

        if file_type is None:
            allowed = sorted(app.config['ALLOWED_IMAGE_EXTENSIONS'] | app.config['ALLOWED_VIDEO_EXTENSIONS'])
            return jsonify({'error': f"Invalid file type. Allowed: {', '.join(allowed)}"}), 400

        use_enhanced = request.form.get('use_enhanced') != 'false'
        threshold = parse_threshold(request.form.get('confidence_threshold'),
                                    app.config['DEFAULT_CONFIDENCE_THRESHOLD'])
        force_reanalyze = request.form.get('force_reanalyze') == 'true'

        try:
            data = file.read()
            logger.info("File received: %s (%s, %d bytes), threshold %d",
                        filename, file.mimetype, len(data), threshold)

            result = predictor.analyze(
                data,
                filename,
                use_enhanced=use_enhanced,
                confidence_threshold=threshold,
                force_reanalyze=force_reanalyze,
            )
            return jsonify(result)

        except Exception:
            logger.exception("Error processing %s", filename)
            return jsonify(error_payload()), 500

    @app.route('/api/detect', methods=['GET'])
    @app.route('/api/detect/status', methods=['GET'])
    def backend_status():
        """Check whether the external detector backend is reachable"""
        online, data, details = probe_backend_status(
            app.config['STATUS_PROBE_URLS'], timeout=app.config['STATUS_TIMEOUT']
        )

        if online:
            return jsonify({'status': 'online', 'data': data}), 200

        logger.error("All backend connection attempts failed: %s", details)
        return jsonify({
            'status': 'offline',
            'error': 'Backend service unavailable',
            'details': details,
            'message': 'Start the detector backend on port 5000 to enable external analysis',
        }), 503

    @app.route('/api/model-info')
    def model_info():
        """Get model information"""
        return jsonify(predictor.get_model_info())

    @app.route('/health')
    def health():
        """Health check endpoint"""
        return jsonify({
            'status': 'healthy',
            'model_loaded': predictor.neural_scorer.model_loaded,
            'cache_entries': len(predictor.cache),
        })

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(e):
        limit_mb = app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
        return jsonify({'error': f'File is too large. Maximum size is {limit_mb}MB'}), 413

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({'error': 'Internal server error'}), 500

    return app


app = create_app()


if __name__ == '__main__':
    info = app.extensions['predictor'].get_model_info()
    logger.info("=" * 60)
    logger.info("        AI IMAGE DETECTOR - Starting Server")
    logger.info("=" * 60)
    logger.info("  Device      : %s", info['device'])
    logger.info("  GPU         : %s", info['gpu_name'] or 'Not available')
    logger.info("  Model Loaded: %s", info['model_loaded'])
    logger.info("  Backend     : %s", 'enabled' if info['backend_enabled'] else 'disabled')
    logger.info("=" * 60)

    app.run(
        host='0.0.0.0',
        port=8000,
        debug=True
    )
