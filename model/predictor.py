"""
Request-level orchestration: decode, cache, classify, borderline deep
analysis and response formatting for images and videos
"""

import logging
import os
import time

import numpy as np

from utils.backend_client import send_to_backend
from utils.cache import AnalysisCache, generate_image_hash
from utils.exceptions import VideoDecodeError
from utils.image_processor import ImageContext
from utils.video_processor import VideoProcessor

from .classifier import classify_image
from .enhanced import enhanced_classify_image
from .neural_scorer import NeuralScorer

logger = logging.getLogger(__name__)

ERROR_REASON = 'Error in analysis, defaulting to AI-generated'
BASE36_DIGITS = '0123456789abcdefghijklmnopqrstuvwxyz'
LANDSCAPE_TERMS = ('landscape', 'sky', 'terrain', 'foliage')


def to_base36(value):
    if value == 0:
        return '0'
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_DIGITS[remainder])
    return ''.join(reversed(digits))


def make_analysis_id(image_hash, now=None):
    """First 8 hash characters plus the millisecond timestamp in base 36"""
    millis = int((time.time() if now is None else now) * 1000)
    return f"{image_hash[:8]}-{to_base36(millis)}"


def _unique(items):
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def combine_analysis_results(initial, deep):
    """Merge a borderline result with its stricter re-run. Real only if both agree."""
    is_real = initial['isReal'] and deep['isReal']
    if is_real:
        confidence = initial['confidence'] * 0.3 + deep['confidence'] * 0.7
    else:
        confidence = max(initial['confidence'], deep['confidence'])

    features = list(initial['evaluatedFeatures'])
    names = {f['name'] for f in features}
    for feature in deep['evaluatedFeatures']:
        if feature['name'] not in names:
            features.append(feature)
            names.add(feature['name'])

    combined = dict(deep)
    combined.update({
        'isReal': is_real,
        'confidence': confidence,
        'evaluatedFeatures': features,
        'detectedArtifacts': _unique(initial['detectedArtifacts'] + deep['detectedArtifacts']),
        'naturalElements': _unique(initial['naturalElements'] + deep['naturalElements']),
        'combinedAnalysis': {
            'initialIsReal': initial['isReal'],
            'deepIsReal': deep['isReal'],
            'initialConfidence': initial['confidence'],
            'deepConfidence': deep['confidence'],
        },
    })
    return combined


def determine_reason(result):
    """Details of the strongest indicator on the winning side"""
    is_real = result['isReal']
    candidates = [f for f in result['evaluatedFeatures'] if f['isRealIndicator'] == is_real]
    if candidates:
        strongest = max(candidates, key=lambda f: f['score'] * f['weight'])
        if strongest['details']:
            return strongest['details']
    if is_real:
        return 'Natural image characteristics detected'
    return 'AI-generated characteristics detected'


def detect_subject(result):
    face = result['detailedAnalysis'].get('faceAnalysis') or {}
    if face.get('hasFace'):
        return 'human'
    if any('animal' in e for e in result['naturalElements']):
        return 'animal'
    if any('landscape' in e for e in result['naturalElements']):
        return 'landscape'
    return None


def determine_image_category(result):
    detailed = result['detailedAnalysis']
    elements = result['naturalElements']
    enhanced = result.get('enhancedAnalysis')

    if enhanced:
        portrait = enhanced.get('portraitAnalysis') or {}
        if portrait.get('isOutdoorPortrait'):
            return 'outdoor portrait'
        if portrait.get('isStudioPortrait'):
            return 'studio portrait'
        if portrait.get('isPortraitPhoto'):
            return 'portrait photo'
        if (enhanced.get('naturalImageAnalysis') or {}).get('isNaturalImage'):
            return 'natural photo'

    if any('brand' in e for e in elements):
        return 'real photo with brand'
    if 'studio portrait detected' in elements:
        return 'studio portrait'
    if 'outdoor portrait detected' in elements:
        return 'outdoor portrait'
    if 'professional portrait detected' in elements:
        return 'professional portrait'

    if 'natural subject detected' in elements:
        if any('fur' in e or 'animal' in e for e in elements):
            return 'natural animal photo'
        if any('landscape' in e or 'terrain' in e or 'sky' in e for e in elements):
            return 'natural landscape photo'
        return 'natural photo'

    if 'cyberpunk/sci-fi aesthetic' in result['detectedArtifacts']:
        return 'cyberpunk/sci-fi AI art'

    style = detailed.get('styleAnalysis') or {}
    theme = detailed.get('themeAnalysis') or {}
    if style.get('hasAnimeStyle'):
        return 'anime/digital art'
    if theme.get('hasFantasyElements'):
        return 'fantasy/digital art'
    if theme.get('hasMechanicalHybridElements'):
        return 'mechanical hybrid'
    if theme.get('hasScienceFictionThemes'):
        return 'science fiction'
    if style.get('hasCartoonStyle'):
        return 'cartoon/digital art'
    if style.get('hasHyperRealisticStyle'):
        return 'hyper-realistic digital art'

    face = detailed.get('faceAnalysis') or {}
    if face.get('hasFace'):
        return 'portrait photo' if face.get('isRealFace') else 'AI portrait'

    if (detailed.get('aiArtifactAnalysis') or {}).get('isAIGenerated'):
        return 'AI-generated image'

    return 'natural photo' if result['isReal'] else 'AI-generated image'


def build_model_results(result, model_name, confidence, analysis_id):
    model_results = [{
        'modelName': model_name,
        'confidence': f"{confidence:.1f}",
        'prediction': 'Real' if result['isReal'] else 'Fake',
        'weight': 0.5,
        'analysisId': analysis_id,
    }]

    for feature in result['evaluatedFeatures']:
        name = feature['name']
        if 'Model' in name or 'API' in name or 'Detection' in name:
            model_results.append({
                'modelName': name,
                'confidence': f"{feature['confidence'] * 100:.1f}",
                'prediction': 'Real' if feature['isRealIndicator'] else 'Fake',
                'weight': feature['weight'],
            })

    return model_results


def error_payload(message='Failed to process file. Please check server logs for details.'):
    """Response body used whenever analysis fails"""
    return {
        'error': message,
        'isReal': False,
        'confidence': 70,
        'reason': ERROR_REASON,
        'analysisDetails': {
            'modelResults': [{
                'modelName': 'Error Handler',
                'confidence': '70.0',
                'prediction': 'Fake',
                'weight': 1.0,
            }],
            'ensembleMethod': 'Error Fallback',
            'detectedArtifacts': ['analysis error'],
            'naturalElements': [],
            'humanDetected': False,
            'realWorldIndicators': [],
            'aiIndicators': ['analysis error'],
            'reason': ERROR_REASON,
            'landscapeFeatures': [],
            'aiGenerationScore': 70,
            'realPhotoScore': 0,
            'imageCategory': 'unknown',
        },
    }


class DetectionPredictor:
    """Main entry point for analysing uploads"""

    def __init__(self, model_path=None, device='cpu', image_size=224, max_edge=1024,
                 frames_to_analyze=20, cache_max_entries=100, borderline_gap=20,
                 backend_enabled=False, backend_urls=(), backend_timeout=8,
                 min_processing_seconds=0, video_extensions=('mp4', 'avi', 'mov', 'mkv')):
        self.max_edge = max_edge
        self.borderline_gap = borderline_gap
        self.backend_enabled = backend_enabled
        self.backend_urls = list(backend_urls)
        self.backend_timeout = backend_timeout
        self.min_processing_seconds = min_processing_seconds
        self.video_extensions = set(video_extensions)

        self.neural_scorer = NeuralScorer(model_path, device=device, image_size=image_size)
        self.video_processor = VideoProcessor(frames_to_analyze)
        self.cache = AnalysisCache(cache_max_entries)

    @classmethod
    def from_config(cls, config):
        """Build from a Flask config mapping"""
        return cls(
            model_path=config.get('MODEL_PATH'),
            device=config.get('DEVICE', 'cpu'),
            image_size=config.get('IMAGE_SIZE', 224),
            max_edge=config.get('MAX_ANALYSIS_EDGE', 1024),
            frames_to_analyze=config.get('FRAMES_TO_ANALYZE', 20),
            cache_max_entries=config.get('CACHE_MAX_ENTRIES', 100),
            borderline_gap=config.get('BORDERLINE_SCORE_GAP', 20),
            backend_enabled=config.get('BACKEND_ENABLED', False),
            backend_urls=config.get('BACKEND_URLS', ()),
            backend_timeout=config.get('BACKEND_TIMEOUT', 8),
            min_processing_seconds=config.get('MIN_PROCESSING_SECONDS', 0),
            video_extensions=config.get('ALLOWED_VIDEO_EXTENSIONS', ('mp4', 'avi', 'mov', 'mkv')),
        )

    def is_video(self, filename):
        return os.path.splitext(filename)[1].lstrip('.').lower() in self.video_extensions

    def analyze(self, data, filename, use_enhanced=True, confidence_threshold=65, force_reanalyze=False):
        """
        Analyse an upload, serving repeated bytes from the cache.
        Returns the response payload; cached payloads carry ``cached: True``.
        """
        image_hash = generate_image_hash(data)

        cached = None if force_reanalyze else self.cache.get(image_hash)
        if cached is not None:
            logger.info("Using cached analysis result for %s", filename)
            return dict(cached, cached=True)

        started = time.perf_counter()

        if self.is_video(filename):
            result = self.predict_video(data, filename, image_hash)
        else:
            result = self.predict_image(data, filename, image_hash, use_enhanced, confidence_threshold)

        remaining = self.min_processing_seconds - (time.perf_counter() - started)
        if remaining > 0:
            time.sleep(remaining)

        result['processingTime'] = time.perf_counter() - started
        self.cache.store(image_hash, result)
        return result

    def _backend_result(self, data, filename):
        if not self.backend_enabled or not self.backend_urls:
            return None
        return send_to_backend(data, filename, self.backend_urls, timeout=self.backend_timeout)

    def classify(self, ctx, data=b'', use_enhanced=True, confidence_threshold=65):
        """Initial classification plus the stricter re-run for borderline scores"""
        backend_result = self._backend_result(data, ctx.filename) if use_enhanced else None

        if use_enhanced:
            initial = enhanced_classify_image(ctx, self.neural_scorer, confidence_threshold, backend_result)
        else:
            initial = classify_image(ctx, self.neural_scorer)

        deep = None
        if abs(initial['realScore'] - initial['aiScore']) < self.borderline_gap:
            logger.info("Borderline case detected, performing deep analysis")
            if backend_result is None:
                backend_result = self._backend_result(data, ctx.filename)
            deep = enhanced_classify_image(ctx, self.neural_scorer, confidence_threshold + 10, backend_result)

        if deep is None:
            return initial, False
        return combine_analysis_results(initial, deep), True

    def predict_image(self, data, filename, image_hash=None, use_enhanced=True, confidence_threshold=65):
        image_hash = image_hash or generate_image_hash(data)
        ctx = ImageContext.from_bytes(data, filename=filename, max_edge=self.max_edge)

        logger.info("Starting %s classification of %s (%dx%d)",
                    'enhanced' if use_enhanced else 'standard', filename, ctx.width, ctx.height)

        result, deep_performed = self.classify(ctx, data, use_enhanced, confidence_threshold)

        logger.info("Classification complete: %s, confidence %.2f%%",
                    'Real' if result['isReal'] else 'AI-Generated', result['confidence'])

        confidence = min(max(result['confidence'], 0), 100)
        analysis_id = make_analysis_id(image_hash)
        reason = determine_reason(result)
        detailed = result['detailedAnalysis']
        face = detailed.get('faceAnalysis') or {}
        elements = result['naturalElements']
        model_name = 'Enhanced Ensemble' if use_enhanced else 'Advanced Ensemble'

        return {
            'isReal': result['isReal'],
            'confidence': confidence,
            'processingTime': 0.0,
            'reason': reason,
            'analysisId': analysis_id,
            'analysisDetails': {
                'modelResults': build_model_results(result, model_name, confidence, analysis_id),
                'ensembleMethod': 'Enhanced Weighted Ensemble' if use_enhanced else 'Advanced Weighted Ensemble',
                'detectedArtifacts': result['detectedArtifacts'],
                'naturalElements': elements,
                'detectedSubject': detect_subject(result),
                'humanDetected': bool(face.get('hasFace')),
                'realWorldIndicators': elements,
                'aiIndicators': result['detectedArtifacts'],
                'reason': reason,
                'landscapeFeatures': [e for e in elements if any(t in e for t in LANDSCAPE_TERMS)],
                'aiGenerationScore': result['aiScore'],
                'realPhotoScore': result['realScore'],
                'imageCategory': determine_image_category(result),
                'humanFaceAnalysis': detailed.get('faceAnalysis'),
                'textureAnalysis': detailed.get('textureAnalysis'),
                'lightingAnalysis': detailed.get('lightingAnalysis'),
                'themeAnalysis': detailed.get('themeAnalysis'),
                'styleAnalysis': detailed.get('styleAnalysis'),
                'depthAnalysis': detailed.get('depthAnalysis'),
                'metadataAnalysis': detailed.get('metadataAnalysis'),
                'aiArtifactAnalysis': detailed.get('aiArtifactAnalysis'),
                'externalApiResults': result.get('externalApiResults', []),
                'enhancedAnalysis': result.get('enhancedAnalysis') if use_enhanced else None,
                'deepAnalysisPerformed': deep_performed,
            },
        }

    def predict_video(self, data, filename, image_hash=None):
        """Classify sampled frames and aggregate by mean AI probability"""
        image_hash = image_hash or generate_image_hash(data)
        frames, metadata = self.video_processor.extract_frames_from_bytes(data, filename)

        if not frames:
            raise VideoDecodeError('No frames could be processed')

        frame_results = []
        ai_probabilities = []
        artifacts = []
        elements = []
        for frame in frames:
            ctx = ImageContext.from_array(frame, filename=filename, max_edge=self.max_edge)
            result = classify_image(ctx, self.neural_scorer)
            ai_prob = result['confidence'] / 100.0
            if result['isReal']:
                ai_prob = 1 - ai_prob

            ai_probabilities.append(ai_prob)
            frame_results.append({
                'prediction': 'Real' if result['isReal'] else 'Fake',
                'confidence': round(result['confidence'], 2),
                'aiProbability': round(ai_prob, 4),
            })
            artifacts.extend(result['detectedArtifacts'])
            elements.extend(result['naturalElements'])

        probabilities = np.array(ai_probabilities)
        avg_ai_prob = float(np.mean(probabilities))
        is_real = avg_ai_prob <= 0.5
        confidence = max(avg_ai_prob, 1 - avg_ai_prob) * 100
        fake_ratio = float(np.sum(probabilities > 0.5)) / len(probabilities)

        logger.info("Video %s: %d frames, mean AI probability %.3f", filename, len(frames), avg_ai_prob)

        analysis_id = make_analysis_id(image_hash)
        if is_real:
            reason = 'Most sampled frames show natural image characteristics'
        else:
            reason = 'Most sampled frames show AI-generated characteristics'
        artifacts = _unique(artifacts)
        elements = _unique(elements)

        return {
            'isReal': is_real,
            'confidence': confidence,
            'processingTime': 0.0,
            'reason': reason,
            'analysisId': analysis_id,
            'analysisDetails': {
                'modelResults': [{
                    'modelName': 'Frame Ensemble',
                    'confidence': f"{confidence:.1f}",
                    'prediction': 'Real' if is_real else 'Fake',
                    'weight': 0.5,
                    'analysisId': analysis_id,
                }],
                'ensembleMethod': 'Frame Averaging',
                'detectedArtifacts': artifacts,
                'naturalElements': elements,
                'realWorldIndicators': elements,
                'aiIndicators': artifacts,
                'reason': reason,
                'aiGenerationScore': round(avg_ai_prob * 100, 2),
                'realPhotoScore': round((1 - avg_ai_prob) * 100, 2),
                'imageCategory': 'video',
                'videoAnalysis': {
                    'framesAnalyzed': len(frames),
                    'fakeFrameRatio': round(fake_ratio * 100, 2),
                    'framePredictions': frame_results,
                    'metadata': metadata,
                },
                'deepAnalysisPerformed': False,
            },
        }

    def get_model_info(self):
        info = self.neural_scorer.get_model_info()
        info['cache_entries'] = len(self.cache)
        info['backend_enabled'] = self.backend_enabled
        return info
