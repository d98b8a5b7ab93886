"""
Enhanced classifier.
Starts from the standard weighted result and adds fixed boosts from the
enhanced detectors, the detector ensemble and, when available, the
external backend's verdict.
"""

import logging
import time

from detectors import artifacts, face, metadata, natural, portrait
from utils.backend_client import is_usable_result, process_frequency_features

from .classifier import classify_image, safe_call
from .ensemble import ensemble_detect

logger = logging.getLogger(__name__)

ENHANCED_WEIGHTS = {
    'naturalImageDetection': 4.0,
    'faceAnalysis': 3.5,
    'metadataAnalysis': 1.5,
    'aiArtifactDetection': 2.5,
    'ensembleDetection': 3.0,
    'portraitDetection': 3.8,
    'professionalPortraitDetection': 3.0,
    'outdoorPhotoDetection': 3.5,
    'animeStyleDetection': 4.2,
    'fantasyElementDetection': 4.2,
    'unrealisticColorDetection': 3.8,
    'animalHumanHybridDetection': 4.5,
    'realPhotoBoost': 4.0,
    'xceptionModel': 4.5,
    'faceforensicsModel': 5.0,
    'recurrentCnnModel': 3.0,
    'frequencyAnalysisModel': 4.0,
    'ensembleModel': 5.5,
}

BOOSTS = {
    'naturalImage': 40,
    'realHuman': 70,
    'artificialFace': 30,
    'outdoorPortrait': 60,
    'studioPortrait': 60,
    'professionalPortrait': 50,
    'cameraMetadata': 50,
    'ensemble': 40,
    'animeStyle': 75,
    'fantasyElement': 65,
    'unrealisticColor': 60,
    'animalHumanHybrid': 85,
    'realPhotoMax': 80,
}

# Backend model name fragment -> weight key
BACKEND_MODEL_WEIGHTS = (
    ('faceforensics', 'faceforensicsModel'),
    ('recurrent', 'recurrentCnnModel'),
    ('frequency', 'frequencyAnalysisModel'),
    ('ensemble', 'ensembleModel'),
)

ARTIFACT_MIN_CONFIDENCE = 85
SCORE_RATIO_REAL = 0.9
SCORE_RATIO_AI = 1.5
BACKEND_OVERRIDE_CONFIDENCE = 85
BACKEND_CONFLICT_CONFIDENCE = 75
MIN_CONFIDENCE = 50
MAX_CONFIDENCE = 98

REAL_PHOTO_INDICATORS = (
    'natural image',
    'real human face',
    'natural skin',
    'natural texture',
    'natural lighting',
    'outdoor portrait',
    'studio portrait',
    'professional portrait',
    'camera metadata',
    'natural facial asymmetry',
    'natural skin texture',
    'natural eye details',
    'natural hair',
    'natural background',
    'natural imperfections',
)


def _feature(name, weight, is_real, confidence, details, score=100):
    return {
        'name': name,
        'score': score,
        'weight': weight,
        'isRealIndicator': is_real,
        'confidence': confidence,
        'details': details,
    }


def count_real_photo_indicators(elements):
    """Number of natural elements matching at least one real-photo phrase"""
    count = 0
    for element in elements:
        lower = element.lower()
        if any(indicator in lower for indicator in REAL_PHOTO_INDICATORS):
            count += 1
    return count


def _backend_weight(model_name):
    name = model_name.lower()
    for fragment, key in BACKEND_MODEL_WEIGHTS:
        if fragment in name:
            return ENHANCED_WEIGHTS[key]
    return ENHANCED_WEIGHTS['xceptionModel']


def _as_float(value, default):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class EnhancedScore:
    """Running enhanced scores, feature list and element lists"""

    def __init__(self, standard):
        self.real_score = standard['realScore']
        self.ai_score = standard['aiScore']
        self.features = list(standard['evaluatedFeatures'])
        self.natural_elements = list(standard['naturalElements'])
        self.artifacts = list(standard['detectedArtifacts'])

    def real(self, boost, feature, *elements):
        self.real_score += boost
        self.features.append(feature)
        self.natural_elements.extend(elements)

    def ai(self, boost, feature, *elements):
        self.ai_score += boost
        self.features.append(feature)
        self.artifacts.extend(elements)


def _apply_backend(tally, backend_result):
    for model_result in backend_result.get('model_results') or []:
        model_name = str(model_result.get('model_name', 'model'))
        prediction = model_result.get('prediction')
        is_real = prediction == 'Real'
        weight = _backend_weight(model_name) * (_as_float(model_result.get('weight'), 1.0) or 1.0)
        feature = _feature(f"Backend {model_name}", weight, is_real,
                           _as_float(model_result.get('confidence'), 0.0) / 100,
                           f"{model_name} classified as {prediction}")
        if is_real:
            tally.real(100 * weight, feature, f"{model_name}: real photo")
        else:
            tally.ai(100 * weight, feature, f"{model_name}: AI generated")

    frequency = process_frequency_features(backend_result)
    if frequency:
        weight = ENHANCED_WEIGHTS['frequencyAnalysisModel']
        if frequency['isAIGenerated']:
            tally.ai(100 * weight,
                     _feature('Frequency Domain Analysis', weight, False, frequency['confidence'] / 100,
                              'Unusual frequency patterns detected in the image'),
                     'frequency domain analysis: AI generated', 'unusual frequency patterns detected')
        else:
            tally.real(80 * weight,
                       _feature('Frequency Domain Analysis', weight, True, frequency['confidence'] / 100,
                                'Natural frequency patterns detected in the image', score=80),
                       'frequency domain analysis: natural image')

    tally.artifacts.extend(backend_result.get('detected_artifacts') or [])

    if backend_result.get('heatmap_url'):
        feature = _feature('Manipulation Heatmap', 0, False, 1.0,
                           'Heatmap visualization of potentially manipulated regions')
        feature['heatmapUrl'] = backend_result['heatmap_url']
        tally.features.append(feature)


def _local_decision(tally, natural_analysis, face_analysis, portrait_analysis, metadata_analysis, artifact_analysis):
    """Special cases first, then the AI/real score ratio"""
    score_ratio = tally.ai_score / (tally.real_score if tally.real_score > 0 else 1)

    if artifact_analysis['hasAnimalHumanHybrids']:
        return False, min(artifact_analysis['confidence'] + 5, 98)
    if artifact_analysis['hasAnimeFeatures']:
        return False, min(artifact_analysis['confidence'], 95)
    if artifact_analysis['hasFantasyElements']:
        return False, min(artifact_analysis['confidence'] - 5, 90)
    if portrait_analysis['isOutdoorPortrait'] and face_analysis['hasFace']:
        return True, min(85 + (10 if face_analysis['isRealHuman'] else 0), 95)
    if portrait_analysis['isStudioPortrait'] and face_analysis['hasFace']:
        return True, min(80 + (10 if face_analysis['isRealHuman'] else 0), 95)
    if portrait_analysis['isPortraitPhoto'] and metadata_analysis['isLikelyRealPhoto']:
        return True, 85
    if face_analysis['isRealHuman'] and natural_analysis['isNaturalImage']:
        return True, min(face_analysis['confidence'] + 10, 95)
    if artifact_analysis['isAIGenerated'] and artifact_analysis['confidence'] > 95:
        return False, artifact_analysis['confidence']
    if score_ratio < SCORE_RATIO_REAL:
        return True, min(100 - score_ratio * 100, 95)
    if score_ratio > SCORE_RATIO_AI:
        return False, min(score_ratio * 60, 95)

    # Ambiguous: real needs only 80% of the AI score
    real, ai = tally.real_score, tally.ai_score
    is_real = real >= ai * 0.8
    if is_real:
        return True, min(70 + (real / ai if ai > 0 else 1) * 20, 85)
    return False, min(70 + (ai / real if real > 0 else 1) * 20, 85)


def _blend_backend(is_real, confidence, backend_result):
    backend_real = bool(backend_result['is_real'])
    backend_confidence = _as_float(backend_result.get('confidence'), 0.0)

    confidence = confidence * 0.7 + backend_confidence * 0.3

    if is_real != backend_real and backend_confidence > BACKEND_CONFLICT_CONFIDENCE:
        confidence = max(confidence - 15, 60)
        if backend_confidence > confidence + 10:
            is_real = backend_real
            confidence = backend_confidence * 0.9

    return is_real, confidence


def enhanced_classify_image(ctx, neural_scorer=None, confidence_threshold=65, backend_result=None):
    """
    Enhanced classification of one image.
    ``backend_result`` is the external detector's JSON (or its error dict);
    it only takes part in the decision when it carries a verdict.
    """
    started = time.perf_counter()
    standard = classify_image(ctx, neural_scorer)
    tally = EnhancedScore(standard)

    backend_usable = is_usable_result(backend_result)
    if backend_usable:
        try:
            _apply_backend(tally, backend_result)
        except Exception:
            logger.exception("Malformed backend result, continuing with local analysis")
            backend_usable = False
            tally = EnhancedScore(standard)
    elif backend_result:
        logger.warning("Backend result not usable: %s", backend_result.get('error'))

    natural_analysis = safe_call('enhanced natural image analysis', natural.perform_enhanced_natural_image_analysis,
                                 ctx, {'isNaturalImage': False, 'confidence': 0, 'details': []})
    if natural_analysis['isNaturalImage']:
        tally.real(BOOSTS['naturalImage'],
                   _feature('Enhanced Natural Image Detection', ENHANCED_WEIGHTS['naturalImageDetection'], True,
                            natural_analysis['confidence'] / 100, 'Enhanced natural image characteristics detected'),
                   'enhanced natural image detection', *natural_analysis['details'])

    face_analysis = safe_call('enhanced face analysis', face.perform_enhanced_face_analysis, ctx,
                              {'hasFace': False, 'isRealHuman': False, 'confidence': 0,
                               'naturalFeatures': [], 'artificialFeatures': []})
    if face_analysis['hasFace']:
        weight = ENHANCED_WEIGHTS['faceAnalysis']
        if face_analysis['isRealHuman']:
            tally.real(BOOSTS['realHuman'],
                       _feature('Enhanced Face Analysis', weight, True, face_analysis['confidence'] / 100,
                                'Enhanced real human face detection with natural features'),
                       'enhanced real human face detection', *face_analysis['naturalFeatures'])
        else:
            tally.ai(BOOSTS['artificialFace'],
                     _feature('Enhanced Face Analysis', weight, False, face_analysis['confidence'] / 100,
                              'AI-generated face characteristics detected'),
                     'artificial face detected', *face_analysis['artificialFeatures'])

    portrait_analysis = safe_call('enhanced portrait detection', portrait.detect_enhanced_portrait, ctx,
                                  {'isPortraitPhoto': False, 'isOutdoorPortrait': False,
                                   'isStudioPortrait': False, 'confidence': 0})
    if portrait_analysis['isPortraitPhoto']:
        confidence = portrait_analysis['confidence'] / 100
        if portrait_analysis['isOutdoorPortrait']:
            tally.real(BOOSTS['outdoorPortrait'],
                       _feature('Enhanced Outdoor Portrait Detection', ENHANCED_WEIGHTS['outdoorPhotoDetection'],
                                True, confidence, 'Enhanced outdoor portrait characteristics detected'),
                       'enhanced outdoor portrait detection')
        elif portrait_analysis['isStudioPortrait']:
            tally.real(BOOSTS['studioPortrait'],
                       _feature('Enhanced Studio Portrait Detection', ENHANCED_WEIGHTS['portraitDetection'],
                                True, confidence, 'Enhanced studio portrait characteristics detected'),
                       'enhanced studio portrait detection')
        else:
            tally.real(BOOSTS['professionalPortrait'],
                       _feature('Professional Portrait Detection', ENHANCED_WEIGHTS['professionalPortraitDetection'],
                                True, confidence, 'Professional portrait characteristics detected'),
                       'professional portrait detected')

    metadata_analysis = metadata.analyze_enhanced_metadata_indicators(ctx.filename)
    if metadata_analysis['isLikelyRealPhoto']:
        elements = ['camera metadata indicators detected']
        if metadata_analysis['hasCameraModel']:
            elements.append('camera model in filename')
        if metadata_analysis['hasPhotoTerms']:
            elements.append('photo terminology in filename')
        tally.real(BOOSTS['cameraMetadata'],
                   _feature('Metadata Analysis', ENHANCED_WEIGHTS['metadataAnalysis'], True,
                            metadata_analysis['confidence'] / 100, 'Camera metadata indicators detected in filename'),
                   *elements)

    ensemble = safe_call('ensemble detection', ensemble_detect, ctx, None)
    if ensemble is not None:
        weight = ENHANCED_WEIGHTS['ensembleDetection']
        if ensemble['isReal']:
            tally.real(BOOSTS['ensemble'],
                       _feature('Ensemble Detection', weight, True, ensemble['confidence'] / 100,
                                'Detector ensemble classified image as real'),
                       'ensemble detectors: natural image')
        else:
            tally.ai(BOOSTS['ensemble'],
                     _feature('Ensemble Detection', weight, False, ensemble['confidence'] / 100,
                              'Detector ensemble classified image as AI-generated'),
                     'ensemble detectors: AI generated')

    artifact_analysis = safe_call('enhanced AI artifact detection', artifacts.detect_ai_generated_image, ctx,
                                  artifacts.empty_result())
    if artifact_analysis['isAIGenerated'] and artifact_analysis['confidence'] > ARTIFACT_MIN_CONFIDENCE:
        artifact_confidence = artifact_analysis['confidence']
        if artifact_confidence > 95:
            boost = 50
        elif artifact_confidence > 90:
            boost = 40
        else:
            boost = 30
        tally.ai(boost,
                 _feature('Enhanced AI Artifact Detection', ENHANCED_WEIGHTS['aiArtifactDetection'], False,
                          artifact_confidence / 100, 'Enhanced AI generation artifacts detected with high confidence'),
                 *artifact_analysis['detectedArtifacts'])

        if artifact_analysis['hasAnimeFeatures']:
            tally.ai(BOOSTS['animeStyle'],
                     _feature('Anime Style Detection', ENHANCED_WEIGHTS['animeStyleDetection'], False, 0.95,
                              'Anime-style artistic features detected'),
                     'anime-style features')
        if artifact_analysis['hasFantasyElements']:
            tally.ai(BOOSTS['fantasyElement'],
                     _feature('Fantasy Element Detection', ENHANCED_WEIGHTS['fantasyElementDetection'], False, 0.9,
                              'Fantasy artistic elements detected'),
                     'fantasy elements')
        if artifact_analysis['hasUnrealisticColors']:
            tally.ai(BOOSTS['unrealisticColor'],
                     _feature('Unrealistic Color Detection', ENHANCED_WEIGHTS['unrealisticColorDetection'], False,
                              0.85, 'Unrealistic or oversaturated color palette detected'),
                     'unrealistic color palette')
        if artifact_analysis['hasAnimalHumanHybrids']:
            tally.ai(BOOSTS['animalHumanHybrid'],
                     _feature('Animal-Human Hybrid Detection', ENHANCED_WEIGHTS['animalHumanHybridDetection'], False,
                              0.98, 'Animal-human hybrid features detected (animal ears, tails, etc.)'),
                     'animal-human hybrid features')

    indicators = count_real_photo_indicators(tally.natural_elements)
    if indicators > 2:
        tally.real(min(indicators * 20, BOOSTS['realPhotoMax']),
                   _feature('Real Photo Indicators', ENHANCED_WEIGHTS['realPhotoBoost'], True,
                            min(indicators / 5, 0.95), f"Multiple real photo indicators detected ({indicators})"))

    backend_confidence = _as_float(backend_result.get('confidence'), 0.0) if backend_usable else 0.0
    if backend_usable and backend_confidence > BACKEND_OVERRIDE_CONFIDENCE:
        is_real = bool(backend_result['is_real'])
        confidence = backend_confidence
    else:
        is_real, confidence = _local_decision(tally, natural_analysis, face_analysis, portrait_analysis,
                                              metadata_analysis, artifact_analysis)
        if backend_usable:
            is_real, confidence = _blend_backend(is_real, confidence, backend_result)

    # Low-confidence AI verdicts flip to real
    if confidence < confidence_threshold and not is_real and confidence < confidence_threshold - 10:
        is_real = True
        confidence = max(confidence, 65)

    confidence = min(max(confidence, MIN_CONFIDENCE), MAX_CONFIDENCE)

    logger.info("Enhanced classification: %s (%.1f%%)", 'real' if is_real else 'AI-generated', confidence)

    result = dict(standard)
    result.update({
        'isReal': is_real,
        'confidence': confidence,
        'realScore': tally.real_score,
        'aiScore': tally.ai_score,
        'evaluatedFeatures': tally.features,
        'naturalElements': tally.natural_elements,
        'detectedArtifacts': tally.artifacts,
        'externalApiResults': [backend_result] if backend_usable else [],
        'enhancedAnalysis': {
            'naturalImageAnalysis': natural_analysis,
            'faceAnalysis': face_analysis,
            'portraitAnalysis': portrait_analysis,
            'metadataAnalysis': metadata_analysis,
            'aiArtifactAnalysis': artifact_analysis,
            'ensembleAnalysis': ensemble,
            'realPhotoIndicators': indicators,
            'backendResult': backend_result or None,
        },
        'executionTime': (time.perf_counter() - started) * 1000,
    })
    return result
