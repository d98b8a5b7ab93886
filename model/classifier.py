"""
Standard weighted classifier.
Every detector votes for the real or the AI side with a weight; each side
is normalised by its weight sum and a short list of strong indicators
decides before the score ratio does.
"""

import logging
import time

from detectors import artifacts, depth, face, lighting, metadata, natural, portrait, style, texture, theme

logger = logging.getLogger(__name__)

WEIGHTS = {
    'faceAnalysis': 2.2,
    'textureAnalysis': 2.5,
    'lightingAnalysis': 2.0,
    'metadataAnalysis': 0.8,
    'themeDetection': 2.2,
    'styleDetection': 2.4,
    'depthAnalysis': 1.8,
    'neuralModel': 2.5,
    'aiArtifactDetection': 3.0,
}

REAL_RATIO = 1.5
AI_RATIO = 0.7
SCORE_PRECISION = 6


class Tally:
    """Real and AI accumulators plus the evaluated feature list"""

    def __init__(self):
        self.real_score = 0.0
        self.ai_score = 0.0
        self.real_weight = 0.0
        self.ai_weight = 0.0
        self.features = []

    def add(self, name, weight, is_real, confidence, details, points=None):
        points = 100 * weight if points is None else points
        if is_real:
            self.real_score += points
            self.real_weight += weight
        else:
            self.ai_score += points
            self.ai_weight += weight

        self.features.append({
            'name': name,
            'score': 100,
            'weight': weight,
            'isRealIndicator': is_real,
            'confidence': confidence,
            'details': details,
        })

    def normalized(self):
        real = self.real_score / self.real_weight if self.real_weight > 0 else 0.0
        ai = self.ai_score / self.ai_weight if self.ai_weight > 0 else 0.0
        # Both sides usually average out to 100; round so ties compare equal
        return round(real, SCORE_PRECISION), round(ai, SCORE_PRECISION)


def safe_call(name, fn, ctx, fallback):
    """Run one detector; log and substitute a neutral result if it fails"""
    try:
        return fn(ctx)
    except Exception:
        logger.exception("Error in %s", name)
        return fallback


FALLBACKS = {
    'texture': {
        'hasArtificialPatterns': False, 'confidence': 0, 'noiseLevel': 0, 'noiseConsistency': 0,
        'repetitiveTextures': 0, 'colorHistogramScore': 50, 'details': ['error in texture analysis'],
    },
    'lighting': {
        'hasConsistentLighting': True, 'confidence': 0, 'lightSourceCount': 0,
        'reflectionConsistency': 0, 'impossibleLighting': False, 'details': ['error in lighting analysis'],
    },
    'metadata': {
        'hasConsistentMetadata': False, 'confidence': 0, 'exifData': None,
        'hasAiSignature': False, 'details': ['error in metadata analysis'],
    },
    'theme': {
        'hasCyberpunkElements': False, 'hasMechanicalHybridElements': False, 'hasScienceFictionThemes': False,
        'hasFantasyElements': False, 'confidence': 0, 'details': ['error in theme analysis'],
    },
    'style': {
        'hasAnimeStyle': False, 'hasCartoonStyle': False, 'hasDigitalArtStyle': False,
        'hasHyperRealisticStyle': False, 'confidence': 0, 'details': ['error in style analysis'],
    },
    'depth': {
        'hasConsistentDepth': True, 'hasNaturalBlur': True, 'hasUnrealisticBokeh': False,
        'confidence': 0, 'details': ['error in depth analysis'],
    },
    'face': {
        'hasFace': False, 'faceCount': 0, 'isRealFace': False, 'confidence': 0,
        'facialFeatures': {
            'eyeReflections': False, 'skinTextureNatural': False, 'microexpressions': False,
            'asymmetry': 0, 'imperfections': 0, 'details': ['error in facial analysis'],
        },
    },
    'cyberpunk': {'isCyberpunk': False, 'neonPercentage': 0.0, 'hasNightCityscape': False, 'confidence': 0},
    'naturalSubjects': {
        'isNaturalSubject': False, 'naturalConfidence': 0, 'hasNaturalNoise': False,
        'hasNaturalLighting': False, 'hasNaturalColors': False,
    },
    'gradients': {'isNatural': True, 'unnaturalRatio': 0.0, 'confidence': 0},
}


def fallback_result(started=None):
    """Result returned when classification itself fails"""
    elapsed = (time.perf_counter() - started) * 1000 if started else 0.0
    return {
        'isReal': False,
        'confidence': 70,
        'realScore': 30,
        'aiScore': 70,
        'evaluatedFeatures': [],
        'detectedArtifacts': ['classification error'],
        'naturalElements': [],
        'metadataIndicators': [],
        'modelConfidence': {'neuralModel': 0, 'ensembleScore': 0},
        'externalApiResults': [],
        'detailedAnalysis': {},
        'executionTime': elapsed,
    }


def classify_image(ctx, neural_scorer=None):
    started = time.perf_counter()
    try:
        return _classify(ctx, neural_scorer, started)
    except Exception:
        logger.exception("Error in image classification")
        return fallback_result(started)


def _classify(ctx, neural_scorer, started):
    tally = Tally()
    artifacts_found = []
    natural_elements = []
    metadata_indicators = []
    detailed = {}
    filename = ctx.filename

    brand = metadata.detect_brand_in_filename(filename)
    if brand:
        tally.add('Brand Detection', 2.0, True, 0.9, 'Real-world brand detected in filename')
        natural_elements.append('real-world brand detected in filename')

    indicators = metadata.analyze_metadata_indicators(filename)
    if indicators['isLikelyRealPhoto']:
        tally.add('Filename Analysis', 1.5, True, indicators['confidence'] / 100, 'Filename suggests real photo')
        metadata_indicators.append('filename suggests real photo')
        if indicators['hasCameraModel']:
            metadata_indicators.append('camera model in filename')
        if indicators['hasPhotoTerms']:
            metadata_indicators.append('photo terms in filename')
        if indicators['hasStudioTerms']:
            metadata_indicators.append('studio terms in filename')
        if indicators['hasOutdoorTerms']:
            metadata_indicators.append('outdoor terms in filename')
        if indicators['hasPhotoPattern']:
            metadata_indicators.append('typical photo naming pattern')
    elif indicators['hasAiTerms']:
        tally.add('Filename Analysis', 1.5, False, indicators['confidence'] / 100,
                  'Filename suggests AI-generated image')
        artifacts_found.append('AI terms in filename')

    studio = safe_call('studio portrait detection', portrait.detect_studio_portrait, ctx, False)
    if studio:
        tally.add('Studio Portrait Detection', 2.0, True, 0.9, 'Studio portrait characteristics detected')
        natural_elements.append('studio portrait detected')

    outdoor = safe_call('outdoor portrait detection', portrait.detect_outdoor_portrait, ctx, False)
    if outdoor:
        tally.add('Outdoor Portrait Detection', 2.0, True, 0.9, 'Outdoor portrait characteristics detected')
        natural_elements.append('outdoor portrait detected')

    cyberpunk = safe_call('cyberpunk detection', natural.detect_cyberpunk_aesthetic, ctx, FALLBACKS['cyberpunk'])
    if cyberpunk['isCyberpunk']:
        tally.add('Cyberpunk Aesthetic Detection', 3.0, False, cyberpunk['confidence'] / 100,
                  'Cyberpunk/sci-fi aesthetic detected - very likely AI-generated')
        artifacts_found.append('cyberpunk/sci-fi aesthetic')
        if cyberpunk['hasNightCityscape']:
            artifacts_found.append('night cityscape with neon lights')
        artifacts_found.append(f"{cyberpunk['neonPercentage']:.1f}% neon colors")

    subjects = safe_call('natural subject analysis', natural.analyze_natural_subjects, ctx,
                         FALLBACKS['naturalSubjects'])
    if subjects['isNaturalSubject']:
        tally.add('Natural Subject Detection', 2.0, True, subjects['naturalConfidence'] / 100,
                  'Natural subject characteristics detected')
        natural_elements.append('natural subject detected')
        if subjects['hasNaturalNoise']:
            natural_elements.append('natural noise patterns')
        if subjects['hasNaturalLighting']:
            natural_elements.append('natural lighting conditions')
        if subjects['hasNaturalColors']:
            natural_elements.append('natural color patterns')

    texture_analysis = safe_call('texture analysis', texture.analyze_texture, ctx, FALLBACKS['texture'])
    gradients = safe_call('gradient analysis', natural.analyze_gradient_naturalness, ctx, FALLBACKS['gradients'])
    diversity = safe_call('color diversity', natural.color_diversity, ctx, 0.0)

    photograph = natural.determine_if_natural_photograph(ctx, {
        'colorProfile': {
            'colorDiversity': diversity,
            'hasNeonColors': cyberpunk['isCyberpunk'],
            'perfectGradients': gradients['unnaturalRatio'],
        },
        'textureProfile': {
            'repetitivePatterns': texture_analysis['repetitiveTextures'],
            'noiseInconsistency': 1 - texture_analysis['noiseConsistency'],
        },
        'isCyberpunkAesthetic': cyberpunk['isCyberpunk'],
    })
    detailed['naturalPhotographAnalysis'] = photograph

    if photograph['isNaturalPhotograph']:
        tally.add('Natural Photograph Analysis', 2.5, True, photograph['confidence'] / 100,
                  'Natural photograph characteristics detected')
        natural_elements.append('natural photograph characteristics')
        if photograph['hasCameraIndicator']:
            natural_elements.append('camera indicator in filename')
        if photograph['hasStudioIndicator']:
            natural_elements.append('studio indicator in filename')
        if photograph['hasOutdoorIndicator']:
            natural_elements.append('outdoor indicator in filename')
    elif photograph['isCyberpunkAesthetic'] or photograph['hasAiStyleIndicator']:
        tally.add('Natural Photograph Analysis', 2.5, False, (100 - photograph['confidence']) / 100,
                  'AI-generated image characteristics detected')
        artifacts_found.append('AI-generated image characteristics')
        if photograph['isCyberpunkAesthetic']:
            artifacts_found.append('cyberpunk aesthetic')
        if photograph['hasAiStyleIndicator']:
            artifacts_found.append('AI style indicator in filename')

    artifact_analysis = safe_call('AI artifact detection', artifacts.detect_ai_generated_image, ctx,
                                  artifacts.empty_result())
    artifact_details = artifacts.describe_artifacts(artifact_analysis)
    detailed['aiArtifactAnalysis'] = dict(artifact_analysis, details=artifact_details)

    weight = WEIGHTS['aiArtifactDetection']
    if artifact_analysis['isAIGenerated']:
        tally.add('AI Artifact Detection', weight, False, artifact_analysis['confidence'] / 100,
                  'Direct AI generation artifacts detected')
        artifacts_found.extend(artifact_details)
    else:
        tally.add('AI Artifact Detection', weight, True, 1 - artifact_analysis['confidence'] / 100,
                  'No AI generation artifacts detected')
        natural_elements.append('no AI generation artifacts detected')

    face_analysis = safe_call('facial analysis', face.analyze_face, ctx, FALLBACKS['face'])
    detailed['faceAnalysis'] = face_analysis

    if face_analysis['hasFace']:
        weight = WEIGHTS['faceAnalysis']
        face_details = face_analysis['facialFeatures']['details']
        if face_analysis['isRealFace']:
            tally.add('Face Analysis', weight, True, face_analysis['confidence'],
                      'Natural human face detected with authentic features')
            natural_elements.append('natural human face')
            natural_elements.extend(face_details)
        else:
            tally.add('Face Analysis', weight, False, face_analysis['confidence'],
                      'Artificial face with unnatural features detected')
            artifacts_found.append('artificial face')
            artifacts_found.extend(face_details)

    detailed['textureAnalysis'] = texture_analysis
    weight = WEIGHTS['textureAnalysis']
    if texture_analysis['hasArtificialPatterns']:
        tally.add('Texture Analysis', weight, False, texture_analysis['confidence'],
                  'Artificial texture patterns detected')
        artifacts_found.append('artificial texture patterns')
        artifacts_found.extend(texture_analysis['details'])
    else:
        tally.add('Texture Analysis', weight, True, texture_analysis['confidence'],
                  'Natural texture patterns detected')
        natural_elements.append('natural texture patterns')
        natural_elements.extend(texture_analysis['details'])

    lighting_analysis = safe_call('lighting analysis', lighting.analyze_lighting, ctx, FALLBACKS['lighting'])
    detailed['lightingAnalysis'] = lighting_analysis
    weight = WEIGHTS['lightingAnalysis']
    if lighting_analysis['hasConsistentLighting'] and not lighting_analysis['impossibleLighting']:
        tally.add('Lighting Analysis', weight, True, lighting_analysis['confidence'],
                  'Natural lighting conditions detected')
        natural_elements.append('natural lighting conditions')
        natural_elements.extend(lighting_analysis['details'])
    else:
        tally.add('Lighting Analysis', weight, False, lighting_analysis['confidence'],
                  'Inconsistent or impossible lighting detected')
        artifacts_found.append('inconsistent lighting')
        artifacts_found.extend(lighting_analysis['details'])

    metadata_analysis = safe_call('metadata analysis', metadata.analyze_metadata, ctx, FALLBACKS['metadata'])
    detailed['metadataAnalysis'] = metadata_analysis
    weight = WEIGHTS['metadataAnalysis']
    if metadata_analysis['hasConsistentMetadata']:
        tally.add('Metadata Analysis', weight, True, metadata_analysis['confidence'],
                  'Consistent photographic metadata detected')
        metadata_indicators.append('consistent photographic metadata')
        metadata_indicators.extend(metadata_analysis['details'])
    else:
        tally.add('Metadata Analysis', weight, False, metadata_analysis['confidence'],
                  'Inconsistent or missing metadata detected')
        artifacts_found.append('inconsistent or missing metadata')
        artifacts_found.extend(metadata_analysis['details'])

    theme_analysis = safe_call('theme analysis', theme.analyze_theme, ctx, FALLBACKS['theme'])
    detailed['themeAnalysis'] = theme_analysis
    if (
        theme_analysis['hasCyberpunkElements']
        or theme_analysis['hasMechanicalHybridElements']
        or theme_analysis['hasScienceFictionThemes']
        or theme_analysis['hasFantasyElements']
    ):
        tally.add('Theme Detection', WEIGHTS['themeDetection'], False, theme_analysis['confidence'],
                  'Fantasy or science fiction elements detected')
        artifacts_found.append('fantasy/sci-fi elements')
        artifacts_found.extend(theme_analysis['details'])

    style_analysis = safe_call('style analysis', style.analyze_style, ctx, FALLBACKS['style'])
    detailed['styleAnalysis'] = style_analysis
    if (
        style_analysis['hasAnimeStyle']
        or style_analysis['hasCartoonStyle']
        or style_analysis['hasDigitalArtStyle']
        or style_analysis['hasHyperRealisticStyle']
    ):
        tally.add('Style Detection', WEIGHTS['styleDetection'], False, style_analysis['confidence'],
                  'Digital art style detected')
        artifacts_found.append('digital art style')
        artifacts_found.extend(style_analysis['details'])

    depth_analysis = safe_call('depth analysis', depth.analyze_depth, ctx, FALLBACKS['depth'])
    detailed['depthAnalysis'] = depth_analysis
    weight = WEIGHTS['depthAnalysis']
    if (
        depth_analysis['hasConsistentDepth']
        and depth_analysis['hasNaturalBlur']
        and not depth_analysis['hasUnrealisticBokeh']
    ):
        tally.add('Depth Analysis', weight, True, depth_analysis['confidence'], 'Natural depth of field detected')
        natural_elements.append('natural depth of field')
        natural_elements.extend(depth_analysis['details'])
    else:
        tally.add('Depth Analysis', weight, False, depth_analysis['confidence'], 'Unnatural depth of field detected')
        artifacts_found.append('unnatural depth of field')
        artifacts_found.extend(depth_analysis['details'])

    neural = None
    if neural_scorer is not None:
        neural = safe_call('neural model', neural_scorer.score, ctx, None)
    if neural is not None:
        if neural['isReal']:
            tally.add('Neural Model', WEIGHTS['neuralModel'], True, neural['confidence'],
                      'Neural model classified image as real')
        else:
            tally.add('Neural Model', WEIGHTS['neuralModel'], False, neural['confidence'],
                      'Neural model classified image as AI-generated')

    if (
        (style_analysis['hasAnimeStyle'] and style_analysis['confidence'] > 0.7)
        or (theme_analysis['hasFantasyElements'] and theme_analysis['confidence'] > 0.7)
    ):
        tally.add('Anime/Fantasy Detection', 3.0, False, 0.95,
                  'Strong anime/fantasy elements detected - very likely AI-generated')

    if theme_analysis['hasCyberpunkElements'] and theme_analysis['confidence'] > 0.7:
        tally.add('Cyberpunk Detection', 3.0, False, 0.95,
                  'Strong cyberpunk theme detected - very likely AI-generated')

    features = face_analysis['facialFeatures'] or {}
    if (
        face_analysis['isRealFace']
        and face_analysis['confidence'] > 0.85
        and features.get('microexpressions')
        and features.get('asymmetry', 0) > 0.4
        and not style_analysis['hasHyperRealisticStyle']
    ):
        tally.add('Natural Human Features', 2.0, True, 0.95,
                  'Strong natural human features detected - very likely real photo')

    real, ai = tally.normalized()
    ratio = real / (ai if ai > 0 else 1)

    if brand or studio or outdoor:
        is_real, confidence = True, 90
    elif cyberpunk['isCyberpunk']:
        is_real, confidence = False, 95
    elif photograph['isNaturalPhotograph'] and subjects['isNaturalSubject']:
        is_real, confidence = True, 85
    elif ratio > REAL_RATIO:
        is_real, confidence = True, min(real, 90)
    elif ratio < AI_RATIO:
        is_real, confidence = False, min(ai, 90)
    elif artifact_analysis['isAIGenerated'] and artifact_analysis['confidence'] > 70:
        is_real, confidence = False, 80
    elif face_analysis['isRealFace'] and face_analysis['confidence'] > 0.8:
        is_real, confidence = True, 80
    else:
        is_real = real > ai
        confidence = real if is_real else ai

    return {
        'isReal': is_real,
        'confidence': confidence,
        'realScore': real,
        'aiScore': ai,
        'evaluatedFeatures': tally.features,
        'detectedArtifacts': artifacts_found,
        'naturalElements': natural_elements,
        'metadataIndicators': metadata_indicators,
        'modelConfidence': {
            'neuralModel': neural['confidence'] if neural else 0,
            'ensembleScore': confidence,
        },
        'externalApiResults': [],
        'detailedAnalysis': detailed,
        'executionTime': (time.perf_counter() - started) * 1000,
    }
