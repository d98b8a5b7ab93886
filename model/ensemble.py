"""
Ensemble of the specialised detectors, run concurrently over one image
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from detectors import artifacts, face, frequency, natural

logger = logging.getLogger(__name__)

DETECTOR_WEIGHTS = {
    'naturalImageDetection': 3.0,
    'humanFaceAnalysis': 2.5,
    'aiArtifactDetection': 2.5,
    'frequencyAnalysis': 2.0,
    'ganArchitectureDetection': 1.5,
}


def _entry(name, is_real, confidence, weight, details):
    return {
        'name': name,
        'isReal': is_real,
        'confidence': confidence,
        'weight': weight,
        'details': details,
    }


def ensemble_detect(ctx):
    """
    Combine natural-image, face, artifact, frequency and GAN architecture
    detectors into one verdict. Confidence is the winning side's share of
    the combined normalised score.
    """
    with ThreadPoolExecutor(max_workers=5) as executor:
        natural_future = executor.submit(natural.detect_natural_image, ctx)
        face_future = executor.submit(face.analyze_human_face, ctx)
        artifact_future = executor.submit(artifacts.detect_ai_generated_image, ctx)
        frequency_future = executor.submit(frequency.analyze_frequency_domain, ctx)

        natural_result = natural_future.result()
        face_result = face_future.result()
        artifact_result = artifact_future.result()
        frequency_result = frequency_future.result()

    gan_result = frequency.detect_gan_frequency_artifacts(ctx, frequency_result)
    architecture = gan_result['architectureDetection']

    real_score = 0.0
    ai_score = 0.0
    results = []

    weight = DETECTOR_WEIGHTS['naturalImageDetection']
    if natural_result['isNaturalImage']:
        real_score += 100 * weight
        results.append(_entry('Natural Image Detection', True, natural_result['confidence'], weight,
                              'Natural image characteristics detected'))
    else:
        ai_score += 70 * weight
        results.append(_entry('Natural Image Detection', False, 100 - natural_result['confidence'], weight,
                              'Unnatural image characteristics detected'))

    weight = DETECTOR_WEIGHTS['humanFaceAnalysis']
    if face_result['hasFace']:
        if face_result['isRealHuman']:
            real_score += 100 * weight
            results.append(_entry('Human Face Analysis', True, face_result['confidence'], weight,
                                  'Real human face detected'))
        else:
            ai_score += 100 * weight
            results.append(_entry('Human Face Analysis', False, face_result['confidence'], weight,
                                  'AI-generated face detected'))

    weight = DETECTOR_WEIGHTS['aiArtifactDetection']
    if artifact_result['isAIGenerated']:
        ai_score += 100 * weight
        results.append(_entry('AI Artifact Detection', False, artifact_result['confidence'], weight,
                              'AI generation artifacts detected'))
    else:
        real_score += 70 * weight
        results.append(_entry('AI Artifact Detection', True, 100 - artifact_result['confidence'], weight,
                              'No significant AI artifacts detected'))

    weight = DETECTOR_WEIGHTS['frequencyAnalysis']
    if frequency_result['hasGanArtifacts']:
        ai_score += 100 * weight
        results.append(_entry('Frequency Analysis', False, frequency_result['confidence'], weight,
                              'Frequency domain artifacts detected'))
    else:
        real_score += 80 * weight
        results.append(_entry('Frequency Analysis', True, 100 - frequency_result['confidence'], weight,
                              'Natural frequency patterns detected'))

    if architecture['isKnownGan']:
        weight = DETECTOR_WEIGHTS['ganArchitectureDetection']
        ai_score += 100 * weight
        results.append(_entry('GAN Architecture Detection', False, architecture['confidence'], weight,
                              f"Detected {architecture['detectedArchitecture']} architecture patterns"))

    total_weight = sum(r['weight'] for r in results)
    real = real_score / total_weight
    ai = ai_score / total_weight

    is_real = real > ai
    confidence = (real if is_real else ai) / (real + ai) * 100

    logger.debug("Ensemble real=%.1f ai=%.1f", real, ai)

    return {
        'isReal': is_real,
        'confidence': confidence,
        'realScore': real,
        'aiScore': ai,
        'detectorResults': results,
        'frequencyAnalysis': frequency_result,
        'ganArchitectureDetection': architecture,
    }
