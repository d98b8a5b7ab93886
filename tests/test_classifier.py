from unittest import mock

import pytest

from detectors import metadata, texture
from model import enhanced
from model.classifier import Tally, classify_image
from model.enhanced import count_real_photo_indicators, enhanced_classify_image
from model.ensemble import ensemble_detect
from model.predictor import (
    combine_analysis_results,
    determine_image_category,
    determine_reason,
    make_analysis_id,
    to_base36,
)

RESULT_KEYS = {
    'isReal', 'confidence', 'realScore', 'aiScore', 'evaluatedFeatures', 'detectedArtifacts',
    'naturalElements', 'metadataIndicators', 'modelConfidence', 'detailedAnalysis', 'executionTime',
}


def _feature(name, is_real, weight=1.0, details=''):
    return {'name': name, 'score': 100, 'weight': weight, 'isRealIndicator': is_real,
            'confidence': 0.9, 'details': details}


def test_tally_normalises_each_side():
    tally = Tally()
    tally.add('A', 2.0, True, 0.9, 'a')
    tally.add('B', 1.5, True, 0.9, 'b')
    tally.add('C', 3.0, False, 0.9, 'c')

    assert tally.normalized() == (100.0, 100.0)
    assert [f['name'] for f in tally.features] == ['A', 'B', 'C']
    assert Tally().normalized() == (0.0, 0.0)


def test_standard_result_shape(photo_ctx):
    result = classify_image(photo_ctx)
    assert RESULT_KEYS <= set(result)
    assert 0 <= result['confidence'] <= 100
    for feature in result['evaluatedFeatures']:
        assert {'name', 'score', 'weight', 'isRealIndicator', 'confidence', 'details'} <= set(feature)
    assert result['modelConfidence']['neuralModel'] == 0


def test_neon_frame_is_ai(neon_ctx):
    result = classify_image(neon_ctx)
    assert result['isReal'] is False
    assert result['confidence'] == 95
    assert 'cyberpunk/sci-fi aesthetic' in result['detectedArtifacts']
    names = [f['name'] for f in result['evaluatedFeatures']]
    assert 'Cyberpunk Aesthetic Detection' in names


def test_brand_in_filename_wins(photo_ctx):
    photo_ctx.filename = 'nike_store.jpg'
    result = classify_image(photo_ctx)
    assert result['isReal'] is True
    assert result['confidence'] == 90
    assert 'real-world brand detected in filename' in result['naturalElements']


def test_failing_detector_is_replaced_by_neutral_result(photo_ctx):
    with mock.patch.object(texture, 'analyze_texture', side_effect=ValueError('bad block')):
        result = classify_image(photo_ctx)

    assert result['detailedAnalysis']['textureAnalysis']['details'] == ['error in texture analysis']
    assert 'error in texture analysis' in result['naturalElements']


def test_unexpected_failure_returns_fallback(photo_ctx):
    with mock.patch.object(metadata, 'detect_brand_in_filename', side_effect=RuntimeError('boom')):
        result = classify_image(photo_ctx)

    assert result['isReal'] is False
    assert result['confidence'] == 70
    assert result['realScore'] == 30
    assert result['aiScore'] == 70
    assert result['detectedArtifacts'] == ['classification error']


def test_neural_scorer_contributes_when_loaded(photo_ctx):
    scorer = mock.Mock()
    scorer.score.return_value = {'isReal': False, 'confidence': 0.8, 'aiProbability': 0.8}

    result = classify_image(photo_ctx, scorer)

    neural = [f for f in result['evaluatedFeatures'] if f['name'] == 'Neural Model']
    assert len(neural) == 1
    assert neural[0]['isRealIndicator'] is False
    assert result['modelConfidence']['neuralModel'] == 0.8


def test_ensemble_winner_share(photo_ctx):
    result = ensemble_detect(photo_ctx)
    assert 50 <= result['confidence'] <= 100
    names = [r['name'] for r in result['detectorResults']]
    assert names[0] == 'Natural Image Detection'
    assert 'AI Artifact Detection' in names
    assert 'Frequency Analysis' in names


@pytest.mark.parametrize('ctx_name', ['photo_ctx', 'neon_ctx'])
def test_enhanced_confidence_is_clamped(request, ctx_name):
    result = enhanced_classify_image(request.getfixturevalue(ctx_name))
    assert 50 <= result['confidence'] <= 98
    assert 'enhancedAnalysis' in result
    assert result['externalApiResults'] == []


def test_confident_backend_decides(photo_ctx):
    backend = {'is_real': True, 'confidence': 92, 'model_results': [
        {'model_name': 'xception', 'prediction': 'Real', 'confidence': '92.0', 'weight': 1.0},
    ]}
    result = enhanced_classify_image(photo_ctx, backend_result=backend)

    assert result['isReal'] is True
    assert result['confidence'] == 92
    assert result['externalApiResults'] == [backend]
    assert 'xception: real photo' in result['naturalElements']
    assert any(f['name'] == 'Backend xception' for f in result['evaluatedFeatures'])


def test_backend_error_is_ignored(photo_ctx):
    backend = {'error': 'Failed to connect to backend', 'details': [], 'is_real': None, 'confidence': None}
    result = enhanced_classify_image(photo_ctx, backend_result=backend)
    assert result['externalApiResults'] == []


def test_backend_blend_resolves_conflict():
    is_real, confidence = enhanced._blend_backend(False, 80, {'is_real': True, 'confidence': 80})
    assert is_real is True
    assert confidence == pytest.approx(72.0)


def test_backend_blend_agreement():
    is_real, confidence = enhanced._blend_backend(True, 70, {'is_real': True, 'confidence': 80})
    assert is_real is True
    assert confidence == pytest.approx(73.0)


def test_real_photo_indicator_count():
    elements = ['natural texture patterns', 'natural lighting conditions', 'Camera metadata indicators detected',
                'unrelated', 'natural skin texture and natural skin']
    assert count_real_photo_indicators(elements) == 4


def test_combine_borderline_results():
    initial = {'isReal': True, 'confidence': 60, 'evaluatedFeatures': [_feature('A', True)],
               'detectedArtifacts': ['x'], 'naturalElements': ['n1']}
    deep = {'isReal': True, 'confidence': 80, 'evaluatedFeatures': [_feature('A', False), _feature('B', True)],
            'detectedArtifacts': ['x', 'y'], 'naturalElements': ['n2'], 'enhancedAnalysis': {}}

    combined = combine_analysis_results(initial, deep)
    assert combined['isReal'] is True
    assert combined['confidence'] == pytest.approx(74.0)
    assert [f['name'] for f in combined['evaluatedFeatures']] == ['A', 'B']
    assert combined['evaluatedFeatures'][0]['isRealIndicator'] is True
    assert combined['detectedArtifacts'] == ['x', 'y']
    assert combined['naturalElements'] == ['n1', 'n2']

    deep['isReal'] = False
    combined = combine_analysis_results(initial, deep)
    assert combined['isReal'] is False
    assert combined['confidence'] == 80


def test_reason_uses_strongest_winning_feature():
    result = {'isReal': False, 'evaluatedFeatures': [
        _feature('A', False, weight=1.0, details='weak'),
        _feature('B', False, weight=3.0, details='strong'),
        _feature('C', True, weight=5.0, details='real side'),
    ]}
    assert determine_reason(result) == 'strong'

    result['evaluatedFeatures'] = []
    assert determine_reason(result) == 'AI-generated characteristics detected'


def test_image_category():
    base = {'isReal': False, 'detailedAnalysis': {}, 'naturalElements': [], 'detectedArtifacts': []}
    assert determine_image_category(dict(base, detectedArtifacts=['cyberpunk/sci-fi aesthetic'])) == \
        'cyberpunk/sci-fi AI art'
    assert determine_image_category(dict(base, naturalElements=['studio portrait detected'])) == 'studio portrait'
    assert determine_image_category(dict(base, enhancedAnalysis={'portraitAnalysis': {'isOutdoorPortrait': True}})) == \
        'outdoor portrait'
    assert determine_image_category(dict(base, detailedAnalysis={'styleAnalysis': {'hasAnimeStyle': True}})) == \
        'anime/digital art'
    assert determine_image_category(base) == 'AI-generated image'
    assert determine_image_category(dict(base, isReal=True)) == 'natural photo'


def test_analysis_id_format():
    assert to_base36(0) == '0'
    assert to_base36(35) == 'z'
    assert to_base36(36) == '10'
    assert make_analysis_id('1a2b3c4d5e6f', now=1.0) == '1a2b3c4d-rs'
    assert make_analysis_id('-1f', now=0.5) == '-1f-dw'


def test_tally_rounds_float_noise_into_a_tie():
    tally = Tally()
    tally.add('A', 0.1, True, 0.9, 'a')
    tally.add('B', 0.2, True, 0.9, 'b')
    tally.add('C', 3.0, False, 0.9, 'c')

    assert tally.normalized() == (100.0, 100.0)


NO_NATURAL = {'isNaturalImage': False}
NO_FACE = {'hasFace': False, 'isRealHuman': False, 'confidence': 0}
NO_PORTRAIT = {'isOutdoorPortrait': False, 'isStudioPortrait': False, 'isPortraitPhoto': False}
NO_METADATA = {'isLikelyRealPhoto': False}
NO_ARTIFACTS = {
    'hasAnimalHumanHybrids': False, 'hasAnimeFeatures': False, 'hasFantasyElements': False,
    'isAIGenerated': False, 'confidence': 0,
}


def _decide(real=100, ai=100, natural=None, face=None, portrait=None, metadata_=None, artifacts=None):
    tally = enhanced.EnhancedScore({
        'realScore': real, 'aiScore': ai, 'evaluatedFeatures': [], 'naturalElements': [], 'detectedArtifacts': [],
    })
    return enhanced._local_decision(
        tally,
        dict(NO_NATURAL, **(natural or {})),
        dict(NO_FACE, **(face or {})),
        dict(NO_PORTRAIT, **(portrait or {})),
        dict(NO_METADATA, **(metadata_ or {})),
        dict(NO_ARTIFACTS, **(artifacts or {})),
    )


def test_local_decision_special_cases():
    assert _decide(artifacts={'hasAnimalHumanHybrids': True, 'confidence': 96}) == (False, 98)
    assert _decide(artifacts={'hasAnimeFeatures': True, 'confidence': 97}) == (False, 95)
    assert _decide(artifacts={'hasFantasyElements': True, 'confidence': 80}) == (False, 75)

    real_face = {'hasFace': True, 'isRealHuman': True, 'confidence': 80}
    assert _decide(portrait={'isOutdoorPortrait': True}, face=real_face) == (True, 95)
    assert _decide(portrait={'isStudioPortrait': True}, face={'hasFace': True}) == (True, 80)
    assert _decide(portrait={'isPortraitPhoto': True}, metadata_={'isLikelyRealPhoto': True}) == (True, 85)
    assert _decide(natural={'isNaturalImage': True}, face=real_face) == (True, 90)
    assert _decide(artifacts={'isAIGenerated': True, 'confidence': 97}) == (False, 97)


def test_local_decision_portrait_needs_a_face():
    # Falls through to the ambiguous branch
    assert _decide(portrait={'isOutdoorPortrait': True}) == (True, 85)


def test_local_decision_score_ratio():
    assert _decide(real=200, ai=100) == (True, pytest.approx(50.0))
    assert _decide(real=100, ai=200) == (False, 95)


def test_local_decision_ambiguous_scores_lean_real():
    is_real, confidence = _decide(real=85, ai=100)
    assert is_real is True
    assert confidence == 85

    is_real, confidence = _decide(real=70, ai=100)
    assert is_real is False
    assert confidence == 85


def test_low_confidence_ai_verdict_flips_to_real(photo_ctx):
    with mock.patch.object(enhanced, '_local_decision', return_value=(False, 60)):
        result = enhanced_classify_image(photo_ctx, confidence_threshold=90)

    assert result['isReal'] is True
    assert result['confidence'] == 65


def test_ai_verdict_near_threshold_is_kept(photo_ctx):
    with mock.patch.object(enhanced, '_local_decision', return_value=(False, 85)):
        result = enhanced_classify_image(photo_ctx, confidence_threshold=90)

    assert result['isReal'] is False
    assert result['confidence'] == 85


def test_malformed_backend_models_leave_local_verdict(photo_ctx):
    local = enhanced_classify_image(photo_ctx)
    backend = {'is_real': True, 'confidence': 60, 'model_results': ['xception']}
    result = enhanced_classify_image(photo_ctx, backend_result=backend)

    assert result['externalApiResults'] == []
    assert (result['isReal'], result['confidence']) == (local['isReal'], local['confidence'])
    assert not any(f['name'].startswith('Backend') for f in result['evaluatedFeatures'])
