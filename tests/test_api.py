import io
from unittest import mock

import requests

from config import TestingConfig
from app import create_app
from utils import backend_client


def _upload(client, data, filename='holiday.jpg', **fields):
    form = {'file': (io.BytesIO(data), filename)}
    form.update(fields)
    return client.post('/api/detect', data=form, content_type='multipart/form-data')


def test_missing_file_is_rejected(client):
    response = client.post('/api/detect', data={}, content_type='multipart/form-data')
    assert response.status_code == 400
    assert response.get_json() == {'error': 'No file provided'}


def test_empty_filename_is_rejected(client):
    response = _upload(client, b'', filename='')
    assert response.status_code == 400
    assert response.get_json() == {'error': 'No file provided'}


def test_unsupported_extension_is_rejected(client, photo_bytes):
    response = _upload(client, photo_bytes, filename='notes.txt')
    assert response.status_code == 400
    assert 'Invalid file type' in response.get_json()['error']


def test_analysis_error_returns_fallback(client, predictor, photo_bytes):
    with mock.patch.object(predictor, 'analyze', side_effect=RuntimeError('boom')):
        response = _upload(client, photo_bytes)

    assert response.status_code == 500
    body = response.get_json()
    assert body['isReal'] is False
    assert body['confidence'] == 70
    assert body['reason'] == 'Error in analysis, defaulting to AI-generated'
    assert body['analysisDetails']['ensembleMethod'] == 'Error Fallback'
    assert body['analysisDetails']['imageCategory'] == 'unknown'


def test_undecodable_image_returns_fallback(client):
    response = _upload(client, b'definitely not an image', filename='broken.png')
    assert response.status_code == 500
    assert response.get_json()['confidence'] == 70


def test_detect_returns_full_payload(client, photo_bytes):
    response = _upload(client, photo_bytes)
    assert response.status_code == 200

    body = response.get_json()
    assert isinstance(body['isReal'], bool)
    assert 0 <= body['confidence'] <= 100
    assert body['reason']
    assert body['processingTime'] >= 0
    assert 'cached' not in body

    details = body['analysisDetails']
    assert details['ensembleMethod'] == 'Enhanced Weighted Ensemble'
    assert details['modelResults'][0]['modelName'] == 'Enhanced Ensemble'
    assert details['modelResults'][0]['analysisId'] == body['analysisId']
    for key in ('detectedArtifacts', 'naturalElements', 'imageCategory', 'textureAnalysis',
                'lightingAnalysis', 'depthAnalysis', 'metadataAnalysis', 'aiArtifactAnalysis',
                'enhancedAnalysis', 'deepAnalysisPerformed'):
        assert key in details


def test_standard_mode(client, photo_bytes):
    response = _upload(client, photo_bytes, use_enhanced='false')
    details = response.get_json()['analysisDetails']
    assert details['ensembleMethod'] == 'Advanced Weighted Ensemble'
    assert details['modelResults'][0]['modelName'] == 'Advanced Ensemble'


def test_repeat_upload_is_served_from_cache(client, photo_bytes):
    first = _upload(client, photo_bytes).get_json()
    second = _upload(client, photo_bytes).get_json()

    assert second['cached'] is True
    assert second['analysisId'] == first['analysisId']

    forced = _upload(client, photo_bytes, force_reanalyze='true').get_json()
    assert 'cached' not in forced


def test_same_image_gives_same_verdict(client, photo_bytes):
    runs = [_upload(client, photo_bytes, force_reanalyze='true').get_json() for _ in range(3)]
    assert len({r['isReal'] for r in runs}) == 1
    assert len({r['confidence'] for r in runs}) == 1


def test_status_offline(client):
    with mock.patch.object(backend_client.requests, 'request', side_effect=requests.ConnectionError('refused')):
        response = client.get('/api/detect/status')

    assert response.status_code == 503
    body = response.get_json()
    assert body['status'] == 'offline'
    assert body['error'] == 'Backend service unavailable'
    assert body['details']


def test_status_online_on_plain_get(client):
    ok = mock.Mock(status_code=200, ok=True)
    ok.json.return_value = {'status': 'healthy'}
    with mock.patch.object(backend_client.requests, 'request', return_value=ok):
        response = client.get('/api/detect')

    assert response.status_code == 200
    assert response.get_json() == {'status': 'online', 'data': {'status': 'healthy'}}


def test_health_and_model_info(client):
    health = client.get('/health').get_json()
    assert health['status'] == 'healthy'
    assert health['model_loaded'] is False
    assert health['cache_entries'] == 0

    info = client.get('/api/model-info').get_json()
    assert info['model_loaded'] is False
    assert info['device'] == 'cpu'


def test_oversized_upload():
    class TinyUploadConfig(TestingConfig):
        MAX_CONTENT_LENGTH = 1024

    client = create_app(TinyUploadConfig).test_client()
    response = _upload(client, b'x' * 4096)
    assert response.status_code == 413
    assert 'too large' in response.get_json()['error']


def test_malformed_backend_reply_falls_back_to_local_analysis(photo_bytes):
    class BackendConfig(TestingConfig):
        BACKEND_ENABLED = True
        BACKEND_URLS = ['http://localhost:5000/api/detect']

    client = create_app(BackendConfig).test_client()
    replies = [
        ['unexpected'],
        {'is_real': True, 'confidence': 60, 'model_results': ['xception']},
    ]

    for payload in replies:
        reply = mock.Mock(status_code=200, ok=True)
        reply.json.return_value = payload
        with mock.patch.object(backend_client.requests, 'post', return_value=reply):
            response = _upload(client, photo_bytes, force_reanalyze='true')

        assert response.status_code == 200
        details = response.get_json()['analysisDetails']
        assert details['ensembleMethod'] == 'Enhanced Weighted Ensemble'
        assert details['externalApiResults'] == []


def test_entry_evicted_after_membership_check_is_recomputed(predictor, photo_bytes):
    with mock.patch.object(predictor.cache, 'has', return_value=True):
        result = predictor.analyze(photo_bytes, 'holiday.jpg')

    assert 'cached' not in result
    assert len(predictor.cache) == 1
