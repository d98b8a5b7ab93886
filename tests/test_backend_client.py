from unittest import mock

import requests

from utils import backend_client
from utils.backend_client import (
    get_content_type,
    is_usable_result,
    probe_backend_status,
    process_frequency_features,
    send_to_backend,
)

URLS = ['http://localhost:5000/api/detect', 'http://127.0.0.1:5000/api/detect']


def _response(status=200, payload=None, text=''):
    response = mock.Mock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def test_content_type_from_extension():
    assert get_content_type('a.JPG') == 'image/jpeg'
    assert get_content_type('a.png') == 'image/png'
    assert get_content_type('a.webp') == 'image/webp'
    assert get_content_type('a.gif') == 'application/octet-stream'
    assert get_content_type('noext') == 'application/octet-stream'


def test_send_falls_through_to_second_url_and_absolutises_heatmap():
    ok = _response(payload={'is_real': False, 'confidence': 91, 'heatmap_url': 'heatmaps/x.png'})
    with mock.patch.object(backend_client.requests, 'post',
                           side_effect=[requests.ConnectionError('refused'), ok]) as post:
        result = send_to_backend(b'data', 'cat.png', URLS, timeout=8)

    assert post.call_count == 2
    _, kwargs = post.call_args
    assert kwargs['timeout'] == 8
    assert kwargs['files']['file'] == ('cat.png', b'data', 'image/png')
    assert result['heatmap_url'] == 'http://127.0.0.1:5000/api/heatmaps/x.png'
    assert is_usable_result(result)


def test_send_reports_every_failure():
    bad = _response(status=500, text='boom')
    with mock.patch.object(backend_client.requests, 'post',
                           side_effect=[bad, requests.Timeout()]):
        result = send_to_backend(b'data', 'cat.jpg', URLS)

    assert result['error'] == 'Failed to connect to backend'
    assert result['is_real'] is None
    assert result['confidence'] is None
    assert len(result['details']) == 2
    assert '500' in result['details'][0]
    assert not is_usable_result(result)


def test_frequency_features_mapping():
    assert process_frequency_features({}) is None
    assert process_frequency_features({'error': 'x'}) is None

    ai = process_frequency_features({'frequency_features': {'low_to_high_ratio': 0.3}})
    assert ai['isAIGenerated'] and ai['confidence'] == 85

    natural = process_frequency_features({'frequency_features': {
        'low_to_high_ratio': 0.9, 'mid_to_high_ratio': 0.8, 'filtered_std': 25,
    }})
    assert not natural['isAIGenerated'] and natural['confidence'] == 70


def test_probe_uses_options_for_detect_endpoint():
    urls = ['http://localhost:5000/health', 'http://localhost:5000/api/detect']
    with mock.patch.object(backend_client.requests, 'request',
                           side_effect=[requests.ConnectionError('refused'),
                                        _response(status=204, payload=ValueError('no body'))]) as request:
        online, data, details = probe_backend_status(urls, timeout=3)

    assert online
    assert data == {'message': 'Backend is online'}
    assert len(details) == 1
    methods = [c.args[0] for c in request.call_args_list]
    assert methods == ['GET', 'OPTIONS']


def test_probe_offline_when_nothing_answers():
    with mock.patch.object(backend_client.requests, 'request', side_effect=requests.ConnectionError('refused')):
        online, data, details = probe_backend_status(URLS)

    assert not online
    assert data is None
    assert len(details) == len(URLS)


def test_send_skips_url_with_non_object_body():
    odd = _response(payload=['unexpected'])
    ok = _response(payload={'is_real': True, 'confidence': 70})
    with mock.patch.object(backend_client.requests, 'post', side_effect=[odd, ok]):
        result = send_to_backend(b'data', 'cat.jpg', URLS)

    assert result == {'is_real': True, 'confidence': 70}


def test_send_treats_non_object_body_as_failure():
    with mock.patch.object(backend_client.requests, 'post', return_value=_response(payload=['unexpected'])):
        result = send_to_backend(b'data', 'cat.jpg', URLS)

    assert result['error'] == 'Failed to connect to backend'
    assert len(result['details']) == 2
    assert all('unexpected response body' in detail for detail in result['details'])


def test_only_objects_are_usable():
    assert not is_usable_result(['unexpected'])
    assert not is_usable_result({})
    assert not is_usable_result(None)
    assert process_frequency_features({'frequency_features': ['low']}) is None
