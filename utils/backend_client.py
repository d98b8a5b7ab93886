"""
HTTP client for the external detector backend (a separate Flask service)
"""

import logging
from urllib.parse import urljoin

import requests

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'webp': 'image/webp',
}


def get_content_type(filename):
    """Guess the upload content type from the file extension"""
    ext = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
    return CONTENT_TYPES.get(ext, 'application/octet-stream')


def send_to_backend(data, filename, urls, timeout=8):
    """
    POST the upload to each backend URL in turn until one answers.
    Returns the backend JSON, or an error dict when every URL fails.
    """
    errors = []

    for url in urls:
        try:
            logger.info("Sending %s (%d bytes) to %s", filename, len(data), url)
            response = requests.post(
                url,
                files={'file': (filename, data, get_content_type(filename))},
                headers={'Accept': 'application/json'},
                timeout=timeout,
            )
            logger.info("Response from %s: status %s", url, response.status_code)

            if not response.ok:
                raise requests.HTTPError(
                    f"Backend returned status {response.status_code}: {response.text}"
                )

            result = response.json()

            if not isinstance(result, dict):
                logger.error("Unexpected response body from %s: %r", url, result)
                errors.append(f"{url}: unexpected response body")
                continue

            if result.get('heatmap_url'):
                base_url = url[:url.rfind('/') + 1]
                result['heatmap_url'] = urljoin(base_url, result['heatmap_url'])

            return result

        except requests.Timeout:
            logger.error("Request to %s timed out after %ss", url, timeout)
            errors.append(f"{url}: timed out")
        except (requests.RequestException, ValueError) as e:
            logger.error("Error connecting to backend at %s: %s", url, e)
            errors.append(f"{url}: {e}")

    logger.error("All backend connection attempts failed: %s", errors)
    return {
        'error': 'Failed to connect to backend',
        'details': errors,
        'is_real': None,
        'confidence': None,
    }


def is_usable_result(result):
    if not isinstance(result, dict) or not result:
        return False
    return not result.get('error') and result.get('is_real') is not None


def process_frequency_features(result):
    """Interpret ``frequency_features`` from a backend result, if present"""
    if not result or result.get('error'):
        return None

    features = result.get('frequency_features')
    if not isinstance(features, dict) or not features:
        return None

    is_ai = (
        features.get('low_to_high_ratio', 1.0) < 0.5
        or features.get('mid_to_high_ratio', 1.0) < 0.3
        or features.get('filtered_std', 100.0) < 10
    )

    return {
        'isAIGenerated': is_ai,
        'confidence': 85 if is_ai else 70,
        'features': features,
    }


def probe_backend_status(urls, timeout=3):
    """
    Check whether the backend answers on any of ``urls``.
    /api/detect endpoints are probed with OPTIONS, everything else with GET.
    Returns (online, data, details).
    """
    details = []

    for url in urls:
        method = 'OPTIONS' if '/api/detect' in url else 'GET'
        try:
            logger.debug("Trying to connect to %s", url)
            response = requests.request(
                method,
                url,
                headers={'Accept': 'application/json', 'Content-Type': 'application/json'},
                timeout=timeout,
            )

            if response.ok or response.status_code == 204:
                try:
                    data = response.json()
                except ValueError:
                    data = {'message': 'Backend is online'}
                logger.info("Successfully connected to %s", url)
                return True, data, details

            details.append(f"{url}: Status {response.status_code}")

        except requests.Timeout:
            logger.warning("Request timed out for %s", url)
            details.append(f"{url}: timed out")
        except requests.RequestException as e:
            logger.warning("Network error for %s: %s", url, e)
            details.append(f"{url}: {e}")

    return False, None, details
