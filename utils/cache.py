"""
In-memory cache for analysis results, keyed by a rolling hash of the upload
"""

import base64
import logging
import threading
from collections import OrderedDict

logger = logging.getLogger(__name__)

HASH_PREFIX_CHARS = 1000


def _to_int32(value):
    return (value + 2**31) % 2**32 - 2**31


def generate_image_hash(data):
    """Hash the first 1000 base64 characters of ``data`` into signed hex.

    Fast, not collision resistant. Two files sharing their first ~750 bytes
    map to the same key.
    """
    prefix = base64.b64encode(data)[:HASH_PREFIX_CHARS].decode('ascii')

    h = 0
    for char in prefix:
        h = _to_int32(h * 31 + ord(char))

    return format(h, 'x')


class AnalysisCache:
    """Bounded map of image hash -> result, evicting the oldest insert"""

    def __init__(self, max_entries=100):
        self.max_entries = max_entries
        self._entries = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._entries)

    def __contains__(self, image_hash):
        return self.has(image_hash)

    def has(self, image_hash):
        with self._lock:
            return image_hash in self._entries

    def get(self, image_hash):
        """Cached result, or None when absent"""
        with self._lock:
            return self._entries.get(image_hash)

    def store(self, image_hash, result):
        with self._lock:
            self._entries[image_hash] = result

            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cached analysis %s", evicted)

    def clear(self):
        with self._lock:
            self._entries.clear()
