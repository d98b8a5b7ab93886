import re

from utils.cache import AnalysisCache, generate_image_hash


def test_hash_is_deterministic_signed_hex():
    data = b'some image bytes' * 10
    h = generate_image_hash(data)
    assert h == generate_image_hash(data)
    assert re.fullmatch(r'-?[0-9a-f]+', h)


def test_hash_of_empty_input_is_zero():
    assert generate_image_hash(b'') == '0'


def test_hash_only_reads_the_prefix():
    # 750 bytes -> exactly 1000 base64 characters
    prefix = bytes(range(256)) * 3
    prefix = prefix[:750]
    assert generate_image_hash(prefix + b'tail one') == generate_image_hash(prefix + b'another tail')
    assert generate_image_hash(b'a' + prefix) != generate_image_hash(b'b' + prefix)


def test_store_then_get_returns_same_object():
    cache = AnalysisCache()
    result = {'isReal': True, 'confidence': 80}
    cache.store('abc', result)

    assert cache.has('abc')
    assert 'abc' in cache
    assert cache.get('abc') is result
    assert cache.get('missing') is None


def test_eviction_keeps_capacity_and_drops_oldest():
    cache = AnalysisCache(max_entries=100)
    for i in range(101):
        cache.store(f'key{i}', {'i': i})

    assert len(cache) == 100
    assert not cache.has('key0')
    assert cache.has('key1')
    assert cache.has('key100')


def test_restore_replaces_value_without_refreshing_age():
    cache = AnalysisCache(max_entries=2)
    cache.store('a', 1)
    cache.store('b', 2)
    cache.store('a', 3)
    cache.store('c', 4)

    assert not cache.has('a')
    assert cache.get('b') == 2
    assert cache.get('c') == 4


def test_clear():
    cache = AnalysisCache()
    cache.store('a', 1)
    cache.clear()
    assert len(cache) == 0


def test_get_of_missing_key_is_none():
    cache = AnalysisCache(max_entries=1)
    cache.store('first', {'isReal': True})
    cache.store('second', {'isReal': False})

    assert cache.get('first') is None
    assert cache.get('second') == {'isReal': False}
