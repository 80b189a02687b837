from client.cache import QueryCache, record_key, records_key


async def test_fetch_loads_once():
    cache = QueryCache()
    calls = []

    async def loader():
        calls.append(1)
        return ["a"]

    assert await cache.fetch(("k",), loader) == ["a"]
    assert await cache.fetch(("k",), loader) == ["a"]
    assert len(calls) == 1


def test_invalidate_by_prefix():
    cache = QueryCache()
    cache.set(records_key(), [])
    cache.set(records_key(ubs_id=1), [])
    cache.set(records_key(ubs_id=1, disease_id=2), [])
    cache.set(record_key(7), {})

    assert cache.invalidate("/api/medical-records", 1) == 2
    assert records_key() in cache
    assert cache.invalidate("/api/medical-records") == 1
    assert cache.get(record_key(7)) == {}
    assert cache.invalidate(*record_key(7)) == 1
