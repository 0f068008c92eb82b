from jwtlifecycle import KeySetCache, KeySetEntry


def test_set_and_get_before_expiry(clock) -> None:
    cache = KeySetCache(time_fn=clock)
    set_at = clock()
    cache.set("https://idp/jwks", [{"kid": "key1"}, {"kid": "key2"}], 5)

    entry = cache.get("https://idp/jwks")

    assert isinstance(entry, KeySetEntry)
    assert entry.keys == [{"kid": "key1"}, {"kid": "key2"}]
    assert entry.expires_at == set_at + 5


def test_entry_expires(clock) -> None:
    cache = KeySetCache(time_fn=clock)
    cache.set("https://idp/jwks", ["key1", "key2"], 5)

    clock.advance(6)

    assert cache.get("https://idp/jwks") is None
    assert cache.has("https://idp/jwks") is False
    assert cache.size() == 0


def test_missing_provider_returns_none() -> None:
    assert KeySetCache().get("https://unknown/jwks") is None


def test_has_size_delete_and_clear(clock) -> None:
    cache = KeySetCache(time_fn=clock)
    cache.set("https://a/jwks", ["a"], 10)
    cache.set("https://b/jwks", ["b"], 10)

    assert cache.has("https://a/jwks") is True
    assert cache.size() == 2

    cache.delete("https://a/jwks")
    assert cache.has("https://a/jwks") is False
    assert cache.size() == 1

    cache.clear()
    assert cache.size() == 0


def test_update_replaces_keys(clock) -> None:
    cache = KeySetCache(time_fn=clock)
    cache.set("https://a/jwks", [1], 10)
    cache.set("https://a/jwks", [2], 10)

    assert cache.get("https://a/jwks").keys == [2]


def test_stores_copy_of_keys() -> None:
    keys = ["k1"]
    cache = KeySetCache()
    cache.set("https://a/jwks", keys, 10)

    keys.append("k2")

    assert cache.get("https://a/jwks").keys == ["k1"]
