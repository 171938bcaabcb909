import pytest

from walletsync.cache import TTLCache


class ManualClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_entries_expire_after_ttl():
    clock = ManualClock()
    cache = TTLCache(default_ttl=10, clock=clock)
    await cache.set("ETH", 1)

    clock.now = 5
    assert await cache.get("ETH") == 1
    clock.now = 11
    assert await cache.get("ETH") is None
    assert cache.size() == 0


@pytest.mark.asyncio
async def test_least_recently_used_entry_is_evicted():
    cache = TTLCache(default_ttl=60, max_size=2, clock=ManualClock())
    await cache.set_many({"ETH": 1, "SOL": 2})
    await cache.get("ETH")
    await cache.set("SUI", 3)

    assert await cache.get_many(["ETH", "SOL", "SUI"]) == {"ETH": 1, "SUI": 3}
