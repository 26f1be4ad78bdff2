# tests/test_cache.py
import asyncio
from datetime import timedelta

from kungfu import Error, LazyCoroResult, Ok

from storefront import cache as C


class BrokenTier:
    name = "broken"

    async def get(self, key):
        raise ConnectionError("down")

    async def set(self, key, value):
        raise ConnectionError("down")

    async def delete(self, key):
        raise ConnectionError("down")

    async def delete_pattern(self, pattern):
        raise ConnectionError("down")

    async def ttl(self, key):
        return None


def counting_fetch(calls, fail_on=()):
    def fetch(key):
        async def run():
            calls.append(key)
            if key in fail_on:
                return Error(f"no {key}")
            return Ok(key.upper())

        return LazyCoroResult(run)

    return fetch


async def test_local_tier_expires_entries(clock):
    tier = C.LocalTier[str](ttl=timedelta(seconds=30), clock=clock.monotonic)
    await tier.set("a", "x")
    assert await tier.get("a") == "x"
    assert await tier.ttl("a") == timedelta(seconds=30)

    clock.advance(timedelta(seconds=30))
    assert await tier.get("a") is None
    assert len(tier) == 0


async def test_local_tier_evicts_least_recently_used():
    tier = C.LocalTier[int](max_size=2)
    await tier.set("a", 1)
    await tier.set("b", 2)
    await tier.get("a")
    await tier.set("c", 3)
    assert await tier.get("b") is None
    assert await tier.get("a") == 1
    assert await tier.get("c") == 3


async def test_local_tier_pattern_delete():
    tier = C.LocalTier[int]()
    for key in ("quote:1", "quote:2", "coupon:X"):
        await tier.set(key, 1)
    assert await tier.delete_pattern("quote:*") == 2
    assert await tier.delete("coupon:X")
    assert not await tier.delete("coupon:X")


async def test_miss_then_hit():
    calls = []
    cache = C.cache(lambda k: f"k:{k}", counting_fetch(calls)).tier(C.LocalTier[str]()).build()

    first = (await cache.get("abc")()).unwrap()
    second = (await cache.get("abc")()).unwrap()
    assert (first.value, first.hit, first.tier) == ("ABC", False, None)
    assert (second.value, second.hit, second.tier) == ("ABC", True, "local")
    assert calls == ["abc"]


async def test_errors_pass_through_uncached():
    calls = []
    cache = C.cache(str, counting_fetch(calls, fail_on={"gone"})).tier(C.LocalTier[str]()).build()
    assert await cache.get("gone")() == Error("no gone")
    assert await cache.get("gone")() == Error("no gone")
    assert calls == ["gone", "gone"]


async def test_broken_tier_is_skipped():
    calls = []
    cache = (
        C.cache(str, counting_fetch(calls))
        .tier(BrokenTier())
        .tier(C.LocalTier[str]())
        .build()
    )
    await cache.get("abc")()
    hit = (await cache.get("abc")()).unwrap()
    assert (hit.hit, hit.tier) == (True, "local")
    assert await cache.invalidate("abc") == Ok(True)
    assert await cache.invalidate_pattern("*") == Ok(0)


async def test_concurrent_misses_share_one_fetch():
    calls = []
    release = asyncio.Event()

    def slow_fetch(key):
        async def run():
            calls.append(key)
            await release.wait()
            return Ok(key.upper())

        return LazyCoroResult(run)

    cache = C.cache(str, slow_fetch).tier(C.LocalTier[str]()).build()
    waiting = [asyncio.ensure_future(cache.get("abc")()) for _ in range(3)]
    await asyncio.sleep(0)
    release.set()

    results = [r.unwrap() for r in await asyncio.gather(*waiting)]
    assert {r.value for r in results} == {"ABC"}
    assert calls == ["abc"]
    assert (cache.stats.misses, cache.stats.coalesced) == (3, 2)

    await cache.get("abc")()
    assert cache.stats.hits == 1


async def test_tier_failures_are_counted():
    cache = C.cache(str, counting_fetch([])).tier(BrokenTier()).build()
    assert (await cache.get("abc")()).unwrap().hit is False
    assert cache.stats.tier_errors == 2
