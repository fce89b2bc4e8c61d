"""
Tests for the custom currency registry.
"""

import asyncio

import pytest

from crypto_convert.services import CustomCurrencyRegistry, CustomFetcherError


def test_add_currency_seeds_rate(registry):
    async def scenario():
        await registry.add_currency("FOO", "USD", lambda: 2.5, 60_000)
        try:
            assert registry.ticker == {"FOOUSD": 2.5}
            assert registry.list == ["FOO"]
        finally:
            registry.stop()

    asyncio.run(scenario())


def test_add_currency_accepts_async_fetcher_and_numeric_strings(registry):
    async def fetch_price():
        await asyncio.sleep(0)
        return "0.125"

    async def scenario():
        await registry.add_currency("BAR", "EUR", fetch_price, 60_000)
        registry.stop()

    asyncio.run(scenario())
    assert registry.ticker == {"BAREUR": 0.125}


def test_list_deduplicates_bases(registry):
    async def scenario():
        await registry.add_currency("FOO", "USD", lambda: 2.0, 60_000)
        await registry.add_currency("FOO", "EUR", lambda: 1.8, 60_000)
        await registry.add_currency("BAR", "USD", lambda: 4.0, 60_000)
        registry.stop()

    asyncio.run(scenario())
    assert registry.list == ["FOO", "BAR"]
    assert registry.ticker == {"FOOUSD": 2.0, "FOOEUR": 1.8, "BARUSD": 4.0}


def test_failed_seed_raises_and_registers_nothing(registry):
    def broken():
        raise ConnectionError("price api down")

    async def scenario():
        with pytest.raises(CustomFetcherError) as excinfo:
            await registry.add_currency("FOO", "USD", broken, 60_000)
        assert excinfo.value.base == "FOO"
        assert "price api down" in excinfo.value.reason

    asyncio.run(scenario())
    assert registry.list == []
    assert registry.ticker == {}


def test_failed_replacement_keeps_previous_entry(registry):
    async def scenario():
        await registry.add_currency("FOO", "USD", lambda: 2.0, 60_000)
        with pytest.raises(CustomFetcherError):
            await registry.add_currency("FOO", "USD", lambda: "not a number", 60_000)
        registry.stop()

    asyncio.run(scenario())
    assert registry.ticker == {"FOOUSD": 2.0}


def test_replacing_a_pair_cancels_old_timer(registry):
    async def scenario():
        await registry.add_currency("FOO", "USD", lambda: 2.0, 60_000)
        old_timer = registry.entries()[0].timer
        await registry.add_currency("FOO", "USD", lambda: 3.0, 60_000)
        await asyncio.sleep(0)
        assert old_timer.cancelled()
        assert len(registry.entries()) == 1
        registry.stop()

    asyncio.run(scenario())
    assert registry.ticker == {"FOOUSD": 3.0}


@pytest.mark.parametrize("args", [
    ("", "USD", lambda: 1.0, 1000),
    ("FOO", None, lambda: 1.0, 1000),
    ("FOO", "USD", 42, 1000),
    ("FOO", "USD", lambda: 1.0, 0),
    ("FOO", "USD", lambda: 1.0, True),
])
def test_add_currency_validates_arguments(registry, args):
    with pytest.raises(ValueError):
        asyncio.run(registry.add_currency(*args))


def test_timer_refreshes_rate(registry):
    prices = iter([1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0] + [11.0] * 100)

    async def scenario():
        await registry.add_currency("FOO", "USD", lambda: next(prices), 10)
        await asyncio.sleep(0.1)
        registry.stop()

    asyncio.run(scenario())
    assert registry.ticker["FOOUSD"] > 1.0


def test_failed_refresh_keeps_previous_rate(registry):
    state = {"fail": False}

    def fetcher():
        if state["fail"]:
            raise TimeoutError("slow api")
        return 2.0

    async def scenario():
        await registry.add_currency("FOO", "USD", fetcher, 60_000)
        registry.stop()
        state["fail"] = True
        await registry._refresh(registry.entries()[0])

    asyncio.run(scenario())
    assert registry.ticker == {"FOOUSD": 2.0}


def test_remove_single_quote_and_whole_base(registry):
    async def scenario():
        await registry.add_currency("FOO", "USD", lambda: 2.0, 60_000)
        await registry.add_currency("FOO", "EUR", lambda: 1.8, 60_000)
        await registry.add_currency("BAR", "USD", lambda: 4.0, 60_000)
        timers = {entry.key: entry.timer for entry in registry.entries()}

        registry.remove_currency("FOO", "EUR")
        await asyncio.sleep(0)
        assert timers["FOOEUR"].cancelled()
        assert registry.ticker == {"FOOUSD": 2.0, "BARUSD": 4.0}
        assert registry.list == ["FOO", "BAR"]

        registry.remove_currency("FOO")
        await asyncio.sleep(0)
        assert timers["FOOUSD"].cancelled()
        assert registry.list == ["BAR"]

        registry.remove_currency("NOPE")
        assert registry.list == ["BAR"]
        registry.stop()

    asyncio.run(scenario())


def test_ready_waits_for_pending_seeds():
    registry = CustomCurrencyRegistry()
    release = None

    async def slow_fetch():
        await release.wait()
        return 7.0

    async def scenario():
        nonlocal release
        release = asyncio.Event()
        adding = asyncio.create_task(registry.add_currency("SLO", "USD", slow_fetch, 60_000))
        await asyncio.sleep(0)
        waiting = asyncio.create_task(registry.ready())
        await asyncio.sleep(0.05)
        assert not waiting.done()

        release.set()
        await asyncio.wait_for(waiting, timeout=1)
        await adding
        assert registry.ticker == {"SLOUSD": 7.0}
        registry.stop()

    asyncio.run(scenario())
