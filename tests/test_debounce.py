"""
Tests for the debounce primitive.
"""

import asyncio

import pytest

from game_cache.services import Debouncer


def test_zero_delay_settles_immediately():
    settled = []
    debouncer = Debouncer(0, on_settle=settled.append)

    debouncer.push("zelda")

    assert debouncer.value == "zelda"
    assert settled == ["zelda"]
    assert not debouncer.pending


@pytest.mark.asyncio
async def test_rapid_pushes_settle_only_the_last_value():
    settled = []
    debouncer = Debouncer(0.02, on_settle=settled.append, initial="")

    debouncer.push("z")
    debouncer.push("ze")
    debouncer.push("zel")
    assert debouncer.pending
    assert debouncer.value == ""

    await debouncer.wait()

    assert settled == ["zel"]
    assert debouncer.value == "zel"


@pytest.mark.asyncio
async def test_push_rearms_the_timer():
    settled = []
    debouncer = Debouncer(0.06, on_settle=settled.append)

    debouncer.push("a")
    await asyncio.sleep(0.04)
    debouncer.push("ab")
    await asyncio.sleep(0.04)

    assert settled == []
    await debouncer.wait()
    assert settled == ["ab"]


@pytest.mark.asyncio
async def test_cancel_drops_pending_value():
    settled = []
    debouncer = Debouncer(0.01, on_settle=settled.append, initial="start")

    debouncer.push("typed")
    debouncer.cancel()
    await asyncio.sleep(0.03)

    assert settled == []
    assert debouncer.value == "start"


def test_reset_replaces_value_silently():
    settled = []
    debouncer = Debouncer(0, on_settle=settled.append)

    debouncer.reset("halo")

    assert debouncer.value == "halo"
    assert settled == []


def test_negative_delay_is_rejected():
    with pytest.raises(ValueError):
        Debouncer(-1)
