"""Tests for conflict resolution helpers."""

import asyncio
from datetime import datetime, timezone

from rebound.optimistic import (
    apply_optimistic,
    client_wins_resolver,
    last_write_wins_resolver,
    merge_with_conflict_resolution,
    server_wins_resolver,
)


def explode(local, server, base):
    raise AssertionError("resolver should not be called")


def test_no_local_change_takes_server():
    assert merge_with_conflict_resolution({"a": 1}, {"a": 2}, {"a": 1}, explode) == {"a": 2}


def test_no_server_change_keeps_local():
    assert merge_with_conflict_resolution({"a": 3}, {"a": 1}, {"a": 1}, explode) == {"a": 3}


def test_key_order_is_not_a_change():
    local = {"a": 1, "b": 2}
    base = {"b": 2, "a": 1}
    assert merge_with_conflict_resolution(local, {"a": 9, "b": 2}, base, explode) == {"a": 9, "b": 2}


def test_both_changed_uses_resolver():
    local, server, base = {"a": 2}, {"a": 3}, {"a": 1}
    assert merge_with_conflict_resolution(local, server, base, server_wins_resolver) == server
    assert merge_with_conflict_resolution(local, server, base, client_wins_resolver) == local


def test_last_write_wins():
    older = {"v": "local", "updated_at": "2024-01-01T00:00:00Z"}
    newer = {"v": "server", "updated_at": "2024-06-01T00:00:00+00:00"}
    assert last_write_wins_resolver(older, newer, {}) is newer
    assert last_write_wins_resolver(newer, older, {}) is newer


def test_last_write_wins_with_numbers_and_datetimes():
    local = {"updated_at": 200}
    server = {"updated_at": 100}
    assert last_write_wins_resolver(local, server, None) is local

    class Doc:
        def __init__(self, updated_at):
            self.updated_at = updated_at

    a = Doc(datetime(2024, 1, 1, tzinfo=timezone.utc))
    b = Doc(datetime(2024, 1, 2, tzinfo=timezone.utc))
    assert last_write_wins_resolver(a, b, None) is b


def test_last_write_wins_tie_goes_to_server():
    local, server = {"v": 1}, {"v": 2}
    assert last_write_wins_resolver(local, server, None) is server


def test_apply_optimistic():
    async def ok():
        return 5

    async def broken():
        raise ConnectionError("offline")

    confirmed = asyncio.run(apply_optimistic(1, lambda x: x + 1, ok))
    assert confirmed.confirmed and confirmed.value == 5 and confirmed.error is None

    failed = asyncio.run(apply_optimistic(1, lambda x: x + 1, broken))
    assert not failed.confirmed
    assert failed.value == 1
    assert isinstance(failed.error, ConnectionError)
