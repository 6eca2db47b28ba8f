"""Tests for the single-flight response and certificate caches."""

from __future__ import annotations

import asyncio

import pytest

from GuardedFetch.network.cache import ResponseCache
from GuardedFetch.network.certificates import CertificateCache


class TestResponseCache:
    """GET bodies fetched at most once per target."""

    def test_concurrent_callers_share_one_fetch(self):
        """Callers arriving while a fetch runs await the same task."""
        cache = ResponseCache()
        calls = []
        release = None

        async def fetch():
            calls.append(1)
            await release.wait()
            return b"body"

        async def scenario():
            nonlocal release
            release = asyncio.Event()
            first = asyncio.ensure_future(cache.get("https://example.org/a", fetch))
            second = asyncio.ensure_future(cache.get("https://example.org/a", fetch))
            await asyncio.sleep(0)
            assert cache.is_pending("https://example.org/a")
            release.set()
            return await asyncio.gather(first, second)

        assert asyncio.run(scenario()) == [b"body", b"body"]
        assert len(calls) == 1
        assert "https://example.org/a" in cache
        assert not cache.is_pending("https://example.org/a")

    def test_completed_entry_is_reused(self):
        cache = ResponseCache()
        calls = []

        async def fetch():
            calls.append(1)
            return b"body"

        async def scenario():
            await cache.get("t", fetch)
            return await cache.get("t", fetch)

        assert asyncio.run(scenario()) == b"body"
        assert len(calls) == 1
        assert len(cache) == 1

    def test_distinct_targets_fetch_separately(self):
        cache = ResponseCache()

        async def scenario():
            a = await cache.get("a", lambda: asyncio.sleep(0, result=b"A"))
            b = await cache.get("b", lambda: asyncio.sleep(0, result=b"B"))
            return a, b

        assert asyncio.run(scenario()) == (b"A", b"B")
        assert len(cache) == 2

    def test_failure_is_shared_then_forgotten(self):
        """Every waiter sees the failure; the next call retries."""
        cache = ResponseCache()
        attempts = []

        async def failing():
            attempts.append(1)
            await asyncio.sleep(0)
            raise RuntimeError("boom")

        async def scenario():
            results = await asyncio.gather(
                cache.get("t", failing),
                cache.get("t", failing),
                return_exceptions=True,
            )
            assert "t" not in cache
            retried = await cache.get("t", lambda: asyncio.sleep(0, result=b"ok"))
            return results, retried

        results, retried = asyncio.run(scenario())
        assert all(isinstance(result, RuntimeError) for result in results)
        assert len(attempts) == 1
        assert retried == b"ok"


class TestCertificateCache:
    """CA files read at most once per path."""

    def test_concurrent_loads_share_one_read(self, tmp_path):
        ca_file = tmp_path / "ca.pem"
        ca_file.write_bytes(b"certificate")
        reads = []

        def reader(path: str) -> bytes:
            reads.append(path)
            with open(path, "rb") as handle:
                return handle.read()

        cache = CertificateCache(reader)

        async def scenario():
            return await asyncio.gather(cache.get(ca_file), cache.get(str(ca_file)), cache.get(ca_file))

        assert asyncio.run(scenario()) == [b"certificate"] * 3
        assert reads == [str(ca_file)]
        assert ca_file in cache

    def test_failed_read_is_not_cached(self, tmp_path):
        """A missing file fails every waiter and a later call retries."""
        ca_file = tmp_path / "late.pem"
        cache = CertificateCache()

        with pytest.raises(FileNotFoundError):
            asyncio.run(cache.get(ca_file))
        assert ca_file not in cache

        ca_file.write_bytes(b"now present")
        assert asyncio.run(cache.get(ca_file)) == b"now present"
        assert ca_file in cache
