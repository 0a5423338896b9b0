"""Tests for ProxyRotator."""

from __future__ import annotations

from playerscout.infrastructure.proxy import ProxyRotator


class TestProxyRotator:
    def test_empty_pool_means_direct(self) -> None:
        rotator = ProxyRotator()
        assert rotator.current() is None
        rotator.advance()
        assert rotator.current() is None
        assert len(rotator) == 0

    def test_blank_entries_ignored(self) -> None:
        rotator = ProxyRotator(["", "http://p1:8080", ""])
        assert rotator.proxies == ("http://p1:8080",)

    def test_cursor_wraps(self) -> None:
        rotator = ProxyRotator(["http://p1", "http://p2", "http://p3"])
        seen = []
        for _ in range(4):
            seen.append(rotator.current())
            rotator.advance()
        assert seen == ["http://p1", "http://p2", "http://p3", "http://p1"]

    def test_advance_never_mutates_pool(self) -> None:
        rotator = ProxyRotator(["http://p1", "http://p2"])
        rotator.advance()
        assert rotator.proxies == ("http://p1", "http://p2")
        assert rotator.current() == "http://p2"
