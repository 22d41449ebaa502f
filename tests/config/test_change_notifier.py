"""Tests for blphttp.config.notifier and blphttp.config.events."""

from __future__ import annotations

import logging

import pytest

from blphttp.config.events import CHANGE_EVENTS, CRL_CHANGED
from blphttp.config.notifier import ChangeNotifier


class TestChangeEvents:
    def test_change_events_is_frozenset(self):
        assert isinstance(CHANGE_EVENTS, frozenset)

    def test_only_crl_is_reloadable(self):
        assert CHANGE_EVENTS == {"https.crl"}
        assert CRL_CHANGED == "https.crl"


class TestChangeNotifier:
    def test_emit_without_subscribers(self):
        notifier = ChangeNotifier()
        notifier.emit(CRL_CHANGED)
        assert notifier.emit_count == 1

    def test_subscribers_called_in_order(self):
        notifier = ChangeNotifier()
        calls = []
        notifier.subscribe(lambda name: calls.append(("a", name)))
        notifier.subscribe(lambda name: calls.append(("b", name)))
        notifier.emit(CRL_CHANGED)
        assert calls == [("a", "https.crl"), ("b", "https.crl")]

    def test_unsubscribe(self):
        notifier = ChangeNotifier()
        calls = []
        unsubscribe = notifier.subscribe(calls.append)
        unsubscribe()
        unsubscribe()
        notifier.emit(CRL_CHANGED)
        assert calls == []

    def test_failing_subscriber_does_not_block_others(self, caplog):
        notifier = ChangeNotifier()
        calls = []

        def _boom(name):
            raise RuntimeError("listener exploded")

        notifier.subscribe(_boom)
        notifier.subscribe(calls.append)
        with caplog.at_level(logging.ERROR, logger="blphttp.config.notifier"):
            notifier.emit(CRL_CHANGED)

        assert calls == [CRL_CHANGED]
        assert "listener exploded" in caplog.text

    def test_unknown_event_rejected(self):
        with pytest.raises(ValueError, match="Unknown change event 'port'"):
            ChangeNotifier().emit("port")

    def test_instances_are_independent(self):
        first, second = ChangeNotifier(), ChangeNotifier()
        calls = []
        second.subscribe(calls.append)
        first.emit(CRL_CHANGED)
        assert calls == []
