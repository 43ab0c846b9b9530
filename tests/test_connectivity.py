from __future__ import annotations

import threading

import pytest
from sqlalchemy import create_engine

from pharmasync.connectivity import ConnectivityMonitor, ConnectivityState, engine_probe


class TestInitialState:
    def test_explicit_initial_state_wins_over_probe(self) -> None:
        monitor = ConnectivityMonitor(probe=lambda: True, initial=ConnectivityState.OFFLINE)

        assert monitor.state is ConnectivityState.OFFLINE
        assert monitor.is_online is False

    def test_initial_state_from_probe(self) -> None:
        assert ConnectivityMonitor(probe=lambda: False).is_online is False
        assert ConnectivityMonitor(probe=lambda: True).is_online is True

    def test_defaults_to_online_without_probe(self) -> None:
        assert ConnectivityMonitor().is_online is True


class TestTransitions:
    def test_listeners_fire_only_on_change(self) -> None:
        monitor = ConnectivityMonitor(initial=ConnectivityState.ONLINE)
        seen: list[ConnectivityState] = []
        monitor.subscribe(seen.append)

        assert monitor.set_online() is False
        assert monitor.set_offline() is True
        assert monitor.set_offline() is False
        assert monitor.set_online() is True

        assert seen == [ConnectivityState.OFFLINE, ConnectivityState.ONLINE]

    def test_unsubscribe_stops_notifications(self) -> None:
        monitor = ConnectivityMonitor(initial=ConnectivityState.ONLINE)
        seen: list[ConnectivityState] = []
        unsubscribe = monitor.subscribe(seen.append)

        unsubscribe()
        unsubscribe()
        monitor.set_offline()

        assert seen == []

    def test_failing_listener_does_not_block_others(self) -> None:
        monitor = ConnectivityMonitor(initial=ConnectivityState.ONLINE)
        seen: list[ConnectivityState] = []

        def broken(state: ConnectivityState) -> None:
            raise RuntimeError("boom")

        monitor.subscribe(broken)
        monitor.subscribe(seen.append)
        monitor.set_offline()

        assert seen == [ConnectivityState.OFFLINE]

    def test_transitions_are_delivered_in_the_order_applied(self) -> None:
        """A transition waits for listeners of the previous one to finish."""
        monitor = ConnectivityMonitor(initial=ConnectivityState.OFFLINE)
        seen: list[ConnectivityState] = []
        entered = threading.Event()
        release = threading.Event()

        def slow_listener(state: ConnectivityState) -> None:
            if state is ConnectivityState.ONLINE:
                entered.set()
                assert release.wait(timeout=5)
            seen.append(state)

        monitor.subscribe(slow_listener)
        online = threading.Thread(target=monitor.set_online)
        online.start()
        assert entered.wait(timeout=5)

        offline = threading.Thread(target=monitor.set_offline)
        offline.start()
        offline.join(timeout=0.2)

        assert offline.is_alive()
        assert monitor.state is ConnectivityState.ONLINE

        release.set()
        online.join(timeout=5)
        offline.join(timeout=5)

        assert seen == [ConnectivityState.ONLINE, ConnectivityState.OFFLINE]
        assert monitor.state is ConnectivityState.OFFLINE

    def test_set_state_accepts_plain_values(self) -> None:
        monitor = ConnectivityMonitor(initial="online")

        monitor.set_state("offline")

        assert monitor.state is ConnectivityState.OFFLINE

    def test_close_drops_listeners(self) -> None:
        monitor = ConnectivityMonitor(initial=ConnectivityState.ONLINE)
        seen: list[ConnectivityState] = []
        monitor.subscribe(seen.append)

        monitor.close()
        monitor.set_offline()

        assert seen == []


class TestProbe:
    def test_check_applies_probe_result(self) -> None:
        reachable = {"value": True}
        monitor = ConnectivityMonitor(probe=lambda: reachable["value"])

        reachable["value"] = False
        assert monitor.check() is ConnectivityState.OFFLINE
        reachable["value"] = True
        assert monitor.check() is ConnectivityState.ONLINE

    def test_check_without_probe_raises(self) -> None:
        with pytest.raises(RuntimeError):
            ConnectivityMonitor().check()

    def test_background_watcher_reports_transitions(self) -> None:
        reachable = {"value": True}
        monitor = ConnectivityMonitor(probe=lambda: reachable["value"])
        went_offline = threading.Event()
        monitor.subscribe(lambda state: went_offline.set() if state is ConnectivityState.OFFLINE else None)

        monitor.start(interval_s=0.01)
        try:
            reachable["value"] = False
            assert went_offline.wait(timeout=5)
        finally:
            monitor.close()

        assert monitor.is_online is False

    def test_watcher_survives_a_raising_probe(self) -> None:
        """A probe exception is logged and the watcher keeps polling."""
        results = iter([True, OSError("network unreachable")])

        def probe() -> bool:
            result = next(results, False)
            if isinstance(result, Exception):
                raise result
            return result

        monitor = ConnectivityMonitor(probe=probe)
        went_offline = threading.Event()
        monitor.subscribe(lambda state: went_offline.set() if state is ConnectivityState.OFFLINE else None)

        monitor.start(interval_s=0.01)
        try:
            assert went_offline.wait(timeout=5)
        finally:
            monitor.close()

        assert monitor.is_online is False

    def test_start_validates_arguments(self) -> None:
        with pytest.raises(RuntimeError):
            ConnectivityMonitor().start()
        with pytest.raises(ValueError):
            ConnectivityMonitor(probe=lambda: True).start(interval_s=0)

    def test_start_twice_raises(self) -> None:
        monitor = ConnectivityMonitor(probe=lambda: True)
        monitor.start(interval_s=10)
        try:
            with pytest.raises(RuntimeError, match="already running"):
                monitor.start(interval_s=10)
        finally:
            monitor.stop()

    def test_engine_probe(self, engine, tmp_path) -> None:
        assert engine_probe(engine)() is True

        unreachable = create_engine(f"sqlite:///{tmp_path / 'missing' / 'remote.db'}")
        assert engine_probe(unreachable)() is False
