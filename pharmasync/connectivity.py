from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import Optional

from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


class ConnectivityState(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


Listener = Callable[[ConnectivityState], None]
Probe = Callable[[], bool]


def engine_probe(engine: Engine) -> Probe:
    """
    Build a probe that reports the remote database as reachable when
    ``SELECT 1`` succeeds.
    """
    def _probe() -> bool:
        try:
            with engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")
        except Exception as exc:
            logger.debug("Connectivity probe failed: %s", exc)
            return False
        return True

    return _probe


class ConnectivityMonitor:
    """
    Process-wide belief about whether the remote store is reachable.

    The state starts from ``initial`` if given, otherwise from one run of
    ``probe``, otherwise Online. It then changes through set_online() /
    set_offline() (event injection by the host) or through check(), which
    re-runs the probe. start() polls the probe on a background thread.

    Listeners are called synchronously, on the thread that caused the
    transition, and only when the state actually changes.

    Usage:
        monitor = ConnectivityMonitor(probe=engine_probe(engine))
        unsubscribe = monitor.subscribe(on_change)
        monitor.start(interval_s=5.0)
        ...
        monitor.close()
    """

    def __init__(
        self,
        probe: Optional[Probe] = None,
        initial: Optional[ConnectivityState] = None,
    ) -> None:
        self._probe = probe
        self._lock = threading.Lock()
        # Held across a state change and its delivery so listeners see
        # transitions in the order they were applied
        self._dispatch_lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

        if initial is not None:
            self._state = ConnectivityState(initial)
        elif probe is not None:
            self._state = ConnectivityState.ONLINE if probe() else ConnectivityState.OFFLINE
        else:
            self._state = ConnectivityState.ONLINE
        logger.info("Connectivity initialized as %s", self._state.value)

    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state == ConnectivityState.ONLINE

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def set_state(self, state: ConnectivityState) -> bool:
        """
        Apply ``state``. Returns True if this was a transition, in which
        case every listener has been called with the new state.
        """
        state = ConnectivityState(state)
        with self._dispatch_lock:
            with self._lock:
                if state == self._state:
                    return False
                self._state = state
                listeners = list(self._listeners)

            logger.info("Connectivity changed to %s", state.value)
            for listener in listeners:
                try:
                    listener(state)
                except Exception:
                    logger.exception("Connectivity listener %r failed", listener)
        return True

    def set_online(self) -> bool:
        return self.set_state(ConnectivityState.ONLINE)

    def set_offline(self) -> bool:
        return self.set_state(ConnectivityState.OFFLINE)

    def check(self) -> ConnectivityState:
        """Run the probe once and apply its result."""
        if self._probe is None:
            raise RuntimeError("ConnectivityMonitor has no probe configured")
        reachable = self._probe()
        self.set_state(ConnectivityState.ONLINE if reachable else ConnectivityState.OFFLINE)
        return self._state

    def start(self, interval_s: float = 5.0) -> None:
        """Poll the probe every ``interval_s`` seconds on a daemon thread."""
        if self._probe is None:
            raise RuntimeError("ConnectivityMonitor has no probe configured")
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        if self._thread is not None:
            raise RuntimeError("ConnectivityMonitor is already running")

        self._stopping.clear()
        self._thread = threading.Thread(
            target=self._watch, args=(interval_s,), name="pharmasync-connectivity", daemon=True
        )
        self._thread.start()

    def _watch(self, interval_s: float) -> None:
        while not self._stopping.wait(interval_s):
            try:
                self.check()
            except Exception:
                logger.exception("Connectivity probe failed; keeping state %s", self._state.value)

    def stop(self) -> None:
        self._stopping.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def close(self) -> None:
        """Stop polling and drop all listeners."""
        self.stop()
        with self._lock:
            self._listeners.clear()
