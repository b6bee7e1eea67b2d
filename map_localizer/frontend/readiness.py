"""
Readiness Gate.

Blocks scan matching until every required input (reference map and a
position fix) has been delivered at least once. Waiters sleep on a
condition variable and are woken exactly when the last input arrives or
the gate is closed; there is no polling.

While a waiter is blocked, the gate logs which inputs are still missing
once per report interval.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from map_localizer.common import constants
from map_localizer.common.errors import LocalizerNotReady

_logger = logging.getLogger(__name__)


@dataclass
class InputStatus:
    """Delivery record for one gated input. `ready` never reverts."""
    name: str
    ready: bool = False
    first_received: Optional[float] = None
    message_count: int = 0

    def mark_received(self) -> bool:
        """Record a delivery. Returns True only on the first one."""
        self.message_count += 1
        if self.ready:
            return False
        self.ready = True
        self.first_received = time.time()
        return True

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "ready": self.ready,
            "first_received": self.first_received,
            "message_count": self.message_count,
        }


class ReadinessGate:
    """
    Event-driven gate over a fixed set of inputs.

    Thread-safe: inputs may be marked from any thread while others wait.
    """

    def __init__(
        self,
        inputs: Iterable[str] = (constants.READINESS_INPUT_MAP, constants.READINESS_INPUT_FIX),
        report_interval_sec: float = constants.READINESS_REPORT_INTERVAL_SEC,
    ):
        if not report_interval_sec > 0.0:
            raise ValueError(f"report_interval_sec must be > 0, got {report_interval_sec}")
        self.inputs: Dict[str, InputStatus] = {name: InputStatus(name=name) for name in inputs}
        if not self.inputs:
            raise ValueError("ReadinessGate needs at least one input")
        self.report_interval_sec = report_interval_sec
        self._cond = threading.Condition()
        self._closed = False

    def mark_ready(self, name: str) -> bool:
        """
        Record a delivery of input `name`.

        Returns True if this delivery opened the gate.
        """
        with self._cond:
            if name not in self.inputs:
                raise KeyError(f"Unknown readiness input {name!r}; known: {sorted(self.inputs)}")
            first = self.inputs[name].mark_received()
            opened = first and self._is_open()
            if opened:
                _logger.info("Readiness gate open: all inputs received")
                self._cond.notify_all()
            return opened

    def _is_open(self) -> bool:
        return all(status.ready for status in self.inputs.values())

    def is_open(self) -> bool:
        with self._cond:
            return self._is_open()

    def missing(self) -> List[str]:
        with self._cond:
            return [name for name, status in self.inputs.items() if not status.ready]

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def wait(self, timeout: Optional[float] = None) -> None:
        """
        Block until every input is ready.

        Args:
            timeout: Seconds to wait, None for no limit

        Raises:
            LocalizerNotReady: on timeout, or when the gate is closed while waiting
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._is_open():
                if self._closed:
                    raise LocalizerNotReady(self._missing_locked(), "readiness gate closed")
                if deadline is None:
                    slice_sec = self.report_interval_sec
                else:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0.0:
                        raise LocalizerNotReady(self._missing_locked())
                    slice_sec = min(self.report_interval_sec, remaining)
                if not self._cond.wait(timeout=slice_sec) and not self._is_open() and not self._closed:
                    for name in self._missing_locked():
                        _logger.warning(f"waiting for {name} data ...")

    def _missing_locked(self) -> List[str]:
        return [name for name, status in self.inputs.items() if not status.ready]

    def close(self) -> None:
        """Wake every waiter; waits that have not succeeded raise LocalizerNotReady."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def status_dict(self) -> dict:
        with self._cond:
            return {
                "open": self._is_open(),
                "closed": self._closed,
                "inputs": {name: status.to_dict() for name, status in self.inputs.items()},
            }
