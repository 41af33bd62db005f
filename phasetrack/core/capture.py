from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class SourceHealth:
    connected: bool
    last_seen: float
    seq: int


class SourceHub:
    """Connection health of the sensor bridges delivering skeleton frames."""

    def __init__(self, heartbeat_timeout_s: float):
        self._health: Dict[str, SourceHealth] = {}
        self._lock = Lock()
        self.heartbeat_timeout_s = heartbeat_timeout_s

    def frame_received(self, source_id: str) -> int:
        now = time.time()
        with self._lock:
            seq = self._health.get(source_id, SourceHealth(False, 0.0, 0)).seq + 1
            self._health[source_id] = SourceHealth(True, now, seq)
        return seq

    def heartbeat(self, source_id: str) -> None:
        now = time.time()
        with self._lock:
            prev = self._health.get(source_id, SourceHealth(False, 0.0, 0))
            self._health[source_id] = SourceHealth(True, now, prev.seq)

    def mark_disconnected(self, source_id: str) -> None:
        with self._lock:
            if source_id in self._health:
                current = self._health[source_id]
                self._health[source_id] = SourceHealth(False, current.last_seen, current.seq)

    def health_snapshot(self) -> dict:
        now = time.time()
        with self._lock:
            out = {}
            for source_id, health in self._health.items():
                stale = (now - health.last_seen) > self.heartbeat_timeout_s
                out[source_id] = {
                    "connected": health.connected and not stale,
                    "last_seen": health.last_seen,
                    "seq": health.seq,
                }
            return out
