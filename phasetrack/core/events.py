from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


@dataclass
class PhaseStatusEvent:
    phase: str
    frames_processed: int
    transitions: int
    message: str


class EventBus:
    def __init__(self):
        self._subs: Dict[str, List[Callable]] = {}

    def subscribe(self, event_name: str, callback: Callable) -> None:
        self._subs.setdefault(event_name, []).append(callback)

    def unsubscribe(self, event_name: str, callback: Callable) -> None:
        callbacks = self._subs.get(event_name, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def publish(self, event_name: str, payload) -> None:
        for callback in list(self._subs.get(event_name, [])):
            try:
                callback(payload)
            except Exception:  # noqa: BLE001
                logger.exception(f"[events] subscriber failed for {event_name}")
