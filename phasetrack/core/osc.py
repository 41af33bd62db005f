from __future__ import annotations

import socket

import numpy as np

from phasetrack.core.constants import LOGGED_JOINTS
from phasetrack.core.phase_tracker import TransitionEvent
from phasetrack.core.skeleton import JointType
from phasetrack.models.config import OscConfig


class PhaseOscSink:
    def __init__(self, cfg: OscConfig):
        self.cfg = cfg
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.addr = (cfg.host, int(cfg.port))
        self.prefix = cfg.address_prefix.rstrip("/")

    @staticmethod
    def _pad4(data: bytes) -> bytes:
        pad = (4 - (len(data) % 4)) % 4
        return data + (b"\x00" * pad)

    def _osc_str(self, value: str) -> bytes:
        return self._pad4(value.encode("utf-8") + b"\x00")

    @staticmethod
    def _osc_float(value: float) -> bytes:
        return np.array(value, dtype=">f4").tobytes()

    @staticmethod
    def _osc_int(value: int) -> bytes:
        return np.array(value, dtype=">i4").tobytes()

    def send_phase(self, phase: str) -> None:
        address = f"{self.prefix}/phase"
        payload = b"".join([self._osc_str(address), self._osc_str(",s"), self._osc_str(phase)])
        self.sock.sendto(payload, self.addr)

    def send_transition(self, event: TransitionEvent) -> None:
        address = f"{self.prefix}/transition"
        payload = b"".join(
            [
                self._osc_str(address),
                self._osc_str(",si"),
                self._osc_str(event.phase),
                self._osc_int(int(event.sequence)),
            ]
        )
        self.sock.sendto(payload, self.addr)
        for name in LOGGED_JOINTS:
            joint = event.sample.get(JointType(name))
            if joint is None:
                continue
            self.send_joint(name, joint.as_triple(), event.timestamp)

    def send_joint(self, joint_name: str, xyz, timestamp: float) -> None:
        address = f"{self.prefix}/joint/{joint_name}"
        payload = b"".join(
            [
                self._osc_str(address),
                self._osc_str(",ffff"),
                self._osc_float(float(xyz[0])),
                self._osc_float(float(xyz[1])),
                self._osc_float(float(xyz[2])),
                self._osc_float(float(timestamp)),
            ]
        )
        self.sock.sendto(payload, self.addr)

    def close(self) -> None:
        self.sock.close()
