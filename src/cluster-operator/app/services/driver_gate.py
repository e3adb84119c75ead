"""Version gate for the optional CSI drivers.

The gate closes when the platform is older than the configured minimum.
Under the STICKY policy a closed gate never reopens for the lifetime of the
gate object, so an upgraded platform needs an operator restart. Under
REEVALUATE every check recomputes the decision.
"""

from __future__ import annotations

import re
from enum import Enum

from shared.config import CSISettings, DriverGatePolicy
from shared.observability import get_logger

logger = get_logger(__name__)

_LEADING_DIGITS = re.compile(r"^\s*(\d+)")


class GateState(str, Enum):
    """Current decision of the gate."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


def parse_server_version(major: str | int, minor: str | int) -> tuple[int, int]:
    """Parse API server version fields such as ``("1", "13+")``.

    Raises:
        ValueError: a field has no leading number
    """
    parsed = []
    for field in (major, minor):
        if isinstance(field, int):
            parsed.append(field)
            continue
        match = _LEADING_DIGITS.match(field)
        if not match:
            raise ValueError(f"invalid version component {field!r}")
        parsed.append(int(match.group(1)))
    return parsed[0], parsed[1]


def version_supported(major: int, minor: int, min_major: int, min_minor: int) -> bool:
    """False when ``major.minor`` is older than ``min_major.min_minor``."""
    if major < min_major:
        return False
    if major == min_major and minor < min_minor:
        return False
    return True


class DriverEligibilityGate:
    """Decides whether the RBD and CephFS CSI drivers may run."""

    def __init__(
        self,
        min_major: int = 1,
        min_minor: int = 13,
        policy: DriverGatePolicy = DriverGatePolicy.STICKY,
        enable_rbd: bool = True,
        enable_cephfs: bool = True,
    ):
        self.min_major = min_major
        self.min_minor = min_minor
        self.policy = DriverGatePolicy(policy)
        self._enable_rbd = enable_rbd
        self._enable_cephfs = enable_cephfs
        self.state = GateState.OPEN

    @classmethod
    def from_settings(cls, settings: CSISettings) -> "DriverEligibilityGate":
        return cls(
            min_major=settings.min_major,
            min_minor=settings.min_minor,
            policy=settings.gate_policy,
            enable_rbd=settings.enable_rbd,
            enable_cephfs=settings.enable_cephfs,
        )

    @property
    def enabled(self) -> bool:
        return self.state == GateState.OPEN

    @property
    def rbd_enabled(self) -> bool:
        return self.enabled and self._enable_rbd

    @property
    def cephfs_enabled(self) -> bool:
        return self.enabled and self._enable_cephfs

    @property
    def any_driver_enabled(self) -> bool:
        return self._enable_rbd or self._enable_cephfs

    def evaluate(self, major: int, minor: int) -> bool:
        """Check the platform version and return whether drivers are enabled."""
        if self.state == GateState.CLOSED and self.policy == DriverGatePolicy.STICKY:
            return False

        supported = version_supported(major, minor, self.min_major, self.min_minor)
        if supported:
            self.state = GateState.OPEN
        else:
            if self.state == GateState.OPEN:
                logger.info(
                    "CSI drivers only supported in newer platform versions",
                    version=f"{major}.{minor}",
                    minimum=f"{self.min_major}.{self.min_minor}",
                )
            self.state = GateState.CLOSED
        return self.enabled
