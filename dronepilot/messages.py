"""Message types and small helpers shared by the autopilot and the ground station."""

from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


def angle_from_to(angle: float, low: float, sup: float) -> float:
    """Shift a degree angle by whole turns so that ``low <= angle < sup``."""
    if not math.isfinite(angle):
        raise ValueError(f"angle must be finite, got {angle!r}")
    if angle < low:
        angle += 360 * math.floor((low - angle) / 360)
    while angle < low:
        angle += 360
    if angle >= sup:
        angle -= 360 * math.floor((angle - sup) / 360)
    while angle >= sup:
        angle -= 360
    return angle


def now_ms() -> int:
    """Milliseconds from a monotonic clock."""
    return int(time.monotonic() * 1000)


@dataclass
class ControlCommand:
    """A normalised control command: each axis is nominally in [-1, 1]."""

    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0
    gaz: float = 0.0


@dataclass
class DronePosition:
    """A position in space (metres) together with a heading in degrees."""

    pos: tuple[float, float, float] = (0.0, 0.0, 0.0)
    yaw: float = 0.0

    def __post_init__(self) -> None:
        values = tuple(float(v) for v in self.pos)
        if len(values) != 3:
            raise ValueError(f"position needs three coordinates, got {len(values)}")
        self.pos = values
        self.yaw = float(self.yaw)


class PtamState(IntEnum):
    """Tracking state of the visual SLAM front end."""

    IDLE = 0
    INITIALIZING = 1
    LOST = 2
    GOOD = 3
    BEST = 4
    TOOKKF = 5
    FALSEPOSITIVE = 6


@dataclass
class FilterState:
    """Estimated pose and velocity of the drone as published by the estimator."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    yaw: float = 0.0
    dx: float = 0.0
    dy: float = 0.0
    dz: float = 0.0
    dyaw: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    scale: float = 1.0
    scale_accuracy: float = 1.0
    ptam_state: PtamState = PtamState.IDLE
    drone_state: int = 0
    battery_percent: float = 0.0
    stamp_ms: int = 0


@dataclass
class Navdata:
    """Sensor data reported by the drone."""

    stamp_ms: int = 0
    seq: int = 0
    tm: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    vz: float = 0.0
    ax: float = 0.0
    ay: float = 0.0
    az: float = 0.0
    altd: float = 0.0
    rot_x: float = 0.0
    rot_y: float = 0.0
    rot_z: float = 0.0
    state: int = 0
    pressure: float = 0.0
    battery_percent: float = 0.0
    motor1: float = 0.0
    motor2: float = 0.0
    motor3: float = 0.0
    motor4: float = 0.0


@dataclass
class Twist:
    """Linear and angular velocity command."""

    linear_x: float = 0.0
    linear_y: float = 0.0
    linear_z: float = 0.0
    angular_x: float = 0.0
    angular_y: float = 0.0
    angular_z: float = 0.0


@dataclass
class StampedTwist:
    """A velocity command with the time (ms) at which it was sent."""

    stamp_ms: int = 0
    twist: Twist = field(default_factory=Twist)


class Procedure(ABC):
    """A flight procedure that steers the drone until its goal is reached."""

    def __init__(self) -> None:
        self.node: Any = None
        self.controller: Any = None
        self.command = "not set"

    def set_pointers(self, node: Any, controller: Any) -> None:
        """Attach the control node and the controller; called before the first update."""
        self.node = node
        self.controller = controller

    @abstractmethod
    def update(self, state: FilterState) -> bool:
        """Send one control command; return True once the goal has been reached."""