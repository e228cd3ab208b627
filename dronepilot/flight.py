"""Procedures that fly to a checkpoint and that land the drone."""

from __future__ import annotations

import logging
from typing import Callable

from .messages import DronePosition, FilterState, Procedure, angle_from_to, now_ms

_log = logging.getLogger(__name__)

_MAX_YAW_ERROR_SQUARED = 25  # five degrees


class FlyTo(Procedure):
    """Flies to a checkpoint and stays within reach of it for a given time."""

    def __init__(
        self,
        checkpoint: DronePosition,
        stay_time: float = 2,
        max_control_factor: float = 1,
        initial_reached_dist: float = 0.2,
        stay_within_dist: float = 0.5,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__()
        self.checkpoint = checkpoint
        self.stay_time_ms = int(1000 * stay_time)
        self.max_control_factor = max_control_factor
        self.initial_reached_dist = initial_reached_dist
        self.stay_within_dist = stay_within_dist
        self._clock = clock
        self.reached = False
        self.reached_at = -1
        self.target_set = False
        self.completed = False
        x, y, z = checkpoint.pos
        self.command = f"goto {x:.2f} {y:.2f} {z:.2f} {checkpoint.yaw:.2f}"

    def update(self, state: FilterState) -> bool:
        if not self.target_set:
            self.controller.set_target(self.checkpoint)
        self.target_set = True

        if (
            not self.completed
            and self.reached
            and self._clock() - self.reached_at > self.stay_time_ms
        ):
            _log.info("checkpoint done!")
            self.completed = True
        if self.completed:
            self.node.send_control(self.controller.update(state))
            return True

        cx, cy, cz = self.checkpoint.pos
        dist_squared = (state.x - cx) ** 2 + (state.y - cy) ** 2 + (state.z - cz) ** 2
        diff_yaw = angle_from_to(
            angle_from_to(state.yaw, -180, 180) - angle_from_to(self.checkpoint.yaw, -180, 180),
            -180,
            180,
        )
        yaw_squared = diff_yaw * diff_yaw

        if (
            not self.reached
            and dist_squared < self.initial_reached_dist ** 2
            and yaw_squared < _MAX_YAW_ERROR_SQUARED
        ):
            self.reached = True
            self.reached_at = self._clock()
            _log.info("target reached initially!")

        if self.reached and (
            dist_squared > self.stay_within_dist ** 2 or yaw_squared > _MAX_YAW_ERROR_SQUARED
        ):
            self.reached = False
            _log.info("target lost again!")

        self.node.send_control(self.controller.update(state))
        return False


class Land(Procedure):
    """Issues a land command once and then hovers with no target."""

    def __init__(self) -> None:
        super().__init__()
        self.fresh = True
        self.command = "land"

    def update(self, state: FilterState) -> bool:
        if self.fresh:
            self.node.send_land()
            _log.info("issuing land!")
        self.fresh = False
        self.node.send_control(self.node.hover_command)
        self.controller.clear_target()
        return True