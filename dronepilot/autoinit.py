"""Take-off and automatic visual-map initialisation procedure."""

from __future__ import annotations

from enum import Enum, auto
from typing import Callable

from .messages import ControlCommand, DronePosition, FilterState, Procedure, PtamState, now_ms

_FLYING_STATES = range(3, 8)
_TRACKING_STATES = (PtamState.BEST, PtamState.GOOD, PtamState.TOOKKF)


class AutoInitStage(Enum):
    NONE = auto()
    STARTED = auto()
    WAIT_FOR_FIRST = auto()
    TOOK_FIRST = auto()
    WAIT_FOR_SECOND = auto()
    DONE = auto()


class AutoInit(Procedure):
    """Takes off and, optionally, initialises the visual map by moving up or down."""

    def __init__(
        self,
        reset_map: bool = True,
        move_time_ms: float = 500,
        wait_time_ms: float = 800,
        reach_height_ms: float = 6000,
        control_mult: float = 1.0,
        takeoff: bool = True,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__()
        self.reset_map = reset_map
        self.move_time_ms = int(move_time_ms)
        self.wait_time_ms = int(wait_time_ms)
        self.reach_height_ms = int(reach_height_ms)
        self.control_mult = float(control_mult)
        self._clock = clock
        self._next_up = False
        self._stage_started = 0
        self.stage = AutoInitStage.NONE if takeoff else AutoInitStage.WAIT_FOR_FIRST
        if reset_map:
            self.command = f"autoInit {self.move_time_ms} {self.wait_time_ms}"
        else:
            self.command = "takeoff"

    def _elapsed(self) -> int:
        return self._clock() - self._stage_started

    def _restart_stage(self, stage: AutoInitStage) -> None:
        self._stage_started = self._clock()
        self.stage = stage

    def _hover(self) -> None:
        self.node.send_control(self.node.hover_command)

    def _hold_current(self, state: FilterState) -> None:
        self.controller.set_target(DronePosition((state.x, state.y, state.z), state.yaw))
        self.node.send_control(self.controller.update(state))
        self.stage = AutoInitStage.DONE

    def _retry(self) -> None:
        self._next_up = not self._next_up
        self.node.publish_command("p reset")
        self._restart_stage(AutoInitStage.WAIT_FOR_FIRST)

    def update(self, state: FilterState) -> bool:
        if not self.reset_map:
            return self._update_takeoff_only(state)
        return self._update_with_map(state)

    def _update_takeoff_only(self, state: FilterState) -> bool:
        if self.stage is AutoInitStage.NONE:
            self.node.send_takeoff()
            self._restart_stage(AutoInitStage.WAIT_FOR_SECOND)
            self._hover()
            return False
        if self.stage is AutoInitStage.WAIT_FOR_SECOND:
            if self._elapsed() < 5000:
                self._hover()
                return False
            self._hold_current(state)
            return True
        if self.stage is AutoInitStage.DONE:
            self.node.send_control(self.controller.update(state))
            return True
        return False

    def _update_with_map(self, state: FilterState) -> bool:
        stage = self.stage
        if stage is AutoInitStage.NONE:
            self.node.send_takeoff()
            self.node.publish_command("f reset")
            self._restart_stage(AutoInitStage.STARTED)
            self._next_up = True
            self._hover()
            return False

        if stage is AutoInitStage.STARTED:
            if self._elapsed() > self.reach_height_ms:
                if state.drone_state in _FLYING_STATES:
                    self._restart_stage(AutoInitStage.WAIT_FOR_FIRST)
                else:
                    self.stage = AutoInitStage.NONE
            self._hover()
            return False

        if stage is AutoInitStage.WAIT_FOR_FIRST:
            if self._elapsed() > 1000:
                self.node.publish_command("p space")
                self._restart_stage(AutoInitStage.TOOK_FIRST)
            self._hover()
            return False

        if stage is AutoInitStage.TOOK_FIRST:
            elapsed = self._elapsed()
            if elapsed < self.move_time_ms:
                gaz = 0.6 if self._next_up else -0.3
                self.node.send_control(ControlCommand(0, 0, 0, gaz * self.control_mult))
            elif elapsed < self.move_time_ms + self.wait_time_ms:
                self._hover()
            else:
                if state.ptam_state == PtamState.INITIALIZING:
                    self.node.publish_command("p space")
                    self._restart_stage(AutoInitStage.WAIT_FOR_SECOND)
                else:
                    self._retry()
                self._hover()
            return False

        if stage is AutoInitStage.WAIT_FOR_SECOND:
            if state.ptam_state in _TRACKING_STATES:
                self._hold_current(state)
                return True
            if self._elapsed() < 2500:
                self._hover()
                return False
            self._retry()
            self._hover()
            return False

        if stage is AutoInitStage.DONE:
            self.node.send_control(self.controller.update(state))
            return True
        return False