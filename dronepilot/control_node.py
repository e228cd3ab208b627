"""The autopilot node: a command queue of flight procedures driving the controller."""

from __future__ import annotations

import logging
import math
import os
import threading
import time
from collections import deque
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from .autoinit import AutoInit
from .commands import CommandKind, expand_macros, parse_command
from .controller import DroneController
from .flight import FlyTo, Land
from .messages import ControlCommand, DronePosition, FilterState, Procedure, Twist, now_ms

_log = logging.getLogger(__name__)

TAKEOFF = "takeoff"
LAND = "land"
TOGGLE_STATE = "toggle_state"

_INFO_INTERVAL_MS = 400
_INFO_MAX_LENGTH = 499

# Configuration keys and the controller attributes they set.
_CONFIG_KEYS = {
    "K_direct": "k_direct",
    "K_rp": "k_rp",
    "droneMassInKilos": "drone_mass_in_kilos",
    "max_rp_radians": "max_rp_radians",
    "max_gaz_drop": "max_gaz_drop",
    "max_gaz_rise": "max_gaz_rise",
    "max_rp": "max_rp",
    "max_yaw": "max_yaw",
    "agressiveness": "aggressiveness",
    "rise_fac": "rise_fac",
    "xy_damping_factor": "xy_damping_factor",
}


def _ignore(_: Any) -> None:
    return None


class ControlNode:
    """Runs queued text commands as flight procedures and forwards their control output.

    ``publish`` receives text messages for the command channel, ``send_twist``
    receives velocity commands and ``send_event`` receives one of ``TAKEOFF``,
    ``LAND`` or ``TOGGLE_STATE``.
    """

    def __init__(
        self,
        publish: Callable[[str], None] = _ignore,
        send_twist: Callable[[Twist], None] = _ignore,
        send_event: Callable[[str], None] = _ignore,
        clock: Callable[[], int] = now_ms,
        package_path: str | Path = ".",
        min_publish_freq: int = 110,
    ) -> None:
        self._publish = publish
        self._send_twist = send_twist
        self._send_event = send_event
        self._clock = clock
        self.package_path = Path(package_path)
        self.min_publish_freq = int(min_publish_freq)

        self._publish_lock = threading.Lock()
        self._queue_lock = threading.RLock()
        self.command_queue: deque[str] = deque()
        self.current_procedure: Optional[Procedure] = None

        self.hover_command = ControlCommand()
        self.last_sent_control = ControlCommand()
        self.last_control_sent_ms = 0
        self.is_controlling = False

        self.reference_zero = DronePosition((0.0, 0.0, 0.0), 0.0)
        self.max_control = 1.0
        self.initial_reach_dist = 0.2
        self.stay_within_dist = 0.5
        self.stay_time = 2.0

        self.current_log_id: Optional[int] = None
        self.started_log_clock = 0
        self._last_info_sent = clock()

        self.controller = DroneController(node=self, clock=clock)

    # -- incoming data -------------------------------------------------------------

    def pose_received(self, state: FilterState) -> None:
        """Let the current procedure, or the controller alone, react to a new pose."""
        with self._queue_lock:
            while self.current_procedure is None and self.command_queue:
                self.pop_next_command(state)

            if self.current_procedure is not None:
                if self.current_procedure.update(state):
                    self.current_procedure = None
            elif self.is_controlling:
                self.send_control(self.controller.update(state))

    def handle_message(self, text: str) -> None:
        """Handle a message from the command channel."""
        if len(text) > 2 and text.startswith("c "):
            cmd = text[2:]
            if cmd == "stop":
                self.stop_control()
            elif cmd == "start":
                self.start_control()
            elif cmd == "clearCommands":
                self.clear_commands()
            else:
                with self._queue_lock:
                    self.command_queue.append(cmd)

        if text == "toggleLog":
            self.toggle_logging()

    def pop_next_command(self, state: FilterState) -> None:
        """Pop commands until one starts a procedure or the queue is empty."""
        with self._queue_lock:
            self.current_procedure = None
            while self.current_procedure is None and self.command_queue:
                raw = self.command_queue.popleft()
                _log.info("executing command: %s", raw)
                text = expand_macros(raw, state, self.reference_zero)
                try:
                    command = parse_command(text)
                except ValueError:
                    _log.info("unknown command, skipping!")
                    continue
                procedure = self._run_command(command.kind, command.values, state)
                if procedure is not None:
                    procedure.set_pointers(self, self.controller)
                    self.current_procedure = procedure

    def _fly_to(self, x: float, y: float, z: float, yaw: float) -> FlyTo:
        return FlyTo(
            DronePosition((x, y, z), yaw),
            self.stay_time,
            self.max_control,
            self.initial_reach_dist,
            self.stay_within_dist,
            clock=self._clock,
        )

    def _run_command(
        self, kind: CommandKind, values: tuple[float, ...], state: FilterState
    ) -> Optional[Procedure]:
        if kind in (CommandKind.AUTO_INIT, CommandKind.AUTO_TAKEOVER):
            move, wait, reach, mult = values
            return AutoInit(
                True, move, wait, reach, mult,
                takeoff=kind is CommandKind.AUTO_INIT, clock=self._clock,
            )
        if kind is CommandKind.TAKEOFF:
            return AutoInit(False, clock=self._clock)
        if kind is CommandKind.SET_REFERENCE:
            self.reference_zero = DronePosition(values[:3], values[3])
            return None
        if kind is CommandKind.SET_MAX_CONTROL:
            self.max_control = values[0]
            return None
        if kind is CommandKind.SET_INITIAL_REACH_DIST:
            self.initial_reach_dist = values[0]
            return None
        if kind is CommandKind.SET_STAY_WITHIN_DIST:
            self.stay_within_dist = values[0]
            return None
        if kind is CommandKind.SET_STAY_TIME:
            self.stay_time = values[0]
            return None
        if kind in (CommandKind.GOTO, CommandKind.MOVE_BY, CommandKind.MOVE_BY_REL):
            if kind is CommandKind.GOTO:
                base = self.reference_zero
                bx, by, bz = base.pos
                byaw = base.yaw
            elif kind is CommandKind.MOVE_BY:
                base = self.controller.current_target()
                bx, by, bz = base.pos
                byaw = base.yaw
            else:
                bx, by, bz, byaw = state.x, state.y, state.z, state.yaw
            dx, dy, dz, dyaw = values
            return self._fly_to(dx + bx, dy + by, dz + bz, dyaw + byaw)
        if kind is CommandKind.LAND:
            return Land()
        if kind is CommandKind.LOCK_SCALE_FP:
            self.publish_command("p lockScaleFP")
            return None
        return None

    def configure(self, config: Mapping[str, float]) -> None:
        """Apply controller parameters; raise ValueError on an unknown key."""
        unknown = set(config) - set(_CONFIG_KEYS)
        if unknown:
            raise ValueError(f"unknown controller parameters: {sorted(unknown)}")
        for key, value in config.items():
            setattr(self.controller, _CONFIG_KEYS[key], float(value))

    # -- output --------------------------------------------------------------------

    def publish_command(self, text: str) -> None:
        """Write a text message to the command channel."""
        with self._publish_lock:
            self._publish(text)

    def send_control(self, command: ControlCommand) -> None:
        """Send a control command; it only reaches the drone while controlling."""
        twist = Twist(
            linear_x=-command.pitch,
            linear_y=-command.roll,
            linear_z=command.gaz,
            angular_x=0.0,
            angular_y=0.0,
            angular_z=-command.yaw,
        )
        if self.is_controlling:
            self._send_twist(twist)
            self.last_sent_control = command
        self.last_control_sent_ms = self._clock()

    def _send_if_controlling(self, event: str) -> None:
        if self.is_controlling:
            self._send_event(event)

    def send_land(self) -> None:
        self._send_if_controlling(LAND)

    def send_takeoff(self) -> None:
        self._send_if_controlling(TAKEOFF)

    def send_toggle_state(self) -> None:
        self._send_if_controlling(TOGGLE_STATE)

    # -- services ------------------------------------------------------------------

    def start_control(self) -> None:
        self.is_controlling = True
        self.publish_command("u l Autopilot: Start Controlling")
        _log.info("START CONTROLLING!")

    def stop_control(self) -> None:
        self.is_controlling = False
        self.publish_command("u l Autopilot: Stop Controlling")
        _log.info("STOP CONTROLLING!")

    def clear_commands(self) -> None:
        """Empty the queue, drop the current procedure and the controller's target."""
        with self._queue_lock:
            self.command_queue.clear()
            self.controller.clear_target()
            self.current_procedure = None
        self.publish_command("u l Autopilot: Cleared Command Queue")
        _log.info("Cleared Command Queue!")

    def hover(self) -> None:
        self.send_control(self.hover_command)

    def lock_scale_fp(self) -> None:
        self.publish_command("p lockScaleFP")

    def set_reference(self, x: float, y: float, z: float, heading: float) -> None:
        self.reference_zero = DronePosition((x, y, z), heading)

    def set_max_control(self, speed: float) -> None:
        self.max_control = float(speed)

    def set_initial_reach_distance(self, distance: float) -> None:
        self.initial_reach_dist = float(distance)

    def set_stay_within_distance(self, distance: float) -> None:
        self.stay_within_dist = float(distance)

    def set_stay_time(self, duration: float) -> None:
        self.stay_time = float(duration)

    # -- status and main loop ------------------------------------------------------

    def info_text(self) -> str:
        """The status message published on the command channel."""
        target = self.controller.current_target()
        e = self.controller.last_error()
        error_norm = math.sqrt(e[0] * e[0] + e[1] * e[1] + e[2] * e[2])
        current = self.current_procedure.command if self.current_procedure else "NULL"
        upcoming = self.command_queue[0] if self.command_queue else "NULL"
        c = self.last_sent_control
        tx, ty, tz = target.pos
        text = (
            f"u c {'Controlling' if self.is_controlling else 'Idle'} "
            f"(Queue: {len(self.command_queue)})\n"
            f"Current: {current}\n"
            f"Next: {upcoming}\n"
            f"Target: ({tx:.2f},  {ty:.2f},  {tz:.2f}), {target.yaw:.1f}\n"
            f"Error: ({e[0]:.2f},  {e[1]:.2f},  {e[2]:.2f}), {e[3]:.1f} (|.| {error_norm:.2f})\n"
            f"Cont.: r {c.roll:.2f}, p {c.pitch:.2f}, g {c.gaz:.2f}, y {c.yaw:.2f}"
        )
        return text[:_INFO_MAX_LENGTH]

    def tick(self) -> None:
        """One pass of the main loop: hover if no pose came in, resend status info."""
        now = self._clock()
        if self.is_controlling and now - self.last_control_sent_ms > self.min_publish_freq:
            self.send_control(self.hover_command)
            _log.warning("Autopilot enabled, but no estimated pose received - sending HOVER.")

        if now - self._last_info_sent > _INFO_INTERVAL_MS:
            self.publish_command(self.info_text())
            self._last_info_sent = self._clock()

    def run(self, should_continue: Callable[[], bool] = lambda: True) -> None:
        """Call :meth:`tick` every ``min_publish_freq`` ms while ``should_continue``."""
        while should_continue():
            time.sleep(self.min_publish_freq / 1000.0)
            self.tick()

    def toggle_logging(self) -> None:
        """Start or stop writing the controller's log under ``<package_path>/logs``."""
        logs = self.package_path / "logs"
        logs.mkdir(parents=True, exist_ok=True)

        controller = self.controller
        if controller.log_file is None:
            self.current_log_id = int(time.time()) * 100 + self._clock() % 100
            self.started_log_clock = self._clock()
            folder = logs / str(self.current_log_id)
            _log.info("ENABLED LOGGING to %s", folder)
            folder.mkdir(exist_ok=True)
            self.publish_command(f"u l ENABLED LOGGING to {self.package_path}/logs/{self.current_log_id}")
            with controller.log_lock:
                controller.log_file = open(folder / "logControl.txt", "w", encoding="utf-8")
            return

        with controller.log_lock:
            log_file = controller.log_file
            controller.log_file = None
        log_file.flush()
        log_file.close()

        seconds = (self._clock() - self.started_log_clock + 500) // 1000
        _log.info("DISABLED LOGGING (logged %d sec)", seconds)
        folder = logs / str(self.current_log_id)
        os.replace(folder, logs / f"{self.current_log_id}-{seconds}s")