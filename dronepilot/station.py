"""Ground station logic: control-source switching, joystick and keyboard steering, status text."""

from __future__ import annotations

import logging
import os
from enum import IntEnum
from pathlib import Path
from typing import Callable, Optional, Sequence

from .control_node import LAND, TAKEOFF, TOGGLE_STATE
from .keyboard import KEY_D, KEY_ESCAPE, KEY_F1, KEY_S, KeyboardControl, map_key
from .messages import ControlCommand, Navdata, Twist, now_ms

_log = logging.getLogger(__name__)

TOGGLE_CAM = "toggle_cam"
FLATTRIM = "flattrim"

_JOY_DEADZONE = 0.1
_HZ_INTERVAL_MS = 1000
_MOTOR_EVERY = 10

_EVENT_LOG = {
    TAKEOFF: "sent: Takeoff",
    LAND: "sent: LAND",
    TOGGLE_STATE: "sent: ToggleState",
}


class ControlSource(IntEnum):
    """Who is steering the drone."""

    KB = 0
    JOY = 1
    AUTO = 2
    NONE = 3


def list_flight_plans(directory: str | Path) -> list[str]:
    """Names of the ``.txt`` files in ``directory``, sorted; raise OSError if unreadable."""
    names = os.listdir(directory)
    return sorted(name for name in names if len(name) > 4 and name.endswith(".txt"))


def load_flight_plan(path: str | Path) -> str:
    """Read a flight plan; every line, including a trailing empty one, ends in a newline."""
    text = Path(path).read_text(encoding="utf-8")
    return "".join(line + "\n" for line in text.split("\n"))


def format_counts(nav: int, control: int, pose: int, joy: int) -> tuple[str, str, str, str]:
    """Labels for the message rates: control, joystick, navdata and pose estimates."""
    return (
        f"Drone Control: {int(control)} Hz",
        f"Joy Input: {int(joy)} Hz",
        f"Drone Navdata: {int(nav)} Hz",
        f"Pose Estimates: {int(pose)} Hz",
    )


def format_pings(p500: int, p20000: int) -> str:
    """Label for the measured round-trip times."""
    return f"Pings (RTT): {int(p500)} (500B), {int(p20000)} (20kB)"


def format_motors(motor1: float, motor2: float, motor3: float, motor4: float) -> str:
    """Label for the four motor speeds."""
    return f"Motors: {motor1:f} {motor2:f} {motor3:f} {motor4:f}"


def _ignore(_: object) -> None:
    return None


class GroundStation:
    """Decides who steers the drone and keeps the operator's status displays.

    ``publish`` receives text for the command channel, ``send_twist`` receives
    velocity commands and ``send_event`` receives ``TAKEOFF``, ``LAND``,
    ``TOGGLE_STATE``, ``TOGGLE_CAM`` or ``FLATTRIM``.
    """

    def __init__(
        self,
        publish: Callable[[str], None] = _ignore,
        send_twist: Callable[[Twist], None] = _ignore,
        send_event: Callable[[str], None] = _ignore,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._publish = publish
        self._send_twist = send_twist
        self._send_event = send_event
        self._clock = clock

        self.current_control_source = ControlSource.NONE
        self.use_hovering = True
        self.keyboard = KeyboardControl(clock=clock)

        self.last_joy_control = ControlCommand()
        self.last_l1_pressed = False
        self.last_r1_pressed = False
        self._warned_joystick = False

        self.drone_state = 0
        self.navdata_count = 0
        self.vel_count = 0
        self.pose_count = 0
        self.joy_count = 0
        self.vel_count_100ms = 0
        self._last_hz = clock()

        self.log_lines: list[str] = []
        self.autopilot_info = ""
        self.stateestimation_info = ""
        self.motor_speeds = ""
        self.counts: tuple[str, str, str, str] = format_counts(0, 0, 0, 0)

    # -- control source ------------------------------------------------------------

    def set_control_source(self, source: ControlSource) -> None:
        """Switch the control source and tell the autopilot to start or stop."""
        source = ControlSource(source)
        if source is ControlSource.AUTO:
            self._publish("c start")
        else:
            self._publish("c stop")
        self.current_control_source = source

    # -- incoming data -------------------------------------------------------------

    def velocity_received(self) -> None:
        """Count a velocity command seen on the command-velocity channel."""
        self.vel_count += 1
        self.vel_count_100ms += 1

    def pose_received(self) -> None:
        """Count a pose estimate seen from the estimator."""
        self.pose_count += 1

    def handle_joy(self, axes: Sequence[float], buttons: Sequence[int]) -> None:
        """React to a joystick message; any deflection takes over control."""
        self.joy_count += 1
        if len(axes) < 4:
            if not self._warned_joystick:
                _log.warning("Error: Non-compatible Joystick!")
                self._warned_joystick = True
            return

        activate = 11 if len(buttons) > 11 else 1
        r1 = bool(buttons[activate])
        l1 = bool(buttons[activate - 1])

        just_started = False
        if self.current_control_source is not ControlSource.JOY:
            if any(abs(a) > _JOY_DEADZONE for a in axes[:4]) or r1:
                self.set_control_source(ControlSource.JOY)
                just_started = True

        if just_started or self.current_control_source is ControlSource.JOY:
            command = ControlCommand(
                roll=-axes[0], pitch=-axes[1], yaw=-axes[2], gaz=axes[3]
            )
            self.send_control(command)
            self.last_joy_control = command

            if not self.last_l1_pressed and l1:
                self.takeoff()
            if self.last_l1_pressed and not l1:
                self._event(LAND)
            if not self.last_r1_pressed and r1:
                self._event(TOGGLE_STATE)

        self.last_l1_pressed = l1
        self.last_r1_pressed = r1

    def handle_message(self, text: str) -> None:
        """Route ``u l``, ``u c`` and ``u s`` messages to the log and the status panes."""
        if not text.startswith("u "):
            return
        prefix, body = text[:4], text[4:]
        if prefix == "u l ":
            self.log_lines.append(body)
        elif prefix == "u c ":
            self.autopilot_info = body
        elif prefix == "u s ":
            self.stateestimation_info = body

    def handle_navdata(self, navdata: Navdata) -> None:
        """Track the drone state and refresh the motor label every tenth message."""
        self.drone_state = navdata.state
        if self.navdata_count % _MOTOR_EVERY == 0:
            self.motor_speeds = format_motors(
                navdata.motor1, navdata.motor2, navdata.motor3, navdata.motor4
            )
        self.navdata_count += 1

    # -- keyboard ------------------------------------------------------------------

    def key_pressed(self, key: int) -> None:
        """Handle a key press: steering keys, takeoff (s), land (d), ESC and F1."""
        if self.current_control_source is ControlSource.KB:
            if map_key(key) is not None:
                if self.keyboard.press(key):
                    self.send_control(self.keyboard.command())
            elif key == KEY_S:
                self.takeoff()
            elif key == KEY_D:
                self._event(LAND)

        if key == KEY_ESCAPE:
            self.set_control_source(ControlSource.KB)
        if key == KEY_F1:
            self._event(TOGGLE_STATE)

    def key_released(self, key: int, auto_repeat: bool = False) -> None:
        """Handle a key release; auto-repeat releases are ignored."""
        if self.current_control_source is not ControlSource.KB:
            return
        if self.keyboard.release(key, auto_repeat):
            self.send_control(self.keyboard.command())

    # -- output --------------------------------------------------------------------

    def send_control(self, command: ControlCommand) -> None:
        """Send a control command as a velocity message."""
        flag = 0.0 if self.use_hovering else 1.0
        self._send_twist(
            Twist(
                linear_x=-command.pitch,
                linear_y=-command.roll,
                linear_z=command.gaz,
                angular_x=flag,
                angular_y=flag,
                angular_z=-command.yaw,
            )
        )

    def _event(self, event: str) -> None:
        self._send_event(event)
        line = _EVENT_LOG.get(event)
        if line is not None:
            self.log_lines.append(line)

    def send_commands(self, text: str) -> None:
        """Queue every non-blank line as an autopilot command and hand control to it."""
        for line in text.split("\n"):
            stripped = line.strip()
            if stripped:
                self._publish("c " + stripped)
        self.set_control_source(ControlSource.AUTO)

    def clear(self) -> None:
        """Clear the autopilot's command queue."""
        self._publish("c clearCommands")

    def reset(self) -> None:
        """Release control, clear the queue and reset the estimator."""
        self.set_control_source(ControlSource.NONE)
        self.clear()
        self._publish("f reset")

    def land(self) -> None:
        """Clear the autopilot's queue and land."""
        self.clear()
        self._event(LAND)

    def takeoff(self) -> None:
        self._event(TAKEOFF)

    def toggle_cam(self) -> None:
        self._event(TOGGLE_CAM)

    def emergency(self) -> None:
        self._event(TOGGLE_STATE)

    def flattrim(self) -> None:
        """Flat-trim the sensors, resetting the drone first if it is not yet initialised."""
        if self.drone_state <= 1:
            self._event(TOGGLE_STATE)
        self._event(FLATTRIM)

    def tick(self) -> None:
        """One 100 ms pass: repeat a command if none was seen, refresh rates every second."""
        if self.vel_count_100ms == 0:
            source = self.current_control_source
            if source is ControlSource.JOY:
                self.send_control(self.last_joy_control)
            elif source is ControlSource.KB:
                self.send_control(self.keyboard.command())
            else:
                self.send_control(ControlCommand())
        self.vel_count_100ms = 0

        now = self._clock()
        if now - self._last_hz > _HZ_INTERVAL_MS:
            self.counts = format_counts(
                self.navdata_count, self.vel_count, self.pose_count, self.joy_count
            )
            self.navdata_count = self.vel_count = self.pose_count = self.joy_count = 0
            self._last_hz = self._clock()