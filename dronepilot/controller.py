"""Damped-spring position controller that turns pose errors into control commands."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import replace
from typing import Any, Callable, Optional, Sequence, TextIO

from .messages import ControlCommand, DronePosition, FilterState, PtamState, angle_from_to, now_ms

_log = logging.getLogger(__name__)

_PI = 3.141592
_GRAVITY = 9.8
_MAX_DELTA_T = 0.2  # seconds; guards against stale timestamps
_YAW_RADS_PER_COMMAND = 1.66  # a yaw command of 1.0 turns 1.66 rad/s
_TRACKING_STATES = (PtamState.BEST, PtamState.GOOD, PtamState.TOOKKF)
_LOG_INFO_SIZE = 30


def sgn(value: float) -> int:
    """Sign of ``value`` as -1, 0 or 1."""
    return (0 < value) - (value < 0)


def _divide(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return math.copysign(math.inf, numerator) if numerator else math.nan
    return numerator / denominator


def _clip(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


class DroneController:
    """Steers the drone towards a target position with a critically damped spring model."""

    def __init__(self, node: Any = None, clock: Callable[[], int] = now_ms) -> None:
        self.node = node
        self._clock = clock
        self.log_file: Optional[TextIO] = None
        self.log_lock = threading.Lock()

        self.target = DronePosition((0.0, 0.0, 0.0), 0.0)
        self.target_valid = False
        self.target_set_at = 0.0
        self.last_timestamp = 0.0
        self._last_err: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
        self._last_sent = ControlCommand()
        self.hover_command = ControlCommand()

        self.ptam_is_good = False
        self.scale_accuracy = 1.0
        self.log_info: tuple[float, ...] = (0.0,) * _LOG_INFO_SIZE

        # Damped-spring parameters; normally set from the node's configuration.
        self.k_direct = 1.0
        self.k_rp = 0.5
        self.drone_mass_in_kilos = 0.45
        self.max_rp_radians = 0.5
        self.rise_fac = 1.0
        self.aggressiveness = 1.0
        self.max_gaz_rise = 1.0
        self.max_gaz_drop = -0.5
        self.max_yaw = 1.0
        self.max_rp = 0.5
        self.xy_damping_factor = 0.65

    def _seconds(self) -> float:
        return self._clock() / 1000.0

    def update(self, state: FilterState) -> ControlCommand:
        """Compute a new control command from the estimated state."""
        self.ptam_is_good = state.ptam_state in _TRACKING_STATES
        self.scale_accuracy = state.scale_accuracy

        tx, ty, tz = self.target.pos
        # The yaw error is wrapped so the drone always turns the short way round.
        new_err = (
            tx - state.x,
            ty - state.y,
            tz - state.z,
            angle_from_to(self.target.yaw - state.yaw, -180, 180),
        )
        velocity = (-state.dx, -state.dy, -state.dz, -state.dyaw)

        if self.target_valid:
            self._calc_control(new_err, velocity, state.yaw, state.pitch, state.roll)
        else:
            self._last_sent = replace(self.hover_command)

        if self.log_file is not None:
            with self.log_lock:
                if self.log_file is not None:
                    fields = [self.last_timestamp, *self.log_info]
                    self.log_file.write(" ".join(format(v, "g") for v in fields) + " \n")

        self._last_err = new_err
        return replace(self._last_sent)

    def set_target(self, target: DronePosition) -> None:
        """Set a new target and restart the controller's timing."""
        self.target = DronePosition(target.pos, angle_from_to(target.yaw, -180, 180))
        now = self._seconds()
        self.target_set_at = now
        self.target_valid = True
        self._last_err = (0.0, 0.0, 0.0, 0.0)
        self.last_timestamp = now - 0.03  # keeps the first time step from being zero

        x, y, z = self.target.pos
        text = f"New Target: xyz = {x:.3f}, {y:.3f}, {z:.3f},  yaw={self.target.yaw:.3f}"
        _log.info("%s", text)
        if self.node is not None:
            self.node.publish_command("u l " + text)

    def clear_target(self) -> None:
        """Drop the target; the controller then sends the hover command."""
        self.target_valid = False

    def current_target(self) -> DronePosition:
        """The current target position."""
        return DronePosition(self.target.pos, self.target.yaw)

    def last_error(self) -> tuple[float, float, float, float]:
        """The last error (x, y, z, yaw) computed by :meth:`update`."""
        return self._last_err

    def last_control(self) -> ControlCommand:
        """The last command computed by :meth:`update`."""
        return replace(self._last_sent)

    def _calc_control(
        self,
        new_err: Sequence[float],
        new_velocity: Sequence[float],
        yaw: float,
        pitch: float,
        roll: float,
    ) -> None:
        mass = self.drone_mass_in_kilos
        agr = self.aggressiveness
        if not self.ptam_is_good:
            agr *= 0.75
        agr *= self.scale_accuracy

        k_rp_agr = self.k_rp * agr
        k_direct_agr = self.k_direct * agr

        # Rotate error and velocity into the drone's frame, pitch inverted.
        yaw_rad = yaw * 2 * _PI / 360
        pitch_rad = pitch * 2 * _PI / 360
        roll_rad = roll * 2 * _PI / 360
        cos_y, sin_y = math.cos(yaw_rad), math.sin(yaw_rad)
        vel_term = (
            cos_y * new_velocity[0] - sin_y * new_velocity[1],
            -sin_y * new_velocity[0] - cos_y * new_velocity[1],
        )
        p_term = (
            cos_y * new_err[0] - sin_y * new_err[1],
            -sin_y * new_err[0] - cos_y * new_err[1],
        )

        # Damping coefficients for a critically damped spring.
        c_direct = 2 * math.sqrt(self.k_direct * 50 * mass)
        c_direct_agr = 2 * math.sqrt(k_direct_agr * mass)
        c_rp = self.xy_damping_factor * 2 * math.sqrt(k_rp_agr * mass)

        spring_roll = k_rp_agr * p_term[0]
        spring_pitch = k_rp_agr * p_term[1]
        spring_yaw = self.k_direct * 50 * new_err[3]
        spring_gaz = k_direct_agr * new_err[2]

        damping_roll = c_rp * -vel_term[0]
        damping_pitch = c_rp * -vel_term[1]
        damping_yaw = c_direct * -new_velocity[3]
        damping_gaz = c_direct_agr * -new_velocity[2]

        total_roll = spring_roll - damping_roll
        total_pitch = spring_pitch - damping_pitch
        total_yaw = spring_yaw - damping_yaw
        total_gaz = spring_gaz - damping_gaz
        # Only gravity pulls the drone down, and the motors must stay usable for attitude.
        total_gaz = max(-_GRAVITY * mass * 0.8, total_gaz)

        now = self._seconds()
        delta_t = now - self.last_timestamp
        self.last_timestamp = now
        if delta_t > _MAX_DELTA_T:
            delta_t = _MAX_DELTA_T

        delta_yaw = delta_t * _divide(total_yaw, mass) / 2
        delta_gaz = delta_t * _divide(total_gaz, mass) / 2

        control = ControlCommand()
        control.gaz = _clip(-new_velocity[2] + delta_gaz, self.max_gaz_drop, self.max_gaz_rise)

        clipped_z_force = max(
            -_GRAVITY * mass * 0.8,
            _divide(2 * mass * (control.gaz + new_velocity[2]), delta_t),
        )

        applied_force = _divide(_GRAVITY * mass, abs(math.cos(pitch_rad) * math.cos(roll_rad)))
        if abs(total_roll) > abs(applied_force):
            total_roll = abs(applied_force) * sgn(total_roll)
        if abs(total_pitch) > abs(applied_force):
            total_pitch = abs(applied_force) * sgn(total_pitch)

        control.roll = _divide(1.57 - math.acos(_divide(total_roll, applied_force)), self.max_rp_radians)
        control.pitch = _divide(
            1.57 - math.acos(_divide(total_pitch, applied_force)), self.max_rp_radians
        )
        control.yaw = ((-new_velocity[3] + delta_yaw) * (2 * _PI / 360)) / _YAW_RADS_PER_COMMAND

        control.roll = _clip(control.roll, -self.max_rp, self.max_rp)
        control.pitch = _clip(control.pitch, -self.max_rp, self.max_rp)
        control.yaw = _clip(control.yaw, -self.max_yaw, self.max_yaw)
        self._last_sent = control

        tx, ty, tz = self.target.pos
        self.log_info = (
            spring_roll, spring_pitch, spring_gaz, spring_yaw,
            damping_roll, damping_pitch, damping_gaz, damping_yaw,
            delta_t, delta_yaw, delta_gaz,
            new_velocity[0], new_velocity[1], new_velocity[2], new_velocity[3],
            new_err[2], new_err[3], clipped_z_force,
            control.roll, control.pitch, control.gaz, control.yaw,
            applied_force, yaw_rad, pitch_rad, roll_rad,
            tx, ty, tz, self.target.yaw,
        )