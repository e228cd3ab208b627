"""Parsing of the autopilot's text commands."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .messages import DronePosition, FilterState

_WHITESPACE = re.compile(r"\s*")
_FLOAT = re.compile(
    r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|infinity|inf|nan)",
    re.IGNORECASE,
)


class CommandKind(Enum):
    AUTO_INIT = "autoInit"
    AUTO_TAKEOVER = "autoTakeover"
    TAKEOFF = "takeoff"
    SET_REFERENCE = "setReference"
    SET_MAX_CONTROL = "setMaxControl"
    SET_INITIAL_REACH_DIST = "setInitialReachDist"
    SET_STAY_WITHIN_DIST = "setStayWithinDist"
    SET_STAY_TIME = "setStayTime"
    GOTO = "goto"
    MOVE_BY = "moveBy"
    MOVE_BY_REL = "moveByRel"
    LAND = "land"
    LOCK_SCALE_FP = "lockScaleFP"


@dataclass(frozen=True)
class Command:
    """A parsed autopilot command with its numeric arguments."""

    kind: CommandKind
    values: tuple[float, ...] = ()
    text: str = ""


# Tried in this order; the first that matches wins.
_NUMERIC = (
    (CommandKind.AUTO_INIT, 4),
    (CommandKind.AUTO_TAKEOVER, 4),
    (CommandKind.SET_REFERENCE, 4),
    (CommandKind.SET_MAX_CONTROL, 1),
    (CommandKind.SET_INITIAL_REACH_DIST, 1),
    (CommandKind.SET_STAY_WITHIN_DIST, 1),
    (CommandKind.SET_STAY_TIME, 1),
    (CommandKind.GOTO, 4),
    (CommandKind.MOVE_BY, 4),
    (CommandKind.MOVE_BY_REL, 4),
)
_EXACT = {
    "takeoff": CommandKind.TAKEOFF,
    "land": CommandKind.LAND,
    "lockScaleFP": CommandKind.LOCK_SCALE_FP,
}


def scan_floats(text: str, keyword: str, count: int) -> Optional[tuple[float, ...]]:
    """Read ``count`` numbers after ``keyword`` at the very start of ``text``.

    Whitespace between the numbers is optional and trailing text is ignored.
    Returns None unless all ``count`` numbers were read.
    """
    if not text.startswith(keyword):
        return None
    pos = len(keyword)
    values = []
    for _ in range(count):
        pos = _WHITESPACE.match(text, pos).end()
        match = _FLOAT.match(text, pos)
        if match is None:
            return None
        values.append(float(match.group()))
        pos = match.end()
    return tuple(values)


def expand_macros(command: str, pose: FilterState, reference: DronePosition) -> str:
    """Replace the first ``$POSE$`` and ``$REFERENCE$`` by their four values."""
    if "$POSE$" in command:
        text = f"{pose.x:.3f} {pose.y:.3f} {pose.z:.3f} {pose.yaw:.3f}"
        command = command.replace("$POSE$", text, 1)
    if "$REFERENCE$" in command:
        x, y, z = reference.pos
        text = f"{x:.3f} {y:.3f} {z:.3f} {reference.yaw:.3f}"
        command = command.replace("$REFERENCE$", text, 1)
    return command


def parse_command(text: str) -> Command:
    """Parse one command; raise ValueError if it is not understood."""
    for kind, count in _NUMERIC:
        values = scan_floats(text, kind.value, count)
        if values is not None:
            return Command(kind, values, text)
        if kind is CommandKind.AUTO_TAKEOVER and text in _EXACT:
            return Command(_EXACT[text], (), text)
    if text in _EXACT:
        return Command(_EXACT[text], (), text)
    raise ValueError(f"unknown command: {text!r}")