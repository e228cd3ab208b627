import math

import pytest

from dronepilot.commands import Command, CommandKind, expand_macros, parse_command, scan_floats
from dronepilot.messages import DronePosition, FilterState


def test_scan_floats_reads_values():
    assert scan_floats("setStayTime 2.5", "setStayTime", 1) == (2.5,)


def test_scan_floats_ignores_trailing_text():
    assert scan_floats("goto 1 2 3 4 extra", "goto", 4) == (1.0, 2.0, 3.0, 4.0)


def test_scan_floats_allows_missing_space():
    assert scan_floats("goto1 2 3 4", "goto", 4) == (1.0, 2.0, 3.0, 4.0)


def test_scan_floats_exponent_and_sign():
    values = scan_floats("setMaxControl -1e-1", "setMaxControl", 1)
    assert values is not None
    assert math.isclose(values[0], -0.1)


def test_scan_floats_too_few_values():
    assert scan_floats("goto 1 2 3", "goto", 4) is None


def test_scan_floats_requires_keyword_at_start():
    assert scan_floats(" goto 1 2 3 4", "goto", 4) is None
    assert scan_floats("moveByRel 1 2 3 4", "moveBy", 4) is None


def test_expand_pose_macro():
    pose = FilterState(x=1.0, y=2.0, z=3.0, yaw=4.0)
    assert expand_macros("goto $POSE$", pose, DronePosition()) == "goto 1.000 2.000 3.000 4.000"


def test_expand_reference_macro():
    ref = DronePosition((0.5, -1.0, 2.0), 90.0)
    result = expand_macros("setReference $REFERENCE$", FilterState(), ref)
    assert result == "setReference 0.500 -1.000 2.000 90.000"


def test_expand_replaces_only_first_occurrence():
    result = expand_macros("$POSE$ $POSE$", FilterState(), DronePosition())
    assert result.endswith("$POSE$")
    assert result.count("0.000") == 4


def test_expand_without_macros_unchanged():
    assert expand_macros("land", FilterState(), DronePosition()) == "land"


@pytest.mark.parametrize(
    "text, kind, values",
    [
        ("autoInit 500 800 4000 0.5", CommandKind.AUTO_INIT, (500.0, 800.0, 4000.0, 0.5)),
        ("autoTakeover 500 800 4000 0.5", CommandKind.AUTO_TAKEOVER, (500.0, 800.0, 4000.0, 0.5)),
        ("setReference 1 2 3 4", CommandKind.SET_REFERENCE, (1.0, 2.0, 3.0, 4.0)),
        ("setMaxControl 0.5", CommandKind.SET_MAX_CONTROL, (0.5,)),
        ("setInitialReachDist 0.2", CommandKind.SET_INITIAL_REACH_DIST, (0.2,)),
        ("setStayWithinDist 0.5", CommandKind.SET_STAY_WITHIN_DIST, (0.5,)),
        ("setStayTime 2", CommandKind.SET_STAY_TIME, (2.0,)),
        ("goto 1 2 3 4", CommandKind.GOTO, (1.0, 2.0, 3.0, 4.0)),
        ("moveBy 1 2 3 4", CommandKind.MOVE_BY, (1.0, 2.0, 3.0, 4.0)),
        ("moveByRel 1 2 3 4", CommandKind.MOVE_BY_REL, (1.0, 2.0, 3.0, 4.0)),
    ],
)
def test_parse_numeric_commands(text, kind, values):
    assert parse_command(text) == Command(kind, values, text)


@pytest.mark.parametrize(
    "text, kind",
    [("takeoff", CommandKind.TAKEOFF), ("land", CommandKind.LAND), ("lockScaleFP", CommandKind.LOCK_SCALE_FP)],
)
def test_parse_exact_commands(text, kind):
    command = parse_command(text)
    assert command.kind is kind
    assert command.values == ()


@pytest.mark.parametrize("text", ["takeoff now", "goto 1 2 3", "fly", "", " land"])
def test_parse_unknown_raises(text):
    with pytest.raises(ValueError):
        parse_command(text)


def test_parse_after_macro_expansion():
    pose = FilterState(x=1.0, y=2.0, z=3.0, yaw=4.0)
    command = parse_command(expand_macros("goto $POSE$", pose, DronePosition()))
    assert command.kind is CommandKind.GOTO
    assert command.values == (1.0, 2.0, 3.0, 4.0)