import math

import pytest

from dronepilot.messages import (
    ControlCommand,
    DronePosition,
    FilterState,
    Navdata,
    Procedure,
    PtamState,
    StampedTwist,
    Twist,
    angle_from_to,
    now_ms,
)


@pytest.mark.parametrize("angle", [-725.5, -360.0, -181.0, -10.0, 0.0, 179.9, 180.0, 359.0, 1000.25])
@pytest.mark.parametrize("low,sup", [(-180, 180), (0, 360), (-360, 0)])
def test_angle_from_to_lands_in_range_by_whole_turns(angle, low, sup):
    result = angle_from_to(angle, low, sup)
    assert low <= result < sup
    turns = (result - angle) / 360
    assert turns == pytest.approx(round(turns))


def test_angle_from_to_pinned_values():
    assert angle_from_to(190.0, -180, 180) == pytest.approx(-170.0)
    assert angle_from_to(180.0, -180, 180) == pytest.approx(-180.0)
    assert angle_from_to(-180.0, -180, 180) == -180.0


def test_angle_from_to_handles_huge_angles():
    assert angle_from_to(3600000.0 + 10.0, -180, 180) == pytest.approx(10.0)


def test_angle_from_to_rejects_nan():
    with pytest.raises(ValueError):
        angle_from_to(math.nan, -180, 180)


def test_control_command_positional_order():
    c = ControlCommand(1.0, 2.0, 3.0, 4.0)
    assert (c.roll, c.pitch, c.yaw, c.gaz) == (1.0, 2.0, 3.0, 4.0)
    assert ControlCommand() == ControlCommand(0, 0, 0, 0)


def test_drone_position_defaults_and_conversion():
    p = DronePosition()
    assert p.pos == (0.0, 0.0, 0.0)
    assert p.yaw == 0.0
    q = DronePosition([1, 2, 3], 45)
    assert q.pos == (1.0, 2.0, 3.0)
    assert q.yaw == 45.0


def test_drone_position_needs_three_coordinates():
    with pytest.raises(ValueError):
        DronePosition((1.0, 2.0), 0.0)


def test_now_ms_is_monotonic():
    first = now_ms()
    second = now_ms()
    assert second >= first


def test_procedure_is_abstract():
    with pytest.raises(TypeError):
        Procedure()


def test_procedure_set_pointers_and_default_command():
    class Hold(Procedure):
        def update(self, state):
            return state.x > 0

    p = Hold()
    assert p.command == "not set"
    node, controller = object(), object()
    p.set_pointers(node, controller)
    assert p.node is node
    assert p.controller is controller
    assert p.update(FilterState(x=1.0)) is True


def test_defaults_of_messages():
    assert FilterState().ptam_state is PtamState.IDLE
    assert StampedTwist().twist == Twist()
    assert Navdata(altd=500.0).altd == 500.0