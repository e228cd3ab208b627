import pytest

from dronepilot.keyboard import KeyboardControl, map_key
from dronepilot.messages import ControlCommand


class FakeClock:
    def __init__(self, value=0):
        self.value = value

    def __call__(self):
        return self.value


@pytest.mark.parametrize(
    "key,index",
    [(74, 0), (75, 1), (76, 2), (73, 3), (85, 4), (79, 5), (81, 6), (65, 7)],
)
def test_map_key(key, index):
    assert map_key(key) == index


@pytest.mark.parametrize("key", [83, 68, 16777216, 0])
def test_map_key_other(key):
    assert map_key(key) is None


def test_no_keys_gives_hover():
    kb = KeyboardControl(clock=FakeClock())
    assert kb.command() == ControlCommand()


@pytest.mark.parametrize(
    "key,expected",
    [
        (74, ControlCommand(roll=-0.5)),
        (76, ControlCommand(roll=0.5)),
        (75, ControlCommand(pitch=0.5)),
        (73, ControlCommand(pitch=-0.5)),
        (85, ControlCommand(yaw=-0.25)),
        (79, ControlCommand(yaw=0.25)),
        (81, ControlCommand(gaz=0.75)),
        (65, ControlCommand(gaz=-0.75)),
    ],
)
def test_each_key(key, expected):
    kb = KeyboardControl(sens_rp=0.5, sens_yaw=0.25, sens_gaz=0.75, clock=FakeClock())
    assert kb.press(key)
    assert kb.command() == expected


def test_later_key_wins_on_same_axis():
    kb = KeyboardControl(sens_rp=0.5, clock=FakeClock())
    kb.press(74)
    kb.press(76)
    assert kb.command().roll == 0.5


def test_press_twice_reports_no_change():
    kb = KeyboardControl(clock=FakeClock())
    assert kb.press(81)
    assert not kb.press(81)
    assert not kb.press(83)


def test_release():
    kb = KeyboardControl(sens_gaz=0.75, clock=FakeClock())
    kb.press(81)
    assert not kb.release(81, auto_repeat=True)
    assert kb.command().gaz == 0.75
    assert kb.release(81)
    assert kb.command() == ControlCommand()
    assert not kb.release(81)


def test_stale_key_expires():
    clock = FakeClock(5000)
    kb = KeyboardControl(sens_gaz=0.75, clock=clock)
    kb.press(81)
    clock.value += 999
    assert kb.command().gaz == 0.75
    clock.value += 1
    assert kb.command() == ControlCommand()
    assert kb.pressed[6] is False


def test_repeat_refreshes_key():
    clock = FakeClock(0)
    kb = KeyboardControl(sens_gaz=0.75, clock=clock)
    kb.press(81)
    clock.value = 800
    kb.press(81)
    clock.value = 1500
    assert kb.command().gaz == 0.75