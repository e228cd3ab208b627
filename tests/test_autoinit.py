import pytest

from dronepilot.autoinit import AutoInit, AutoInitStage
from dronepilot.messages import ControlCommand, DronePosition, FilterState, PtamState


class FakeNode:
    def __init__(self):
        self.hover_command = ControlCommand()
        self.sent = []
        self.published = []
        self.takeoffs = 0

    def send_takeoff(self):
        self.takeoffs += 1

    def send_control(self, command):
        self.sent.append(command)

    def publish_command(self, text):
        self.published.append(text)


class FakeController:
    def __init__(self):
        self.targets = []
        self.output = ControlCommand(0.1, 0.2, 0.3, 0.4)

    def set_target(self, target):
        self.targets.append(target)

    def update(self, state):
        return self.output


class Clock:
    def __init__(self):
        self.now = 0

    def __call__(self):
        return self.now


@pytest.fixture
def rig():
    node, controller, clock = FakeNode(), FakeController(), Clock()
    return node, controller, clock


def make(rig, **kwargs):
    node, controller, clock = rig
    procedure = AutoInit(clock=clock, **kwargs)
    procedure.set_pointers(node, controller)
    return procedure


def test_command_strings():
    assert AutoInit(True, 500, 800).command == "autoInit 500 800"
    assert AutoInit(reset_map=False).command == "takeoff"


def test_without_takeoff_starts_waiting_for_first_frame():
    assert AutoInit(takeoff=False).stage is AutoInitStage.WAIT_FOR_FIRST
    assert AutoInit().stage is AutoInitStage.NONE


def test_plain_takeoff_sequence(rig):
    node, controller, clock = rig
    proc = make(rig, reset_map=False)
    state = FilterState(x=1.0, y=2.0, z=3.0, yaw=45.0)

    assert proc.update(state) is False
    assert node.takeoffs == 1
    assert node.sent[-1] == node.hover_command

    clock.now = 4999
    assert proc.update(state) is False
    assert controller.targets == []

    clock.now = 5000
    assert proc.update(state) is True
    assert controller.targets == [DronePosition((1.0, 2.0, 3.0), 45.0)]
    assert node.sent[-1] == controller.output
    assert proc.stage is AutoInitStage.DONE

    assert proc.update(state) is True
    assert node.takeoffs == 1


def test_full_map_initialisation(rig):
    node, controller, clock = rig
    proc = make(rig, move_time_ms=500, wait_time_ms=800, reach_height_ms=6000)
    flying = FilterState(drone_state=3)

    assert proc.update(flying) is False
    assert node.published == ["f reset"]
    assert proc.stage is AutoInitStage.STARTED

    clock.now = 6001
    proc.update(flying)
    assert proc.stage is AutoInitStage.WAIT_FOR_FIRST

    clock.now = 7002
    proc.update(flying)
    assert node.published[-1] == "p space"
    assert proc.stage is AutoInitStage.TOOK_FIRST

    clock.now = 7100
    proc.update(flying)
    assert node.sent[-1] == ControlCommand(0, 0, 0, 0.6)

    clock.now = 7700
    proc.update(flying)
    assert node.sent[-1] == node.hover_command

    clock.now = 8400
    proc.update(FilterState(drone_state=3, ptam_state=PtamState.INITIALIZING))
    assert node.published[-1] == "p space"
    assert proc.stage is AutoInitStage.WAIT_FOR_SECOND

    done = proc.update(FilterState(x=0.5, drone_state=3, ptam_state=PtamState.GOOD))
    assert done is True
    assert controller.targets == [DronePosition((0.5, 0.0, 0.0), 0.0)]
    assert proc.stage is AutoInitStage.DONE


def test_not_flying_after_climb_restarts(rig):
    node, controller, clock = rig
    proc = make(rig)
    proc.update(FilterState())
    clock.now = 6001
    proc.update(FilterState(drone_state=2))
    assert proc.stage is AutoInitStage.NONE
    proc.update(FilterState())
    assert node.takeoffs == 2


def test_failed_first_attempt_resets_and_flips_direction(rig):
    node, controller, clock = rig
    proc = make(rig)
    proc.update(FilterState())
    clock.now = 6001
    proc.update(FilterState(drone_state=4))
    clock.now = 7002
    proc.update(FilterState(drone_state=4))
    clock.now = 8400
    proc.update(FilterState(ptam_state=PtamState.LOST))
    assert node.published[-1] == "p reset"
    assert proc.stage is AutoInitStage.WAIT_FOR_FIRST

    clock.now = 9401
    proc.update(FilterState())
    assert proc.stage is AutoInitStage.TOOK_FIRST
    clock.now = 9500
    proc.update(FilterState())
    assert node.sent[-1] == ControlCommand(0, 0, 0, -0.3)


def test_second_frame_timeout_retries(rig):
    node, controller, clock = rig
    proc = make(rig)
    proc.stage = AutoInitStage.WAIT_FOR_SECOND
    clock.now = 2499
    assert proc.update(FilterState(ptam_state=PtamState.INITIALIZING)) is False
    assert proc.stage is AutoInitStage.WAIT_FOR_SECOND
    clock.now = 2500
    assert proc.update(FilterState(ptam_state=PtamState.INITIALIZING)) is False
    assert node.published[-1] == "p reset"
    assert proc.stage is AutoInitStage.WAIT_FOR_FIRST
    assert controller.targets == []