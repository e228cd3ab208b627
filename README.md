# dronepilot

Flight logic for a small quadrotor drone, as a plain Python library with no
dependencies outside the standard library. It covers:

- **Control** – `dronepilot.controller.DroneController` turns an estimated
  `FilterState` and a target `DronePosition` into a `ControlCommand` using a
  critically damped spring model, with clipping to configurable limits.
- **Flight procedures** – `dronepilot.autoinit.AutoInit` (take off, and
  optionally initialise the visual map by moving up or down),
  `dronepilot.flight.FlyTo` (fly to a checkpoint and stay near it for a set
  time) and `dronepilot.flight.Land`. All derive from
  `dronepilot.messages.Procedure`.
- **Autopilot** – `dronepilot.control_node.ControlNode` keeps a queue of text
  commands, parses them with `dronepilot.commands.parse_command` and runs the
  matching procedure on every pose it receives.
- **Ground station** – `dronepilot.station.GroundStation` decides who steers
  the drone (`ControlSource.KB`, `JOY`, `AUTO` or `NONE`), handles joystick
  and keyboard input (`dronepilot.keyboard.KeyboardControl`), reads flight
  plan files and keeps the status texts an operator display would show.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Autopilot commands

`ControlNode.handle_message` takes messages from the command channel. Those
starting with `c ` are for the autopilot: `c start`, `c stop` and
`c clearCommands` act at once; anything else is queued. The message
`toggleLog` switches logging on or off.

Queued commands, tried in this order:

| Command | Effect |
| --- | --- |
| `autoInit move wait reach mult` | take off, then initialise the visual map |
| `autoTakeover move wait reach mult` | as `autoInit`, without taking off |
| `takeoff` | take off and hold the position reached after 5 s |
| `setReference x y z yaw` | set the origin used by `goto` |
| `setMaxControl v`, `setInitialReachDist d`, `setStayWithinDist d`, `setStayTime s` | parameters for later `goto`/`moveBy` commands |
| `goto x y z yaw` | fly to a point relative to the reference |
| `moveBy dx dy dz dyaw` | fly relative to the current target |
| `moveByRel dx dy dz dyaw` | fly relative to the current estimated pose |
| `land` | land |
| `lockScaleFP` | publish `p lockScaleFP` |

Before parsing, the first `$POSE$` and `$REFERENCE$` in a command are replaced
by the four values of the current pose and of the reference
(`dronepilot.commands.expand_macros`). Unknown commands are skipped;
`parse_command` itself raises `ValueError` for them.

## Example

```python
from dronepilot.commands import parse_command
from dronepilot.control_node import ControlNode
from dronepilot.messages import FilterState, angle_from_to

print(parse_command("goto 1 0 1.5 90"))
print(angle_from_to(270.0, -180.0, 180.0))   # -90.0

twists = []
node = ControlNode(publish=print, send_twist=twists.append)
node.handle_message("c start")
node.handle_message("c goto 1 0 1 0")
node.pose_received(FilterState())           # starts FlyTo and sends one command
print(twists[-1])
```

`ControlNode` and `GroundStation` do no networking themselves. They take
callables: `publish` for text messages, `send_twist` for `Twist` velocity
commands and `send_event` for events such as `"takeoff"`, `"land"` and
`"toggle_state"`. Both accept a `clock` returning milliseconds, which makes
them easy to drive in tests. `ControlNode.tick()` should be called every
`min_publish_freq` ms (or use `ControlNode.run()`); it sends a hover command
when no pose has arrived and republishes the `u c` status text every 400 ms.
`GroundStation.tick()` is meant to be called every 100 ms.

Controller parameters are set with `ControlNode.configure`, whose keys are
`K_direct`, `K_rp`, `droneMassInKilos`, `max_rp_radians`, `max_gaz_drop`,
`max_gaz_rise`, `max_rp`, `max_yaw`, `agressiveness`, `rise_fac` and
`xy_damping_factor`; an unknown key raises `ValueError`.

`ControlNode.toggle_logging()` writes the controller's log to
`<package_path>/logs/<id>/logControl.txt` and, when switched off, renames the
folder to `<id>-<seconds>s`.

## Keyboard

With the keyboard as control source, `j`/`l` roll, `k`/`i` pitch, `u`/`o`
yaw and `q`/`a` climb and descend; `s` takes off and `d` lands. A held key
that is not refreshed for one second counts as released. `Esc` switches to
keyboard control and `F1` toggles the emergency state.

## What this package does not do

- It does not estimate the drone's pose. The autopilot and controller expect
  `FilterState` values from an estimator outside this package.
- It has no message transport, no screen and no joystick or keyboard driver;
  a caller wires the callbacks and input events to whatever it uses.
- It does not measure network round-trip times; `format_pings` only formats
  values supplied to it.