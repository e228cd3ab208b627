"""Keyboard steering: keys held down map to a control command."""

from __future__ import annotations

from typing import Callable, Optional

from .messages import ControlCommand, now_ms

KEY_J, KEY_K, KEY_L, KEY_I = 74, 75, 76, 73
KEY_U, KEY_O, KEY_Q, KEY_A = 85, 79, 81, 65
KEY_S = 83
KEY_D = 68
KEY_ESCAPE = 16777216
KEY_F1 = 16777264

_KEYS = (KEY_J, KEY_K, KEY_L, KEY_I, KEY_U, KEY_O, KEY_Q, KEY_A)
_KEY_INDEX = {key: index for index, key in enumerate(_KEYS)}
_HOLD_MS = 1000  # a key not refreshed for this long counts as released


def map_key(key: int) -> Optional[int]:
    """Index (0-7) of a steering key in the order j k l i u o q a, or None."""
    return _KEY_INDEX.get(key)


class KeyboardControl:
    """Tracks which steering keys are held and turns them into a command."""

    def __init__(
        self,
        sens_rp: float = 1.0,
        sens_yaw: float = 1.0,
        sens_gaz: float = 1.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.sens_rp = sens_rp
        self.sens_yaw = sens_yaw
        self.sens_gaz = sens_gaz
        self._clock = clock
        self.pressed = [False] * len(_KEYS)
        self.last_repeat = [0] * len(_KEYS)

    def press(self, key: int) -> bool:
        """Register a key press; True if a steering key became held."""
        index = map_key(key)
        if index is None:
            return False
        changed = not self.pressed[index]
        self.pressed[index] = True
        self.last_repeat[index] = self._clock()
        return changed

    def release(self, key: int, auto_repeat: bool = False) -> bool:
        """Register a key release; auto-repeat releases are ignored.

        True if a held steering key was released.
        """
        index = map_key(key)
        if index is None or auto_repeat:
            return False
        changed = self.pressed[index]
        self.pressed[index] = False
        return changed

    def command(self) -> ControlCommand:
        """The command for the keys held now; stale keys are released first."""
        now = self._clock()
        self.pressed = [
            held and last + _HOLD_MS > now
            for held, last in zip(self.pressed, self.last_repeat)
        ]
        j, k, l, i, u, o, q, a = self.pressed
        c = ControlCommand()
        if j:
            c.roll = -self.sens_rp
        if k:
            c.pitch = self.sens_rp
        if l:
            c.roll = self.sens_rp
        if i:
            c.pitch = -self.sens_rp
        if u:
            c.yaw = -self.sens_yaw
        if o:
            c.yaw = self.sens_yaw
        if q:
            c.gaz = self.sens_gaz
        if a:
            c.gaz = -self.sens_gaz
        return c