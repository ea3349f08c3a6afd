"""Keypad: the 16-key hexadecimal input device.

The key bitmask is the only VM state an input thread may touch while the
engine thread is stepping, so every access goes through a lock. Bit ``n`` of
the mask is set iff key ``n`` is held.

The original COSMAC VIP layout maps to host keys as the hex digits
themselves ('0'-'9', 'a'-'f'), matching the host the engine was built for.
"""

import logging
import threading
from typing import Optional


logger = logging.getLogger(__name__)

NUM_KEYS = 16
KEY_MASK = (1 << NUM_KEYS) - 1


def key_for_char(char: str) -> Optional[int]:
    """Map a host key character to a keypad index.

    Args:
        char: Single character, '0'-'9' or 'a'-'f' (case insensitive)

    Returns:
        Key index 0-15, or None if the character is not a keypad key
    """
    if len(char) != 1:
        return None
    try:
        return int(char, 16)
    except ValueError:
        return None


class Keypad:
    """Thread-safe key state plus the latch used by the blocking key read."""

    def __init__(self):
        self._lock = threading.Lock()
        self._state = 0
        self._pending: Optional[int] = None

    @property
    def state(self) -> int:
        with self._lock:
            return self._state

    def set_state(self, mask: int) -> None:
        """Replace the whole key bitmask."""
        with self._lock:
            self._state = mask & KEY_MASK

    def is_pressed(self, key: int) -> bool:
        if not 0 <= key < NUM_KEYS:
            return False
        with self._lock:
            return bool((self._state >> key) & 1)

    def press(self, key: int) -> None:
        self._check_key(key)
        with self._lock:
            self._state |= 1 << key

    def release(self, key: int) -> None:
        self._check_key(key)
        with self._lock:
            self._state &= ~(1 << key) & KEY_MASK

    def deliver(self, key: int) -> None:
        """Latch ``key`` for a pending blocking read."""
        self._check_key(key)
        with self._lock:
            self._pending = key
        logger.debug(f"Key {key:X} delivered to blocking read.")

    def take_pending(self) -> Optional[int]:
        """Return and clear the latched key, if any."""
        with self._lock:
            key, self._pending = self._pending, None
        return key

    def clear_pending(self) -> None:
        with self._lock:
            self._pending = None

    def reset(self) -> None:
        with self._lock:
            self._state = 0
            self._pending = None

    @staticmethod
    def _check_key(key: int) -> None:
        if not 0 <= key < NUM_KEYS:
            raise ValueError(f"Invalid key index: {key}")
