from __future__ import annotations

import secrets
import threading
import time


PUSH_CHARS = '-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz'


class PushIdGenerator:
    """Chronologically sortable 20-character keys in the realtime database push-id format.

    8 timestamp characters followed by 12 random characters; ids generated within the same
    millisecond increment the random tail so they still sort in creation order.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_ms = -1
        self._last_random = [0] * 12

    def generate(self, now_ms: int | None = None) -> str:
        with self._lock:
            ms = int(time.time() * 1000) if now_ms is None else int(now_ms)
            duplicate = ms == self._last_ms
            self._last_ms = ms

            stamp = []
            value = ms
            for _ in range(8):
                stamp.append(PUSH_CHARS[value % 64])
                value //= 64
            stamp.reverse()

            if not duplicate:
                self._last_random = [secrets.randbelow(64) for _ in range(12)]
            else:
                index = 11
                while index >= 0 and self._last_random[index] == 63:
                    self._last_random[index] = 0
                    index -= 1
                if index >= 0:
                    self._last_random[index] += 1

            return ''.join(stamp) + ''.join(PUSH_CHARS[item] for item in self._last_random)


_default_generator = PushIdGenerator()


def new_push_id() -> str:
    return _default_generator.generate()
