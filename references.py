import logging
import re
import secrets
import time
from typing import Callable, TypeVar

from errors import ReferenceCollision, ReferenceExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Crockford base32: no I, L, O, U so references survive being read out over the phone.
ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
TIME_CHARS = 9
RANDOM_CHARS = 4
DEFAULT_PREFIX = "DV"


def _encode(value: int, width: int) -> str:
    chars = []
    for _ in range(width):
        value, idx = divmod(value, len(ALPHABET))
        chars.append(ALPHABET[idx])
    return "".join(reversed(chars))


def reference_pattern(prefix: str = DEFAULT_PREFIX) -> "re.Pattern[str]":
    return re.compile(rf"^{re.escape(prefix)}-[{ALPHABET}]{{{TIME_CHARS + RANDOM_CHARS}}}$")


class ReferenceGenerator:
    """
    Booking references look like ``DV-1KB3K7Q9X4MZT``:
      - prefix and a dash
      - 9 chars: creation time in milliseconds, base32 (sorts by creation time)
      - 4 chars: random suffix, about a million values per millisecond

    Uniqueness comes from the store's unique constraint on the reference column.
    allocate() only retries when that constraint rejects a candidate.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_PREFIX,
        max_attempts: int = 5,
        clock: Callable[[], float] = time.time,
        randbelow: Callable[[int], int] = secrets.randbelow,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.prefix = prefix
        self.max_attempts = max_attempts
        self._clock = clock
        self._randbelow = randbelow

    def generate(self) -> str:
        millis = int(self._clock() * 1000)
        suffix = self._randbelow(len(ALPHABET) ** RANDOM_CHARS)
        return f"{self.prefix}-{_encode(millis, TIME_CHARS)}{_encode(suffix, RANDOM_CHARS)}"

    def allocate(self, insert: Callable[[str], T]) -> T:
        """
        Call insert(candidate) with fresh candidates until the store accepts one.
        insert must raise ReferenceCollision when the reference is taken.
        A rejected candidate is abandoned, never reused.
        """
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.generate()
            try:
                return insert(candidate)
            except ReferenceCollision:
                logger.warning(
                    "Booking reference collision on %s (attempt %d/%d)",
                    candidate, attempt, self.max_attempts,
                )
        logger.error("Booking reference space exhausted after %d attempts", self.max_attempts)
        raise ReferenceExhausted(
            f"Could not allocate a unique booking reference after {self.max_attempts} attempts"
        )
