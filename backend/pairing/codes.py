"""Room code pool: mints, pre-warms and recycles short human-typeable codes.

A code is four characters, ``letter digit digit letter`` (e.g. ``B17K``).
Codes are minted once and then recycled through a FIFO free queue, so the
set of distinct codes in circulation only grows when every previously
minted code is held by a live room.
"""

from __future__ import annotations

import itertools
import random
import re
import string
from collections import deque

import structlog

logger = structlog.get_logger()

CODE_LENGTH = 4
CODE_PATTERN = re.compile(r"^[A-Z][0-9]{2}[A-Z]$")
KEYSPACE_SIZE = len(string.ascii_uppercase) ** 2 * len(string.digits) ** 2  # 67,600

DEFAULT_POOL_SIZE = 1000
DEFAULT_MAX_ATTEMPTS = 10_000


class CodePoolExhaustedError(RuntimeError):
    """Raised when no fresh code could be minted within the retry cap."""


def is_valid_code(value: str) -> bool:
    """Check whether a string has the room code shape."""
    return CODE_PATTERN.match(value) is not None


class CodePool:
    """Allocate unique room codes, reusing released ones oldest-first.

    The pool does not know which codes are held by live rooms; callers must
    only release a code once nothing references it any more.
    """

    def __init__(
        self,
        size: int = DEFAULT_POOL_SIZE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        rng: random.Random | None = None,
    ) -> None:
        if size < 0 or size > KEYSPACE_SIZE:
            raise ValueError(f"Pool size must be between 0 and {KEYSPACE_SIZE}, got {size}")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        self._rng = rng or random.SystemRandom()
        self._max_attempts = max_attempts
        self._minted: set[str] = set()
        self._free: deque[str] = deque()
        self._unminted: list[str] | None = None
        for _ in range(size):
            self.release(self._generate())

    @property
    def free_count(self) -> int:
        return len(self._free)

    @property
    def minted_count(self) -> int:
        return len(self._minted)

    def __contains__(self, code: object) -> bool:
        return code in self._minted

    def acquire(self) -> str:
        """Return the oldest free code, minting a new one if the queue is empty."""
        if self._free:
            return self._free.popleft()
        code = self._generate()
        logger.debug("code pool grew", minted=len(self._minted))
        return code

    def release(self, code: str) -> None:
        self._free.append(code)

    def _draw(self) -> str:
        letters = string.ascii_uppercase
        digits = string.digits
        return (
            self._rng.choice(letters)
            + self._rng.choice(digits)
            + self._rng.choice(digits)
            + self._rng.choice(letters)
        )

    def _generate(self) -> str:
        """Mint a code that has never been handed out before.

        Rejection sampling against the set of minted codes, capped at
        ``max_attempts`` draws. Hitting the cap means the keyspace is nearly
        full, so the pool switches for good to a shuffled list of the codes
        not yet minted. Only a fully minted keyspace raises.
        """
        if len(self._minted) >= KEYSPACE_SIZE:
            raise CodePoolExhaustedError("Every room code is already in use")
        if self._unminted is None:
            for _ in range(self._max_attempts):
                code = self._draw()
                if code not in self._minted:
                    self._minted.add(code)
                    return code
            self._unminted = [code for code in _all_codes() if code not in self._minted]
            self._rng.shuffle(self._unminted)
            logger.warning(
                "code sampling hit retry cap, enumerating remaining codes",
                attempts=self._max_attempts,
                remaining=len(self._unminted),
            )
        code = self._unminted.pop()
        self._minted.add(code)
        return code


def _all_codes() -> list[str]:
    letters, digits = string.ascii_uppercase, string.digits
    return ["".join(parts) for parts in itertools.product(letters, digits, digits, letters)]
