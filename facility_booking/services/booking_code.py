"""
Human-facing booking codes.

Codes are fixed-length strings over A-Z and 0-9. Uniqueness is checked by the
caller inside the booking transaction and guaranteed by a unique constraint.
"""

import logging
import secrets
import string
from typing import Callable, Optional, Protocol, Sequence

from ..core.exceptions import CodeGenerationFailedException

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


class RandomSource(Protocol):
    def choice(self, seq: Sequence[str]) -> str:
        ...


class BookingCodeGenerator:
    def __init__(self, length: int = 8, rng: Optional[RandomSource] = None):
        self.length = length
        self.rng: RandomSource = rng or secrets.SystemRandom()

    def generate(self) -> str:
        return "".join(self.rng.choice(CODE_ALPHABET) for _ in range(self.length))

    def generate_unique(self, exists: Callable[[str], bool], max_attempts: int) -> str:
        """
        Draw codes until one is not taken.

        Raises:
            CodeGenerationFailedException: After ``max_attempts`` collisions
        """
        for attempt in range(1, max_attempts + 1):
            code = self.generate()
            if not exists(code):
                return code
            logger.debug("Booking code collision on attempt %s", attempt)
        raise CodeGenerationFailedException(attempts=max_attempts)
