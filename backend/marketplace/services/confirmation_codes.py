"""
Confirmation code generation.

Codes look like `BK-7QX2M9`: a fixed marketplace prefix plus a short
uppercase alphanumeric token (36^6 ~ 2.2e9 combinations). Collisions are
unlikely but not impossible, so every candidate is checked against existing
bookings and regenerated, up to a fixed number of attempts.
"""

import random
import secrets
import string
from typing import Awaitable, Callable, Optional

from marketplace.core.exceptions import ConfirmationCodeExhausted
from marketplace.core.logging import get_logger
from marketplace.core.metrics import confirmation_code_collisions

logger = get_logger(__name__)

ALPHABET = string.ascii_uppercase + string.digits


class ConfirmationCodeGenerator:
    def __init__(
        self,
        prefix: str = "BK-",
        length: int = 6,
        max_attempts: int = 5,
        rng: Optional[random.Random] = None,
    ):
        self.prefix = prefix
        self.length = length
        self.max_attempts = max_attempts
        # Pass a seeded random.Random for deterministic tests
        self.rng = rng or secrets.SystemRandom()

    def generate(self) -> str:
        token = "".join(self.rng.choice(ALPHABET) for _ in range(self.length))
        return f"{self.prefix}{token}"

    async def issue(self, exists: Callable[[str], Awaitable[bool]]) -> str:
        """
        Return a code for which `exists(code)` is False.

        Raises ConfirmationCodeExhausted after `max_attempts` collisions.
        """
        for attempt in range(1, self.max_attempts + 1):
            code = self.generate()
            if not await exists(code):
                return code
            confirmation_code_collisions.inc()
            logger.warning("confirmation_code_collision", code=code, attempt=attempt)

        logger.error("confirmation_code_exhausted", attempts=self.max_attempts)
        raise ConfirmationCodeExhausted()
