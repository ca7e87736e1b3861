"""
Tests for confirmation code generation and collision handling.
"""

import random
import re

import pytest

from marketplace.core.exceptions import ConfirmationCodeExhausted
from marketplace.services.confirmation_codes import ConfirmationCodeGenerator

CODE_PATTERN = re.compile(r"^BK-[A-Z0-9]{6}$")


def test_code_format():
    codes = ConfirmationCodeGenerator(rng=random.Random(7))
    for _ in range(100):
        assert CODE_PATTERN.match(codes.generate())


@pytest.mark.asyncio
async def test_ten_thousand_codes_are_unique():
    codes = ConfirmationCodeGenerator(rng=random.Random(2026))
    issued = set()

    async def exists(code):
        return code in issued

    for _ in range(10_000):
        code = await codes.issue(exists)
        assert code not in issued
        issued.add(code)

    assert len(issued) == 10_000


@pytest.mark.asyncio
async def test_collision_is_retried():
    taken = ConfirmationCodeGenerator(rng=random.Random(99)).generate()
    codes = ConfirmationCodeGenerator(rng=random.Random(99))
    checked = []

    async def exists(code):
        checked.append(code)
        return code == taken

    code = await codes.issue(exists)
    assert code != taken
    assert checked[0] == taken
    assert len(checked) == 2


@pytest.mark.asyncio
async def test_exhaustion_after_max_attempts():
    codes = ConfirmationCodeGenerator(max_attempts=5, rng=random.Random(1))
    attempts = 0

    async def always_taken(code):
        nonlocal attempts
        attempts += 1
        return True

    with pytest.raises(ConfirmationCodeExhausted):
        await codes.issue(always_taken)
    assert attempts == 5
