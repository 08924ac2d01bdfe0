"""Helpers shared by the election programs."""

from __future__ import annotations

import random
import re
import string
import sys
from collections.abc import Callable
from typing import TextIO

FILE_NAME_LENGTH = 10
INVALID_VALUE_MESSAGE = "Valor inválido\n"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_SYSTEM_RNG = random.SystemRandom()


def random_file_name(rng: random.Random | None = None) -> str:
    """Return a name of ten random lower-case letters."""
    source = rng or _SYSTEM_RNG
    return "".join(source.choice(string.ascii_lowercase) for _ in range(FILE_NAME_LENGTH))


def _leading_int(text: str) -> int | None:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else None


def ask_int(
    prompt: str,
    minimum: int,
    input_func: Callable[[], str] = input,
    output: TextIO | None = None,
) -> int:
    """Prompt until the answer starts with an integer of at least `minimum`."""
    out = sys.stdout if output is None else output
    while True:
        out.write(prompt)
        out.flush()
        value = _leading_int(input_func())
        if value is not None and value >= minimum:
            return value
        out.write(INVALID_VALUE_MESSAGE)