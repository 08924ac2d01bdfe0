"""Shamir secret sharing over GF(256), one share per line of text."""

from __future__ import annotations

import re
import secrets
from collections.abc import Iterable
from functools import lru_cache

_LINE = re.compile(r"^(\d+)-(\d+)-([0-9a-fA-F]*)$")


def _build_tables() -> tuple[tuple[int, ...], tuple[int, ...]]:
    exp = [0] * 510
    log = [0] * 256
    x = 1
    for power in range(255):
        exp[power] = x
        log[x] = power
        doubled = (x << 1) ^ (0x11B if x & 0x80 else 0)
        x = doubled ^ x
    exp[255:] = exp[:255]
    return tuple(exp), tuple(log)


_EXP, _LOG = _build_tables()


def _mul(a: int, b: int) -> int:
    if a == 0 or b == 0:
        return 0
    return _EXP[_LOG[a] + _LOG[b]]


def _inv(a: int) -> int:
    return _EXP[255 - _LOG[a]]


@lru_cache(maxsize=256)
def _table(factor: int) -> bytes:
    return bytes(_mul(factor, v) for v in range(256))


def _xor(a: bytes, b: bytes) -> bytes:
    return (int.from_bytes(a, "big") ^ int.from_bytes(b, "big")).to_bytes(len(a), "big")


def split(secret: bytes, shares: int, threshold: int) -> list[str]:
    """Split bytes into share lines; any `threshold` of them rebuild the secret."""
    if not 1 <= threshold <= shares <= 255:
        raise ValueError("need 1 <= threshold <= shares <= 255")
    data = bytes(secret)
    coefficients = [data] + [secrets.token_bytes(len(data)) for _ in range(threshold - 1)]
    lines = []
    for x in range(1, shares + 1):
        acc = bytes(len(data))
        for coefficient in reversed(coefficients):
            acc = _xor(acc.translate(_table(x)), coefficient)
        lines.append(f"{threshold}-{x}-{acc.hex()}")
    return lines


def combine(lines: Iterable[str]) -> bytes:
    """Rebuild the secret from share lines produced by split."""
    points: dict[int, bytes] = {}
    threshold = None
    for raw in lines:
        text = raw.strip()
        if not text:
            continue
        match = _LINE.match(text)
        if match is None:
            raise ValueError(f"malformed share: {text!r}")
        needed, x = int(match.group(1)), int(match.group(2))
        value = bytes.fromhex(match.group(3))
        if not 1 <= x <= 255:
            raise ValueError("share index out of range")
        if threshold is None:
            threshold = needed
        elif needed != threshold:
            raise ValueError("shares come from different splits")
        if points and len(value) != len(next(iter(points.values()))):
            raise ValueError("shares have different lengths")
        if points.get(x, value) != value:
            raise ValueError("conflicting shares for the same index")
        points[x] = value
    if threshold is None or len(points) < threshold:
        raise ValueError("not enough shares to rebuild the secret")
    chosen = list(points.items())[:threshold]
    length = len(chosen[0][1])
    result = bytes(length)
    for xi, yi in chosen:
        basis = 1
        for xj, _ in chosen:
            if xj != xi:
                basis = _mul(basis, _mul(xj, _inv(xj ^ xi)))
        result = _xor(result, yi.translate(_table(basis)))
    return result