"""Leveled BFV homomorphic encryption over Z_q[x]/(x^n + 1).

Plaintexts are integers modulo the plain modulus, stored in the constant
coefficient. Ciphertexts can be added and multiplied; a product grows by one
component and can still be decrypted, because no relinearization is done.
"""

from __future__ import annotations

import math
import random
import struct
from dataclasses import dataclass

POLY_MODULUS_DEGREE = 4096
PLAIN_MODULUS = 1024
_DEFAULT_PRIMES = (0xFFFFEE001, 0xFFFFC4001, 0x1FFFFE0001)
_NOISE_SIGMA = 3.2
_NOISE_BOUND = 19

_RNG = random.SystemRandom()
_HEADER = struct.Struct(">4sIQIH")

Poly = tuple[int, ...]


@dataclass(frozen=True)
class Parameters:
    """Encryption parameters: ring degree n, coefficient modulus q, plain modulus t."""

    poly_modulus_degree: int
    coeff_modulus: int
    plain_modulus: int

    def __post_init__(self) -> None:
        n = self.poly_modulus_degree
        if n < 2 or n & (n - 1):
            raise ValueError("poly_modulus_degree must be a power of two")
        if self.plain_modulus < 2:
            raise ValueError("plain_modulus must be at least 2")
        if self.coeff_modulus <= self.plain_modulus:
            raise ValueError("coeff_modulus must exceed plain_modulus")

    @property
    def delta(self) -> int:
        return self.coeff_modulus // self.plain_modulus


def default_parameters() -> Parameters:
    """The election parameters: degree 4096, plain modulus 1024."""
    return Parameters(POLY_MODULUS_DEGREE, math.prod(_DEFAULT_PRIMES), PLAIN_MODULUS)


def _check_polys(params: Parameters, polys: tuple[Poly, ...]) -> None:
    q = params.coeff_modulus
    for poly in polys:
        if len(poly) != params.poly_modulus_degree:
            raise ValueError("polynomial has the wrong degree")
        if any(c < 0 or c >= q for c in poly):
            raise ValueError("coefficient out of range")


def _encode(magic: bytes, params: Parameters, polys: tuple[Poly, ...]) -> bytes:
    q = params.coeff_modulus
    width = (q.bit_length() + 7) // 8
    head = _HEADER.pack(magic, params.poly_modulus_degree, params.plain_modulus, len(polys), width)
    body = b"".join(c.to_bytes(width, "big") for poly in polys for c in poly)
    return head + q.to_bytes(width, "big") + body


def _decode(magic: bytes, data: bytes) -> tuple[Parameters, tuple[Poly, ...]]:
    if len(data) < _HEADER.size:
        raise ValueError("data is truncated")
    found, n, t, count, width = _HEADER.unpack_from(data)
    if found != magic:
        raise ValueError("data does not hold the expected object")
    if width == 0:
        raise ValueError("invalid coefficient width")
    offset = _HEADER.size
    if len(data) != offset + width + count * n * width:
        raise ValueError("data has the wrong length")
    q = int.from_bytes(data[offset:offset + width], "big")
    params = Parameters(n, q, t)
    raw = memoryview(data)[offset + width:]
    coeffs = [int.from_bytes(raw[k:k + width], "big") for k in range(0, len(raw), width)]
    polys = tuple(tuple(coeffs[k * n:(k + 1) * n]) for k in range(count))
    _check_polys(params, polys)
    return params, polys


@dataclass(frozen=True)
class PublicKey:
    params: Parameters
    polys: tuple[Poly, Poly]

    def __post_init__(self) -> None:
        if len(self.polys) != 2:
            raise ValueError("a public key has two polynomials")
        _check_polys(self.params, self.polys)

    def to_bytes(self) -> bytes:
        return _encode(b"HVPK", self.params, self.polys)

    @classmethod
    def from_bytes(cls, data: bytes) -> PublicKey:
        params, polys = _decode(b"HVPK", bytes(data))
        return cls(params, polys)


@dataclass(frozen=True)
class SecretKey:
    params: Parameters
    poly: Poly

    def __post_init__(self) -> None:
        _check_polys(self.params, (self.poly,))

    def to_bytes(self) -> bytes:
        return _encode(b"HVSK", self.params, (self.poly,))

    @classmethod
    def from_bytes(cls, data: bytes) -> SecretKey:
        params, polys = _decode(b"HVSK", bytes(data))
        if len(polys) != 1:
            raise ValueError("a secret key has one polynomial")
        return cls(params, polys[0])


@dataclass(frozen=True)
class Ciphertext:
    params: Parameters
    polys: tuple[Poly, ...]

    def __post_init__(self) -> None:
        if len(self.polys) < 2:
            raise ValueError("a ciphertext has at least two polynomials")
        _check_polys(self.params, self.polys)

    @property
    def size(self) -> int:
        return len(self.polys)

    def to_bytes(self) -> bytes:
        return _encode(b"HVCT", self.params, self.polys)

    @classmethod
    def from_bytes(cls, data: bytes) -> Ciphertext:
        params, polys = _decode(b"HVCT", bytes(data))
        return cls(params, polys)


def to_hex(value: int) -> str:
    """Write a non-negative integer as a lower-case hexadecimal string."""
    if value < 0:
        raise ValueError("value must not be negative")
    return format(value, "x")


def from_hex(text: str) -> int:
    """Read a hexadecimal string, in either case, as an integer."""
    cleaned = text.strip()
    if not cleaned or any(ch not in "0123456789abcdefABCDEF" for ch in cleaned):
        raise ValueError(f"not a hexadecimal number: {text!r}")
    return int(cleaned, 16)


def _pack(coeffs: list[int], width: int) -> int:
    return int.from_bytes(b"".join(c.to_bytes(width, "little") for c in coeffs), "little")


def _negacyclic_unsigned(a: list[int], b: list[int], n: int) -> list[int]:
    """Product of two non-negative polynomials modulo x^n + 1, over the integers."""
    if not any(a) or not any(b):
        return [0] * n
    width = (max(a).bit_length() + max(b).bit_length() + n.bit_length()) // 8 + 1
    product = _pack(a, width) * _pack(b, width)
    raw = product.to_bytes(2 * n * width, "little")
    full = [int.from_bytes(raw[k:k + width], "little") for k in range(0, len(raw), width)]
    return [low - high for low, high in zip(full[:n], full[n:])]


def _negacyclic_signed(a: list[int], b: list[int], n: int) -> list[int]:
    a_pos = [max(c, 0) for c in a]
    a_neg = [max(-c, 0) for c in a]
    b_pos = [max(c, 0) for c in b]
    b_neg = [max(-c, 0) for c in b]
    terms = (
        _negacyclic_unsigned(a_pos, b_pos, n),
        _negacyclic_unsigned(a_pos, b_neg, n),
        _negacyclic_unsigned(a_neg, b_pos, n),
        _negacyclic_unsigned(a_neg, b_neg, n),
    )
    return [pp - pn - np_ + nn for pp, pn, np_, nn in zip(*terms)]


def _mul_mod(a: Poly, b: Poly, params: Parameters) -> Poly:
    q = params.coeff_modulus
    return tuple(c % q for c in _negacyclic_unsigned(list(a), list(b), params.poly_modulus_degree))


def _add_mod(a: Poly, b: Poly, q: int) -> Poly:
    return tuple((x + y) % q for x, y in zip(a, b))


def _centered(poly: Poly, q: int) -> list[int]:
    half = q // 2
    return [c - q if c > half else c for c in poly]


def _ternary(params: Parameters) -> Poly:
    q = params.coeff_modulus
    return tuple((_RNG.randrange(3) - 1) % q for _ in range(params.poly_modulus_degree))


def _noise(params: Parameters) -> Poly:
    q = params.coeff_modulus
    return tuple(
        max(-_NOISE_BOUND, min(_NOISE_BOUND, round(_RNG.gauss(0.0, _NOISE_SIGMA)))) % q
        for _ in range(params.poly_modulus_degree)
    )


def generate_keys(params: Parameters | None = None) -> tuple[PublicKey, SecretKey]:
    """Generate a fresh public and secret key pair."""
    params = params or default_parameters()
    q = params.coeff_modulus
    secret_poly = _ternary(params)
    a = tuple(_RNG.randrange(q) for _ in range(params.poly_modulus_degree))
    a_s = _mul_mod(a, secret_poly, params)
    p0 = tuple((-(x + e)) % q for x, e in zip(a_s, _noise(params)))
    return PublicKey(params, (p0, a)), SecretKey(params, secret_poly)


def encrypt(public_key: PublicKey, value: int) -> Ciphertext:
    """Encrypt an integer in [0, plain_modulus)."""
    params = public_key.params
    if not 0 <= value < params.plain_modulus:
        raise ValueError("value is not valid for the plain modulus")
    q = params.coeff_modulus
    u = _ternary(params)
    p0, p1 = public_key.polys
    c0 = list(_add_mod(_mul_mod(p0, u, params), _noise(params), q))
    c0[0] = (c0[0] + params.delta * value) % q
    c1 = _add_mod(_mul_mod(p1, u, params), _noise(params), q)
    return Ciphertext(params, (tuple(c0), c1))


def decrypt(secret_key: SecretKey, ciphertext: Ciphertext) -> int:
    """Decrypt a ciphertext of any size to its integer value."""
    params = secret_key.params
    if ciphertext.params != params:
        raise ValueError("ciphertext and key use different parameters")
    q, t = params.coeff_modulus, params.plain_modulus
    acc = ciphertext.polys[-1]
    for poly in reversed(ciphertext.polys[:-1]):
        acc = _add_mod(_mul_mod(acc, secret_key.poly, params), poly, q)
    return ((t * acc[0] + q // 2) // q) % t


def add(a: Ciphertext, b: Ciphertext) -> Ciphertext:
    """Homomorphic sum; the result has the size of the larger operand."""
    if a.params != b.params:
        raise ValueError("ciphertexts use different parameters")
    q = a.params.coeff_modulus
    zero = (0,) * a.params.poly_modulus_degree
    size = max(a.size, b.size)
    left = a.polys + (zero,) * (size - a.size)
    right = b.polys + (zero,) * (size - b.size)
    return Ciphertext(a.params, tuple(_add_mod(x, y, q) for x, y in zip(left, right)))


def multiply(a: Ciphertext, b: Ciphertext) -> Ciphertext:
    """Homomorphic product, without relinearization."""
    if a.params != b.params:
        raise ValueError("ciphertexts use different parameters")
    params = a.params
    q, t, n = params.coeff_modulus, params.plain_modulus, params.poly_modulus_degree
    left = [_centered(p, q) for p in a.polys]
    right = [_centered(p, q) for p in b.polys]
    tensor = [[0] * n for _ in range(a.size + b.size - 1)]
    for i, x in enumerate(left):
        for j, y in enumerate(right):
            product = _negacyclic_signed(x, y, n)
            tensor[i + j] = [acc + c for acc, c in zip(tensor[i + j], product)]
    scaled = tuple(tuple(((2 * t * c + q) // (2 * q)) % q for c in poly) for poly in tensor)
    return Ciphertext(params, scaled)