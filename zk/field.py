"""
Prime field arithmetic for circuit signals.

Every signal is an element of the BN254 scalar field, the field snarkjs and
circom use for Groth16 over bn128. Values are carried as plain ints in
[0, PRIME); the galois field class is used where the field itself matters:
validation, inversion and bulk constraint checks.
"""

import functools
import logging
from typing import Iterable, List

import galois
import numpy as np

from .errors import MalformedInput

logger = logging.getLogger(__name__)

# BN254 scalar field prime
PRIME = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# Multiplicative generator of the BN254 scalar field
GENERATOR = 5

# Largest representable field element interpreted as non-negative
HALF_PRIME = PRIME // 2

FIELD_BYTES = 32


@functools.lru_cache(maxsize=1)
def field_class():
    """Return the galois field class for GF(PRIME), built once"""
    gf = galois.GF(PRIME, primitive_element=GENERATOR, verify=False)
    logger.debug(f"Initialized field GF({PRIME})")
    return gf


def to_field(value: int) -> int:
    """Reduce an integer into the field"""
    return value % PRIME


def validate_element(value: int, name: str = "value") -> int:
    """Return value if it is a canonical field element, else raise MalformedInput"""
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedInput(f"{name} must be an integer, got {type(value).__name__}", field=name)
    if value < 0 or value >= PRIME:
        raise MalformedInput(f"{name} is not a canonical field element", field=name)
    return value


def inverse(value: int) -> int:
    """Multiplicative inverse; the inverse of zero is defined as zero"""
    value = to_field(value)
    if value == 0:
        return 0
    gf = field_class()
    return int(np.reciprocal(gf(value)))


def is_negative(value: int) -> bool:
    """Whether a field element encodes a negative integer (upper half of the field)"""
    return to_field(value) > HALF_PRIME


def signed(value: int) -> int:
    """Interpret a field element as a signed integer"""
    value = to_field(value)
    return value - PRIME if value > HALF_PRIME else value


def hadamard_equal(a: Iterable[int], b: Iterable[int], c: Iterable[int]) -> List[bool]:
    """Element-wise check a_i * b_i == c_i over the field"""
    a, b, c = list(a), list(b), list(c)
    if not a:
        return []
    gf = field_class()
    a_arr = gf([to_field(x) for x in a])
    b_arr = gf([to_field(x) for x in b])
    c_arr = gf([to_field(x) for x in c])
    return [bool(x) for x in np.atleast_1d(a_arr * b_arr == c_arr)]


def to_bytes_le(value: int, size: int = FIELD_BYTES) -> bytes:
    """Little-endian encoding used by the iden3 binary formats"""
    return to_field(value).to_bytes(size, "little")
