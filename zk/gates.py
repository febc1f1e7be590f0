"""
Primitive gate library.

Every gate takes the constraint system plus linear-combination operands and
returns linear combinations. Gates emit the same constraints in setup and
witness mode; in witness mode they additionally assign values and raise as
soon as a value cannot be represented.
"""

import logging
from typing import List, Sequence

from .constraints import ConstraintSystem, LCLike, LinearCombination
from .errors import CircuitCompilationError, ConstraintViolation, OutOfRange
from .field import PRIME, inverse, is_negative, signed

logger = logging.getLogger(__name__)

# Range of monetary amounts and counts accepted as inputs
AMOUNT_BITS = 48

# Width used by comparators; leaves room for amount * basis points
COMPARE_BITS = 64

# Widest decomposition that cannot wrap around the field
MAX_BITS = PRIME.bit_length() - 2


def _lc(value: LCLike) -> LinearCombination:
    return LinearCombination.coerce(value)


def mul(cs: ConstraintSystem, a: LCLike, b: LCLike, name: str) -> LinearCombination:
    """Product of two operands; constant operands cost no constraint"""
    a, b = _lc(a), _lc(b)
    if a.is_constant():
        return b * a.constant_value()
    if b.is_constant():
        return a * b.constant_value()
    out = cs.alloc(name, lambda: cs.value(a) * cs.value(b))
    cs.enforce(a, b, out, name)
    return out


def assert_boolean(cs: ConstraintSystem, b: LCLike, label: str) -> None:
    b = _lc(b)
    cs.enforce(b, cs.one - b, 0, f"{label}.boolean")


def alloc_boolean(cs: ConstraintSystem, name: str, value=None) -> LinearCombination:
    b = cs.alloc(name, value)
    assert_boolean(cs, b, name)
    return b


def is_zero(cs: ConstraintSystem, x: LCLike, name: str) -> LinearCombination:
    """1 if x == 0 else 0"""
    x = _lc(x)
    inv = cs.alloc(f"{name}.inv", lambda: inverse(cs.value(x)))
    out = cs.alloc(f"{name}.out", lambda: 1 if cs.value(x) == 0 else 0)
    cs.enforce(x, inv, cs.one - out, f"{name}.inv")
    cs.enforce(out, x, 0, f"{name}.out")
    return out


def is_equal(cs: ConstraintSystem, x: LCLike, y: LCLike, name: str) -> LinearCombination:
    return is_zero(cs, _lc(x) - _lc(y), name)


def fits_in_bits(cs: ConstraintSystem, x: LCLike, n: int, name: str) -> List[LinearCombination]:
    """
    Decompose x into n little-endian bits.

    Constrains 0 <= x < 2^n. In witness mode a value that does not fit raises
    OutOfRange instead of producing an unsatisfiable witness.
    """
    if n < 1 or n > MAX_BITS:
        raise CircuitCompilationError(f"Cannot decompose {name} into {n} bits")
    x = _lc(x)

    value = None
    if cs.witness_mode:
        value = cs.value(x)
        if value >> n:
            raise OutOfRange(
                f"{cs.qualify(name)} = {signed(value)} does not fit in {n} bits",
                label=cs.qualify(name),
                bits=n,
            )

    bits = []
    total = LinearCombination()
    for i in range(n):
        bit = alloc_boolean(cs, f"{name}.bit[{i}]", None if value is None else (value >> i) & 1)
        bits.append(bit)
        total = total + bit * (1 << i)
    cs.enforce_equal(total, x, f"{name}.recompose")
    return bits


def _check_operand(cs: ConstraintSystem, x: LinearCombination, n: int, name: str) -> None:
    if cs.witness_mode:
        value = cs.value(x)
        if value >> n:
            raise OutOfRange(
                f"Comparator operand {cs.qualify(name)} = {signed(value)} exceeds {n} bits",
                label=cs.qualify(name),
                bits=n,
            )


def less_than(cs: ConstraintSystem, a: LCLike, b: LCLike, name: str,
              n: int = COMPARE_BITS) -> LinearCombination:
    """1 if a < b else 0, for operands below 2^n"""
    if n + 1 > MAX_BITS:
        raise CircuitCompilationError(f"Comparator width {n} too large")
    a, b = _lc(a), _lc(b)
    _check_operand(cs, a, n, f"{name}.lhs")
    _check_operand(cs, b, n, f"{name}.rhs")
    bits = fits_in_bits(cs, a + (1 << n) - b, n + 1, name)
    return cs.one - bits[n]


def less_eq_than(cs: ConstraintSystem, a: LCLike, b: LCLike, name: str,
                 n: int = COMPARE_BITS) -> LinearCombination:
    return cs.one - less_than(cs, b, a, name, n)


def greater_than(cs: ConstraintSystem, a: LCLike, b: LCLike, name: str,
                 n: int = COMPARE_BITS) -> LinearCombination:
    return less_than(cs, b, a, name, n)


def greater_eq_than(cs: ConstraintSystem, a: LCLike, b: LCLike, name: str,
                    n: int = COMPARE_BITS) -> LinearCombination:
    return cs.one - less_than(cs, a, b, name, n)


def logical_and(cs: ConstraintSystem, a: LCLike, b: LCLike, name: str) -> LinearCombination:
    return mul(cs, a, b, name)


def logical_or(cs: ConstraintSystem, a: LCLike, b: LCLike, name: str) -> LinearCombination:
    both = mul(cs, a, b, name)
    return _lc(a) + _lc(b) - both


def logical_not(cs: ConstraintSystem, a: LCLike) -> LinearCombination:
    return cs.one - _lc(a)


def product(cs: ConstraintSystem, items: Sequence[LCLike], name: str) -> LinearCombination:
    """Running product, used to AND many booleans together"""
    if not items:
        return cs.one
    acc = _lc(items[0])
    for i, item in enumerate(items[1:], start=1):
        acc = mul(cs, acc, item, f"{name}[{i}]")
    return acc


def enforce_true(cs: ConstraintSystem, b: LCLike, label: str) -> None:
    """Hard-constrain a boolean to 1"""
    b = _lc(b)
    if cs.witness_mode and cs.value(b) != 1:
        raise ConstraintViolation(
            f"Condition {cs.qualify(label)} does not hold",
            label=cs.qualify(label),
            circuit_id=cs.name,
        )
    cs.enforce_equal(b, cs.one, label)


def enforce_non_negative(cs: ConstraintSystem, x: LCLike, name: str,
                         bits: int = AMOUNT_BITS) -> List[LinearCombination]:
    """Hard constraint 0 <= x < 2^bits; a negative value is a violation"""
    x = _lc(x)
    if cs.witness_mode and is_negative(cs.value(x)):
        raise ConstraintViolation(
            f"{cs.qualify(name)} is negative ({signed(cs.value(x))})",
            label=cs.qualify(name),
            circuit_id=cs.name,
        )
    return fits_in_bits(cs, x, bits, name)


def div_floor(cs: ConstraintSystem, num: LCLike, divisor: int, name: str,
              bits: int = COMPARE_BITS) -> LinearCombination:
    """
    floor(num / divisor) for a positive constant divisor.

    Quotient and remainder are witnessed and constrained by
    num = q * divisor + r with 0 <= r < divisor and q < 2^bits.
    """
    if divisor <= 0:
        raise CircuitCompilationError(f"Divisor for {name} must be positive")
    num = _lc(num)
    if divisor == 1:
        return num

    q = cs.hint(f"{name}.q", lambda: cs.value(num) // divisor)
    r = cs.hint(f"{name}.r", lambda: cs.value(num) % divisor)
    cs.enforce_equal(q * divisor + r, num, f"{name}.divmod")

    width = (divisor - 1).bit_length()
    fits_in_bits(cs, r, width, f"{name}.r")
    fits_in_bits(cs, (divisor - 1) - r, width, f"{name}.r_bound")
    fits_in_bits(cs, q, bits, f"{name}.q")
    return q
