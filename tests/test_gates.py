import itertools

import pytest

from zk.constraints import ConstraintSystem, LinearCombination
from zk.errors import CircuitCompilationError, ConstraintViolation, OutOfRange
from zk.field import PRIME
from zk.gates import (
    AMOUNT_BITS,
    div_floor,
    enforce_non_negative,
    enforce_true,
    fits_in_bits,
    greater_eq_than,
    greater_than,
    is_equal,
    is_zero,
    less_eq_than,
    less_than,
    logical_and,
    logical_not,
    logical_or,
    mul,
    product,
)
from zk.poseidon import (
    FULL_ROUNDS,
    PARTIAL_ROUNDS,
    WIDTH,
    mds_matrix,
    poseidon_gadget,
    poseidon_hash,
    round_constants,
)
from zk.selector import clamp_max, floor_at_zero, maximum, minimum, monotone_group, one_hot, select


def _witness(*values):
    cs = ConstraintSystem("gates", witness_mode=True)
    return cs, [cs.alloc(f"x{i}", v) for i, v in enumerate(values)]


@pytest.mark.parametrize("a,b", [(0, 0), (3, 5), (5, 3), (7, 7), (0, 2 ** 48 - 1)])
def test_comparators(a, b):
    cs, (x, y) = _witness(a, b)
    results = {
        "lt": less_than(cs, x, y, "lt"),
        "le": less_eq_than(cs, x, y, "le"),
        "gt": greater_than(cs, x, y, "gt"),
        "ge": greater_eq_than(cs, x, y, "ge"),
    }
    assert cs.value(results["lt"]) == int(a < b)
    assert cs.value(results["le"]) == int(a <= b)
    assert cs.value(results["gt"]) == int(a > b)
    assert cs.value(results["ge"]) == int(a >= b)
    cs.check()


def test_comparator_rejects_wide_operand():
    cs, (x, y) = _witness(2 ** 64, 1)
    with pytest.raises(OutOfRange) as exc:
        less_than(cs, x, y, "cmp")
    assert exc.value.bits == 64


def test_comparator_rejects_negative_operand():
    cs, (x,) = _witness(3)
    with pytest.raises(OutOfRange):
        less_than(cs, x - 5, 1, "cmp")


def test_fits_in_bits():
    cs, (x,) = _witness(2 ** AMOUNT_BITS - 1)
    bits = fits_in_bits(cs, x, AMOUNT_BITS, "x")
    assert len(bits) == AMOUNT_BITS
    cs.check()

    cs, (x,) = _witness(2 ** AMOUNT_BITS)
    with pytest.raises(OutOfRange):
        fits_in_bits(cs, x, AMOUNT_BITS, "x")

    with pytest.raises(CircuitCompilationError):
        fits_in_bits(ConstraintSystem("wide"), 0, 300, "x")


def test_fits_in_bits_is_sound_against_tampered_bits():
    cs, (x,) = _witness(5)
    fits_in_bits(cs, x, 4, "x")
    values = list(cs.values)
    values[cs.signal_index("x.bit[0]")] = 2
    assert not cs.is_satisfied(values)


@pytest.mark.parametrize("value", [0, 1, 12345])
def test_is_zero_and_is_equal(value):
    cs, (x,) = _witness(value)
    z = is_zero(cs, x, "z")
    e = is_equal(cs, x, 12345, "e")
    assert cs.value(z) == int(value == 0)
    assert cs.value(e) == int(value == 12345)
    cs.check()


def test_is_zero_rejects_forged_output():
    cs, (x,) = _witness(0)
    is_zero(cs, x, "z")
    values = list(cs.values)
    values[cs.signal_index("z.out")] = 0
    assert not cs.is_satisfied(values)


def test_logic_gates():
    cs, (a, b) = _witness(1, 0)
    assert cs.value(logical_and(cs, a, b, "and")) == 0
    assert cs.value(logical_or(cs, a, b, "or")) == 1
    assert cs.value(logical_not(cs, b)) == 1
    assert cs.value(product(cs, [a, a, logical_not(cs, b)], "all")) == 1
    cs.check()


def test_mul_by_constant_is_free():
    cs, (x,) = _witness(6)
    before = cs.num_constraints
    y = mul(cs, x, LinearCombination.constant(7), "y")
    assert cs.num_constraints == before
    assert cs.value(y) == 42


def test_enforce_true():
    cs, (flag,) = _witness(0)
    with pytest.raises(ConstraintViolation) as exc:
        enforce_true(cs, flag, "flag")
    assert exc.value.label == "flag"

    setup = ConstraintSystem("gates")
    enforce_true(setup, setup.alloc("flag"), "flag")
    assert setup.num_constraints == 1


def test_enforce_non_negative():
    cs, (a, b) = _witness(3, 10)
    with pytest.raises(ConstraintViolation):
        enforce_non_negative(cs, a - b, "diff")
    cs, (a, b) = _witness(10, 3)
    enforce_non_negative(cs, a - b, "diff")
    cs.check()


@pytest.mark.parametrize("num,divisor", [(0, 7), (99, 100), (100, 100), (123456789, 10000), (41, 1)])
def test_div_floor(num, divisor):
    cs, (x,) = _witness(num)
    q = div_floor(cs, x, divisor, "div")
    assert cs.value(q) == num // divisor
    cs.check()


def test_div_floor_rejects_off_by_one_quotient():
    cs = ConstraintSystem("gates", witness_mode=True, hints={"div.q": 12, "div.r": 5})
    x = cs.alloc("x", 123)
    div_floor(cs, x, 10, "div")
    with pytest.raises(ConstraintViolation):
        cs.check()


def test_div_floor_rejects_wrapped_remainder():
    # q one too large with r = -7 still satisfies num = q * d + r in the field
    cs = ConstraintSystem("gates", witness_mode=True, hints={"div.q": 13, "div.r": PRIME - 7})
    x = cs.alloc("x", 123)
    with pytest.raises(OutOfRange):
        div_floor(cs, x, 10, "div")


def test_select_and_one_hot():
    cs, (code,) = _witness(2)
    indicators = one_hot(cs, code, 3, "code")
    out = select(cs, indicators, [100, 200, 300], "rate")
    assert cs.value(out) == 300
    cs.check()

    cs, (code,) = _witness(3)
    with pytest.raises(ConstraintViolation):
        one_hot(cs, code, 3, "code")


def test_select_requires_exactly_one_indicator():
    cs, (s0, s1) = _witness(1, 0)
    select(cs, [s0, s1], [10, 20], "pick")
    cs.check()

    values = list(cs.values)
    values[cs.signal_index("x1")] = 1
    violated = cs.find_violation(values)
    assert violated is not None
    assert violated.label == "pick.sum"


def test_select_length_mismatch():
    cs, (s0,) = _witness(1)
    with pytest.raises(ValueError):
        select(cs, [s0], [1, 2], "pick")


def test_monotone_group():
    cs, flags = _witness(1, 1, 0)
    active = monotone_group(cs, flags, "tier")
    assert [cs.value(a) for a in active] == [0, 0, 1, 0]
    cs.check()

    cs, flags = _witness(0, 1, 0)
    monotone_group(cs, flags, "tier")
    violated = cs.find_violation()
    assert violated is not None and violated.label == "tier.prefix[0]"


@pytest.mark.parametrize("a,b", [(3, 9), (9, 3), (5, 5)])
def test_min_max_and_clamps(a, b):
    cs, (x, y) = _witness(a, b)
    assert cs.value(maximum(cs, x, y, "max")) == max(a, b)
    assert cs.value(minimum(cs, x, y, "min")) == min(a, b)
    assert cs.value(clamp_max(cs, x, 5, "clamp")) == min(a, 5)
    assert cs.value(floor_at_zero(cs, x, y, "floor")) == max(a - b, 0)
    cs.check()


def test_gates_emit_identical_shape_in_both_modes():
    def build(cs, a, b):
        x = cs.alloc("a", a)
        y = cs.alloc("b", b)
        floor_at_zero(cs, x, y, "floor")
        div_floor(cs, x, 7, "div")
        one_hot(cs, 1, 2, "code")

    setup = ConstraintSystem("shape")
    build(setup, None, None)
    witness = ConstraintSystem("shape", witness_mode=True)
    build(witness, 20, 30)
    assert setup.shape() == witness.shape()
    assert setup.digest() == witness.digest()


def test_poseidon_gadget_matches_native_hash():
    inputs = [1, 2, 3]
    cs = ConstraintSystem("hash", witness_mode=True)
    signals = [cs.alloc(f"in[{i}]", v) for i, v in enumerate(inputs)]
    out = poseidon_gadget(cs, signals, "h")
    assert cs.value(out) == poseidon_hash(inputs)
    cs.check()


def test_poseidon_hash_separates_inputs():
    assert poseidon_hash([1, 2]) != poseidon_hash([2, 1])
    assert poseidon_hash([0]) != poseidon_hash([0, 0])
    assert 0 <= poseidon_hash([]) < PRIME


def _det(rows):
    if len(rows) == 1:
        return rows[0][0] % PRIME
    total = 0
    for j, entry in enumerate(rows[0]):
        minor = [row[:j] + row[j + 1:] for row in rows[1:]]
        total += (-1) ** j * entry * _det(minor)
    return total % PRIME


def test_poseidon_mix_matrix_is_mds():
    matrix = mds_matrix()
    for size in range(1, WIDTH + 1):
        for rows in itertools.combinations(range(WIDTH), size):
            for cols in itertools.combinations(range(WIDTH), size):
                sub = [[matrix[i][j] for j in cols] for i in rows]
                assert _det(sub) != 0, (rows, cols)


def test_poseidon_round_constants():
    constants = round_constants()
    assert len(constants) == (FULL_ROUNDS + PARTIAL_ROUNDS) * WIDTH
    assert len(set(constants)) == len(constants)
    assert all(0 < c < PRIME for c in constants)
