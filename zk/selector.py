"""
Selector and multiplexer helpers.

Conditional logic never branches: every arm is computed and the result is a
sum of indicator * value over a constrained selector group.
"""

from typing import List, Sequence

from .constraints import ConstraintSystem, LCLike, LinearCombination
from .errors import ConstraintViolation
from .gates import COMPARE_BITS, assert_boolean, greater_eq_than, is_equal, less_eq_than, mul


def select(cs: ConstraintSystem, selectors: Sequence[LCLike], values: Sequence[LCLike],
           name: str) -> LinearCombination:
    """Sum of s_i * v_i with every s_i boolean and sum(s_i) == 1"""
    if len(selectors) != len(values) or not selectors:
        raise ValueError(f"Selector group {name} needs one value per selector")
    selectors = [LinearCombination.coerce(s) for s in selectors]

    total = LinearCombination()
    for i, s in enumerate(selectors):
        assert_boolean(cs, s, f"{name}.sel[{i}]")
        total = total + s
    cs.enforce_equal(total, cs.one, f"{name}.sum")

    out = LinearCombination()
    for i, (s, v) in enumerate(zip(selectors, values)):
        out = out + mul(cs, s, v, f"{name}.arm[{i}]")
    return out


def one_hot(cs: ConstraintSystem, index: LCLike, size: int, name: str) -> List[LinearCombination]:
    """Indicators s_i = (index == i) for i in [0, size), exactly one set"""
    indicators = [is_equal(cs, index, i, f"{name}.eq[{i}]") for i in range(size)]
    total = LinearCombination()
    for s in indicators:
        total = total + s
    if cs.witness_mode and cs.value(total) != 1:
        raise ConstraintViolation(
            f"{cs.qualify(name)} is not one of {size} codes",
            label=cs.qualify(f"{name}.sum"),
            circuit_id=cs.name,
        )
    cs.enforce_equal(total, cs.one, f"{name}.sum")
    return indicators


def monotone_group(cs: ConstraintSystem, flags: Sequence[LCLike], name: str) -> List[LinearCombination]:
    """
    Cumulative indicators f_0 >= f_1 >= ... turned into a one-hot group.

    Enforces the prefix property f_{i+1} * (1 - f_i) = 0 and returns
    [1 - f_0, f_0 - f_1, ..., f_last], which sums to one.
    """
    flags = [LinearCombination.coerce(f) for f in flags]
    for i, f in enumerate(flags):
        assert_boolean(cs, f, f"{name}.flag[{i}]")
    for i in range(len(flags) - 1):
        cs.enforce(flags[i + 1], cs.one - flags[i], 0, f"{name}.prefix[{i}]")

    active = [cs.one - flags[0]] if flags else [cs.one]
    for i in range(len(flags) - 1):
        active.append(flags[i] - flags[i + 1])
    if flags:
        active.append(flags[-1])
    return active


def maximum(cs: ConstraintSystem, a: LCLike, b: LCLike, name: str,
            n: int = COMPARE_BITS) -> LinearCombination:
    ge = greater_eq_than(cs, a, b, f"{name}.ge", n)
    return select(cs, [ge, cs.one - ge], [a, b], name)


def minimum(cs: ConstraintSystem, a: LCLike, b: LCLike, name: str,
            n: int = COMPARE_BITS) -> LinearCombination:
    le = less_eq_than(cs, a, b, f"{name}.le", n)
    return select(cs, [le, cs.one - le], [a, b], name)


def clamp_max(cs: ConstraintSystem, x: LCLike, cap: int, name: str,
              n: int = COMPARE_BITS) -> LinearCombination:
    """min(x, cap) for a constant cap"""
    return minimum(cs, x, cap, name, n)


def floor_at_zero(cs: ConstraintSystem, a: LCLike, b: LCLike, name: str,
                  n: int = COMPARE_BITS) -> LinearCombination:
    """max(a - b, 0) without ever materializing a negative value"""
    ge = greater_eq_than(cs, a, b, f"{name}.ge", n)
    diff = LinearCombination.coerce(a) - LinearCombination.coerce(b)
    return select(cs, [ge, cs.one - ge], [diff, 0], name)
