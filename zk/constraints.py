"""
Signal and constraint layer.

A ConstraintSystem collects signals and rank-1 constraints A * B = C over
linear combinations of signals. The same synthesis code runs in two modes:

- setup mode: only the shape (signals and constraints) is recorded. This is
  what a proving backend compiles and what keys are bound to.
- witness mode: every signal also receives a value, computed as the circuit
  is walked. Values are single-assignment.

Index 0 is the constant ONE signal.
"""

import hashlib
import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from .errors import CircuitCompilationError, ConstraintViolation
from .field import PRIME, hadamard_equal, to_field

logger = logging.getLogger(__name__)


class Visibility(Enum):
    PRIVATE = "private"
    PUBLIC = "public"


class Role(Enum):
    INPUT = "input"
    INTERMEDIATE = "intermediate"
    OUTPUT = "output"


@dataclass(frozen=True)
class Signal:
    """Named field element slot in the witness vector"""
    index: int
    name: str
    visibility: Visibility
    role: Role

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "visibility": self.visibility.value,
            "role": self.role.value,
        }


class LinearCombination:
    """Sum of coeff * signal terms; the constant term lives on signal 0"""

    __slots__ = ("terms",)

    def __init__(self, terms: Optional[Dict[int, int]] = None):
        self.terms: Dict[int, int] = {}
        if terms:
            for index, coeff in terms.items():
                coeff = to_field(coeff)
                if coeff:
                    self.terms[index] = coeff

    @classmethod
    def constant(cls, value: int) -> "LinearCombination":
        return cls({0: value})

    @classmethod
    def variable(cls, index: int) -> "LinearCombination":
        return cls({index: 1})

    @staticmethod
    def coerce(value: "LCLike") -> "LinearCombination":
        if isinstance(value, LinearCombination):
            return value
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Cannot use {type(value).__name__} in a linear combination")
        return LinearCombination.constant(value)

    def is_constant(self) -> bool:
        return all(index == 0 for index in self.terms)

    def constant_value(self) -> int:
        return self.terms.get(0, 0)

    def evaluate(self, values: List[Optional[int]]) -> int:
        total = 0
        for index, coeff in self.terms.items():
            value = values[index]
            if value is None:
                raise CircuitCompilationError(f"Signal {index} read before assignment")
            total += coeff * value
        return total % PRIME

    def __add__(self, other: "LCLike") -> "LinearCombination":
        other = LinearCombination.coerce(other)
        terms = dict(self.terms)
        for index, coeff in other.terms.items():
            terms[index] = terms.get(index, 0) + coeff
        return LinearCombination(terms)

    __radd__ = __add__

    def __neg__(self) -> "LinearCombination":
        return LinearCombination({index: -coeff for index, coeff in self.terms.items()})

    def __sub__(self, other: "LCLike") -> "LinearCombination":
        return self + (-LinearCombination.coerce(other))

    def __rsub__(self, other: "LCLike") -> "LinearCombination":
        return LinearCombination.coerce(other) + (-self)

    def __mul__(self, scalar: int) -> "LinearCombination":
        if isinstance(scalar, LinearCombination):
            raise TypeError("Product of two signals needs a constraint; use gates.mul")
        return LinearCombination({index: coeff * scalar for index, coeff in self.terms.items()})

    __rmul__ = __mul__

    def serialize(self) -> List[List[int]]:
        return [[index, coeff] for index, coeff in sorted(self.terms.items())]

    def __repr__(self) -> str:
        parts = [f"{coeff}*s{index}" if index else str(coeff) for index, coeff in sorted(self.terms.items())]
        return "LC(" + " + ".join(parts or ["0"]) + ")"


LCLike = Union[LinearCombination, int]


@dataclass(frozen=True)
class Constraint:
    """a * b = c"""
    a: LinearCombination
    b: LinearCombination
    c: LinearCombination
    label: str

    def serialize(self) -> List[Any]:
        return [self.a.serialize(), self.b.serialize(), self.c.serialize()]


class ConstraintSystem:
    """Builder for signals and constraints, optionally carrying a witness"""

    def __init__(self, name: str, witness_mode: bool = False, hints: Optional[Dict[str, int]] = None):
        self.name = name
        self.signals: List[Signal] = [Signal(0, "ONE", Visibility.PUBLIC, Role.INPUT)]
        self.constraints: List[Constraint] = []
        self.values: Optional[List[Optional[int]]] = [1] if witness_mode else None
        self.hint_overrides: Dict[str, int] = dict(hints or {})
        self._names: Dict[str, int] = {"ONE": 0}
        self._prefix: List[str] = []

    # ------------------------------------------------------------------
    # Naming
    # ------------------------------------------------------------------

    @property
    def witness_mode(self) -> bool:
        return self.values is not None

    @property
    def one(self) -> LinearCombination:
        return LinearCombination.variable(0)

    @contextmanager
    def namespace(self, name: str) -> Iterator[None]:
        self._prefix.append(name)
        try:
            yield
        finally:
            self._prefix.pop()

    def qualify(self, name: str) -> str:
        return ".".join(self._prefix + [name])

    def _unique(self, name: str) -> str:
        if name not in self._names:
            return name
        suffix = 2
        while f"{name}~{suffix}" in self._names:
            suffix += 1
        return f"{name}~{suffix}"

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def alloc(
        self,
        name: str,
        value: Union[int, Callable[[], int], None] = None,
        visibility: Visibility = Visibility.PRIVATE,
        role: Role = Role.INTERMEDIATE,
    ) -> LinearCombination:
        """Allocate a signal; value is an int or a thunk, used only in witness mode"""
        full_name = self._unique(self.qualify(name))
        index = len(self.signals)
        self.signals.append(Signal(index, full_name, visibility, role))
        self._names[full_name] = index

        if self.values is not None:
            if callable(value):
                value = value()
            if value is None:
                raise CircuitCompilationError(f"No witness value for signal {full_name}")
            self.values.append(to_field(value))

        return LinearCombination.variable(index)

    def alloc_input(self, name: str, value: Optional[int], visibility: Visibility) -> LinearCombination:
        return self.alloc(name, value, visibility=visibility, role=Role.INPUT)

    def alloc_output(self, name: str, source: LCLike) -> LinearCombination:
        """Expose a linear combination as a public output signal"""
        source = LinearCombination.coerce(source)
        if self.qualify(name) in self._names:
            raise CircuitCompilationError(
                f"Output {self.qualify(name)} collides with an existing signal in {self.name}")
        out = self.alloc(name, lambda: self.value(source), visibility=Visibility.PUBLIC, role=Role.OUTPUT)
        self.enforce(source, self.one, out, f"{name}.output")
        return out

    def hint(self, name: str, compute: Callable[[], int]) -> LinearCombination:
        """Non-deterministic witness assignment; the caller must constrain it"""
        qualified = self.qualify(name)
        if self.values is not None and qualified in self.hint_overrides:
            forced = self.hint_overrides[qualified]
            logger.debug(f"Hint {qualified} overridden with {forced}")
            return self.alloc(name, forced)
        return self.alloc(name, compute)

    # ------------------------------------------------------------------
    # Constraints and values
    # ------------------------------------------------------------------

    def enforce(self, a: LCLike, b: LCLike, c: LCLike, label: str) -> None:
        self.constraints.append(Constraint(
            LinearCombination.coerce(a),
            LinearCombination.coerce(b),
            LinearCombination.coerce(c),
            self.qualify(label),
        ))

    def enforce_equal(self, a: LCLike, b: LCLike, label: str) -> None:
        self.enforce(a, self.one, b, label)

    def value(self, lc: LCLike) -> int:
        if self.values is None:
            raise CircuitCompilationError("Signal values are only available in witness mode")
        return LinearCombination.coerce(lc).evaluate(self.values)

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    @property
    def num_signals(self) -> int:
        return len(self.signals)

    @property
    def num_constraints(self) -> int:
        return len(self.constraints)

    def signal_index(self, name: str) -> int:
        try:
            return self._names[name]
        except KeyError:
            raise KeyError(f"Unknown signal {name} in {self.name}") from None

    def public_order(self) -> List[int]:
        """Public wire order: outputs first, then public inputs"""
        outputs = [s.index for s in self.signals[1:] if s.role == Role.OUTPUT]
        inputs = [s.index for s in self.signals[1:]
                  if s.role == Role.INPUT and s.visibility == Visibility.PUBLIC]
        return outputs + inputs

    def private_order(self) -> List[int]:
        """Private wire order: private inputs first, then intermediates"""
        inputs = [s.index for s in self.signals[1:]
                  if s.role == Role.INPUT and s.visibility == Visibility.PRIVATE]
        rest = [s.index for s in self.signals[1:] if s.role == Role.INTERMEDIATE]
        return inputs + rest

    def wire_order(self) -> List[int]:
        return [0] + self.public_order() + self.private_order()

    def interface(self) -> List[Signal]:
        """Ordered input/output signals, the circuit's external interface"""
        return [s for s in self.signals[1:] if s.role != Role.INTERMEDIATE]

    def shape(self) -> Tuple[int, int, int]:
        return self.num_signals, self.num_constraints, len(self.public_order())

    def digest(self) -> str:
        """Content hash over signal layout and constraints"""
        h = hashlib.sha256()
        h.update(self.name.encode())
        for signal in self.signals:
            h.update(f"{signal.name}|{signal.visibility.value}|{signal.role.value};".encode())
        for constraint in self.constraints:
            h.update(json.dumps(constraint.serialize(), separators=(",", ":")).encode())
        return h.hexdigest()

    # ------------------------------------------------------------------
    # Satisfaction
    # ------------------------------------------------------------------

    def find_violation(self, values: Optional[List[int]] = None) -> Optional[Constraint]:
        """First constraint not satisfied by values, or None"""
        values = self.values if values is None else values
        if values is None:
            raise CircuitCompilationError("No witness to check")
        if len(values) != len(self.signals):
            raise CircuitCompilationError(
                f"Witness has {len(values)} values for {len(self.signals)} signals")

        a_vals = [c.a.evaluate(values) for c in self.constraints]
        b_vals = [c.b.evaluate(values) for c in self.constraints]
        c_vals = [c.c.evaluate(values) for c in self.constraints]
        for constraint, ok in zip(self.constraints, hadamard_equal(a_vals, b_vals, c_vals)):
            if not ok:
                return constraint
        return None

    def is_satisfied(self, values: Optional[List[int]] = None) -> bool:
        return self.find_violation(values) is None

    def check(self) -> None:
        violated = self.find_violation()
        if violated is not None:
            raise ConstraintViolation(
                f"Constraint {violated.label} not satisfied in {self.name}",
                label=violated.label,
                circuit_id=self.name,
            )
