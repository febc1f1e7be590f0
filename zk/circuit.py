"""
Circuit definition and witness generation.

A Circuit synthesizes its constraints into a ConstraintSystem. Run without
values it yields the setup-mode system that keys are bound to; run with
validated inputs it yields a witness. Both runs walk identical code, and the
witness run is rejected if its shape differs from setup.
"""

import hashlib
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, Dict, List, Optional, Tuple

from .constraints import ConstraintSystem, LinearCombination, Role, Visibility
from .errors import CircuitCompilationError, ConstraintViolation, MalformedInput, OutOfRange
from .field import validate_element
from .gates import AMOUNT_BITS, fits_in_bits

logger = logging.getLogger(__name__)


class InputKind:
    AMOUNT = "amount"      # non-negative integer, range checked to AMOUNT_BITS
    BOOLEAN = "boolean"    # 0 or 1
    CODE = "code"          # small enumeration 0..max_value
    FIELD = "field"        # arbitrary field element, e.g. an identifier or salt


@dataclass(frozen=True)
class InputField:
    name: str
    kind: str = InputKind.AMOUNT
    visibility: Visibility = Visibility.PRIVATE
    max_value: Optional[int] = None
    default: Optional[int] = None


@dataclass
class Witness:
    """Fully materialized assignment for one circuit evaluation"""
    circuit_id: str
    version: str
    values: List[int]
    public_signals: List[str]
    private_witness: List[int]
    outputs: Dict[str, int]
    generation_time: float = 0.0

    def output(self, name: str) -> int:
        return self.outputs[name]


def _canonical(value: Any) -> Any:
    if is_dataclass(value):
        return _canonical(asdict(value))
    if isinstance(value, dict):
        return {str(k): _canonical(v) for k, v in sorted(value.items())}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def policy_digest(policy: Any) -> str:
    """Content digest of an immutable policy table"""
    encoded = json.dumps(_canonical(policy), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode()).hexdigest()


class Circuit(ABC):
    """Base class for a fixed arithmetic circuit over validated integer inputs"""

    circuit_id: str = ""
    base_version: str = "1"
    inputs: Tuple[InputField, ...] = ()
    outputs: Tuple[str, ...] = ()

    def __init__(self, policy: Any = None):
        self.policy = policy
        self._setup_cs: Optional[ConstraintSystem] = None
        self._lock = threading.Lock()

    @abstractmethod
    def synthesize(self, cs: ConstraintSystem, inputs: Dict[str, LinearCombination]) -> None:
        """Emit constraints; inputs are already allocated and range checked"""

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def policy_digest(self) -> str:
        return policy_digest(self.policy) if self.policy is not None else policy_digest({})

    @property
    def version(self) -> str:
        return f"{self.circuit_id}/v{self.base_version}/{self.policy_digest[:16]}"

    def constraint_system(self) -> ConstraintSystem:
        """Setup-mode system, built once and shared read-only"""
        with self._lock:
            if self._setup_cs is None:
                start = time.time()
                cs = ConstraintSystem(self.circuit_id)
                self._build(cs, {f.name: None for f in self.inputs})
                self._setup_cs = cs
                logger.info(f"Synthesized {self.version}: {cs.num_signals} signals, "
                            f"{cs.num_constraints} constraints in {time.time() - start:.3f}s")
            return self._setup_cs

    def signals(self) -> List[Dict[str, Any]]:
        """Ordered interface signals with visibility and role"""
        return [s.to_dict() for s in self.constraint_system().interface()]

    def public_signal_names(self) -> List[str]:
        cs = self.constraint_system()
        return [cs.signals[i].name for i in cs.public_order()]

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def validate_inputs(self, raw: Dict[str, Any]) -> Dict[str, int]:
        """Shape checks that run before any field arithmetic"""
        if not isinstance(raw, dict):
            raise MalformedInput(f"Inputs for {self.circuit_id} must be a mapping")

        known = {f.name for f in self.inputs}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise MalformedInput(f"Unknown inputs for {self.circuit_id}: {', '.join(unknown)}",
                                 field=unknown[0])

        values = {}
        for entry in self.inputs:
            value = raw.get(entry.name, entry.default)
            if value is None:
                raise MalformedInput(f"Missing input {entry.name}", field=entry.name)
            values[entry.name] = self._validate_one(entry, value)
        return values

    def _validate_one(self, entry: InputField, value: Any) -> int:
        if isinstance(value, bool):
            if entry.kind != InputKind.BOOLEAN:
                raise MalformedInput(f"{entry.name} expects an integer, got a boolean", field=entry.name)
            return int(value)
        validate_element(value, entry.name)
        if entry.kind == InputKind.BOOLEAN and value not in (0, 1):
            raise MalformedInput(f"{entry.name} must be 0 or 1", field=entry.name)
        if entry.kind == InputKind.CODE and value > entry.max_value:
            raise MalformedInput(f"{entry.name} must be in [0, {entry.max_value}]", field=entry.name)
        if entry.kind == InputKind.AMOUNT and entry.max_value is not None and value > entry.max_value:
            raise OutOfRange(f"{entry.name} exceeds {entry.max_value}", label=entry.name)
        return value

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------

    def _build(self, cs: ConstraintSystem, values: Dict[str, Optional[int]]) -> None:
        allocated = {}
        for entry in self.inputs:
            lc = cs.alloc_input(entry.name, values[entry.name], entry.visibility)
            if entry.kind == InputKind.AMOUNT:
                fits_in_bits(cs, lc, AMOUNT_BITS, f"{entry.name}.range")
            elif entry.kind == InputKind.BOOLEAN:
                cs.enforce(lc, cs.one - lc, 0, f"{entry.name}.boolean")
            allocated[entry.name] = lc
        self.synthesize(cs, allocated)

        produced = tuple(s.name for s in cs.signals if s.role == Role.OUTPUT)
        if self.outputs and produced != self.outputs:
            raise CircuitCompilationError(
                f"{self.circuit_id} produced outputs {produced}, declared {self.outputs}")

    def evaluate(self, inputs: Dict[str, Any], hints: Optional[Dict[str, int]] = None) -> Witness:
        """Validate inputs, walk the circuit in witness mode and check every constraint"""
        start = time.time()
        values = self.validate_inputs(inputs)
        setup = self.constraint_system()

        cs = ConstraintSystem(self.circuit_id, witness_mode=True, hints=hints)
        try:
            self._build(cs, values)
            if cs.shape() != setup.shape():
                raise CircuitCompilationError(
                    f"Witness shape {cs.shape()} differs from setup shape {setup.shape()} "
                    f"for {self.circuit_id}")
            cs.check()
        except ConstraintViolation as e:
            logger.error(f"Constraint violation in {self.circuit_id} at {e.label}: {e}")
            raise

        public = [cs.values[i] for i in cs.public_order()]
        outputs = {
            s.name: cs.values[s.index]
            for s in cs.signals if s.role == Role.OUTPUT
        }
        witness = Witness(
            circuit_id=self.circuit_id,
            version=self.version,
            values=list(cs.values),
            public_signals=[str(v) for v in public],
            private_witness=[cs.values[i] for i in cs.private_order()],
            outputs=outputs,
            generation_time=time.time() - start,
        )
        logger.debug(f"Witness for {self.circuit_id} generated in {witness.generation_time:.3f}s")
        return witness


@dataclass
class WitnessGenerator:
    """Registry front-end that evaluates circuits by id"""
    circuits: Dict[str, Circuit] = field(default_factory=dict)

    def register(self, circuit: Circuit) -> Circuit:
        if circuit.circuit_id in self.circuits:
            raise CircuitCompilationError(f"Circuit {circuit.circuit_id} registered twice")
        self.circuits[circuit.circuit_id] = circuit
        return circuit

    def get(self, circuit_id: str) -> Circuit:
        try:
            return self.circuits[circuit_id]
        except KeyError:
            raise MalformedInput(f"Unknown circuit {circuit_id}", field="circuit") from None

    def generate(self, circuit_id: str, inputs: Dict[str, Any],
                 hints: Optional[Dict[str, int]] = None) -> Witness:
        return self.get(circuit_id).evaluate(inputs, hints)
