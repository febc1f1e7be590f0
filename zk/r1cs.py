"""
iden3 binary exports of a constraint system and witness.

Writes the .r1cs and .wtns formats read by snarkjs. Wires are numbered
[ONE, public outputs, public inputs, private inputs, intermediates] and
field elements are little-endian in standard (non-Montgomery) form.
"""

import logging
import struct
from pathlib import Path
from typing import Dict, List, Sequence, Union

from .constraints import ConstraintSystem, LinearCombination, Role, Visibility
from .errors import CircuitCompilationError
from .field import FIELD_BYTES, PRIME, to_bytes_le

logger = logging.getLogger(__name__)

R1CS_MAGIC = b"r1cs"
WTNS_MAGIC = b"wtns"
R1CS_VERSION = 1
WTNS_VERSION = 2

SECTION_HEADER = 1
SECTION_CONSTRAINTS = 2
SECTION_WIRE_LABELS = 3


def wire_map(cs: ConstraintSystem) -> Dict[int, int]:
    """Signal index -> wire id"""
    return {index: wire for wire, index in enumerate(cs.wire_order())}


def _section(kind: int, payload: bytes) -> bytes:
    return struct.pack("<IQ", kind, len(payload)) + payload


def _field_header() -> bytes:
    return struct.pack("<I", FIELD_BYTES) + PRIME.to_bytes(FIELD_BYTES, "little")


def _encode_lc(lc: LinearCombination, wires: Dict[int, int]) -> bytes:
    terms = sorted((wires[index], coeff) for index, coeff in lc.terms.items())
    out = [struct.pack("<I", len(terms))]
    for wire, coeff in terms:
        out.append(struct.pack("<I", wire))
        out.append(to_bytes_le(coeff))
    return b"".join(out)


def encode_r1cs(cs: ConstraintSystem) -> bytes:
    if cs.witness_mode:
        logger.debug(f"Exporting {cs.name} from a witness-mode system; values are ignored")
    wires = wire_map(cs)
    n_outputs = sum(1 for s in cs.signals[1:] if s.role == Role.OUTPUT)
    n_pub_in = sum(1 for s in cs.signals[1:] if s.role == Role.INPUT and s.visibility == Visibility.PUBLIC)
    n_prv_in = sum(1 for s in cs.signals[1:] if s.role == Role.INPUT and s.visibility == Visibility.PRIVATE)

    header = _field_header() + struct.pack(
        "<IIIIQI",
        cs.num_signals,
        n_outputs,
        n_pub_in,
        n_prv_in,
        cs.num_signals,
        cs.num_constraints,
    )

    constraints = b"".join(
        _encode_lc(c.a, wires) + _encode_lc(c.b, wires) + _encode_lc(c.c, wires)
        for c in cs.constraints
    )

    # Label ids are the signal indices in allocation order
    order = cs.wire_order()
    labels = b"".join(struct.pack("<Q", index) for index in order)

    return (
        R1CS_MAGIC
        + struct.pack("<II", R1CS_VERSION, 3)
        + _section(SECTION_HEADER, header)
        + _section(SECTION_CONSTRAINTS, constraints)
        + _section(SECTION_WIRE_LABELS, labels)
    )


def encode_wtns(cs: ConstraintSystem, values: Sequence[int]) -> bytes:
    """Witness values (indexed by signal) in wire order"""
    if len(values) != cs.num_signals:
        raise CircuitCompilationError(
            f"Witness has {len(values)} values for {cs.num_signals} signals")
    header = _field_header() + struct.pack("<I", cs.num_signals)
    body = b"".join(to_bytes_le(values[index]) for index in cs.wire_order())
    return (
        WTNS_MAGIC
        + struct.pack("<II", WTNS_VERSION, 2)
        + _section(1, header)
        + _section(2, body)
    )


def write_r1cs(cs: ConstraintSystem, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.write_bytes(encode_r1cs(cs))
    logger.debug(f"Wrote {path} ({cs.num_constraints} constraints)")
    return path


def write_wtns(cs: ConstraintSystem, values: Sequence[int], path: Union[str, Path]) -> Path:
    path = Path(path)
    path.write_bytes(encode_wtns(cs, values))
    return path


def assemble_values(cs: ConstraintSystem, public: Sequence[int], private: Sequence[int]) -> List[int]:
    """Rebuild a full signal-indexed assignment from public and private parts"""
    order = cs.wire_order()
    if len(public) + len(private) + 1 != len(order):
        raise CircuitCompilationError(
            f"Expected {len(order) - 1} witness values, got {len(public) + len(private)}")
    values = [0] * cs.num_signals
    for index, value in zip(order, [1] + list(public) + list(private)):
        values[index] = value % PRIME
    return values
