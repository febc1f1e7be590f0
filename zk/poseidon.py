"""
Poseidon-style field hash.

Width 3 permutation (capacity 1, rate 2), x^5 S-box, 8 full rounds split
around 57 partial rounds. Round constants are expanded from a fixed seed with
BLAKE2b; the MDS matrix is the Cauchy matrix 1 / (x_i + y_j).

The native hash and the in-circuit gadget share the same constants, so a
commitment computed off-circuit can be checked against a public output.

This is not circomlib's Poseidon. circomlib generates its constants with the
Grain LFSR and screens the MDS matrix against invariant subspaces; neither
step is reproduced here. Digests therefore do not match circomlib/circom
tooling, and this instance has not had the published security analysis.
The Cauchy matrix is MDS (every square submatrix is invertible) because the
x_i are distinct, the y_j are distinct and no x_i + y_j is zero.
"""

import functools
import hashlib
import logging
from typing import List, Sequence, Tuple

from .constraints import ConstraintSystem, LCLike, LinearCombination
from .field import PRIME, inverse, to_field
from .gates import mul

logger = logging.getLogger(__name__)

WIDTH = 3
RATE = 2
FULL_ROUNDS = 8
PARTIAL_ROUNDS = 57
ALPHA = 5

SEED = b"legal-zk/poseidon/bn254/t3"


@functools.lru_cache(maxsize=1)
def round_constants() -> Tuple[int, ...]:
    """WIDTH constants per round, expanded from SEED"""
    total = (FULL_ROUNDS + PARTIAL_ROUNDS) * WIDTH
    constants = []
    for i in range(total):
        digest = hashlib.blake2b(SEED + b"/ark/" + i.to_bytes(4, "big"), digest_size=64).digest()
        constants.append(int.from_bytes(digest, "big") % PRIME)
    return tuple(constants)


@functools.lru_cache(maxsize=1)
def mds_matrix() -> Tuple[Tuple[int, ...], ...]:
    # x_i = i, y_j = WIDTH + j keeps every x_i + y_j distinct and nonzero
    return tuple(
        tuple(inverse(i + WIDTH + j) for j in range(WIDTH))
        for i in range(WIDTH)
    )


def _is_full_round(r: int) -> bool:
    half = FULL_ROUNDS // 2
    return r < half or r >= half + PARTIAL_ROUNDS


def ark(state: List[int], r: int) -> List[int]:
    """Add round constants"""
    constants = round_constants()
    return [to_field(x + constants[r * WIDTH + i]) for i, x in enumerate(state)]


def sbox(state: List[int], full_round: bool) -> List[int]:
    """Apply S-box (x^5 mod p)"""
    if full_round:
        return [pow(x, ALPHA, PRIME) for x in state]
    return [pow(state[0], ALPHA, PRIME)] + state[1:]


def mix(state: List[int]) -> List[int]:
    """Apply MDS matrix multiplication"""
    matrix = mds_matrix()
    return [sum(matrix[i][j] * state[j] for j in range(WIDTH)) % PRIME for i in range(WIDTH)]


def permute(state: List[int]) -> List[int]:
    for r in range(FULL_ROUNDS + PARTIAL_ROUNDS):
        state = mix(sbox(ark(state, r), _is_full_round(r)))
    return state


def poseidon_hash(inputs: Sequence[int]) -> int:
    """Hash any number of field elements; the input count is absorbed into the capacity"""
    state = [to_field(len(inputs)), 0, 0]
    chunks = [list(inputs[i:i + RATE]) for i in range(0, len(inputs), RATE)] or [[]]
    for chunk in chunks:
        chunk = chunk + [0] * (RATE - len(chunk))
        state = [state[0], to_field(state[1] + chunk[0]), to_field(state[2] + chunk[1])]
        state = permute(state)
    return state[1]


# ----------------------------------------------------------------------------
# Gadget
# ----------------------------------------------------------------------------


def _sbox_gadget(cs: ConstraintSystem, x: LinearCombination, name: str) -> LinearCombination:
    x2 = mul(cs, x, x, f"{name}.x2")
    x4 = mul(cs, x2, x2, f"{name}.x4")
    return mul(cs, x4, x, f"{name}.x5")


def permute_gadget(cs: ConstraintSystem, state: List[LinearCombination], name: str) -> List[LinearCombination]:
    constants = round_constants()
    matrix = mds_matrix()
    for r in range(FULL_ROUNDS + PARTIAL_ROUNDS):
        with cs.namespace(f"{name}.round[{r}]"):
            state = [s + constants[r * WIDTH + i] for i, s in enumerate(state)]
            if _is_full_round(r):
                state = [_sbox_gadget(cs, s, f"sbox[{i}]") for i, s in enumerate(state)]
            else:
                state = [_sbox_gadget(cs, state[0], "sbox[0]")] + state[1:]

            mixed = []
            for i in range(WIDTH):
                lc = LinearCombination()
                for j in range(WIDTH):
                    lc = lc + state[j] * matrix[i][j]
                out = cs.alloc(f"state[{i}]", lambda lc=lc: cs.value(lc))
                cs.enforce_equal(lc, out, f"state[{i}]")
                mixed.append(out)
            state = mixed
    return state


def poseidon_gadget(cs: ConstraintSystem, inputs: Sequence[LCLike], name: str) -> LinearCombination:
    """In-circuit counterpart of poseidon_hash"""
    inputs = [LinearCombination.coerce(x) for x in inputs]
    state = [LinearCombination.constant(len(inputs)), LinearCombination(), LinearCombination()]
    chunks = [inputs[i:i + RATE] for i in range(0, len(inputs), RATE)] or [[]]
    for k, chunk in enumerate(chunks):
        chunk = list(chunk) + [LinearCombination()] * (RATE - len(chunk))
        state = [state[0], state[1] + chunk[0], state[2] + chunk[1]]
        state = permute_gadget(cs, state, f"{name}.perm[{k}]")
    return state[1]
