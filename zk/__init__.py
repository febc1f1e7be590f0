"""
Zero-knowledge circuit layer for legal financial computations.

Constraint system, gate library, witness generation and proof backends.
"""

from .errors import (
    ZKError,
    MalformedInput,
    OutOfRange,
    ConstraintViolation,
    CircuitCompilationError,
    BackendFailure,
    TrustedSetupError,
    ProofGenerationError,
    ProofTimeout,
)
from .constraints import ConstraintSystem, LinearCombination, Signal, Visibility, Role
from .circuit import Circuit, InputField, InputKind, Witness, WitnessGenerator
from .backend import (
    ProofBackend,
    AttestationBackend,
    SnarkjsBackend,
    ProvingKey,
    VerifyingKey,
    Proof,
    create_backend,
)
from .proofs import ZKProofSystem, ProofArtifact

__version__ = "1.0.0"

__all__ = [
    # Classes
    'ConstraintSystem',
    'LinearCombination',
    'Signal',
    'Visibility',
    'Role',
    'Circuit',
    'InputField',
    'InputKind',
    'Witness',
    'WitnessGenerator',
    'ProofBackend',
    'AttestationBackend',
    'SnarkjsBackend',
    'ProvingKey',
    'VerifyingKey',
    'Proof',
    'create_backend',
    'ZKProofSystem',
    'ProofArtifact',

    # Exceptions
    'ZKError',
    'MalformedInput',
    'OutOfRange',
    'ConstraintViolation',
    'CircuitCompilationError',
    'BackendFailure',
    'TrustedSetupError',
    'ProofGenerationError',
    'ProofTimeout',
]
