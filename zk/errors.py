"""
Error taxonomy for circuit evaluation and proving.

MalformedInput and OutOfRange are recoverable by resubmission.
ConstraintViolation means the witness does not satisfy the circuit.
BackendFailure is witness independent and may be retried.
"""

from typing import Optional


class ZKError(Exception):
    """Base exception for ZK operations"""
    pass


class MalformedInput(ZKError):
    """Input has the wrong shape and never reached the field layer"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class OutOfRange(ZKError):
    """Value does not fit the bit width a gate was configured for"""

    def __init__(self, message: str, label: Optional[str] = None, bits: Optional[int] = None):
        super().__init__(message)
        self.label = label
        self.bits = bits


class ConstraintViolation(ZKError):
    """Well-formed witness fails a constraint"""

    def __init__(self, message: str, label: Optional[str] = None, circuit_id: Optional[str] = None):
        super().__init__(message)
        self.label = label
        self.circuit_id = circuit_id


class CircuitCompilationError(ZKError):
    """Circuit definition is inconsistent"""
    pass


class BackendFailure(ZKError):
    """Proving or verification service failed"""
    pass


class TrustedSetupError(BackendFailure):
    """Trusted setup ceremony failed"""
    pass


class ProofGenerationError(BackendFailure):
    """Proof generation failed"""
    pass


class ProofTimeout(BackendFailure):
    """Proof generation exceeded its deadline"""
    pass
