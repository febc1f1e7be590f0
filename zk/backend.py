"""
Proof backend adapters.

A backend turns a circuit's setup-mode constraint system into a key pair,
proves a materialized witness and verifies a proof against public signals.

AttestationBackend is an in-process backend for development and tests: it
re-checks the witness and signs the public signals with Ed25519. It is sound
only as far as the key holder is trusted and is not zero-knowledge.

SnarkjsBackend exports the constraint system in iden3 format and drives
snarkjs Groth16 through subprocesses.
"""

import hashlib
import json
import logging
import os
import secrets
import shutil
import subprocess
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import requests
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from .circuit import Circuit
from .constraints import ConstraintSystem
from .errors import BackendFailure, ConstraintViolation, ProofGenerationError, ProofTimeout, TrustedSetupError
from .field import PRIME
from .r1cs import assemble_values, write_r1cs, write_wtns

logger = logging.getLogger(__name__)

# Authentic Blake2b hashes from the Hermez Powers of Tau ceremony
HERMEZ_PTAU_HASHES = {
    14: "eeefbcf7c3803b523c94112023c7ff89558f9b8e0cf5d6cdcba3ade60f168af4a181c9c21774b94fbae6c90411995f7d854d02ebd93fb66043dbb06f17a831c1",
    15: "982372c867d229c236091f767e703253249a9b432c1710b4f326306bfa2428a17b06240359606cfe4d580b10a5a1f63fbed499527069c18ae17060472969ae6e",
    16: "6a6277a2f74e1073601b4f9fed6e1e55226917efb0f0db8a07d98ab01df1ccf43eb0e8c3159432acd4960e2f29fe84a4198501fa54c8dad9e43297453efec125",
    28: "55c77ce8562366c91e7cda394cf7b7c15a06c12d8c905e8b36ba9cf5e13eb37d1a429c589e8eaba4c591bc4b88a0e2828745a53e170eac300236f5c1a326f41a",
}


@dataclass
class ProvingKey:
    circuit_id: str
    version: str
    constraint_digest: str
    n_public: int
    constraint_system: ConstraintSystem
    material: Any


@dataclass(frozen=True)
class VerifyingKey:
    circuit_id: str
    version: str
    constraint_digest: str
    n_public: int
    backend: str
    material: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "circuit_id": self.circuit_id,
            "version": self.version,
            "constraint_digest": self.constraint_digest,
            "n_public": self.n_public,
            "backend": self.backend,
            "material": self.material,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerifyingKey":
        return cls(**data)


@dataclass
class Proof:
    circuit_id: str
    version: str
    backend: str
    payload: Dict[str, Any]
    public_signals: List[str]
    generation_time: float = 0.0
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "circuit_id": self.circuit_id,
            "version": self.version,
            "backend": self.backend,
            "payload": self.payload,
            "public_signals": list(self.public_signals),
            "generation_time": self.generation_time,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proof":
        return cls(**data)


def parse_public_signals(signals: Sequence[Union[str, int]]) -> Optional[List[int]]:
    """Decimal field-element strings to ints; None if any entry is not canonical"""
    parsed = []
    for signal in signals:
        if isinstance(signal, bool):
            return None
        if isinstance(signal, str):
            if not signal.isdigit() or (len(signal) > 1 and signal[0] == "0"):
                return None
            signal = int(signal)
        if not isinstance(signal, int) or not 0 <= signal < PRIME:
            return None
        parsed.append(signal)
    return parsed


class ProofBackend(ABC):
    """setup / prove / verify over a fixed circuit"""

    name: str = ""

    @abstractmethod
    def setup(self, circuit: Circuit) -> Tuple[ProvingKey, VerifyingKey]:
        pass

    @abstractmethod
    def prove(self, pk: ProvingKey, private_witness: Sequence[int],
              public_witness: Sequence[Union[str, int]]) -> Proof:
        pass

    @abstractmethod
    def verify(self, vk: VerifyingKey, public_signals: Sequence[Union[str, int]], proof: Proof) -> bool:
        pass

    def _check_witness(self, pk: ProvingKey, private_witness: Sequence[int],
                       public: List[int]) -> List[int]:
        cs = pk.constraint_system
        if len(public) != pk.n_public:
            raise ProofGenerationError(
                f"{pk.circuit_id} expects {pk.n_public} public signals, got {len(public)}")
        values = assemble_values(cs, public, private_witness)
        violated = cs.find_violation(values)
        if violated is not None:
            logger.error(f"Refusing to prove {pk.circuit_id}: constraint {violated.label} fails")
            raise ConstraintViolation(
                f"Constraint {violated.label} not satisfied in {pk.circuit_id}",
                label=violated.label,
                circuit_id=pk.circuit_id,
            )
        return values


class AttestationBackend(ProofBackend):
    """Ed25519 attestation over checked public signals"""

    name = "attestation"

    def setup(self, circuit: Circuit) -> Tuple[ProvingKey, VerifyingKey]:
        start = time.time()
        cs = circuit.constraint_system()
        digest = cs.digest()
        n_public = len(cs.public_order())

        signing_key = Ed25519PrivateKey.generate()
        public_bytes = signing_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

        pk = ProvingKey(circuit.circuit_id, circuit.version, digest, n_public, cs, signing_key)
        vk = VerifyingKey(circuit.circuit_id, circuit.version, digest, n_public, self.name, public_bytes.hex())
        logger.info(f"Attestation setup for {circuit.version} in {time.time() - start:.3f}s")
        return pk, vk

    @staticmethod
    def _message(circuit_id: str, version: str, digest: str, public: Sequence[int]) -> bytes:
        return json.dumps(
            [circuit_id, version, digest, [str(v) for v in public]],
            separators=(",", ":"),
        ).encode()

    def prove(self, pk: ProvingKey, private_witness: Sequence[int],
              public_witness: Sequence[Union[str, int]]) -> Proof:
        start = time.time()
        public = parse_public_signals(public_witness)
        if public is None:
            raise ProofGenerationError(f"Malformed public signals for {pk.circuit_id}")
        self._check_witness(pk, private_witness, public)

        signature = pk.material.sign(self._message(pk.circuit_id, pk.version, pk.constraint_digest, public))
        proof = Proof(
            circuit_id=pk.circuit_id,
            version=pk.version,
            backend=self.name,
            payload={"signature": signature.hex(), "constraint_digest": pk.constraint_digest},
            public_signals=[str(v) for v in public],
            generation_time=time.time() - start,
        )
        logger.debug(f"Attested {pk.circuit_id} in {proof.generation_time:.3f}s")
        return proof

    def verify(self, vk: VerifyingKey, public_signals: Sequence[Union[str, int]], proof: Proof) -> bool:
        if proof.backend != self.name or vk.backend != self.name:
            return False
        if proof.circuit_id != vk.circuit_id or proof.version != vk.version:
            logger.warning(f"Proof for {proof.version} presented against key {vk.version}")
            return False
        public = parse_public_signals(public_signals)
        if public is None or len(public) != vk.n_public:
            return False

        try:
            signature = bytes.fromhex(proof.payload["signature"])
            key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(vk.material))
            key.verify(signature, self._message(vk.circuit_id, vk.version, vk.constraint_digest, public))
        except (InvalidSignature, KeyError, ValueError):
            return False
        return True


class SnarkjsBackend(ProofBackend):
    """Groth16 through the snarkjs command line"""

    name = "snarkjs"

    def __init__(self, config):
        self.config = config

    # ------------------------------------------------------------------
    # Subprocess plumbing
    # ------------------------------------------------------------------

    def _command(self) -> str:
        command = shutil.which(self.config.snarkjs_command)
        if command is None:
            raise BackendFailure(f"{self.config.snarkjs_command} not found on PATH")
        return command

    def _run(self, args: List[str], timeout: int, error_cls=BackendFailure,
             stdin: Optional[str] = None) -> subprocess.CompletedProcess:
        cmd = [self._command()] + args
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout, input=stdin)
        except subprocess.TimeoutExpired as e:
            raise ProofTimeout(f"{' '.join(args[:2])} exceeded {timeout}s") from e
        except OSError as e:
            raise error_cls(f"Could not run {cmd[0]}: {e}") from e
        if result.returncode != 0:
            raise error_cls(f"{' '.join(args[:2])} failed: {result.stderr.strip() or result.stdout.strip()}")
        return result

    @staticmethod
    def _hash_file(file_path: Path) -> str:
        """Compute Blake2b hash of file"""
        h = hashlib.blake2b()
        with open(file_path, 'rb') as f:
            while chunk := f.read(8192):
                h.update(chunk)
        return h.hexdigest()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def required_power(self, cs: ConstraintSystem) -> int:
        """Smallest ptau power covering the constraints plus public inputs"""
        needed = cs.num_constraints + len(cs.public_order()) + 1
        return max(self.config.ptau_power, (needed - 1).bit_length())

    def _get_ptau(self, power: int) -> Path:
        """Get or download a Powers of Tau file and verify it"""
        setup_dir = self.config.setup_dir
        setup_dir.mkdir(parents=True, exist_ok=True)
        ptau_file = setup_dir / f"powersOfTau28_hez_final_{power}.ptau"

        if not ptau_file.exists():
            url = self.config.ptau_url.format(power=power)
            logger.info(f"Downloading Powers of Tau file (2^{power}) from {url}")
            partial = ptau_file.with_suffix(".part")
            try:
                with requests.get(url, stream=True, timeout=60) as response:
                    response.raise_for_status()
                    with open(partial, 'wb') as f:
                        for chunk in response.iter_content(chunk_size=1 << 20):
                            f.write(chunk)
            except requests.RequestException as e:
                partial.unlink(missing_ok=True)
                raise TrustedSetupError(f"Could not download Powers of Tau file: {e}") from e
            partial.rename(ptau_file)

        expected = HERMEZ_PTAU_HASHES.get(power)
        if expected is None:
            logger.warning(f"No known hash for PTAU power {power}")
        elif self._hash_file(ptau_file) != expected:
            ptau_file.unlink()
            raise TrustedSetupError(f"Powers of Tau file for 2^{power} failed hash verification")
        return ptau_file

    def setup(self, circuit: Circuit) -> Tuple[ProvingKey, VerifyingKey]:
        start = time.time()
        cs = circuit.constraint_system()
        digest = cs.digest()
        circuit_dir = self.config.build_dir / circuit.circuit_id
        circuit_dir.mkdir(parents=True, exist_ok=True)

        r1cs_file = write_r1cs(cs, circuit_dir / f"{circuit.circuit_id}.r1cs")
        ptau_file = self._get_ptau(self.required_power(cs))
        timeout = self.config.setup_timeout

        current = circuit_dir / "circuit_0000.zkey"
        self._run(['groth16', 'setup', str(r1cs_file), str(ptau_file), str(current)],
                  timeout, TrustedSetupError)

        for i in range(self.config.ceremony_participants):
            following = circuit_dir / f"circuit_{i + 1:04d}.zkey"
            self._run(['zkey', 'contribute', str(current), str(following),
                       '--name', f"Contributor_{i + 1}", '-e', secrets.token_hex(32)],
                      timeout, TrustedSetupError)
            current.unlink(missing_ok=True)
            current = following

        final_zkey = circuit_dir / f"{circuit.circuit_id}_final.zkey"
        current.rename(final_zkey)

        vkey_file = circuit_dir / "verification_key.json"
        self._run(['zkey', 'export', 'verificationkey', str(final_zkey), str(vkey_file)],
                  timeout, TrustedSetupError)
        vkey = json.loads(vkey_file.read_text())

        n_public = len(cs.public_order())
        if int(vkey.get("nPublic", n_public)) != n_public:
            raise TrustedSetupError(
                f"Verification key for {circuit.circuit_id} has {vkey.get('nPublic')} public signals, "
                f"expected {n_public}")

        pk = ProvingKey(circuit.circuit_id, circuit.version, digest, n_public, cs, str(final_zkey))
        vk = VerifyingKey(circuit.circuit_id, circuit.version, digest, n_public, self.name, vkey)
        logger.info(f"Groth16 setup for {circuit.version} in {time.time() - start:.1f}s")
        return pk, vk

    # ------------------------------------------------------------------
    # Prove / verify
    # ------------------------------------------------------------------

    def prove(self, pk: ProvingKey, private_witness: Sequence[int],
              public_witness: Sequence[Union[str, int]]) -> Proof:
        start = time.time()
        public = parse_public_signals(public_witness)
        if public is None:
            raise ProofGenerationError(f"Malformed public signals for {pk.circuit_id}")
        values = self._check_witness(pk, private_witness, public)

        with tempfile.TemporaryDirectory() as temp_dir:
            temp_path = Path(temp_dir)
            os.chmod(temp_path, 0o700)
            wtns_file = write_wtns(pk.constraint_system, values, temp_path / "witness.wtns")
            proof_file = temp_path / "proof.json"
            public_file = temp_path / "public.json"

            self._run(['groth16', 'prove', pk.material, str(wtns_file), str(proof_file), str(public_file)],
                      self.config.proof_timeout, ProofGenerationError)

            payload = json.loads(proof_file.read_text())
            produced = json.loads(public_file.read_text())

        expected = [str(v) for v in public]
        if produced != expected:
            raise ProofGenerationError(f"snarkjs public signals for {pk.circuit_id} differ from the witness")

        proof = Proof(pk.circuit_id, pk.version, self.name, payload, expected, time.time() - start)
        logger.info(f"Generated proof for {pk.circuit_id} in {proof.generation_time:.2f}s")
        return proof

    def verify(self, vk: VerifyingKey, public_signals: Sequence[Union[str, int]], proof: Proof) -> bool:
        if proof.backend != self.name or proof.version != vk.version:
            return False
        public = parse_public_signals(public_signals)
        if public is None or len(public) != vk.n_public:
            return False

        start = time.time()
        with tempfile.TemporaryDirectory() as temp_dir:
            temp_path = Path(temp_dir)
            vkey_file = temp_path / "vkey.json"
            public_file = temp_path / "public.json"
            proof_file = temp_path / "proof.json"
            vkey_file.write_text(json.dumps(vk.material))
            public_file.write_text(json.dumps([str(v) for v in public]))
            proof_file.write_text(json.dumps(proof.payload))

            cmd = [self._command(), 'groth16', 'verify', str(vkey_file), str(public_file), str(proof_file)]
            try:
                result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.config.proof_timeout)
            except subprocess.TimeoutExpired as e:
                raise ProofTimeout(f"Verification of {vk.circuit_id} exceeded {self.config.proof_timeout}s") from e

        is_valid = result.returncode == 0 and "OK!" in result.stdout
        logger.info(f"Verified {vk.circuit_id} proof in {time.time() - start:.3f}s: {is_valid}")
        return is_valid


def create_backend(config) -> ProofBackend:
    """Backend selected by ZKConfig.backend"""
    if config.backend == "attestation":
        return AttestationBackend()
    if config.backend == "snarkjs":
        return SnarkjsBackend(config)
    raise BackendFailure(f"Unknown proof backend {config.backend}")
