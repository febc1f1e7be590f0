"""
Proof service: witness generation and proving off the event loop, with
bounded concurrency, per-request timeouts and retries for backend failures.
"""

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from config.config import ZKConfig
from utils.utils import PerformanceMonitor

from .backend import Proof, ProofBackend, ProvingKey, VerifyingKey, create_backend
from .circuit import Circuit, Witness, WitnessGenerator
from .errors import BackendFailure, ProofTimeout

logger = logging.getLogger(__name__)


@dataclass
class ProofArtifact:
    """Proof together with the decoded public outputs it attests"""
    proof: Proof
    outputs: Dict[str, int]
    witness_time: float
    proving_time: float

    @property
    def public_signals(self) -> List[str]:
        return self.proof.public_signals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proof": self.proof.to_dict(),
            "outputs": self.outputs,
            "witness_time": self.witness_time,
            "proving_time": self.proving_time,
        }


class ZKProofSystem:
    """Setup, prove and verify across all registered circuits"""

    def __init__(self, config: Optional[ZKConfig] = None, circuits: Optional[Dict[str, Circuit]] = None,
                 backend: Optional[ProofBackend] = None, monitor: Optional[PerformanceMonitor] = None):
        self.config = config or ZKConfig()
        self.backend = backend or create_backend(self.config)
        self.monitor = monitor or PerformanceMonitor()
        self.generator = WitnessGenerator()
        for circuit in (circuits or {}).values():
            self.generator.register(circuit)

        self._keys: Dict[str, Tuple[ProvingKey, VerifyingKey]] = {}
        self._keys_lock = threading.Lock()
        self._setup_locks: Dict[str, threading.Lock] = {}
        self._executor = ThreadPoolExecutor(max_workers=self.config.parallel_workers)
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._semaphore_loop = None

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def _setup_lock(self, circuit_id: str) -> threading.Lock:
        with self._keys_lock:
            return self._setup_locks.setdefault(circuit_id, threading.Lock())

    def _key_pair(self, circuit_id: str) -> Tuple[ProvingKey, VerifyingKey]:
        """Cached keys for one circuit; only that circuit's setup is serialized"""
        circuit = self.generator.get(circuit_id)
        with self._setup_lock(circuit_id):
            cached = self._keys.get(circuit_id)
            if cached is not None and cached[0].version == circuit.version:
                return cached
            with self.monitor.start_operation(f"setup:{circuit_id}"):
                pair = self.backend.setup(circuit)
            self._keys[circuit_id] = pair
            return pair

    def setup(self, circuit_id: str) -> VerifyingKey:
        """Run (or reuse) the backend setup for one circuit"""
        return self._key_pair(circuit_id)[1]

    def verifying_key(self, circuit_id: str) -> VerifyingKey:
        return self.setup(circuit_id)

    async def initialize(self, circuit_ids: Optional[Sequence[str]] = None) -> Dict[str, VerifyingKey]:
        """Set up every circuit concurrently"""
        ids = list(circuit_ids or self.generator.circuits)
        logger.info(f"Initializing {len(ids)} circuits with the {self.backend.name} backend")
        loop = asyncio.get_running_loop()
        keys = await asyncio.gather(*(
            loop.run_in_executor(self._executor, self.setup, circuit_id) for circuit_id in ids
        ))
        return dict(zip(ids, keys))

    # ------------------------------------------------------------------
    # Proving
    # ------------------------------------------------------------------

    def generate_witness(self, circuit_id: str, inputs: Dict[str, Any],
                         hints: Optional[Dict[str, int]] = None) -> Witness:
        with self.monitor.start_operation(f"witness:{circuit_id}"):
            return self.generator.generate(circuit_id, inputs, hints)

    def prove_sync(self, circuit_id: str, inputs: Dict[str, Any],
                   hints: Optional[Dict[str, int]] = None) -> ProofArtifact:
        # The witness is complete before the backend sees it
        witness = self.generate_witness(circuit_id, inputs, hints)

        pk, _ = self._key_pair(circuit_id)
        if pk.version != witness.version:
            raise BackendFailure(f"Proving key {pk.version} does not match circuit {witness.version}")

        start = time.time()
        with self.monitor.start_operation(f"prove:{circuit_id}"):
            proof = self.backend.prove(pk, witness.private_witness, witness.public_signals)
        return ProofArtifact(proof, witness.outputs, witness.generation_time, time.time() - start)

    def _get_semaphore(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(self.config.max_concurrent_proofs)
            self._semaphore_loop = loop
        return self._semaphore

    @staticmethod
    async def _drain(circuit_id: str, future: "asyncio.Future") -> None:
        """Wait out an attempt that already timed out and discard its result"""
        await asyncio.wait({future})
        error = future.exception()
        if error is not None:
            logger.warning(f"Timed-out attempt for {circuit_id} finished with "
                           f"{type(error).__name__}: {error}")
        else:
            logger.warning(f"Timed-out attempt for {circuit_id} finished late; result discarded")

    async def prove(self, circuit_id: str, inputs: Dict[str, Any],
                    hints: Optional[Dict[str, int]] = None) -> ProofArtifact:
        """
        Prove one request.

        Input and constraint errors are deterministic and raised immediately.
        BackendFailure (including timeouts) is retried with exponential backoff.
        A timed-out attempt is awaited before the next one starts, so a request
        never holds more than one prover; the snarkjs backend bounds that wait
        with its own subprocess timeout.
        """
        loop = asyncio.get_running_loop()
        attempts = self.config.max_retries + 1
        last_error: Optional[BackendFailure] = None

        async with self._get_semaphore():
            for attempt in range(attempts):
                future = loop.run_in_executor(self._executor, self.prove_sync, circuit_id, inputs, hints)
                done, _ = await asyncio.wait({future}, timeout=self.config.proof_timeout)
                if future in done:
                    try:
                        return future.result()
                    except BackendFailure as e:
                        last_error = e
                else:
                    last_error = ProofTimeout(
                        f"Proving {circuit_id} exceeded {self.config.proof_timeout}s")
                    # Worker threads cannot be interrupted; one attempt runs at a time
                    await self._drain(circuit_id, future)

                if attempt + 1 < attempts:
                    delay = self.config.retry_backoff * (2 ** attempt)
                    logger.warning(f"Attempt {attempt + 1}/{attempts} for {circuit_id} failed: "
                                   f"{last_error}; retrying in {delay:.2f}s")
                    await asyncio.sleep(delay)

        logger.error(f"Giving up on {circuit_id} after {attempts} attempts: {last_error}")
        raise last_error

    async def prove_many(self, requests: Sequence[Tuple[str, Dict[str, Any]]]
                         ) -> List[Union[ProofArtifact, Exception]]:
        """Prove unrelated requests in parallel; failures are returned in place"""
        return await asyncio.gather(
            *(self.prove(circuit_id, inputs) for circuit_id, inputs in requests),
            return_exceptions=True,
        )

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_sync(self, proof: Proof, public_signals: Optional[Sequence[Union[str, int]]] = None,
                    vk: Optional[VerifyingKey] = None) -> bool:
        vk = vk or self.verifying_key(proof.circuit_id)
        signals = proof.public_signals if public_signals is None else public_signals
        with self.monitor.start_operation(f"verify:{proof.circuit_id}"):
            return self.backend.verify(vk, signals, proof)

    async def verify(self, proof: Proof, public_signals: Optional[Sequence[Union[str, int]]] = None,
                     vk: Optional[VerifyingKey] = None) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.verify_sync, proof, public_signals, vk)

    def close(self):
        self._executor.shutdown(wait=True)
