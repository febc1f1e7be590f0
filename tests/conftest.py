import logging

import pytest

from circuits import Policies, build_circuits
from config.config import ZKConfig
from zk.backend import AttestationBackend
from zk.constraints import ConstraintSystem
from zk.proofs import ZKProofSystem

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)


@pytest.fixture
def policies():
    return Policies()


@pytest.fixture
def circuits(policies):
    return build_circuits(policies)


@pytest.fixture
def cs():
    """Empty witness-mode constraint system"""
    return ConstraintSystem("scratch", witness_mode=True)


@pytest.fixture
def setup_cs():
    return ConstraintSystem("scratch")


@pytest.fixture
def zk_config(tmp_path):
    return ZKConfig(
        backend="attestation",
        build_dir=tmp_path / "build",
        setup_dir=tmp_path / "setup",
        parallel_workers=2,
        max_retries=2,
        retry_backoff=0.0,
        proof_timeout=30,
    )


@pytest.fixture
def proof_system(zk_config, circuits):
    system = ZKProofSystem(zk_config, circuits, AttestationBackend())
    yield system
    system.close()
