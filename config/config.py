from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List
import logging
import multiprocessing

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CIRCUITS = [
    "progressive_tax",
    "means_test",
    "divorce_settlement",
    "property_transfer",
    "payment_validation",
    "payment_batch",
]

BACKENDS = ("attestation", "snarkjs")


@dataclass
class ZKConfig:
    backend: str = "attestation"
    curve: str = "bn128"
    build_dir: Path = field(default_factory=lambda: Path("build/circuits"))
    setup_dir: Path = field(default_factory=lambda: Path("build/setup"))
    snarkjs_command: str = "snarkjs"

    # Trusted setup
    ptau_power: int = 14
    ptau_url: str = "https://hermez.s3-eu-west-1.amazonaws.com/powersOfTau28_hez_final_{power}.ptau"
    ceremony_participants: int = 1
    setup_timeout: int = 1800

    # Proving
    proof_timeout: int = 60
    max_concurrent_proofs: int = 4
    parallel_workers: int = field(default_factory=multiprocessing.cpu_count)
    max_retries: int = 2
    retry_backoff: float = 0.5

    def __post_init__(self):
        self.build_dir = Path(self.build_dir)
        self.setup_dir = Path(self.setup_dir)
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown proof backend {self.backend!r}, expected one of {BACKENDS}")


@dataclass
class CircuitConfig:
    enabled: List[str] = field(default_factory=lambda: list(DEFAULT_CIRCUITS))
    policies_file: Optional[Path] = None

    def __post_init__(self):
        if self.policies_file is not None:
            self.policies_file = Path(self.policies_file)


@dataclass
class SystemConfig:
    zk_config: ZKConfig = field(default_factory=ZKConfig)
    circuit_config: CircuitConfig = field(default_factory=CircuitConfig)

    log_dir: Path = field(default_factory=lambda: Path("logs"))
    results_dir: Path = field(default_factory=lambda: Path("results"))
    log_level: str = "INFO"
    enable_benchmarking: bool = True
    enable_debug_mode: bool = False

    def __post_init__(self):
        self.log_dir = Path(self.log_dir)
        self.results_dir = Path(self.results_dir)
        if self.enable_debug_mode:
            self.log_level = "DEBUG"


def load_config(config_path: Optional[Path] = None) -> SystemConfig:
    """Load configuration from file or return default"""
    if config_path is None:
        config_path = Path("config.yaml")
    config_path = Path(config_path)

    if not config_path.exists():
        logger.debug(f"No config file at {config_path}, using defaults")
        return SystemConfig()

    with open(config_path, 'r') as f:
        config_data = yaml.safe_load(f) or {}

    zk_data = dict(config_data.get('zk_proofs', {}))
    circuit_data = dict(config_data.get('circuits', {}))

    return SystemConfig(
        zk_config=ZKConfig(**zk_data),
        circuit_config=CircuitConfig(**circuit_data),
        log_dir=Path(config_data.get('log_dir', 'logs')),
        results_dir=Path(config_data.get('results_dir', 'results')),
        log_level=config_data.get('log_level', 'INFO'),
        enable_benchmarking=config_data.get('enable_benchmarking', True),
        enable_debug_mode=config_data.get('enable_debug_mode', False)
    )


def save_config(config: SystemConfig, config_path: Optional[Path] = None):
    """Save configuration to YAML file"""
    if config_path is None:
        config_path = Path("config.yaml")

    zk = config.zk_config
    config_data = {
        'zk_proofs': {
            'backend': zk.backend,
            'curve': zk.curve,
            'build_dir': str(zk.build_dir),
            'setup_dir': str(zk.setup_dir),
            'snarkjs_command': zk.snarkjs_command,
            'ptau_power': zk.ptau_power,
            'ptau_url': zk.ptau_url,
            'ceremony_participants': zk.ceremony_participants,
            'setup_timeout': zk.setup_timeout,
            'proof_timeout': zk.proof_timeout,
            'max_concurrent_proofs': zk.max_concurrent_proofs,
            'parallel_workers': zk.parallel_workers,
            'max_retries': zk.max_retries,
            'retry_backoff': zk.retry_backoff,
        },
        'circuits': {
            'enabled': list(config.circuit_config.enabled),
            'policies_file': (str(config.circuit_config.policies_file)
                              if config.circuit_config.policies_file else None),
        },
        'log_dir': str(config.log_dir),
        'results_dir': str(config.results_dir),
        'log_level': config.log_level,
        'enable_benchmarking': config.enable_benchmarking,
        'enable_debug_mode': config.enable_debug_mode
    }

    with open(config_path, 'w') as f:
        yaml.dump(config_data, f, default_flow_style=False)


def load_policies(policies_path: Optional[Path] = None):
    """Load tier tables and rates; defaults when no file is given"""
    from circuits.tables import Policies, policies_from_dict

    if policies_path is None:
        return Policies()

    with open(policies_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    policies = policies_from_dict(data)
    logger.info(f"Loaded policies from {policies_path}")
    return policies
