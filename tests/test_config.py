from pathlib import Path

import pytest
import yaml

from circuits import Policies, build_circuits
from circuits.tables import TaxTier
from config.config import CircuitConfig, SystemConfig, ZKConfig, load_config, load_policies, save_config
from zk.errors import CircuitCompilationError

SHIPPED_POLICIES = Path(__file__).parent.parent / "config" / "policies.yaml"


def test_defaults_when_file_is_missing(tmp_path):
    config = load_config(tmp_path / "missing.yaml")
    assert config.zk_config.backend == "attestation"
    assert "payment_batch" in config.circuit_config.enabled


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "config.yaml"
    config = SystemConfig(
        zk_config=ZKConfig(backend="snarkjs", ptau_power=16, max_retries=5, retry_backoff=1.5),
        circuit_config=CircuitConfig(enabled=["progressive_tax"], policies_file=SHIPPED_POLICIES),
        log_level="WARNING",
        enable_benchmarking=False,
    )
    save_config(config, path)
    loaded = load_config(path)

    assert loaded.zk_config.backend == "snarkjs"
    assert loaded.zk_config.ptau_power == 16
    assert loaded.zk_config.max_retries == 5
    assert loaded.zk_config.retry_backoff == 1.5
    assert loaded.circuit_config.enabled == ["progressive_tax"]
    assert loaded.circuit_config.policies_file == SHIPPED_POLICIES
    assert loaded.log_level == "WARNING"
    assert not loaded.enable_benchmarking


def test_debug_mode_forces_debug_logging():
    assert SystemConfig(enable_debug_mode=True).log_level == "DEBUG"


def test_unknown_backend_in_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"zk_proofs": {"backend": "plonk"}}))
    with pytest.raises(ValueError):
        load_config(path)


def test_shipped_policies_match_defaults():
    loaded = load_policies(SHIPPED_POLICIES)
    assert loaded == Policies()
    defaults = build_circuits(Policies())
    for circuit_id, circuit in build_circuits(loaded).items():
        assert circuit.version == defaults[circuit_id].version


def test_policy_change_changes_version(tmp_path):
    path = tmp_path / "policies.yaml"
    path.write_text(yaml.safe_dump({"means_test": {"base_threshold": 1_000_000}}))
    loaded = load_policies(path)
    default = build_circuits(Policies())
    changed = build_circuits(loaded)
    assert changed["means_test"].version != default["means_test"].version
    assert changed["progressive_tax"].version == default["progressive_tax"].version


def test_tax_tiers_from_yaml(tmp_path):
    path = tmp_path / "policies.yaml"
    path.write_text(yaml.safe_dump({"tax": {"tiers": [
        {"ceiling": 1000, "rate_bp": 0},
        {"ceiling": None, "rate_bp": 2500},
    ]}}))
    policy = load_policies(path).tax
    assert policy.tiers == (TaxTier(1000, 0), TaxTier(None, 2500))


@pytest.mark.parametrize("data", [
    {"tax": {"tiers": [{"ceiling": 1000, "rate_bp": 0}, {"ceiling": 500, "rate_bp": 100},
                       {"ceiling": None, "rate_bp": 200}]}},
    {"tax": {"tiers": [{"ceiling": 1000, "rate_bp": 0}]}},
    {"tax": {"tiers": [{"ceiling": None, "rate_bp": 20000}]}},
    {"means_test": {"threshold": 5}},
    {"payment": {"min_amount": 10, "max_amount": 5}},
    {"divorce": {"short_marriage_penalty_pct": 50}},
    {"unknown_section": {}},
])
def test_invalid_policies_are_rejected(tmp_path, data):
    path = tmp_path / "policies.yaml"
    path.write_text(yaml.safe_dump(data))
    with pytest.raises(CircuitCompilationError):
        load_policies(path)


@pytest.mark.parametrize("circuit_id", sorted(build_circuits(Policies())))
def test_every_configured_circuit_synthesizes(circuit_id):
    circuit = build_circuits(Policies())[circuit_id]
    cs = circuit.constraint_system()
    assert cs.num_constraints > 0
    assert tuple(circuit.public_signal_names()[:len(circuit.outputs)]) == circuit.outputs
