import json

from legal_proof_system import SCENARIOS
import main


def test_prove_then_verify(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    inputs = tmp_path / "inputs.json"
    inputs.write_text(json.dumps(SCENARIOS["means_test"]))
    proof_file = tmp_path / "proof.json"

    assert main.main(["prove", "means_test", "--input", str(inputs), "--output", str(proof_file)]) == 0
    data = json.loads(proof_file.read_text())
    assert data["outputs"] == {"eligible": 1}
    assert data["verifying_key"]["circuit_id"] == "means_test"

    assert main.main(["verify", str(proof_file)]) == 0
    assert capsys.readouterr().out.strip().endswith("OK")

    data["proof"]["public_signals"] = ["0"]
    proof_file.write_text(json.dumps(data))
    assert main.main(["verify", str(proof_file)]) == 1


def test_invalid_input_exits_with_error(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    inputs = tmp_path / "inputs.json"
    inputs.write_text(json.dumps({"inputs": dict(SCENARIOS["means_test"], totalAssets=0, totalLiabilities=5)}))

    assert main.main(["prove", "means_test", "--input", str(inputs)]) == 2
    assert "ConstraintViolation" in capsys.readouterr().err


def test_list_circuits(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main.main(["circuits"]) == 0
    out = capsys.readouterr().out
    for circuit_id in ("progressive_tax", "means_test", "divorce_settlement", "property_transfer",
                       "payment_validation", "payment_batch_8"):
        assert circuit_id in out
