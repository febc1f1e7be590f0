import pytest

from circuits.divorce import DivorceSettlementCircuit, divorce_settlement
from zk.errors import ConstraintViolation


@pytest.fixture(scope="module")
def circuit():
    return DivorceSettlementCircuit()


def _inputs(**overrides):
    inputs = {
        "spouse1Income": 6_000_000,
        "spouse2Income": 1_500_000,
        "maritalAssets": 20_000_000,
        "marriageYears": 12,
        "numChildren": 2,
        "custodySpouse1": 0,
        "spouse1Homemaker": 0,
        "spouse2AtFault": 0,
    }
    inputs.update(overrides)
    return inputs


def _reference(policy, inputs):
    return divorce_settlement(
        policy, inputs["spouse1Income"], inputs["spouse2Income"], inputs["maritalAssets"],
        inputs["marriageYears"], inputs["numChildren"], bool(inputs["custodySpouse1"]),
        bool(inputs["spouse1Homemaker"]), bool(inputs["spouse2AtFault"]),
    )


def test_worked_example(circuit):
    witness = circuit.evaluate(_inputs())
    assert witness.outputs == {
        "spouse1AssetShare": 10_000_000,
        "spouse2AssetShare": 10_000_000,
        "assetSplitPercent": 50,
        # (6M - 1.5M) at 20% base + 10% long marriage + 10% disparity
        "alimonyAmount": 1_800_000,
        "alimonyPayerIsSpouse1": 1,
        # spouse 1 pays 25% for two children
        "childSupportAmount": 1_500_000,
        "childSupportPayerIsSpouse1": 1,
        "valid": 1,
    }


@pytest.mark.parametrize("overrides", [
    {"marriageYears": 2},
    {"marriageYears": 3},
    {"marriageYears": 10},
    {"spouse2Income": 3_000_000},
    {"spouse2Income": 3_000_001},
    {"spouse1Income": 0, "spouse2Income": 0},
    {"spouse1Income": 1_000_000, "spouse2Income": 4_000_000, "custodySpouse1": 1},
    {"numChildren": 0},
    {"numChildren": 1},
    {"numChildren": 7},
    {"custodySpouse1": 1, "spouse1Homemaker": 1, "spouse2AtFault": 1},
    {"spouse1Income": 100, "custodySpouse1": 1, "spouse1Homemaker": 1, "spouse2AtFault": 1},
    {"maritalAssets": 0},
    {"maritalAssets": 333},
])
def test_matches_reference(circuit, overrides):
    inputs = _inputs(**overrides)
    assert circuit.evaluate(inputs).outputs == _reference(circuit.policy, inputs)


def test_split_percent_caps_at_whole_estate(circuit):
    # four bonuses of 15% on a 50% base would exceed 100%
    witness = circuit.evaluate(_inputs(spouse1Income=100, custodySpouse1=1, spouse1Homemaker=1,
                                       spouse2AtFault=1))
    assert witness.output("assetSplitPercent") == 100
    assert witness.output("spouse2AssetShare") == 0


def test_forged_alimony_hint_is_rejected(circuit):
    with pytest.raises(ConstraintViolation) as exc:
        circuit.evaluate(_inputs(), hints={"alimony.longMarriage": 0})
    assert exc.value.label == "alimony.hint[0].recheck"


def test_non_boolean_hint_is_rejected(circuit):
    with pytest.raises(ConstraintViolation):
        circuit.evaluate(_inputs(marriageYears=5), hints={"alimony.shortMarriage": 2})


def test_correct_hint_override_is_accepted(circuit):
    witness = circuit.evaluate(_inputs(), hints={"alimony.disparity": 1})
    assert witness.output("alimonyAmount") == 1_800_000


def test_setup_and_witness_agree_on_shape(circuit):
    setup = circuit.constraint_system()
    witness = circuit.evaluate(_inputs())
    assert len(witness.values) == setup.num_signals
    assert len(witness.public_signals) == len(circuit.outputs)
