import pytest

from circuits.payment import (
    PaymentBatchCircuit,
    PaymentValidationCircuit,
    batch_commitment,
    batch_inputs,
    payment_commitment,
    payment_nullifier,
)
from circuits.tables import PaymentPolicy
from zk.errors import ConstraintViolation, MalformedInput

SALT = 987654321


@pytest.fixture(scope="module")
def circuit():
    return PaymentValidationCircuit()


def _inputs(**overrides):
    inputs = {
        "amount": 250_000,
        "senderId": 1001,
        "recipientId": 2002,
        "dailySpent": 1_000_000,
        "nonce": 7,
        "salt": SALT,
    }
    inputs.update(overrides)
    return inputs


def test_valid_payment(circuit):
    witness = circuit.evaluate(_inputs())
    assert witness.output("valid") == 1
    assert witness.output("commitment") == payment_commitment(250_000, 1001, 2002, 1_000_000, 7, SALT)
    assert witness.output("nullifier") == payment_nullifier(1001, 7)


def test_limits_are_public_signals(circuit):
    policy = circuit.policy
    witness = circuit.evaluate(_inputs())
    assert circuit.public_signal_names() == [
        "commitment", "nullifier", "valid", "minAmount", "maxAmount", "dailyLimit",
    ]
    assert witness.public_signals[3:] == [str(policy.min_amount), str(policy.max_amount),
                                          str(policy.daily_limit)]


def test_commitment_hides_amount_behind_salt(circuit):
    a = circuit.evaluate(_inputs()).output("commitment")
    b = circuit.evaluate(_inputs(salt=SALT + 1)).output("commitment")
    c = circuit.evaluate(_inputs(amount=250_001)).output("commitment")
    assert len({a, b, c}) == 3


@pytest.mark.parametrize("overrides", [
    {"amount": 0},
    {"amount": 100_000_001},
    {"dailySpent": 499_800_000},
    {"recipientId": 1001},
    {"amount": 5, "minAmount": 10},
])
def test_invalid_payment_has_no_witness(circuit, overrides):
    with pytest.raises(ConstraintViolation):
        circuit.evaluate(_inputs(**overrides))


def test_daily_limit_is_inclusive(circuit):
    witness = circuit.evaluate(_inputs(dailySpent=499_750_000))
    assert witness.output("valid") == 1


def test_soft_validity_reports_zero():
    circuit = PaymentValidationCircuit(PaymentPolicy(require_valid=False))
    witness = circuit.evaluate(_inputs(amount=0))
    assert witness.output("valid") == 0


def test_batch(policies):
    circuit = PaymentBatchCircuit(policies.payment, size=4)
    assert circuit.circuit_id == "payment_batch_4"
    amounts = [100, 200, 300, 400]
    witness = circuit.evaluate(batch_inputs(amounts, SALT))
    assert witness.outputs == {
        "total": 1000,
        "allValid": 1,
        "commitment": batch_commitment(amounts, SALT),
    }


def test_batch_flags_small_amount(policies):
    circuit = PaymentBatchCircuit(policies.payment, size=2)
    witness = circuit.evaluate(batch_inputs([100, 5], SALT, min_amount=50))
    assert witness.output("allValid") == 0
    assert witness.output("total") == 105


def test_batch_requires_every_slot(policies):
    circuit = PaymentBatchCircuit(policies.payment, size=3)
    with pytest.raises(MalformedInput):
        circuit.evaluate(batch_inputs([1, 2], SALT))
