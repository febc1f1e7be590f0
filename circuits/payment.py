"""
Payment validation circuits.

The single-payment circuit checks a transfer against public limits and
publishes a salted commitment to the payment and a nullifier binding the
sender to the nonce. The batch circuit totals a fixed number of payments and
commits to them through a hash chain.
"""

from typing import Dict, List, Optional, Sequence

from zk.circuit import Circuit, InputField, InputKind
from zk.constraints import ConstraintSystem, LinearCombination, Visibility
from zk.gates import enforce_true, greater_eq_than, is_equal, is_zero, less_eq_than, product
from zk.poseidon import poseidon_gadget, poseidon_hash

from .tables import PaymentPolicy


class PaymentValidationCircuit(Circuit):
    circuit_id = "payment_validation"
    outputs = ("commitment", "nullifier", "valid")

    def __init__(self, policy: Optional[PaymentPolicy] = None):
        super().__init__(policy or PaymentPolicy())

    @property
    def inputs(self):
        policy = self.policy
        return (
            InputField("amount"),
            InputField("senderId", kind=InputKind.FIELD),
            InputField("recipientId", kind=InputKind.FIELD),
            InputField("dailySpent"),
            InputField("nonce", kind=InputKind.FIELD),
            InputField("salt", kind=InputKind.FIELD),
            InputField("minAmount", visibility=Visibility.PUBLIC, default=policy.min_amount),
            InputField("maxAmount", visibility=Visibility.PUBLIC, default=policy.max_amount),
            InputField("dailyLimit", visibility=Visibility.PUBLIC, default=policy.daily_limit),
        )

    def synthesize(self, cs: ConstraintSystem, inputs: Dict[str, LinearCombination]) -> None:
        amount = inputs["amount"]
        sender, recipient = inputs["senderId"], inputs["recipientId"]

        with cs.namespace("checks"):
            valid = product(cs, [
                greater_eq_than(cs, amount, inputs["minAmount"], "min"),
                less_eq_than(cs, amount, inputs["maxAmount"], "max"),
                less_eq_than(cs, inputs["dailySpent"] + amount, inputs["dailyLimit"], "daily"),
                cs.one - is_zero(cs, amount, "zero"),
                cs.one - is_equal(cs, sender, recipient, "selfTransfer"),
            ], "valid")
        if self.policy.require_valid:
            enforce_true(cs, valid, "valid")

        commitment = poseidon_gadget(cs, [
            amount, sender, recipient, inputs["dailySpent"], inputs["nonce"], inputs["salt"],
        ], "commitment")
        nullifier = poseidon_gadget(cs, [sender, inputs["nonce"]], "nullifier")

        cs.alloc_output("commitment", commitment)
        cs.alloc_output("nullifier", nullifier)
        cs.alloc_output("valid", valid)


class PaymentBatchCircuit(Circuit):
    """Fixed-size batch: total, all-valid flag and a chained commitment"""

    outputs = ("total", "allValid", "commitment")

    def __init__(self, policy: Optional[PaymentPolicy] = None, size: Optional[int] = None):
        super().__init__(policy or PaymentPolicy())
        self.size = size or self.policy.batch_size
        self.circuit_id = f"payment_batch_{self.size}"

    @property
    def inputs(self):
        fields = [InputField(f"amounts[{i}]") for i in range(self.size)]
        fields.append(InputField("salt", kind=InputKind.FIELD))
        fields.append(InputField("minAmount", visibility=Visibility.PUBLIC, default=self.policy.min_amount))
        return tuple(fields)

    def synthesize(self, cs: ConstraintSystem, inputs: Dict[str, LinearCombination]) -> None:
        amounts = [inputs[f"amounts[{i}]"] for i in range(self.size)]
        minimum = inputs["minAmount"]

        total = LinearCombination()
        for amount in amounts:
            total = total + amount

        checks = [greater_eq_than(cs, amount, minimum, f"item[{i}].min") for i, amount in enumerate(amounts)]
        all_valid = product(cs, checks, "allValid")

        link = inputs["salt"]
        for i, amount in enumerate(amounts):
            link = poseidon_gadget(cs, [link, amount], f"chain[{i}]")

        cs.alloc_output("total", total)
        cs.alloc_output("allValid", all_valid)
        cs.alloc_output("commitment", link)


def payment_commitment(amount: int, sender_id: int, recipient_id: int, daily_spent: int,
                       nonce: int, salt: int) -> int:
    return poseidon_hash([amount, sender_id, recipient_id, daily_spent, nonce, salt])


def payment_nullifier(sender_id: int, nonce: int) -> int:
    return poseidon_hash([sender_id, nonce])


def batch_commitment(amounts: Sequence[int], salt: int) -> int:
    link = salt
    for amount in amounts:
        link = poseidon_hash([link, amount])
    return link


def batch_inputs(amounts: List[int], salt: int, min_amount: Optional[int] = None) -> Dict[str, int]:
    """Flatten a list of amounts into the batch circuit's named inputs"""
    inputs = {f"amounts[{i}]": amount for i, amount in enumerate(amounts)}
    inputs["salt"] = salt
    if min_amount is not None:
        inputs["minAmount"] = min_amount
    return inputs
