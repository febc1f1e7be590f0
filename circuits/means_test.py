"""
Means test eligibility circuit.

Annualized disposable income plus a tenth of net worth must fall below a
threshold scaled by household size. Insolvent applicants are rejected outright.
"""

from typing import Dict, Optional

from zk.circuit import Circuit, InputField
from zk.constraints import ConstraintSystem, LinearCombination
from zk.gates import div_floor, enforce_non_negative, enforce_true, greater_eq_than, less_eq_than, less_than, mul

from .tables import MeansTestPolicy

MONTHS = 12
NET_WORTH_DIVISOR = 10


class MeansTestCircuit(Circuit):
    circuit_id = "means_test"
    outputs = ("eligible",)

    def __init__(self, policy: Optional[MeansTestPolicy] = None):
        super().__init__(policy or MeansTestPolicy())

    @property
    def inputs(self):
        return (
            InputField("monthlyIncome"),
            InputField("monthlyExpenses"),
            InputField("totalAssets"),
            InputField("totalLiabilities"),
            InputField("dependents", max_value=self.policy.max_dependents),
        )

    def synthesize(self, cs: ConstraintSystem, inputs: Dict[str, LinearCombination]) -> None:
        policy = self.policy
        disposable = inputs["monthlyIncome"] - inputs["monthlyExpenses"]
        enforce_non_negative(cs, disposable, "disposable")

        assets, liabilities = inputs["totalAssets"], inputs["totalLiabilities"]
        solvent = greater_eq_than(cs, assets, liabilities, "solvent")
        enforce_true(cs, solvent, "solvent")
        net_worth = div_floor(cs, assets - liabilities, NET_WORTH_DIVISOR, "netWorth")

        dependents = inputs["dependents"]
        enforce_true(cs, less_eq_than(cs, dependents, policy.max_dependents, "dependents.max"),
                     "dependents.max")
        scaled = dependents * (policy.base_threshold * policy.dependent_increment_pct) + policy.base_threshold * 100
        threshold = div_floor(cs, scaled, 100, "threshold")

        annual = disposable * MONTHS + net_worth
        with cs.namespace("checks"):
            below = less_than(cs, annual, threshold, "below")
            eligible = mul(cs, below, solvent, "eligible")
        cs.alloc_output("eligible", eligible)


def means_test(policy: MeansTestPolicy, monthly_income: int, monthly_expenses: int,
               total_assets: int, total_liabilities: int, dependents: int) -> int:
    """Plain-integer reference of the same formula"""
    if total_assets < total_liabilities:
        return 0
    threshold = policy.base_threshold * (100 + policy.dependent_increment_pct * dependents) // 100
    annual = (monthly_income - monthly_expenses) * MONTHS + (total_assets - total_liabilities) // NET_WORTH_DIVISOR
    return int(annual < threshold)
