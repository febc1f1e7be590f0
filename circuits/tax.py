"""
Progressive income tax circuit.

Each tier contributes the part of taxable income between its floor and
ceiling, chosen by a three-way selector (below, inside, fully above). Income
exactly at a ceiling is taxed at the lower tier.
"""

import logging
from typing import Dict, List, Optional

from zk.circuit import Circuit, InputField, InputKind
from zk.constraints import ConstraintSystem, LinearCombination
from zk.gates import div_floor, enforce_non_negative, enforce_true, greater_eq_than, greater_than, less_eq_than
from zk.selector import floor_at_zero, monotone_group, one_hot, select

from .tables import BASIS_POINTS, TaxPolicy

logger = logging.getLogger(__name__)

FILING_STATUSES = ("single", "married", "head_of_household")


class ProgressiveTaxCircuit(Circuit):
    """Tax owed and bracket over private income, deductions and household data"""

    circuit_id = "progressive_tax"
    outputs = ("taxOwed", "bracket", "valid")

    def __init__(self, policy: Optional[TaxPolicy] = None):
        super().__init__(policy or TaxPolicy())

    @property
    def inputs(self):
        return (
            InputField("income"),
            InputField("deductions"),
            InputField("dependents", max_value=self.policy.max_dependents),
            InputField("filingStatus", kind=InputKind.CODE, max_value=len(FILING_STATUSES) - 1),
        )

    def synthesize(self, cs: ConstraintSystem, inputs: Dict[str, LinearCombination]) -> None:
        policy = self.policy
        taxable = inputs["income"] - inputs["deductions"]
        enforce_non_negative(cs, taxable, "taxable")

        floors = policy.floors
        above: List[LinearCombination] = []
        weighted = LinearCombination()
        for i, tier in enumerate(policy.tiers):
            with cs.namespace(f"tier[{i}]"):
                lower = floors[i]
                is_above = greater_than(cs, taxable, lower, "above")
                above.append(is_above)
                if tier.ceiling is None:
                    amount = select(cs, [cs.one - is_above, is_above], [0, taxable - lower], "amount")
                else:
                    is_full = greater_eq_than(cs, taxable, tier.ceiling, "full")
                    cs.enforce(is_full, cs.one - is_above, 0, "full_implies_above")
                    amount = select(
                        cs,
                        [cs.one - is_above, is_above - is_full, is_full],
                        [0, taxable - lower, tier.ceiling - lower],
                        "amount",
                    )
                weighted = weighted + amount * tier.rate_bp

        base_tax = div_floor(cs, weighted, BASIS_POINTS, "baseTax")

        active = monotone_group(cs, above[1:], "bracket")
        bracket = select(cs, active, list(range(len(policy.tiers))), "bracket")

        dependents = inputs["dependents"]
        enforce_true(cs, less_eq_than(cs, dependents, policy.max_dependents, "dependents.max"),
                     "dependents.max")
        status = one_hot(cs, inputs["filingStatus"], len(FILING_STATUSES), "filingStatus")
        credit = dependents * policy.per_dependent_credit + select(
            cs, status, list(policy.status_credits), "statusCredit")

        tax = floor_at_zero(cs, base_tax, credit, "tax")
        valid = greater_eq_than(cs, tax, 0, "valid")

        cs.alloc_output("taxOwed", tax)
        cs.alloc_output("bracket", bracket)
        cs.alloc_output("valid", valid)


def progressive_tax(policy: TaxPolicy, income: int, deductions: int, dependents: int,
                    filing_status: int = 0) -> Dict[str, int]:
    """Plain-integer reference of the same formula"""
    taxable = income - deductions
    if taxable < 0:
        raise ValueError("Deductions exceed income")
    weighted = 0
    bracket = 0
    for i, (lower, tier) in enumerate(zip(policy.floors, policy.tiers)):
        if taxable > lower:
            bracket = i
            upper = taxable if tier.ceiling is None else min(taxable, tier.ceiling)
            weighted += (upper - lower) * tier.rate_bp
    base = weighted // BASIS_POINTS
    credit = dependents * policy.per_dependent_credit + policy.status_credits[filing_status]
    return {"taxOwed": max(base - credit, 0), "bracket": bracket, "baseTax": base}
