"""
Property transfer circuit: capital gains tax with holding, first-property and
senior exemptions, plus a type-dependent transfer tax.
"""

from typing import Dict, Optional

from zk.circuit import Circuit, InputField, InputKind
from zk.constraints import ConstraintSystem, LinearCombination
from zk.gates import div_floor, greater_eq_than, is_equal, less_than, mul
from zk.selector import clamp_max, floor_at_zero, one_hot, select

from .tables import BASIS_POINTS, PropertyPolicy

PROPERTY_TYPES = ("residential", "commercial", "agricultural")


class PropertyTransferCircuit(Circuit):
    circuit_id = "property_transfer"
    outputs = ("capitalGainsTax", "transferTax", "exemptionPercent", "valid")

    def __init__(self, policy: Optional[PropertyPolicy] = None):
        super().__init__(policy or PropertyPolicy())

    @property
    def inputs(self):
        return (
            InputField("originalPrice"),
            InputField("currentPrice"),
            InputField("holdingYears"),
            InputField("isFirstProperty", kind=InputKind.BOOLEAN),
            InputField("sellerAge", max_value=self.policy.max_age),
            InputField("propertyType", kind=InputKind.CODE, max_value=len(PROPERTY_TYPES) - 1),
            InputField("buyerId", kind=InputKind.FIELD),
            InputField("sellerId", kind=InputKind.FIELD),
        )

    def synthesize(self, cs: ConstraintSystem, inputs: Dict[str, LinearCombination]) -> None:
        policy = self.policy
        original, current = inputs["originalPrice"], inputs["currentPrice"]

        gain = floor_at_zero(cs, current, original, "gain")

        with cs.namespace("exemption"):
            holding = clamp_max(cs, inputs["holdingYears"] * policy.exemption_per_year_pct,
                                policy.holding_exemption_cap_pct, "holding")
            senior = greater_eq_than(cs, inputs["sellerAge"], policy.senior_age, "senior")
            raw = (holding
                   + inputs["isFirstProperty"] * policy.first_property_pct
                   + senior * policy.senior_pct)
            exemption = clamp_max(cs, raw, 100, "total")

        taxable_gain = div_floor(cs, mul(cs, gain, 100 - exemption, "gain.weighted"), 100, "taxableGain")
        capital_gains_tax = div_floor(cs, taxable_gain * policy.capital_gains_rate_bp, BASIS_POINTS,
                                      "capitalGainsTax")

        kind = one_hot(cs, inputs["propertyType"], len(PROPERTY_TYPES), "propertyType")
        rate = select(cs, kind, list(policy.transfer_rates_bp), "transferRate")
        transfer_tax = div_floor(cs, mul(cs, current, rate, "transfer.weighted"), BASIS_POINTS, "transferTax")

        with cs.namespace("checks"):
            plausible = less_than(cs, current, original * policy.max_price_multiple, "priceMultiple")
            same_party = is_equal(cs, inputs["buyerId"], inputs["sellerId"], "sameParty")
            valid = mul(cs, plausible, cs.one - same_party, "valid")

        cs.alloc_output("capitalGainsTax", capital_gains_tax)
        cs.alloc_output("transferTax", transfer_tax)
        cs.alloc_output("exemptionPercent", exemption)
        cs.alloc_output("valid", valid)


def property_transfer(policy: PropertyPolicy, original_price: int, current_price: int,
                      holding_years: int, is_first_property: bool, seller_age: int,
                      property_type: int, buyer_id: int, seller_id: int) -> Dict[str, int]:
    """Plain-integer reference of the same formulas"""
    gain = max(current_price - original_price, 0)
    exemption = min(holding_years * policy.exemption_per_year_pct, policy.holding_exemption_cap_pct)
    if is_first_property:
        exemption += policy.first_property_pct
    if seller_age >= policy.senior_age:
        exemption += policy.senior_pct
    exemption = min(exemption, 100)
    taxable_gain = gain * (100 - exemption) // 100
    return {
        "capitalGainsTax": taxable_gain * policy.capital_gains_rate_bp // BASIS_POINTS,
        "transferTax": current_price * policy.transfer_rates_bp[property_type] // BASIS_POINTS,
        "exemptionPercent": exemption,
        "valid": int(current_price < policy.max_price_multiple * original_price and buyer_id != seller_id),
    }
