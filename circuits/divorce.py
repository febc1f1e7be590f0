"""
Divorce settlement circuit.

Computes alimony, child support and the marital asset split. The alimony
adjustment flags are supplied as hints and re-derived in circuit, so a
prover cannot pick a more favorable rate.
"""

from typing import Dict, Optional

from zk.circuit import Circuit, InputField, InputKind
from zk.constraints import ConstraintSystem, LinearCombination
from zk.gates import (
    div_floor,
    greater_eq_than,
    less_eq_than,
    less_than,
    mul,
    product,
)
from zk.selector import clamp_max, monotone_group, select

from .tables import DivorcePolicy


class DivorceSettlementCircuit(Circuit):
    circuit_id = "divorce_settlement"
    outputs = (
        "spouse1AssetShare",
        "spouse2AssetShare",
        "assetSplitPercent",
        "alimonyAmount",
        "alimonyPayerIsSpouse1",
        "childSupportAmount",
        "childSupportPayerIsSpouse1",
        "valid",
    )

    def __init__(self, policy: Optional[DivorcePolicy] = None):
        super().__init__(policy or DivorcePolicy())

    @property
    def inputs(self):
        return (
            InputField("spouse1Income"),
            InputField("spouse2Income"),
            InputField("maritalAssets"),
            InputField("marriageYears", max_value=self.policy.max_marriage_years),
            InputField("numChildren", max_value=self.policy.max_children),
            InputField("custodySpouse1", kind=InputKind.BOOLEAN),
            InputField("spouse1Homemaker", kind=InputKind.BOOLEAN),
            InputField("spouse2AtFault", kind=InputKind.BOOLEAN),
        )

    def synthesize(self, cs: ConstraintSystem, inputs: Dict[str, LinearCombination]) -> None:
        policy = self.policy
        s1, s2 = inputs["spouse1Income"], inputs["spouse2Income"]
        years = inputs["marriageYears"]
        children = inputs["numChildren"]
        custody = inputs["custodySpouse1"]

        # Alimony: the higher earner pays a share of the income difference
        with cs.namespace("alimony"):
            s1_pays = greater_eq_than(cs, s1, s2, "payer")
            higher = select(cs, [s1_pays, cs.one - s1_pays], [s1, s2], "higher")
            lower = s1 + s2 - higher

            long_marriage = cs.hint("longMarriage", lambda: int(cs.value(years) >= policy.long_marriage_years))
            disparity = cs.hint("disparity", lambda: int(cs.value(higher) >= policy.disparity_ratio * cs.value(lower)))
            short_marriage = cs.hint("shortMarriage", lambda: int(cs.value(years) < policy.short_marriage_years))
            checks = (
                (long_marriage, greater_eq_than(cs, years, policy.long_marriage_years, "longMarriage.check")),
                (disparity, greater_eq_than(cs, higher, lower * policy.disparity_ratio, "disparity.check")),
                (short_marriage, less_than(cs, years, policy.short_marriage_years, "shortMarriage.check")),
            )
            for i, (flag, check) in enumerate(checks):
                cs.enforce(flag, cs.one - flag, 0, f"hint[{i}].boolean")
                cs.enforce_equal(flag, check, f"hint[{i}].recheck")

            rate = (
                LinearCombination.constant(policy.base_alimony_pct)
                + long_marriage * policy.long_marriage_bonus_pct
                + disparity * policy.disparity_bonus_pct
                - short_marriage * policy.short_marriage_penalty_pct
            )
            alimony = div_floor(cs, mul(cs, higher - lower, rate, "weighted"), 100, "amount")

        # Child support: the non-custodial parent pays a rate set by the number of children
        with cs.namespace("childSupport"):
            tiers = policy.child_support_pct
            flags = [greater_eq_than(cs, children, k, f"atLeast[{k}]") for k in range(1, len(tiers))]
            rate = select(cs, monotone_group(cs, flags, "tier"), list(tiers), "rate")
            payer_income = select(cs, [custody, cs.one - custody], [s2, s1], "payerIncome")
            child_support = div_floor(cs, mul(cs, payer_income, rate, "weighted"), 100, "amount")
            cs_payer_is_s1 = cs.one - custody

        # Asset split: base share plus independent bonuses, capped at the whole estate
        with cs.namespace("split"):
            bonuses = custody + (cs.one - s1_pays) + inputs["spouse1Homemaker"] + inputs["spouse2AtFault"]
            raw_pct = bonuses * policy.split_bonus_pct + policy.base_split_pct
            pct = clamp_max(cs, raw_pct, 100, "percent")
            assets = inputs["maritalAssets"]
            s1_share = div_floor(cs, mul(cs, assets, pct, "weighted"), 100, "spouse1")
            s2_share = assets - s1_share

        with cs.namespace("checks"):
            valid = product(cs, [
                greater_eq_than(cs, s1_share, 0, "spouse1Share"),
                greater_eq_than(cs, s2_share, 0, "spouse2Share"),
                less_eq_than(cs, alimony * 100, higher * policy.max_alimony_pct, "alimonyCap"),
                less_eq_than(cs, child_support * 100, payer_income * policy.max_child_support_pct,
                             "childSupportCap"),
            ], "valid")

        cs.alloc_output("spouse1AssetShare", s1_share)
        cs.alloc_output("spouse2AssetShare", s2_share)
        cs.alloc_output("assetSplitPercent", pct)
        cs.alloc_output("alimonyAmount", alimony)
        cs.alloc_output("alimonyPayerIsSpouse1", s1_pays)
        cs.alloc_output("childSupportAmount", child_support)
        cs.alloc_output("childSupportPayerIsSpouse1", cs_payer_is_s1)
        cs.alloc_output("valid", valid)


def divorce_settlement(policy: DivorcePolicy, spouse1_income: int, spouse2_income: int,
                       marital_assets: int, marriage_years: int, num_children: int,
                       custody_spouse1: bool, spouse1_homemaker: bool, spouse2_at_fault: bool) -> Dict[str, int]:
    """Plain-integer reference of the same formulas"""
    s1_pays = spouse1_income >= spouse2_income
    higher, lower = max(spouse1_income, spouse2_income), min(spouse1_income, spouse2_income)
    rate = policy.base_alimony_pct
    if marriage_years >= policy.long_marriage_years:
        rate += policy.long_marriage_bonus_pct
    if higher >= policy.disparity_ratio * lower:
        rate += policy.disparity_bonus_pct
    if marriage_years < policy.short_marriage_years:
        rate -= policy.short_marriage_penalty_pct
    alimony = (higher - lower) * rate // 100

    tiers = policy.child_support_pct
    cs_rate = tiers[min(num_children, len(tiers) - 1)]
    payer_income = spouse2_income if custody_spouse1 else spouse1_income
    child_support = payer_income * cs_rate // 100

    bonuses = int(custody_spouse1) + int(not s1_pays) + int(spouse1_homemaker) + int(spouse2_at_fault)
    pct = min(policy.base_split_pct + policy.split_bonus_pct * bonuses, 100)
    s1_share = marital_assets * pct // 100
    return {
        "spouse1AssetShare": s1_share,
        "spouse2AssetShare": marital_assets - s1_share,
        "assetSplitPercent": pct,
        "alimonyAmount": alimony,
        "alimonyPayerIsSpouse1": int(s1_pays),
        "childSupportAmount": child_support,
        "childSupportPayerIsSpouse1": int(not custody_spouse1),
        "valid": int(alimony * 100 <= higher * policy.max_alimony_pct
                     and child_support * 100 <= payer_income * policy.max_child_support_pct),
    }
