import pytest

from circuits.tables import DEFAULT_TAX_TIERS, TaxPolicy, TaxTier
from circuits.tax import ProgressiveTaxCircuit, progressive_tax
from zk.errors import ConstraintViolation, MalformedInput, OutOfRange
from zk.field import PRIME

CEILINGS = [t.ceiling for t in DEFAULT_TAX_TIERS if t.ceiling is not None]
BOUNDARY_INCOMES = sorted({0, 10 * CEILINGS[-1]}
                          | {c - 1 for c in CEILINGS} | set(CEILINGS) | {c + 1 for c in CEILINGS})


def closed_form(taxable):
    """Tax before credits for the default table, written out by hand"""
    weighted = (
        max(0, min(taxable, 1_200_000) - 600_000) * 500
        + max(0, min(taxable, 2_400_000) - 1_200_000) * 1500
        + max(0, min(taxable, 3_600_000) - 2_400_000) * 2000
        + max(0, taxable - 3_600_000) * 3500
    )
    return weighted // 10000


@pytest.fixture(scope="module")
def circuit():
    return ProgressiveTaxCircuit()


def test_worked_example(circuit):
    witness = circuit.evaluate({
        "income": 1_500_000,
        "deductions": 200_000,
        "dependents": 2,
        "filingStatus": 0,
    })
    # 600k at 5% plus 100k at 15%, less two dependent credits
    assert witness.outputs == {"taxOwed": 25_000, "bracket": 2, "valid": 1}


@pytest.mark.parametrize("income", BOUNDARY_INCOMES)
def test_tier_boundaries(circuit, income):
    witness = circuit.evaluate({"income": income, "deductions": 0, "dependents": 0, "filingStatus": 0})
    assert witness.output("taxOwed") == closed_form(income)
    assert witness.output("taxOwed") == progressive_tax(circuit.policy, income, 0, 0)["taxOwed"]
    assert witness.output("bracket") == progressive_tax(circuit.policy, income, 0, 0)["bracket"]


def test_income_at_ceiling_uses_lower_tier(circuit):
    at = circuit.evaluate({"income": 1_200_000, "deductions": 0, "dependents": 0, "filingStatus": 0})
    above = circuit.evaluate({"income": 1_200_001, "deductions": 0, "dependents": 0, "filingStatus": 0})
    assert at.output("bracket") == 1
    assert above.output("bracket") == 2


def test_credits_clamp_at_zero(circuit):
    witness = circuit.evaluate({"income": 700_000, "deductions": 0, "dependents": 5, "filingStatus": 1})
    assert witness.output("taxOwed") == 0
    assert witness.output("valid") == 1


def test_public_signals_are_outputs(circuit):
    witness = circuit.evaluate({"income": 2_000_000, "deductions": 0, "dependents": 0, "filingStatus": 2})
    assert circuit.public_signal_names() == ["taxOwed", "bracket", "valid"]
    assert witness.public_signals == [str(witness.outputs[n]) for n in ("taxOwed", "bracket", "valid")]


def test_deductions_above_income(circuit):
    with pytest.raises(ConstraintViolation) as exc:
        circuit.evaluate({"income": 100, "deductions": 200, "dependents": 0, "filingStatus": 0})
    assert exc.value.label == "taxable"


def test_input_validation(circuit):
    base = {"income": 1, "deductions": 0, "dependents": 0, "filingStatus": 0}
    with pytest.raises(MalformedInput):
        circuit.evaluate(dict(base, filingStatus=3))
    with pytest.raises(MalformedInput):
        circuit.evaluate(dict(base, income=-5))
    with pytest.raises(MalformedInput):
        circuit.evaluate(dict(base, income="100"))
    with pytest.raises(MalformedInput):
        circuit.evaluate(dict(base, bonus=1))
    with pytest.raises(MalformedInput):
        circuit.evaluate({"income": 1})
    with pytest.raises(OutOfRange):
        circuit.evaluate(dict(base, dependents=21))
    with pytest.raises(OutOfRange):
        circuit.evaluate(dict(base, income=2 ** 48))


def test_custom_table_changes_version(circuit):
    policy = TaxPolicy(tiers=(TaxTier(1000, 0), TaxTier(None, 1000)), per_dependent_credit=0)
    custom = ProgressiveTaxCircuit(policy)
    assert custom.version != circuit.version
    witness = custom.evaluate({"income": 3000, "deductions": 0, "dependents": 0, "filingStatus": 0})
    assert witness.output("taxOwed") == 200
    assert witness.output("bracket") == 1


def test_two_filing_statuses_make_witness_unsatisfiable(circuit):
    witness = circuit.evaluate({"income": 1_500_000, "deductions": 0, "dependents": 0, "filingStatus": 0})
    cs = circuit.constraint_system()
    values = list(witness.values)
    assert values[cs.signal_index("filingStatus.eq[0].out")] == 1
    values[cs.signal_index("filingStatus.eq[1].out")] = 1

    assert not cs.is_satisfied(values)
    group = next(c for c in cs.constraints if c.label == "filingStatus.sum")
    assert group.a.evaluate(values) * group.b.evaluate(values) % PRIME != group.c.evaluate(values)
