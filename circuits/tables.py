"""
Policy tables compiled into circuit constants.

Policies are immutable and validated on construction; their digest is
folded into the circuit version so keys never outlive a table change.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

from zk.errors import CircuitCompilationError

BASIS_POINTS = 10000


@dataclass(frozen=True)
class TaxTier:
    """Tier from the previous ceiling up to ceiling; None means unbounded"""
    ceiling: Optional[int]
    rate_bp: int


DEFAULT_TAX_TIERS = (
    TaxTier(600_000, 0),
    TaxTier(1_200_000, 500),
    TaxTier(2_400_000, 1500),
    TaxTier(3_600_000, 2000),
    TaxTier(None, 3500),
)


@dataclass(frozen=True)
class TaxPolicy:
    tiers: Tuple[TaxTier, ...] = DEFAULT_TAX_TIERS
    per_dependent_credit: int = 10_000
    status_credits: Tuple[int, int, int] = (0, 0, 0)
    max_dependents: int = 20

    def __post_init__(self):
        if not self.tiers:
            raise CircuitCompilationError("Tax table has no tiers")
        previous = 0
        for i, tier in enumerate(self.tiers):
            last = i == len(self.tiers) - 1
            if not 0 <= tier.rate_bp <= BASIS_POINTS:
                raise CircuitCompilationError(f"Tier {i} rate {tier.rate_bp} outside [0, {BASIS_POINTS}]")
            if last:
                if tier.ceiling is not None:
                    raise CircuitCompilationError("Last tax tier must be unbounded")
            elif tier.ceiling is None or tier.ceiling <= previous:
                raise CircuitCompilationError(f"Tier {i} ceiling must exceed {previous}")
            else:
                previous = tier.ceiling
        if len(self.status_credits) != 3:
            raise CircuitCompilationError("Expected credits for three filing statuses")

    @property
    def floors(self) -> Tuple[int, ...]:
        return (0,) + tuple(t.ceiling for t in self.tiers[:-1])


@dataclass(frozen=True)
class MeansTestPolicy:
    base_threshold: int = 60_000_000
    dependent_increment_pct: int = 10
    max_dependents: int = 20

    def __post_init__(self):
        if self.base_threshold <= 0:
            raise CircuitCompilationError("Means test threshold must be positive")


@dataclass(frozen=True)
class DivorcePolicy:
    base_alimony_pct: int = 20
    long_marriage_years: int = 10
    long_marriage_bonus_pct: int = 10
    disparity_ratio: int = 2
    disparity_bonus_pct: int = 10
    short_marriage_years: int = 3
    short_marriage_penalty_pct: int = 10
    # rate by number of children: 0, 1, 2, 3 or more
    child_support_pct: Tuple[int, ...] = (0, 20, 25, 30)
    base_split_pct: int = 50
    split_bonus_pct: int = 15
    max_alimony_pct: int = 40
    max_child_support_pct: int = 50
    max_children: int = 20
    max_marriage_years: int = 100

    def __post_init__(self):
        if self.short_marriage_penalty_pct > self.base_alimony_pct:
            raise CircuitCompilationError("Short marriage penalty exceeds the base alimony rate")
        if len(self.child_support_pct) < 2:
            raise CircuitCompilationError("Child support table needs at least two tiers")
        if self.short_marriage_years > self.long_marriage_years:
            raise CircuitCompilationError("Short marriage bound exceeds long marriage bound")


@dataclass(frozen=True)
class PropertyPolicy:
    exemption_per_year_pct: int = 10
    holding_exemption_cap_pct: int = 70
    first_property_pct: int = 25
    senior_pct: int = 25
    senior_age: int = 60
    capital_gains_rate_bp: int = 1500
    # residential, commercial, agricultural
    transfer_rates_bp: Tuple[int, int, int] = (200, 400, 100)
    max_price_multiple: int = 10
    max_age: int = 150

    def __post_init__(self):
        if len(self.transfer_rates_bp) != 3:
            raise CircuitCompilationError("Expected transfer rates for three property types")
        if self.holding_exemption_cap_pct > 100:
            raise CircuitCompilationError("Holding exemption cap exceeds 100%")


@dataclass(frozen=True)
class PaymentPolicy:
    min_amount: int = 1
    max_amount: int = 100_000_000
    daily_limit: int = 500_000_000
    require_valid: bool = True
    batch_size: int = 8

    def __post_init__(self):
        if not 0 <= self.min_amount <= self.max_amount:
            raise CircuitCompilationError("Payment limits must satisfy 0 <= min <= max")
        if self.batch_size < 1:
            raise CircuitCompilationError("Payment batch size must be positive")


@dataclass(frozen=True)
class Policies:
    tax: TaxPolicy = field(default_factory=TaxPolicy)
    means_test: MeansTestPolicy = field(default_factory=MeansTestPolicy)
    divorce: DivorcePolicy = field(default_factory=DivorcePolicy)
    property_transfer: PropertyPolicy = field(default_factory=PropertyPolicy)
    payment: PaymentPolicy = field(default_factory=PaymentPolicy)


def _build(cls, data: Optional[Dict[str, Any]]):
    data = dict(data or {})
    names = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - names)
    if unknown:
        raise CircuitCompilationError(f"Unknown {cls.__name__} keys: {', '.join(unknown)}")
    for key, value in data.items():
        if isinstance(value, list):
            data[key] = tuple(value)
    return cls(**data)


def policies_from_dict(data: Optional[Dict[str, Any]]) -> Policies:
    """Build Policies from a plain mapping, e.g. a parsed YAML document"""
    data = dict(data or {})

    tax = dict(data.pop("tax", None) or {})
    if "tiers" in tax:
        tax["tiers"] = tuple(
            TaxTier(row.get("ceiling"), row["rate_bp"]) for row in tax["tiers"]
        )

    policies = Policies(
        tax=_build(TaxPolicy, tax),
        means_test=_build(MeansTestPolicy, data.pop("means_test", None)),
        divorce=_build(DivorcePolicy, data.pop("divorce", None)),
        property_transfer=_build(PropertyPolicy, data.pop("property_transfer", None)),
        payment=_build(PaymentPolicy, data.pop("payment", None)),
    )
    if data:
        raise CircuitCompilationError(f"Unknown policy sections: {', '.join(sorted(data))}")
    return policies
