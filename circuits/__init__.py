"""
Legal financial computation circuits
"""

from typing import Dict, Optional

from zk.circuit import Circuit

from .divorce import DivorceSettlementCircuit, divorce_settlement
from .means_test import MeansTestCircuit, means_test
from .payment import (
    PaymentBatchCircuit,
    PaymentValidationCircuit,
    batch_commitment,
    batch_inputs,
    payment_commitment,
    payment_nullifier,
)
from .property_transfer import PropertyTransferCircuit, property_transfer
from .tables import (
    DivorcePolicy,
    MeansTestPolicy,
    PaymentPolicy,
    Policies,
    PropertyPolicy,
    TaxPolicy,
    TaxTier,
    policies_from_dict,
)
from .tax import ProgressiveTaxCircuit, progressive_tax


def build_circuits(policies: Optional[Policies] = None) -> Dict[str, Circuit]:
    """Instantiate every circuit against one set of policies"""
    policies = policies or Policies()
    circuits = [
        ProgressiveTaxCircuit(policies.tax),
        MeansTestCircuit(policies.means_test),
        DivorceSettlementCircuit(policies.divorce),
        PropertyTransferCircuit(policies.property_transfer),
        PaymentValidationCircuit(policies.payment),
        PaymentBatchCircuit(policies.payment),
    ]
    return {circuit.circuit_id: circuit for circuit in circuits}


__all__ = [
    'build_circuits',
    'ProgressiveTaxCircuit',
    'MeansTestCircuit',
    'DivorceSettlementCircuit',
    'PropertyTransferCircuit',
    'PaymentValidationCircuit',
    'PaymentBatchCircuit',
    'progressive_tax',
    'means_test',
    'divorce_settlement',
    'property_transfer',
    'payment_commitment',
    'payment_nullifier',
    'batch_commitment',
    'batch_inputs',
    'Policies',
    'TaxPolicy',
    'TaxTier',
    'MeansTestPolicy',
    'DivorcePolicy',
    'PropertyPolicy',
    'PaymentPolicy',
    'policies_from_dict',
]
