from .ledger import (
    DeltaResult,
    ResourceKind,
    ResourceLedger,
    apply_delta,
    apply_modified_delta,
    can_afford,
    modified_amount,
    spend_insight,
)

__all__ = [
    "DeltaResult",
    "ResourceKind",
    "ResourceLedger",
    "apply_delta",
    "apply_modified_delta",
    "can_afford",
    "modified_amount",
    "spend_insight",
]
