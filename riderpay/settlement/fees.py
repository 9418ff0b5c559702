"""
Commission fee per branch fee policy.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from riderpay.core.utils import round_half_up, to_number

PER_CASE = "per_case"
PERCENTAGE = "percentage"

@dataclass(frozen=True)
class BranchFeePolicy:
    type: str
    value: float

    @classmethod
    def from_record(cls, record: Optional[Dict[str, Any]]) -> Optional["BranchFeePolicy"]:
        """Read ``fee_type``/``fee_value`` from a branch record; an unknown type or a blank value means no policy."""
        if not record:
            return None
        ftype = str(record.get("fee_type") or "").strip().lower()
        if ftype not in (PER_CASE, PERCENTAGE):
            return None
        if record.get("fee_value") in (None, ""):
            return None
        return cls(type=ftype, value=to_number(record.get("fee_value")))

class FeeCalculator:

    def compute(self, policy: Optional[BranchFeePolicy], order_count: float, settlement_base: float, fallback: float = 0) -> float:
        # without a policy the fee carried on the summary sheet is kept as is
        if policy is None:
            return fallback
        if policy.type == PER_CASE:
            return round_half_up(policy.value * order_count)
        return round_half_up(settlement_base * policy.value / 100)
