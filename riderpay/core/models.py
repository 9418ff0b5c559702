"""
Value types shared by the settlement pipeline stages.

Parsed rows are frozen; aggregates are plain dataclasses filled once during a
run and only read afterwards.
"""
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

from .config import settings

@dataclass(frozen=True)
class RawOrderRow:
    """One accepted order from the order detail sheet."""
    branch_name: str
    license_id: str
    rider_name: str
    rider_suffix: str
    order_no: str
    accepted_at: str
    accepted_at_ms: int
    peak_time: str
    judgement_date: str

@dataclass(frozen=True)
class RawSummaryRow:
    """One rider line of a workbook's summary sheet."""
    license_id: str
    rider_name: str
    rider_name_raw: str
    branch_name: str
    total_orders: int = 0
    settlement_amount: float = 0.0
    support_total: float = 0.0
    deduction: float = 0.0
    total_settlement: float = 0.0
    fee: float = 0.0
    employment: float = 0.0
    accident: float = 0.0
    time_insurance: float = 0.0
    retro: float = 0.0

@dataclass(frozen=True)
class MissionEntry:
    """Achieved partner mission bonus for one rider."""
    name: str
    start_date: Optional[str]
    end_date: Optional[str]
    amount: float
    license_id: Optional[str] = None

@dataclass
class ParsedFile:
    summaries: List[RawSummaryRow] = field(default_factory=list)
    details: List[RawOrderRow] = field(default_factory=list)
    missions: List[MissionEntry] = field(default_factory=list)
    source_file: Optional[str] = None
    branch_id: Optional[str] = None
    branch_label: Optional[str] = None

class PeakCounts:
    """Per-slot order counters for one rider on one judgement date."""

    def __init__(self, slots: Optional[List[str]] = None):
        self.counts: Dict[str, int] = {s: 0 for s in (slots or settings.PEAK_SLOTS)}
        self.total = 0

    def add(self, slot: str):
        # unknown slot names only count toward the total
        if slot in self.counts:
            self.counts[slot] += 1
        self.total += 1

    def get(self, slot: str) -> int:
        if slot == "total":
            return self.total
        return self.counts.get(slot, 0)

    def to_dict(self) -> Dict[str, int]:
        out = dict(self.counts)
        out["total"] = self.total
        return out

    def __eq__(self, other):
        return isinstance(other, PeakCounts) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"PeakCounts({self.to_dict()})"

PeakHistogram = Dict[str, PeakCounts]

@dataclass
class AggregatedRider:
    key: str
    license_id: str
    rider_name: str
    rider_suffix: str
    total_orders: int = 0
    branch_counts: Dict[str, int] = field(default_factory=dict)
    peak_by_date: PeakHistogram = field(default_factory=dict)
    peak_by_branch: Dict[str, PeakHistogram] = field(default_factory=dict)
    details: List[RawOrderRow] = field(default_factory=list)

    @property
    def counted_orders(self) -> int:
        return sum(self.branch_counts.values())

    @property
    def primary_branch(self) -> Optional[str]:
        """Branch with the most orders; the first seen wins a tie."""
        if not self.branch_counts:
            return None
        return max(self.branch_counts.items(), key=lambda kv: kv[1])[0]

AMOUNT_FIELDS = (
    "settlement_amount",
    "support_total",
    "deduction",
    "total_settlement",
    "fee",
    "employment",
    "accident",
    "time_insurance",
    "retro",
)

@dataclass
class SummaryFinancials:
    branch_name: str = "-"
    settlement_amount: float = 0.0
    support_total: float = 0.0
    deduction: float = 0.0
    total_settlement: float = 0.0
    fee: float = 0.0
    employment: float = 0.0
    accident: float = 0.0
    time_insurance: float = 0.0
    retro: float = 0.0

    @classmethod
    def from_row(cls, row: RawSummaryRow, branch_name: str) -> "SummaryFinancials":
        return cls(branch_name=branch_name, **{f: getattr(row, f) for f in AMOUNT_FIELDS})

    def plus(self, other: "SummaryFinancials") -> "SummaryFinancials":
        return SummaryFinancials(
            branch_name=self.branch_name,
            **{f: getattr(self, f) + getattr(other, f) for f in AMOUNT_FIELDS},
        )

@dataclass
class RiderSummary:
    """Summary totals for one rider across every uploaded file."""
    key: str
    license_id: str
    name: str
    raw_name: str
    suffix: str
    total_orders: int
    branch_name: str
    fin: SummaryFinancials

@dataclass
class RawRiderSummary:
    """One file's summary line for a rider, kept for the per-file drill-down."""
    key: str
    license_id: str
    rider_name: str
    rider_suffix: str
    raw_name: str
    branch_name: str
    order_count: int
    fin: SummaryFinancials
    source_file: Optional[str] = None

@dataclass
class SettlementRow:
    key: str
    license_id: str
    rider_name: str
    rider_suffix: str
    branch_name: str
    order_count: int
    fee: float
    withholding: int
    promo_amount: float
    promo_basis: List[str]
    peak_score: str
    mission_amounts: Dict[str, float]
    settlement_amount: float
    support_total: float
    deduction: float
    total_settlement: float
    overall_total: float
    employment: float
    accident: float
    time_insurance: float
    retro: float
    rent_cost: float
    loan_payment: float
    next_day_settlement: float
    actual_deposit: int
    matched_rider_id: Optional[str] = None
    matched_rider_name: Optional[str] = None
    is_child: bool = False
    parent_key: Optional[str] = None
    source_file: Optional[str] = None

    def to_dict(self):
        return asdict(self)
