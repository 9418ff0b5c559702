"""
Read-only catalog view used by one settlement run.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from riderpay.core.utils import setup_logging, to_number
from riderpay.promotions.config import PromotionConfig, normalize_promotions
from riderpay.settlement.fees import BranchFeePolicy
from .repositories import (
    BranchesRepository,
    BranchRidersRepository,
    LeaseRentalsRepository,
    LoansRepository,
    PromotionsRepository,
)

logger = setup_logging("catalog")

_FILE_EXT = re.compile(r"\.xlsx|\.xlsm|\.xls", re.IGNORECASE)
_TOKEN_SPLIT = re.compile(r"[\s_\-.]+")

@dataclass(frozen=True)
class Branch:
    id: str
    name: str
    branch_name: Optional[str] = None
    display_name: Optional[str] = None
    district: str = ""
    province: str = ""
    corporate_name: Optional[str] = None
    personal_name: Optional[str] = None
    fee_policy: Optional[BranchFeePolicy] = None

    @classmethod
    def from_record(cls, r: Dict[str, Any]) -> "Branch":
        bid = str(r.get("id"))
        return cls(
            id=bid,
            name=r.get("display_name") or r.get("branch_name") or bid,
            branch_name=r.get("branch_name"),
            display_name=r.get("display_name"),
            district=r.get("district") or "",
            province=r.get("province") or "",
            corporate_name=r.get("corporate_entity_name"),
            personal_name=r.get("personal_entity_name"),
            fee_policy=BranchFeePolicy.from_record(r),
        )

    def labels(self) -> List[str]:
        return [lbl for lbl in (self.name, self.display_name, self.branch_name) if lbl]

    def guess_tokens(self) -> List[str]:
        # order sets the exact-match weight: 5 for the first token, 4 for the next...
        raw = [
            self.branch_name,
            self.display_name,
            self.name,
            self.district,
            self.province,
            self.corporate_name,
            self.personal_name,
        ]
        return [str(t).lower() for t in raw if t]

@dataclass(frozen=True)
class BranchRider:
    id: str
    name: str
    phone: str = ""
    phone_suffix: str = ""

    @classmethod
    def from_record(cls, r: Dict[str, Any]) -> "BranchRider":
        phone = str(r.get("phone") or "")
        digits = re.sub(r"\D", "", phone)
        suffix = str(r.get("phone_suffix") or (digits[-4:] if len(digits) >= 4 else ""))
        return cls(id=str(r.get("id")), name=r.get("name") or "", phone=phone, phone_suffix=suffix)

@dataclass(frozen=True)
class LoanSchedule:
    weekday: Optional[int]
    amount: Optional[float]

    @property
    def normalized_weekday(self) -> Optional[int]:
        """0=Sunday..6=Saturday; 7 is also accepted for Sunday."""
        if self.weekday is None:
            return None
        return 0 if self.weekday == 7 else self.weekday

def guess_branch_id(file_name: str, branches: Sequence[Branch]) -> Optional[str]:
    """Best-scoring branch for an uploaded file name, or ``None`` when nothing matches."""
    lower = file_name.lower()
    parts = [p for p in _TOKEN_SPLIT.split(_FILE_EXT.sub("", lower, count=1)) if p]

    best_id, best_score = None, 0
    for b in branches:
        score = 0
        for idx, token in enumerate(b.guess_tokens()):
            if token in parts:
                score += 5 - idx
            elif token in lower:
                score += 1
        if score > best_score:
            best_id, best_score = b.id, score
    return best_id

@dataclass
class SettlementCatalog:
    branches: List[Branch] = field(default_factory=list)
    promotions: List[PromotionConfig] = field(default_factory=list)
    riders_by_branch: Dict[str, List[BranchRider]] = field(default_factory=dict)
    rental_fee_by_rider: Dict[str, float] = field(default_factory=dict)
    loan_by_rider: Dict[str, LoanSchedule] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def __post_init__(self):
        self._id_by_label: Dict[str, str] = {}
        for b in self.branches:
            for lbl in b.labels():
                self._id_by_label[str(lbl)] = b.id
        self._branch_by_id = {b.id: b for b in self.branches}
        self._loan_by_suffix: Dict[str, LoanSchedule] = {}
        for riders in self.riders_by_branch.values():
            for r in riders:
                if r.phone_suffix and r.id in self.loan_by_rider:
                    self._loan_by_suffix[r.phone_suffix] = self.loan_by_rider[r.id]

    @classmethod
    def load(cls, tenant_id: str) -> "SettlementCatalog":
        """Read every catalog repository for the tenant; missing files mean empty collections."""
        branches = [Branch.from_record(r) for r in BranchesRepository(tenant_id).load_data()]
        warnings: List[str] = []
        promotions = normalize_promotions(PromotionsRepository(tenant_id).load_data(), logger=logger, warnings=warnings)
        roster = {
            bid: [BranchRider.from_record(r) for r in rows]
            for bid, rows in BranchRidersRepository(tenant_id).riders_by_branch().items()
        }
        loans = {}
        for r in LoansRepository(tenant_id).load_data():
            if not r.get("rider_id"):
                continue
            weekday, amount = r.get("payment_weekday"), r.get("payment_amount")
            if weekday is None and amount is None:
                continue
            loans[str(r["rider_id"])] = LoanSchedule(
                weekday=None if weekday is None else int(to_number(weekday)),
                amount=None if amount is None else to_number(amount),
            )
        catalog = cls(
            branches=branches,
            promotions=promotions,
            riders_by_branch=roster,
            rental_fee_by_rider=LeaseRentalsRepository(tenant_id).daily_fee_by_rider(),
            loan_by_rider=loans,
            warnings=warnings,
        )
        logger.info(
            "catalog loaded tenant=%s branches=%d promotions=%d rosters=%d",
            tenant_id, len(branches), len(promotions), len(roster),
        )
        return catalog

    def branch(self, branch_id: Optional[str]) -> Optional[Branch]:
        return self._branch_by_id.get(branch_id) if branch_id else None

    def branch_label(self, branch_id: Optional[str]) -> str:
        b = self.branch(branch_id)
        return b.name if b else (branch_id or "")

    def branch_id_by_label(self, label: Optional[str]) -> Optional[str]:
        if not label:
            return None
        bid = self._id_by_label.get(label)
        if bid:
            return bid
        if label in self.riders_by_branch:
            return label
        return None

    def fee_policy(self, branch_label: Optional[str]) -> Optional[BranchFeePolicy]:
        b = self.branch(self.branch_id_by_label(branch_label))
        return b.fee_policy if b else None

    def find_matched_rider(self, branch_label: Optional[str], suffix: Optional[str]) -> Optional[BranchRider]:
        if not suffix:
            return None
        bid = self.branch_id_by_label(branch_label)
        if not bid:
            return None
        for r in self.riders_by_branch.get(bid, []):
            if r.phone_suffix == suffix:
                return r
        return None

    def daily_rental_fee(self, rider_id: Optional[str]) -> float:
        if not rider_id:
            return 0.0
        return self.rental_fee_by_rider.get(rider_id, 0.0)

    def loan_schedule(self, rider_id: Optional[str], suffix: Optional[str]) -> Optional[LoanSchedule]:
        if rider_id and rider_id in self.loan_by_rider:
            return self.loan_by_rider[rider_id]
        if suffix:
            return self._loan_by_suffix.get(suffix)
        return None
