"""
Normalize stored promotion records into typed configs.

Promotion records were written by several generations of the admin form, so
the same concept lives under different keys. Each concept is read from an
ordered list of field names below; the first one present wins.

    excess block         excess            (falls back to the config itself)
    excess threshold     threshold, targetCount, base_count, count
    excess amount        amountPerExcess, amount, amount_per_excess, excess_amount
    milestone tiers      milestones, milestone, tiers, levels
    milestone threshold  threshold, targetCount, target_count, base_count
    milestone amount     amount, rewardAmount, reward_amount, value
    per-unit tiers       milestonePerUnit, milestone_per_unit, tiers, levels
    per-unit threshold   threshold, start, base_count
    per-unit size        unitSize, size, per                 (default 1)
    per-unit amount      unitAmount, amount, unit_amount
    peak precondition    peakPrecondition, peak_precondition, peak_pre_condition, peak
    peak min score       minScore, min_score
    peak condition min   minCount, min_count
    assignment branch    branchId, branch_id, id
    assignment active    active, is_active, isActive         (default true)
    window start         startDate, start_date, start_at, startAt
    window end           endDate, end_date, end_at, endAt

A tier list may also be wrapped as ``{"tiers": [...]}`` or ``{"levels": [...]}``.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from riderpay.core.errors import PromotionConfigError
from riderpay.core.utils import format_amount, to_number

EXCESS = "excess"
MILESTONE = "milestone"
MILESTONE_PER_UNIT = "milestone_per_unit"
PROMOTION_TYPES = (EXCESS, MILESTONE, MILESTONE_PER_UNIT)

TYPE_LABELS = {
    EXCESS: "Excess reward",
    MILESTONE: "Milestone reward",
    MILESTONE_PER_UNIT: "Per-unit reward",
}

EXCESS_THRESHOLD_KEYS = ("threshold", "targetCount", "base_count", "count")
EXCESS_AMOUNT_KEYS = ("amountPerExcess", "amount", "amount_per_excess", "excess_amount")
MILESTONE_LIST_KEYS = ("milestones", "milestone", "tiers", "levels")
MILESTONE_THRESHOLD_KEYS = ("threshold", "targetCount", "target_count", "base_count")
MILESTONE_AMOUNT_KEYS = ("amount", "rewardAmount", "reward_amount", "value")
PER_UNIT_LIST_KEYS = ("milestonePerUnit", "milestone_per_unit", "tiers", "levels")
PER_UNIT_THRESHOLD_KEYS = ("threshold", "start", "base_count")
PER_UNIT_SIZE_KEYS = ("unitSize", "size", "per")
PER_UNIT_AMOUNT_KEYS = ("unitAmount", "amount", "unit_amount")
PEAK_KEYS = ("peakPrecondition", "peak_precondition", "peak_pre_condition", "peak")
PEAK_MIN_SCORE_KEYS = ("minScore", "min_score")
PEAK_MIN_COUNT_KEYS = ("minCount", "min_count")
ASSIGNMENT_BRANCH_KEYS = ("branchId", "branch_id", "id")
ASSIGNMENT_ACTIVE_KEYS = ("active", "is_active", "isActive")
START_KEYS = ("startDate", "start_date", "start_at", "startAt")
END_KEYS = ("endDate", "end_date", "end_at", "endAt")

@dataclass(frozen=True)
class MilestoneTier:
    threshold: float
    amount: float

@dataclass(frozen=True)
class PerUnitTier:
    threshold: float
    unit_size: float
    unit_amount: float

@dataclass(frozen=True)
class PeakCondition:
    slot: str
    min_count: float

@dataclass(frozen=True)
class PeakPrecondition:
    mode: str = "AND"
    min_score: Optional[float] = None
    conditions: Tuple[PeakCondition, ...] = ()

@dataclass(frozen=True)
class BranchAssignment:
    branch_id: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    active: bool = True

    def overlaps(self, span_start: Optional[str], span_end: Optional[str]) -> bool:
        if self.start_date and span_end and span_end < self.start_date:
            return False
        if self.end_date and span_start and span_start > self.end_date:
            return False
        return True

@dataclass(frozen=True)
class PromotionConfig:
    id: str
    name: str
    type: str
    status: str = "active"
    threshold: float = 0.0
    amount_per_excess: float = 0.0
    milestones: Tuple[MilestoneTier, ...] = ()
    per_unit_tiers: Tuple[PerUnitTier, ...] = ()
    peak: Optional[PeakPrecondition] = None
    assignments: Dict[str, BranchAssignment] = field(default_factory=dict, compare=False, hash=False)
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @property
    def type_label(self) -> str:
        return TYPE_LABELS.get(self.type, self.type or "")

    @property
    def is_active(self) -> bool:
        return self.status == "active"

def first_present(src: Dict[str, Any], keys: Sequence[str], default: Any = None) -> Any:
    for k in keys:
        if k in src and src[k] is not None:
            return src[k]
    return default

def normalize_date(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]

def _tier_list(cfg: Dict[str, Any], keys: Sequence[str]) -> List[Dict[str, Any]]:
    top = first_present(cfg, keys, [])
    if isinstance(top, list):
        return [t for t in top if isinstance(t, dict)]
    if isinstance(top, dict):
        nested = top.get("tiers", top.get("levels"))
        if isinstance(nested, list):
            return [t for t in nested if isinstance(t, dict)]
    return []

def _peak(cfg: Dict[str, Any]) -> Optional[PeakPrecondition]:
    raw = first_present(cfg, PEAK_KEYS)
    if not isinstance(raw, dict):
        return None
    conditions = tuple(
        PeakCondition(slot=str(c.get("slot") or ""), min_count=to_number(first_present(c, PEAK_MIN_COUNT_KEYS, 0)))
        for c in (raw.get("conditions") or [])
        if isinstance(c, dict)
    )
    if not conditions:
        return None
    min_score = to_number(first_present(raw, PEAK_MIN_SCORE_KEYS), default=0.0)
    return PeakPrecondition(
        mode=str(raw.get("mode") or "AND").upper(),
        # zero, blank or junk means "no threshold"
        min_score=min_score if min_score > 0 else None,
        conditions=conditions,
    )

def _assignments(raw: Dict[str, Any]) -> Dict[str, BranchAssignment]:
    out: Dict[str, BranchAssignment] = {}
    for b in raw.get("branches") or []:
        if not isinstance(b, dict):
            continue
        bid = str(first_present(b, ASSIGNMENT_BRANCH_KEYS, "") or "")
        if not bid:
            continue
        if not first_present(b, ASSIGNMENT_ACTIVE_KEYS, True):
            continue
        out[bid] = BranchAssignment(
            branch_id=bid,
            start_date=normalize_date(first_present(b, START_KEYS)),
            end_date=normalize_date(first_present(b, END_KEYS)),
        )
    return out

def normalize_promotion(raw: Dict[str, Any]) -> PromotionConfig:
    """Build a ``PromotionConfig`` from a stored promotion record."""
    cfg = raw.get("config") or {}
    if isinstance(cfg.get("config"), dict):
        cfg = cfg["config"]
    ptype = str(raw.get("type") or cfg.get("type") or "")

    kwargs: Dict[str, Any] = {}
    if ptype == EXCESS:
        src = cfg.get("excess") if isinstance(cfg.get("excess"), dict) else cfg
        kwargs["threshold"] = to_number(first_present(src, EXCESS_THRESHOLD_KEYS, 0))
        kwargs["amount_per_excess"] = to_number(first_present(src, EXCESS_AMOUNT_KEYS, 0))
    elif ptype == MILESTONE:
        kwargs["milestones"] = tuple(
            MilestoneTier(
                threshold=to_number(first_present(t, MILESTONE_THRESHOLD_KEYS, 0)),
                amount=to_number(first_present(t, MILESTONE_AMOUNT_KEYS, 0)),
            )
            for t in _tier_list(cfg, MILESTONE_LIST_KEYS)
        )
    elif ptype == MILESTONE_PER_UNIT:
        tiers = []
        for t in _tier_list(cfg, PER_UNIT_LIST_KEYS):
            size = to_number(first_present(t, PER_UNIT_SIZE_KEYS, 1), default=1.0)
            if size <= 0:
                raise PromotionConfigError(f"promotion {raw.get('id')}: unit size must be positive, got {size}")
            tiers.append(PerUnitTier(
                threshold=to_number(first_present(t, PER_UNIT_THRESHOLD_KEYS, 0)),
                unit_size=size,
                unit_amount=to_number(first_present(t, PER_UNIT_AMOUNT_KEYS, 0)),
            ))
        kwargs["per_unit_tiers"] = tuple(tiers)

    return PromotionConfig(
        id=str(raw.get("id")),
        name=str(raw.get("name") or ""),
        type=ptype,
        status=str(raw.get("status") or "ended"),
        peak=_peak(cfg),
        assignments=_assignments(raw),
        start_date=normalize_date(first_present(raw, START_KEYS)),
        end_date=normalize_date(first_present(raw, END_KEYS)),
        **kwargs,
    )

def normalize_promotions(
    records: Sequence[Dict[str, Any]], logger=None, warnings: Optional[List[str]] = None
) -> List[PromotionConfig]:
    """Normalize a catalog of promotions; records that cannot be normalized are skipped and reported."""
    out = []
    for raw in records or []:
        try:
            out.append(normalize_promotion(raw))
        except PromotionConfigError as e:
            if logger:
                logger.warning("skipping promotion: %s", e)
            if warnings is not None:
                warnings.append(f"skipped promotion: {e}")
    return out

def active_promotions_for_branch(
    promotions: Sequence[PromotionConfig],
    branch_id: Optional[str],
    span: Tuple[Optional[str], Optional[str]] = (None, None),
) -> List[PromotionConfig]:
    if not branch_id:
        return []
    out = []
    for p in promotions:
        if not p.is_active:
            continue
        assignment = p.assignments.get(branch_id)
        if assignment is None or not assignment.active:
            continue
        if not assignment.overlaps(*span):
            continue
        out.append(p)
    return out

def _n(v: float) -> str:
    return format_amount(v) if v else "0"

def describe_promotion(p: PromotionConfig) -> Dict[str, Any]:
    """Human-readable lines for the promotion basis column and detail drawer."""
    lines: List[str] = []
    if p.type == EXCESS:
        lines.append(f"Over {_n(p.threshold)} orders: +{_n(p.amount_per_excess)} per order")
    elif p.type == MILESTONE:
        for idx, t in enumerate(p.milestones, 1):
            lines.append(f"Tier {idx}: {_n(t.threshold)} orders -> {_n(t.amount)}")
    elif p.type == MILESTONE_PER_UNIT:
        for idx, t in enumerate(p.per_unit_tiers, 1):
            lines.append(f"Tier {idx}: from {_n(t.threshold)}, {_n(t.unit_amount)} per {_n(t.unit_size)} orders")

    peak_lines: List[str] = []
    if p.peak:
        peak_lines.append(f"Peak time ({p.peak.mode})")
        if p.peak.min_score is not None:
            peak_lines.append(f"Applies at peak score >= {_n(p.peak.min_score)}")
        for idx, c in enumerate(p.peak.conditions, 1):
            peak_lines.append(f"Condition {idx}: {c.slot or '-'} at least {_n(c.min_count)}")
    return {"type_label": p.type_label, "lines": lines, "peak_lines": peak_lines}
