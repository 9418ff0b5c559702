"""
Promotion reward formulas.

Excess and Milestone are plain step/linear functions of the order count.
Per-unit tiers stack: every tier the rider is past pays out, unlike Milestone
where only the highest qualifying tier pays.
"""
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from riderpay.core.models import PeakCounts, PeakHistogram
from riderpay.core.utils import format_amount
from .config import (
    EXCESS,
    MILESTONE,
    MILESTONE_PER_UNIT,
    PeakPrecondition,
    PromotionConfig,
)

@dataclass
class PeakInfo:
    score: int
    min_score: Optional[float]
    meets: bool

@dataclass
class PromotionResult:
    promotion_id: str
    reward_amount: float
    type_label: str
    peak_info: Optional[PeakInfo] = None

    @property
    def blocked_by_peak(self) -> bool:
        return self.peak_info is not None and not self.peak_info.meets

    def basis_line(self) -> Optional[str]:
        """Text for the promotion basis column; ``None`` when nothing is worth showing."""
        if self.blocked_by_peak:
            return f"[{self.type_label}] peak score {self.peak_info.score}"
        if self.reward_amount:
            return f"[{self.type_label}] {format_amount(self.reward_amount)}"
        return None

@dataclass
class PromotionTotals:
    amount: float = 0.0
    basis: List[str] = field(default_factory=list)
    results: List[PromotionResult] = field(default_factory=list)

def excess_reward(order_count: float, threshold: float, amount_per_excess: float) -> float:
    return max(0.0, order_count - threshold) * amount_per_excess

def milestone_reward(order_count: float, tiers) -> float:
    best = None
    for t in tiers:
        if t.threshold <= order_count and (best is None or t.threshold > best.threshold):
            best = t
    return best.amount if best else 0.0

def per_unit_reward(order_count: float, tiers) -> float:
    total = 0.0
    for t in tiers:
        if order_count > t.threshold:
            steps = math.floor((order_count - t.threshold) / t.unit_size) + 1
            total += steps * t.unit_amount
    return total

def peak_score(peak: PeakPrecondition, histogram: PeakHistogram) -> int:
    """Number of dates on which the peak conditions hold (AND: all, OR: any)."""
    score = 0
    for counts in histogram.values():
        checks = [counts.get(c.slot) >= c.min_count for c in peak.conditions]
        if not checks:
            continue
        ok = any(checks) if peak.mode == "OR" else all(checks)
        if ok:
            score += 1
    return score

class PromotionEvaluator:

    def evaluate(self, promo: PromotionConfig, order_count: float, histogram: Optional[PeakHistogram] = None) -> PromotionResult:
        if promo.type == EXCESS:
            reward = excess_reward(order_count, promo.threshold, promo.amount_per_excess)
        elif promo.type == MILESTONE:
            reward = milestone_reward(order_count, promo.milestones)
        elif promo.type == MILESTONE_PER_UNIT:
            reward = per_unit_reward(order_count, promo.per_unit_tiers)
        else:
            reward = 0.0

        peak_info = None
        if promo.peak:
            score = peak_score(promo.peak, histogram or {})
            min_score = promo.peak.min_score
            meets = True if min_score is None else score >= min_score
            peak_info = PeakInfo(score=score, min_score=min_score, meets=meets)
            if not meets:
                reward = 0.0

        return PromotionResult(
            promotion_id=promo.id,
            reward_amount=reward,
            type_label=promo.type_label,
            peak_info=peak_info,
        )

    def evaluate_all(
        self,
        promotions: Sequence[PromotionConfig],
        order_count: float,
        histogram: Optional[Dict[str, PeakCounts]] = None,
    ) -> PromotionTotals:
        """Sum every promotion's reward; the basis lists one line per promotion that paid or was blocked."""
        totals = PromotionTotals()
        for promo in promotions:
            res = self.evaluate(promo, order_count, histogram)
            totals.results.append(res)
            totals.amount += res.reward_amount
            line = res.basis_line()
            if line:
                totals.basis.append(line)
        return totals
