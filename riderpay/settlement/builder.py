"""
Compose settlement rows from the aggregated riders, merged summaries,
promotions, fees, missions, loans, rent and the next-day offset.
"""
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from riderpay.catalog.branches import SettlementCatalog
from riderpay.core.config import settings
from riderpay.core.models import AggregatedRider, RawRiderSummary, SettlementRow, SummaryFinancials
from riderpay.core.utils import format_amount
from riderpay.promotions.config import active_promotions_for_branch
from riderpay.promotions.evaluator import PeakInfo, PromotionEvaluator, PromotionTotals
from riderpay.tax.withholding import RiderWithholding
from .fees import FeeCalculator
from .identity import split_rider
from .missions import MissionTotals
from .summary import MergedSummaries

def format_peak_score(info: Optional[PeakInfo]) -> str:
    if info is None:
        return "-"
    text = f"{info.score:,}"
    if info.min_score:
        text += f" / min {format_amount(info.min_score)}"
    return text

def sunday_weekday(day: str) -> Optional[int]:
    """Weekday of an ISO date with 0=Sunday..6=Saturday."""
    try:
        d = date.fromisoformat(day[:10])
    except (TypeError, ValueError):
        return None
    return (d.weekday() + 1) % 7

class SettlementRowBuilder:

    def __init__(
        self,
        catalog: SettlementCatalog,
        missions: MissionTotals,
        next_day_offsets: Optional[Dict[str, float]] = None,
        span: Tuple[Optional[str], Optional[str]] = (None, None),
    ):
        self.catalog = catalog
        self.missions = missions
        self.next_day_offsets = next_day_offsets or {}
        self.span = span
        self.evaluator = PromotionEvaluator()
        self.fees = FeeCalculator()
        self.tax = RiderWithholding()

    def _promotions(self, branch_label: str, order_count: float, histogram) -> Tuple[PromotionTotals, str]:
        branch_id = self.catalog.branch_id_by_label(branch_label)
        promos = active_promotions_for_branch(self.catalog.promotions, branch_id, self.span)
        totals = self.evaluator.evaluate_all(promos, order_count, histogram)
        # the score shown is the first promotion's that carries a peak condition
        first_peak = next((r.peak_info for r in totals.results if r.peak_info), None)
        return totals, format_peak_score(first_peak)

    def loan_payment(self, rider: AggregatedRider, matched_id: Optional[str], suffix: str) -> float:
        """Scheduled loan amount when the rider was active on the schedule's weekday."""
        schedule = self.catalog.loan_schedule(matched_id, suffix)
        if schedule is None or schedule.amount is None or schedule.normalized_weekday is None:
            return 0.0
        days = [d.judgement_date for d in rider.details] + self.missions.rider_dates(rider.key)
        weekdays = [w for w in (sunday_weekday(d) for d in days) if w is not None]
        if not days or schedule.normalized_weekday in weekdays:
            return schedule.amount
        return 0.0

    def build_parent(self, rider: AggregatedRider, merged: MergedSummaries) -> SettlementRow:
        summary = merged.get(rider.key)
        fin = summary.fin if summary else SummaryFinancials()
        order_count = rider.total_orders or (summary.total_orders if summary else 0)
        branch = rider.primary_branch or (summary.branch_name if summary else None) or "-"

        # all-branch histogram for the merged row
        promo, peak_text = self._promotions(branch, order_count, rider.peak_by_date)
        fee = self.fees.compute(
            self.catalog.fee_policy(branch),
            order_count,
            fin.settlement_amount or fin.total_settlement,
            fallback=fin.fee,
        )

        suffix = (
            rider.rider_suffix
            or (summary.suffix if summary else "")
            or split_rider(summary.raw_name if summary else "")[1]
            or ""
        )
        matched = self.catalog.find_matched_rider(branch, suffix)
        matched_id = matched.id if matched else None
        rent = self.catalog.daily_rental_fee(matched_id) * settings.RENT_DAYS_PER_WEEK
        loan = self.loan_payment(rider, matched_id, suffix)
        next_day = self.next_day_offsets.get(rider.license_id, 0.0)

        mission_amounts = self.missions.rider_amounts(rider.key)
        overall = fin.total_settlement + promo.amount + sum(mission_amounts.values())
        money = self.tax.deposit_breakdown(
            fin.total_settlement,
            overall,
            employment=fin.employment,
            accident=fin.accident,
            time_insurance=fin.time_insurance,
            rent=rent,
            loan=loan,
            fee=fee,
            next_day=next_day,
        )

        return SettlementRow(
            key=rider.key,
            license_id=rider.license_id or settings.LICENSE_PLACEHOLDER,
            rider_name=rider.rider_name if rider.rider_name not in ("", "-") else (summary.name if summary else "-"),
            rider_suffix=suffix or "-",
            branch_name=branch,
            order_count=order_count,
            fee=fee,
            withholding=money["Withholding"],
            promo_amount=promo.amount,
            promo_basis=promo.basis,
            peak_score=peak_text,
            mission_amounts=mission_amounts,
            settlement_amount=fin.settlement_amount,
            support_total=fin.support_total,
            deduction=fin.deduction,
            total_settlement=fin.total_settlement,
            overall_total=overall,
            employment=fin.employment,
            accident=fin.accident,
            time_insurance=fin.time_insurance,
            retro=fin.retro,
            rent_cost=rent,
            loan_payment=loan,
            next_day_settlement=next_day,
            actual_deposit=money["Deposit"],
            matched_rider_id=matched_id,
            matched_rider_name=matched.name if matched else None,
        )

    def build_child(self, rider: Optional[AggregatedRider], raw: RawRiderSummary, idx: int) -> SettlementRow:
        """
        One file's share of a rider. Only that file's branch histogram feeds the
        peak score; missions, loans, rent and the next-day offset stay on the parent.
        """
        fin = raw.fin
        histogram = rider.peak_by_branch.get(raw.branch_name, {}) if rider else {}
        promo, peak_text = self._promotions(raw.branch_name, raw.order_count, histogram)
        fee = self.fees.compute(
            self.catalog.fee_policy(raw.branch_name),
            raw.order_count,
            fin.settlement_amount or fin.total_settlement,
            fallback=fin.fee,
        )
        overall = fin.total_settlement + promo.amount
        money = self.tax.deposit_breakdown(
            fin.total_settlement,
            overall,
            employment=fin.employment,
            accident=fin.accident,
            time_insurance=fin.time_insurance,
            fee=fee,
        )
        return SettlementRow(
            key=f"{raw.key}-child-{idx}",
            license_id=raw.license_id or raw.key,
            rider_name=raw.rider_name or raw.raw_name or "-",
            rider_suffix=raw.rider_suffix or "-",
            branch_name=raw.branch_name,
            order_count=raw.order_count,
            fee=fee,
            withholding=money["Withholding"],
            promo_amount=promo.amount,
            promo_basis=promo.basis,
            peak_score=peak_text,
            mission_amounts={},
            settlement_amount=fin.settlement_amount,
            support_total=fin.support_total,
            deduction=fin.deduction,
            total_settlement=fin.total_settlement,
            overall_total=overall,
            employment=fin.employment,
            accident=fin.accident,
            time_insurance=fin.time_insurance,
            retro=fin.retro,
            rent_cost=0.0,
            loan_payment=0.0,
            next_day_settlement=0.0,
            actual_deposit=money["Deposit"],
            is_child=True,
            parent_key=raw.key,
            source_file=raw.source_file,
        )

    def build(
        self, riders: Dict[str, AggregatedRider], merged: MergedSummaries
    ) -> Tuple[List[SettlementRow], Dict[str, List[SettlementRow]]]:
        """Parent rows sorted by rider name, plus per-file child rows for riders found in more than one source file."""
        ordered: Iterable[AggregatedRider] = sorted(riders.values(), key=lambda r: (r.rider_name or "", r.key))
        rows = [self.build_parent(r, merged) for r in ordered]

        children: Dict[str, List[SettlementRow]] = {}
        for key, raws in merged.raw_rows_by_rider.items():
            if len({raw.source_file for raw in raws}) < 2:
                continue
            rider = riders.get(key)
            children[key] = [self.build_child(rider, raw, idx) for idx, raw in enumerate(raws)]
        return rows, children
