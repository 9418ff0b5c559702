"""
Per-rider order counts and peak-time histograms built from the order sheets.
"""
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from riderpay.core.models import AggregatedRider, ParsedFile, PeakCounts
from .identity import RiderIdentityResolver, is_real_license, normalize_license, split_rider
from .summary import MergedSummaries

class OrderAggregator:
    def __init__(self, resolver: RiderIdentityResolver):
        self.resolver = resolver

    def aggregate(self, files: Iterable[ParsedFile], merged: Optional[MergedSummaries] = None) -> Dict[str, AggregatedRider]:
        """
        Count every order row under its rider key, then settle totals against
        the merged summaries: a summary's order total is authoritative, the
        counted orders are only a fallback.
        """
        merged = merged or MergedSummaries()
        riders: Dict[str, AggregatedRider] = {}

        for parsed in files:
            for d in parsed.details:
                lic = normalize_license(d.license_id)
                key = self.resolver.resolve(lic, d.rider_name, d.rider_suffix or None)
                name, split_suffix = split_rider(d.rider_name or "-")
                summary = merged.get(key)
                suffix = d.rider_suffix or split_suffix or (summary.suffix if summary else "")
                branch = parsed.branch_label or d.branch_name

                rider = riders.get(key)
                if rider is None:
                    rider = riders[key] = AggregatedRider(
                        key=key, license_id=lic, rider_name=name or "-", rider_suffix=suffix,
                    )
                rider.rider_suffix = rider.rider_suffix or suffix
                rider.details.append(replace(d, rider_name=name or "-", rider_suffix=suffix, branch_name=branch))
                rider.branch_counts[branch] = rider.branch_counts.get(branch, 0) + 1

                day = d.judgement_date
                by_date = rider.peak_by_date.setdefault(day, PeakCounts())
                by_branch = rider.peak_by_branch.setdefault(branch, {}).setdefault(day, PeakCounts())
                by_date.add(d.peak_time)
                by_branch.add(d.peak_time)

        for key, s in merged.summaries.items():
            if key not in riders:
                riders[key] = AggregatedRider(
                    key=key,
                    license_id=s.license_id,
                    rider_name=s.name or "-",
                    rider_suffix=s.suffix or "",
                )

        for key, rider in riders.items():
            summary = merged.get(key)
            counted = rider.counted_orders
            rider.total_orders = summary.total_orders if summary and summary.total_orders else counted
            if summary:
                if not rider.rider_name or rider.rider_name == "-":
                    rider.rider_name = summary.name or "-"
                rider.rider_suffix = summary.suffix or split_rider(summary.raw_name or "")[1] or rider.rider_suffix
                if is_real_license(summary.license_id) or not is_real_license(rider.license_id):
                    rider.license_id = summary.license_id
            rider.details.sort(key=lambda o: o.accepted_at_ms, reverse=True)
        return riders

def branches_used(riders: Dict[str, AggregatedRider], merged: MergedSummaries) -> List[str]:
    labels = set()
    for r in riders.values():
        labels.update(r.branch_counts)
    for s in merged.summaries.values():
        if s.branch_name:
            labels.add(s.branch_name)
    return sorted(labels)

def judgement_span(riders: Dict[str, AggregatedRider]):
    """(min, max) judgement date over every order in the batch, or (None, None)."""
    dates = sorted(d.judgement_date for r in riders.values() for d in r.details if d.judgement_date)
    if not dates:
        return None, None
    return dates[0], dates[-1]
