"""
Merge every workbook's summary sheet into per-rider totals.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from riderpay.core.config import settings
from riderpay.core.models import ParsedFile, RawRiderSummary, RiderSummary, SummaryFinancials
from .identity import RiderIdentityResolver, is_real_license, normalize_license, split_rider

@dataclass
class MergedSummaries:
    summaries: Dict[str, RiderSummary] = field(default_factory=dict)
    raw_rows_by_rider: Dict[str, List[RawRiderSummary]] = field(default_factory=dict)

    def get(self, key: str):
        return self.summaries.get(key)

    def __contains__(self, key):
        return key in self.summaries

class SummaryMerger:
    """Sums summary amounts per rider key; every field is additive so file order does not change totals."""

    def __init__(self, resolver: RiderIdentityResolver):
        self.resolver = resolver

    def merge(self, files: Iterable[ParsedFile]) -> MergedSummaries:
        merged = MergedSummaries()
        for parsed in files:
            for s in parsed.summaries:
                full_name = s.rider_name_raw or s.rider_name
                name, suffix = split_rider(full_name or "-")
                lic = normalize_license(s.license_id)
                key = self.resolver.resolve(lic, full_name, suffix or None)
                branch_name = s.branch_name or parsed.branch_label or "-"
                fin = SummaryFinancials.from_row(s, branch_name)

                prev = merged.summaries.get(key)
                if prev is None:
                    merged.summaries[key] = RiderSummary(
                        key=key,
                        license_id=lic,
                        name=name or "-",
                        raw_name=s.rider_name_raw or s.rider_name or "-",
                        suffix=suffix,
                        total_orders=s.total_orders or 0,
                        branch_name=branch_name,
                        fin=fin,
                    )
                else:
                    if not is_real_license(prev.license_id) and is_real_license(lic):
                        prev.license_id = lic
                    prev.suffix = prev.suffix or suffix
                    prev.total_orders += s.total_orders or 0
                    prev.fin = prev.fin.plus(fin)

                merged.raw_rows_by_rider.setdefault(key, []).append(RawRiderSummary(
                    key=key,
                    license_id=lic if lic != settings.LICENSE_PLACEHOLDER else key,
                    rider_name=name or "-",
                    rider_suffix=suffix,
                    raw_name=s.rider_name_raw or s.rider_name or "-",
                    branch_name=branch_name,
                    order_count=s.total_orders or 0,
                    fin=fin,
                    source_file=parsed.source_file,
                ))
        return merged
