"""
Partner mission bonuses summed per (date, rider key).
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from riderpay.core.models import ParsedFile
from .identity import RiderIdentityResolver, is_real_license, split_rider
from .summary import MergedSummaries

WEEKDAY_ABBR = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

@dataclass
class MissionTotals:
    by_date: Dict[str, Dict[str, float]] = field(default_factory=dict)

    @property
    def dates(self) -> List[str]:
        return sorted(self.by_date)

    def amount(self, mission_date: str, rider_key: str) -> float:
        return self.by_date.get(mission_date, {}).get(rider_key, 0.0)

    def rider_total(self, rider_key: str) -> float:
        return sum(per_rider.get(rider_key, 0.0) for per_rider in self.by_date.values())

    def rider_amounts(self, rider_key: str) -> Dict[str, float]:
        return {d: self.amount(d, rider_key) for d in self.dates}

    def rider_dates(self, rider_key: str) -> List[str]:
        return [d for d in self.dates if self.amount(d, rider_key)]

def mission_label(mission_date: str) -> str:
    """``2024-05-06`` -> ``05/06(Mon)``; unparseable dates are returned unchanged."""
    try:
        d = date.fromisoformat(mission_date[:10])
    except ValueError:
        return mission_date
    return f"{d.month:02d}/{d.day:02d}({WEEKDAY_ABBR[d.weekday()]})"

def mission_totals(files: Iterable[ParsedFile], resolver: RiderIdentityResolver, merged: MergedSummaries) -> MissionTotals:
    """
    Missions carry a name and sometimes a license id. A mission is credited to
    the rider whose summary carries that license, else to the rider bound to
    its name and suffix, else to the only summary rider with that plain name.
    Missions that match nobody are dropped.
    """
    key_by_license: Dict[str, str] = {}
    key_by_name: Dict[str, str] = {}
    for key, s in merged.summaries.items():
        if is_real_license(s.license_id):
            key_by_license[s.license_id] = key
        if s.name:
            key_by_name[s.name] = key

    totals = MissionTotals()
    for parsed in files:
        for m in parsed.missions:
            if not m.start_date:
                continue
            key = _mission_key(m.license_id, m.name, resolver, key_by_license, key_by_name)
            if not key:
                continue
            per_rider = totals.by_date.setdefault(m.start_date, {})
            per_rider[key] = per_rider.get(key, 0.0) + (m.amount or 0.0)
    return totals

def _mission_key(
    license_id: Optional[str],
    name: str,
    resolver: RiderIdentityResolver,
    key_by_license: Dict[str, str],
    key_by_name: Dict[str, str],
) -> Optional[str]:
    if is_real_license(license_id):
        return key_by_license.get(license_id, license_id)
    found = resolver.lookup(name)
    if found:
        return found
    plain, _ = split_rider(name or "")
    return key_by_name.get(plain)
