"""
Canonical rider keys across every workbook of one weekly batch.

Payroll exports identify a rider by license id, but the order sheet and some
summary lines only carry "name + last four phone digits". The resolver binds
each (name, suffix) pair to a key the first time it sees the pair, so every
later row for that pair lands on the same rider no matter which identifiers it
carries.
"""
import re
from typing import Dict, Optional, Tuple

from riderpay.core.config import settings

_TRAILING_SUFFIX = re.compile(r"^(.*?)(\d{4})$")
NO_SUFFIX = "no-suffix"

def split_rider(full: str) -> Tuple[str, str]:
    """Split ``"홍길동1234"`` into ``("홍길동", "1234")``."""
    full = full or ""
    m = _TRAILING_SUFFIX.match(full)
    if m:
        return (m.group(1) or full), m.group(2)
    return full, ""

def normalize_license(license_id: Optional[str]) -> str:
    if license_id is None:
        return settings.LICENSE_PLACEHOLDER
    lic = str(license_id).strip()
    return lic or settings.LICENSE_PLACEHOLDER

def is_real_license(license_id: Optional[str]) -> bool:
    return normalize_license(license_id) != settings.LICENSE_PLACEHOLDER

class RiderIdentityResolver:
    """
    Identity table for one run. Build it by resolving every summary and order
    row, then ``freeze()`` it before the rows are composed; a frozen resolver
    still answers but never binds new pairs.
    """

    def __init__(self):
        self._bindings: Dict[str, str] = {}
        self._frozen = False

    @staticmethod
    def pair_key(name: str, suffix: str) -> str:
        return f"{name}__{suffix or NO_SUFFIX}"

    def _pair(self, full_name: Optional[str], explicit_suffix: Optional[str]) -> Tuple[str, str]:
        split_name, split_suffix = split_rider(full_name or "")
        name = (split_name or full_name or "-").strip()
        suffix = (explicit_suffix or split_suffix or "").strip()
        return name, suffix

    def resolve(self, license_id: Optional[str], full_name: Optional[str], explicit_suffix: Optional[str] = None) -> str:
        name, suffix = self._pair(full_name, explicit_suffix)
        ns_key = self.pair_key(name, suffix)
        bound = self._bindings.get(ns_key)
        if bound is not None:
            # first-seen wins, even when a different license id shows up later
            return bound
        lic = normalize_license(license_id)
        key = lic if lic != settings.LICENSE_PLACEHOLDER else ns_key
        if not self._frozen:
            self._bindings[ns_key] = key
        return key

    def lookup(self, full_name: Optional[str], explicit_suffix: Optional[str] = None) -> Optional[str]:
        name, suffix = self._pair(full_name, explicit_suffix)
        return self._bindings.get(self.pair_key(name, suffix))

    def freeze(self) -> "RiderIdentityResolver":
        self._frozen = True
        return self
