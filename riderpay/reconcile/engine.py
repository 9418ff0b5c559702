"""
Next-day settlement offsets: amounts already paid to a rider under the daily
settlement cycle within the weekly batch's date span. The weekly deposit
subtracts them so the same money is not paid twice.
"""
from datetime import date
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

import requests
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from riderpay.core.config import settings
from riderpay.core.utils import setup_logging, to_number
from riderpay.db.models import DailySettlementResult
from riderpay.db.session import SessionLocal

logger = setup_logging("reconcile")

DateSpan = Tuple[Optional[str], Optional[str]]

class PayoutSourceError(RuntimeError):
    """The source answered, but not with something usable."""

class PayoutSource(Protocol):
    def totals(self, license_ids: List[str], span: DateSpan) -> Dict[str, float]:
        ...

def _as_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value[:10]) if value else None

class DailyPayoutLookup:
    """Sums saved daily results per license: ``net_payout``, else ``next_day_settlement``."""

    def __init__(self, session_factory=SessionLocal, branch_ids: Optional[Iterable[str]] = None):
        self.session_factory = session_factory
        self.branch_ids = list(branch_ids) if branch_ids is not None else None

    def totals(self, license_ids: List[str], span: DateSpan) -> Dict[str, float]:
        stmt = select(DailySettlementResult).where(DailySettlementResult.license_id.in_(license_ids))
        if self.branch_ids is not None:
            stmt = stmt.where(DailySettlementResult.branch_id.in_(self.branch_ids))
        start, end = _as_date(span[0]), _as_date(span[1])
        if start:
            stmt = stmt.where(DailySettlementResult.settlement_date >= start)
        if end:
            stmt = stmt.where(DailySettlementResult.settlement_date <= end)

        totals: Dict[str, float] = {}
        session = self.session_factory()
        try:
            for row in session.execute(stmt).scalars():
                lic = (row.license_id or "").strip()
                if not lic:
                    continue
                paid = row.net_payout if row.net_payout is not None else row.next_day_settlement
                totals[lic] = totals.get(lic, 0.0) + to_number(paid)
        finally:
            session.close()
        return totals

class NetPayoutAPIClient:
    """HTTP source: ``POST {licenseIds, startDate, endDate}`` answering ``{"totals": {license: amount}}``."""

    def __init__(self, url: str, timeout: float = None, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout or settings.NET_PAYOUT_TIMEOUT
        self.http = session or requests.Session()

    def totals(self, license_ids: List[str], span: DateSpan) -> Dict[str, float]:
        r = self.http.post(
            self.url,
            json={"licenseIds": license_ids, "startDate": span[0], "endDate": span[1]},
            timeout=self.timeout,
        )
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, dict) or data.get("error"):
            raise PayoutSourceError(f"net payout endpoint error: {data.get('error') if isinstance(data, dict) else data!r}")
        totals = data.get("totals") or {}
        if not isinstance(totals, dict):
            raise PayoutSourceError("net payout endpoint returned malformed totals")
        return {str(k): to_number(v) for k, v in totals.items()}

class NextDayReconciler:
    """
    One batched lookup per run. Any failure is non-fatal: the run continues
    with no offsets and the warning is handed back to the caller.
    """

    def __init__(self, source: Optional[PayoutSource] = None):
        if source is None:
            source = NetPayoutAPIClient(settings.NET_PAYOUT_URL) if settings.NET_PAYOUT_URL else DailyPayoutLookup()
        self.source = source
        self.warnings: List[str] = []

    def offsets(self, license_ids: Iterable[str], span: DateSpan) -> Dict[str, float]:
        ids = sorted({lic for lic in license_ids if lic and lic != settings.LICENSE_PLACEHOLDER})
        if not ids:
            return {}
        try:
            totals = self.source.totals(ids, span)
        except (requests.RequestException, SQLAlchemyError, PayoutSourceError, ValueError) as e:
            msg = f"next-day settlement lookup failed, offsets set to 0: {e}"
            logger.warning(msg)
            self.warnings.append(msg)
            return {}
        logger.info("next-day offsets licenses=%d matched=%d span=%s..%s", len(ids), len(totals), span[0], span[1])
        return totals
