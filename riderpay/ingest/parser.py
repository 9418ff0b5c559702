"""
Weekly payroll workbook parser.

Reads the three sheets of a decrypted platform payroll export into a
``ParsedFile``. Sheets are read without a header row because the platform
places title blocks and merged cells above the real header.
"""
import calendar
import math
import zipfile
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from riderpay.core.config import settings
from riderpay.core.errors import FileParseError
from riderpay.core.models import MissionEntry, ParsedFile, RawOrderRow, RawSummaryRow
from riderpay.core.utils import round_half_up, setup_logging, to_number
from riderpay.settlement.identity import split_rider

logger = setup_logging("ingest")

SUMMARY_SHEET = "종합"
ORDER_SHEET = "오더별 상세 내역서"
MISSION_SHEET = "협력사 자체 미션"

SUMMARY_LABELS = {
    "license": "라이선스 ID",
    "name": "성함",
    "total_orders": "총 정산 오더수",
    "settlement_amount": "정산금액",
    "support_total": "총 지원금",
    "deduction": "차감내역",
    "total_settlement": "총 정산금액",
    "fee": "⑧수수료 차감 금액",
    "employment": "③기사부담 고용보험",
    "accident": "⑤기사부담 산재보험",
    "time_insurance": "⑥시간제보험",
    "retro": "⑦보험료 소급",
}

ORDER_LABELS = {
    "name": "이름",
    "order_no": "축약형 주문번호",
    "accepted": "수락시간",
    "peak": "피크타임",
}

MISSION_ACHIEVED = "달성"
EXCEL_EPOCH = datetime(1899, 12, 30)

def _cell(df: pd.DataFrame, r: int, c: int) -> Any:
    if c < 0 or r < 0 or r >= df.shape[0] or c >= df.shape[1]:
        return None
    v = df.iat[r, c]
    if v is None:
        return None
    if isinstance(v, float) and math.isnan(v):
        return None
    if v is pd.NaT:
        return None
    return v

def _text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    return str(v).strip()

def to_datetime(value: Any) -> Optional[datetime]:
    """Excel serial numbers, datetime cells and ISO-like strings; anything else is ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime().replace(tzinfo=None)
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None
        return EXCEL_EPOCH + timedelta(seconds=round(float(value) * 86400))
    parsed = pd.to_datetime(str(value).strip(), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime().replace(tzinfo=None)

def judgement_date(accepted: datetime) -> str:
    """Business day of an order: before the cutoff hour counts for the previous day."""
    day = accepted.date()
    if accepted.hour < settings.JUDGEMENT_CUTOFF_HOUR:
        day -= timedelta(days=1)
    return day.isoformat()

def epoch_ms(dt: datetime) -> int:
    return calendar.timegm(dt.timetuple()) * 1000 + dt.microsecond // 1000

def _find_label(df: pd.DataFrame, label: str) -> Tuple[int, int]:
    for r in range(df.shape[0]):
        for c in range(df.shape[1]):
            if _cell(df, r, c) == label:
                return r, c
    return -1, -1

class SettlementWorkbookParser:

    def __init__(self, engine: str = "openpyxl"):
        self.engine = engine

    def read_sheets(self, path: Union[str, Path]) -> Dict[str, pd.DataFrame]:
        try:
            return pd.read_excel(path, sheet_name=None, header=None, engine=self.engine)
        except (OSError, ValueError, KeyError, zipfile.BadZipFile, InvalidFileException) as e:
            raise FileParseError(Path(path).name, f"cannot read workbook ({e})") from e

    def parse_file(self, path: Union[str, Path], branch_label: str, source_name: Optional[str] = None) -> ParsedFile:
        source = source_name or Path(path).name
        sheets = self.read_sheets(path)
        if SUMMARY_SHEET not in sheets:
            raise FileParseError(source, f"missing sheet '{SUMMARY_SHEET}'")

        summaries = self.parse_summary(sheets[SUMMARY_SHEET], branch_label)
        license_by_name = {s.rider_name: s.license_id for s in summaries}
        details = self.parse_orders(sheets.get(ORDER_SHEET), branch_label, license_by_name)
        missions = self.parse_missions(sheets.get(MISSION_SHEET))
        logger.info(
            "parsed %s branch=%s summaries=%d orders=%d missions=%d",
            source, branch_label, len(summaries), len(details), len(missions),
        )
        return ParsedFile(
            summaries=summaries,
            details=details,
            missions=missions,
            source_file=source,
            branch_label=branch_label,
        )

    def parse_summary(self, df: pd.DataFrame, branch_label: str) -> List[RawSummaryRow]:
        cols = {k: _find_label(df, label) for k, label in SUMMARY_LABELS.items()}
        if cols["license"][1] < 0 or cols["name"][1] < 0:
            return []
        header_row = max([rc[0] for rc in cols.values() if rc[0] >= 0] + [0])

        def num(r: int, key: str) -> float:
            return to_number(_cell(df, r, cols[key][1]))

        out = []
        for r in range(header_row + 1, df.shape[0]):
            license_id = _text(_cell(df, r, cols["license"][1]))
            raw_name = _text(_cell(df, r, cols["name"][1]))
            name, _ = split_rider(raw_name)
            total_cell = _cell(df, r, cols["total_orders"][1])
            total_orders = round_half_up(to_number(total_cell)) if total_cell is not None else 0
            if not license_id and not name and not total_orders:
                continue
            out.append(RawSummaryRow(
                license_id=license_id or settings.LICENSE_PLACEHOLDER,
                rider_name=name or "-",
                rider_name_raw=raw_name,
                branch_name=branch_label,
                total_orders=total_orders,
                settlement_amount=num(r, "settlement_amount"),
                support_total=num(r, "support_total"),
                deduction=num(r, "deduction"),
                total_settlement=num(r, "total_settlement"),
                fee=num(r, "fee"),
                employment=num(r, "employment"),
                accident=num(r, "accident"),
                time_insurance=num(r, "time_insurance"),
                retro=num(r, "retro"),
            ))
        return out

    def parse_orders(self, df: Optional[pd.DataFrame], branch_label: str, license_by_name: Dict[str, str]) -> List[RawOrderRow]:
        if df is None:
            return []
        header_row, _ = _find_label(df, ORDER_LABELS["name"])
        if header_row < 0:
            return []
        idx = {k: -1 for k in ORDER_LABELS}
        for c in range(df.shape[1]):
            v = _cell(df, header_row, c)
            for k, label in ORDER_LABELS.items():
                if v == label:
                    idx[k] = c

        out = []
        for r in range(header_row + 1, df.shape[0]):
            raw_name = _text(_cell(df, r, idx["name"]))
            if not raw_name:
                continue
            accepted = to_datetime(_cell(df, r, idx["accepted"]))
            if accepted is None:
                continue
            name, suffix = split_rider(raw_name)
            out.append(RawOrderRow(
                branch_name=branch_label,
                license_id=license_by_name.get(name, settings.LICENSE_PLACEHOLDER),
                rider_name=name,
                rider_suffix=suffix,
                order_no=_text(_cell(df, r, idx["order_no"])),
                accepted_at=accepted.strftime("%Y-%m-%d %H:%M:%S"),
                accepted_at_ms=epoch_ms(accepted),
                peak_time=_text(_cell(df, r, idx["peak"])),
                judgement_date=judgement_date(accepted),
            ))
        return out

    def parse_missions(self, df: Optional[pd.DataFrame]) -> List[MissionEntry]:
        if df is None:
            return []
        header_row = -1
        for r in range(df.shape[0]):
            if _cell(df, r, 0) == "미션 명":
                header_row = r
                break
        if header_row < 0:
            return []
        col_map = {}
        for c in range(df.shape[1]):
            v = _cell(df, header_row, c)
            if v is not None:
                col_map[str(v)] = c

        def at(r: int, label: str) -> Any:
            return _cell(df, r, col_map.get(label, -1))

        out = []
        for r in range(header_row + 1, df.shape[0]):
            if at(r, "달성 유무") != MISSION_ACHIEVED:
                continue
            name = _text(at(r, "이름"))
            if not name:
                continue
            amount = at(r, "협력사 자체미션 금액")
            if amount is None:
                amount = at(r, "금액")
            out.append(MissionEntry(
                name=name,
                start_date=self._mission_date(at(r, "미션 시작")),
                end_date=self._mission_date(at(r, "미션 종료")),
                amount=to_number(amount),
            ))
        return out

    @staticmethod
    def _mission_date(value: Any) -> Optional[str]:
        dt = to_datetime(value)
        if dt is not None:
            return dt.strftime("%Y-%m-%d")
        return _text(value) or None
