"""
Settlement table export (parent rows only) to xlsx.
"""
from io import BytesIO
from typing import Iterable, List, Optional

import pandas as pd

from riderpay.core.utils import format_amount, format_negative, sanitize_file_name
from .missions import mission_label
from .pipeline import SettlementRunResult

EXPORT_SHEET = "Settlement"
DEFAULT_EXPORT_NAME = "settlement-weekly.xlsx"

LEADING_COLUMNS = [
    "Rider",
    "License ID",
    "Orders",
    "Loan",
    "Rent",
    "Next-day settled",
    "Actual deposit",
    "Fee",
    "Branch",
    "Peak score",
    "Promotion basis",
    "Promotion",
]

TRAILING_COLUMNS = [
    "Settlement amount",
    "Support total",
    "Deduction",
    "Total settlement",
    "Overall total",
    "Employment insurance",
    "Accident insurance",
    "Time insurance",
    "Retro insurance",
    "Withholding",
]

def export_columns(mission_dates: List[str]) -> List[str]:
    return LEADING_COLUMNS + [mission_label(d) for d in mission_dates] + TRAILING_COLUMNS

def build_export_frame(result: SettlementRunResult) -> pd.DataFrame:
    records = []
    for row in result.rows:
        values = [
            row.rider_name,
            row.license_id,
            row.order_count,
            format_negative(row.loan_payment),
            format_negative(row.rent_cost),
            format_negative(row.next_day_settlement),
            format_amount(row.actual_deposit),
            format_negative(row.fee),
            row.branch_name or "-",
            row.peak_score or "-",
            "\n".join(row.promo_basis) or "-",
            format_amount(row.promo_amount),
        ]
        values += [format_amount(row.mission_amounts.get(d, 0)) for d in result.mission_dates]
        values += [
            format_amount(row.settlement_amount),
            format_amount(row.support_total),
            format_amount(row.deduction),
            format_amount(row.total_settlement),
            format_amount(row.overall_total),
            format_amount(row.employment),
            format_amount(row.accident),
            format_amount(row.time_insurance),
            format_amount(row.retro),
            format_amount(row.withholding),
        ]
        records.append(values)
    return pd.DataFrame(records, columns=export_columns(result.mission_dates))

def export_file_name(upload_labels: Iterable[str], branches: Optional[List[str]] = None) -> str:
    """Name after the branch when the whole batch belongs to one branch."""
    labels = {lbl for lbl in upload_labels if lbl}
    label = None
    if len(labels) == 1:
        label = next(iter(labels))
    elif branches and len(branches) == 1:
        label = branches[0]
    return sanitize_file_name(f"{label}-{DEFAULT_EXPORT_NAME}" if label else DEFAULT_EXPORT_NAME)

def export_bytes(result: SettlementRunResult) -> bytes:
    """Parent rows as an xlsx workbook, built in memory for the download button."""
    buffer = BytesIO()
    build_export_frame(result).to_excel(buffer, index=False, sheet_name=EXPORT_SHEET, engine="openpyxl")
    return buffer.getvalue()
