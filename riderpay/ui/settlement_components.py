"""
Streamlit components for the weekly settlement wizard.
"""
from typing import Dict, List, Optional, Tuple

import pandas as pd
import streamlit as st

from riderpay.catalog.branches import SettlementCatalog, guess_branch_id
from riderpay.core.models import SettlementRow
from riderpay.core.utils import format_amount, format_negative
from riderpay.promotions.config import active_promotions_for_branch, describe_promotion
from riderpay.settlement.export import export_bytes, export_file_name
from riderpay.settlement.pipeline import SettlementRunResult

UPLOAD_TYPES = ["xlsx", "xlsm", "xls"]

def render_upload_step(catalog: SettlementCatalog, key: str = "weekly") -> List[Tuple[str, bytes, Optional[str]]]:
    """
    File picker plus one branch selector per file, pre-filled from the file name.
    Returns ``(file_name, content, branch_id)`` per upload; nothing is written to disk here.
    """
    st.subheader("📁 Step 1 · Upload payroll workbooks")
    st.caption("Upload the decrypted weekly payroll exports, one per branch file.")
    files = st.file_uploader(
        "Payroll workbooks",
        type=UPLOAD_TYPES,
        accept_multiple_files=True,
        key=f"{key}_files",
    )
    if not files:
        return []

    branch_ids = [b.id for b in catalog.branches]
    labels = {b.id: b.name for b in catalog.branches}
    entries: List[Tuple[str, bytes, Optional[str]]] = []
    for i, f in enumerate(files):
        guessed = guess_branch_id(f.name, catalog.branches)
        cols = st.columns([3, 2])
        with cols[0]:
            st.text(f.name)
        with cols[1]:
            options = ["(none)"] + branch_ids
            choice = st.selectbox(
                "Branch",
                options,
                index=options.index(guessed) if guessed in options else 0,
                format_func=lambda bid: labels.get(bid, bid),
                key=f"{key}_branch_{i}",
                label_visibility="collapsed",
            )
        entries.append((f.name, f.getvalue(), None if choice == "(none)" else choice))
    return entries

def rows_frame(rows: List[SettlementRow], mission_dates: List[str]) -> pd.DataFrame:
    records = []
    for r in rows:
        rec = {
            "Rider": f"{r.rider_name} ({r.rider_suffix})",
            "License ID": r.license_id,
            "Branch": r.branch_name,
            "Orders": r.order_count,
            "Promotion": format_amount(r.promo_amount),
            "Peak score": r.peak_score,
        }
        for d in mission_dates:
            rec[d] = format_amount(r.mission_amounts.get(d, 0))
        rec.update({
            "Total settlement": format_amount(r.total_settlement),
            "Overall total": format_amount(r.overall_total),
            "Fee": format_negative(r.fee),
            "Withholding": format_negative(r.withholding),
            "Rent": format_negative(r.rent_cost),
            "Loan": format_negative(r.loan_payment),
            "Next-day settled": format_negative(r.next_day_settlement),
            "Actual deposit": format_amount(r.actual_deposit),
            "Matched rider": r.matched_rider_name or "-",
        })
        if r.is_child:
            rec["Source file"] = r.source_file or "-"
        records.append(rec)
    return pd.DataFrame(records)

def render_result(result: SettlementRunResult, catalog: SettlementCatalog, upload_labels: Optional[List[str]] = None):
    if not result.success:
        for err in result.errors:
            st.error(f"❌ {err}")
        st.info("Nothing was merged. Fix the file and run again.")
        return

    for w in result.warnings:
        st.warning(f"⚠️ {w}")

    st.subheader("📊 Step 2 · Weekly settlement")
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        st.metric("Riders", len(result.rows))
    with c2:
        st.metric("Branches", len(result.branches))
    with c3:
        st.metric("Period", f"{result.span[0] or '-'} ~ {result.span[1] or '-'}")
    with c4:
        st.metric("Total deposit", format_amount(sum(r.actual_deposit for r in result.rows)))

    st.dataframe(rows_frame(result.rows, result.mission_dates), use_container_width=True)

    multi_file = [r for r in result.rows if r.key in result.child_rows]
    if multi_file:
        st.markdown("#### Per-file breakdown")
        for r in multi_file:
            with st.expander(f"{r.rider_name} ({r.rider_suffix}) · {len(result.child_rows[r.key])} files"):
                st.dataframe(rows_frame(result.child_rows[r.key], []), use_container_width=True)

    with st.expander("🎯 Promotion basis"):
        for r in result.rows:
            if r.promo_basis:
                st.write(f"**{r.rider_name}**: " + " · ".join(r.promo_basis))
        render_promotion_details(catalog, result.branches, result.span)

    render_download(result, upload_labels or [])

def render_promotion_details(catalog: SettlementCatalog, branch_labels: List[str], span):
    for label in branch_labels:
        promos = active_promotions_for_branch(catalog.promotions, catalog.branch_id_by_label(label), span)
        if not promos:
            continue
        st.markdown(f"**{label}**")
        for p in promos:
            info = describe_promotion(p)
            st.write(f"{p.name} [{info['type_label']}]")
            for line in info["lines"] + info["peak_lines"]:
                st.caption(line)

def render_download(result: SettlementRunResult, upload_labels: List[str]):
    st.download_button(
        label="💾 Download XLSX",
        data=export_bytes(result),
        file_name=export_file_name(upload_labels, result.branches),
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        key=f"download_{result.batch_id}",
    )

def render_run_history(history: List[Dict]):
    st.subheader("🕑 Recent runs")
    if not history:
        st.info("No settlement runs yet")
        return
    st.dataframe(pd.DataFrame([
        {
            "When": h.get("timestamp", "")[:19],
            "Files": len(h.get("files") or []),
            "Riders": h.get("rider_count", 0),
            "Status": "✅" if h.get("success") else "❌",
            "Message": h.get("error_message") or "; ".join(h.get("warnings") or []) or "-",
        }
        for h in history
    ]), use_container_width=True)
