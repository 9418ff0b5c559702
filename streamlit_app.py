import streamlit as st
import pandas as pd

from riderpay.core.audit import AuditLogger
from riderpay.core.config import settings
from riderpay.catalog.branches import SettlementCatalog
from riderpay.settlement.pipeline import WeeklySettlementProcessor, staged_uploads
from riderpay.ui.settlement_components import (
    render_upload_step,
    render_result,
    render_run_history,
)

st.set_page_config(
    page_title=f"{settings.APP_NAME} | Weekly Settlement",
    layout="wide",
    page_icon="🛵",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .main-header {
        background: linear-gradient(90deg, #0f766e, #14b8a6);
        padding: 1rem;
        border-radius: 10px;
        color: white;
        text-align: center;
        margin-bottom: 2rem;
    }
    .sidebar-section {
        background: #f8fafc;
        padding: 1rem;
        border-radius: 8px;
        margin: 0.5rem 0;
    }
</style>
""", unsafe_allow_html=True)

def show_header():
    st.markdown(
        f'<div class="main-header"><h1>🛵 {settings.APP_NAME}</h1>'
        '<h3>Weekly rider settlement</h3>'
        '<p>Merge branch payroll exports, apply promotions and deductions, export payouts</p></div>',
        unsafe_allow_html=True,
    )

def show_sidebar():
    st.sidebar.markdown('<div class="sidebar-section">', unsafe_allow_html=True)
    tenant_id = st.sidebar.text_input("🏢 Tenant", value=st.session_state.get("tenant_id", "default"))
    st.session_state["tenant_id"] = tenant_id
    if st.sidebar.button("🔄 Reload catalog", use_container_width=True):
        st.session_state.pop("catalog", None)
        st.session_state.pop("result", None)
    st.sidebar.markdown('</div>', unsafe_allow_html=True)
    return tenant_id

def load_catalog(tenant_id: str) -> SettlementCatalog:
    cached = st.session_state.get("catalog")
    if cached is None or cached[0] != tenant_id:
        st.session_state["catalog"] = (tenant_id, SettlementCatalog.load(tenant_id))
    return st.session_state["catalog"][1]

def show_catalog_overview(catalog: SettlementCatalog):
    with st.expander("🏬 Branches and promotions", expanded=False):
        if catalog.branches:
            st.dataframe(pd.DataFrame([
                {
                    "Branch": b.name,
                    "Region": " ".join(x for x in (b.province, b.district) if x) or "-",
                    "Fee policy": f"{b.fee_policy.type} {b.fee_policy.value:g}" if b.fee_policy else "summary fee",
                }
                for b in catalog.branches
            ]), use_container_width=True)
        else:
            st.info("No branches configured; summary fees are used and no promotions apply")
        st.caption(f"{len(catalog.promotions)} promotions loaded")
        for w in catalog.warnings:
            st.warning(w)

def show_weekly_wizard(tenant_id: str):
    catalog = load_catalog(tenant_id)
    show_catalog_overview(catalog)

    uploads = render_upload_step(catalog)
    missing_branch = any(branch_id is None for _, _, branch_id in uploads)
    if missing_branch:
        st.warning("Pick a branch for every file before running.")

    if st.button("▶️ Run settlement", disabled=not uploads or missing_branch, type="primary"):
        with st.spinner("Parsing files and computing settlement..."):
            processor = WeeklySettlementProcessor(tenant_id)
            with staged_uploads(uploads) as entries:
                st.session_state["result"] = processor.run(entries, catalog)
            st.session_state["upload_labels"] = [catalog.branch_label(branch_id) for _, _, branch_id in uploads]

    result = st.session_state.get("result")
    if result is not None:
        render_result(result, catalog, st.session_state.get("upload_labels"))

def main():
    show_header()
    tenant_id = show_sidebar()
    tab1, tab2 = st.tabs(["🧮 Weekly settlement", "🕑 History"])
    with tab1:
        show_weekly_wizard(tenant_id)
    with tab2:
        render_run_history(AuditLogger(tenant_id).get_run_history())

if __name__=="__main__":
    main()
