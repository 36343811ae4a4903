from __future__ import annotations

import streamlit as st

from core.config import get_settings
from core.services.financials import open_totals
from core.services.inventory import STATUS_LABELS, stock_by_status
from core.store import get_store

st.set_page_config(page_title="Recycling ERP", page_icon="♻️", layout="wide")

st.title("♻️ Recycling ERP")
st.caption("Batch lifecycle for plastic scrap: intake, processing, external extrusion, sales, payables and receivables.")

settings = get_settings()
store = get_store()

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Workbook:** `{settings.workbook_path.name}`")

stock = stock_by_status(store)
cols = st.columns(4)
for col, status in zip(cols, ["raw", "processing", "finished", "extruded"]):
    col.metric(STATUS_LABELS[status], f"{stock[status]:,.1f} kg")

totals = open_totals(store)
c1, c2 = st.columns(2)
c1.metric("Open payables", f"{settings.currency} {totals['payable']:,.2f}")
c2.metric("Open receivables", f"{settings.currency} {totals['receivable']:,.2f}")

st.info(
    "Use the left sidebar navigation. Start with **🧪 Data Management** to load demo data or a saved workbook, "
    "then record intake in **Purchase** and move batches along in **Batches**.",
    icon="ℹ️",
)
