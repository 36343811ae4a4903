from __future__ import annotations

import streamlit as st

from core.config import log_level
from core.logging_config import setup_logging

setup_logging(log_level())

st.set_page_config(page_title="Recycling ERP", page_icon="♻️", layout="wide")

pages = [
    st.Page("home.py", title="Home", icon="🏠"),
    st.Page("pages/1_📥_Purchase.py", title="Purchase (Intake)", icon="📥"),
    st.Page("pages/2_📦_Batches.py", title="Batches", icon="📦"),
    st.Page("pages/3_🧾_Orders.py", title="Sales Orders", icon="🧾"),
    st.Page("pages/4_💰_Financial.py", title="Financial", icon="💰"),
    st.Page("pages/5_🤝_Partners_&_Materials.py", title="Partners & Materials", icon="🤝"),
    st.Page("pages/6_🧪_Data_Management.py", title="Data Management", icon="🧪"),
    st.Page("pages/7_📊_Reports.py", title="Reports", icon="📊"),
]

st.navigation(pages).run()
