from __future__ import annotations

import streamlit as st

st.set_page_config(page_title="Açaí ERP", page_icon="🍇", layout="wide")

pages = [
    st.Page("home.py", title="Home", icon="🏠"),
    st.Page("pages/1_🫙_Potes.py", title="Potes", icon="🫙"),
    st.Page("pages/2_🥤_Catalog.py", title="Catalog", icon="🥤"),
    st.Page("pages/3_🛒_Sales.py", title="Sales", icon="🛒"),
    st.Page("pages/4_💸_Expenses.py", title="Expenses", icon="💸"),
    st.Page("pages/5_📊_Dashboard.py", title="Dashboard", icon="📊"),
    st.Page("pages/6_🧪_Data_Management.py", title="Data Management", icon="🧪"),
]

st.navigation(pages).run()
