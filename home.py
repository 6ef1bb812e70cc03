from __future__ import annotations

import streamlit as st

from acai.config import get_settings
from acai.db import get_conn, ensure_schema
from acai.services.demo_data import upsert_reference_data
from acai.services.metrics import low_stock_containers

st.title("🍇 Açaí ERP")
st.caption("Potes (bulk containers) in ml, cup sizes, sales that draw from one or more potes, expenses and profit.")

settings = get_settings()
conn = get_conn(settings.db_path)
ensure_schema(conn)
upsert_reference_data(conn)

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Database:** `{settings.db_path.name}`")
    st.write(f"**Default low-stock minimum:** {settings.low_stock_threshold_ml:,.0f} ml")

low = low_stock_containers(conn)
if low:
    st.warning(f"{len(low)} pote(s) low or out of stock. See **📊 Dashboard**.", icon="⚠️")

st.info(
    "Register potes in **🫙 Potes**, check cup sizes in **🥤 Catalog**, then post sales in **🛒 Sales**. "
    "Use **🧪 Data Management** to load demo data.",
    icon="ℹ️",
)
