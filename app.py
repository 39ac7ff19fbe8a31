from contextlib import contextmanager
from typing import Dict, List, Optional

import pandas as pd
import streamlit as st

from core import data as dc
from core.filters import FILTER_FIELDS, FilterState
from core.metrics_dashboard import compute_dashboard

FILTER_LABELS: Dict[str, str] = {
    "end_year": "End Year",
    "topics": "Topic",
    "sector": "Sector",
    "region": "Region",
    "pest": "PEST",
    "source": "Source",
    "country": "Country",
}
NO_CONSTRAINT = ""


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .page-title {font-size: 1.6rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(filters: FilterState) -> str:
    active = filters.active()
    if not active:
        chips = ["Filters: None"]
    else:
        chips = [f"{FILTER_LABELS[name]}: {value}" for name, value in active.items()]
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def refresh_records():
    dc.load_dashboard_data(refresh=True)
    st.session_state["_records_refreshed"] = True


def render_page_header(title: str, filter_summary_html: str, export_df: Optional[pd.DataFrame] = None):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(f"<div class='app-top-bar'><div class='page-title'>{title}</div></div>", unsafe_allow_html=True)
    with c2:
        btn_cols = st.columns(2)
        btn_cols[0].button(
            "⟳ Refresh", key="refresh_records", help="Fetch the latest records from the source.", on_click=refresh_records
        )
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name="records.csv",
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


def current_filters() -> FilterState:
    return FilterState(**{name: st.session_state.get(f"filter_{name}", NO_CONSTRAINT) for name in FILTER_FIELDS})


def render_filter_controls(facets: Dict[str, List[str]], filters: FilterState):
    names = list(FILTER_FIELDS)
    for row_start in range(0, len(names), 2):
        cols = st.columns(2)
        for col, name in zip(cols, names[row_start : row_start + 2]):
            selected = getattr(filters, name)
            options = [NO_CONSTRAINT] + facets.get(name, [])
            if selected and selected not in options:
                # Keep the selection visible after a refresh drops its value.
                options.append(selected)
            col.selectbox(
                FILTER_LABELS[name],
                options=options,
                key=f"filter_{name}",
                format_func=lambda v: "None" if v == NO_CONSTRAINT else v,
            )


def render_chart(spec: Dict, empty_message: str):
    if not spec:
        st.info(empty_message)
        return
    st.vega_lite_chart(spec, width="stretch")


# ---------- UI setup ----------
st.set_page_config(page_title="Dashboard", layout="wide")
inject_base_styles()

filters = current_filters()
filter_summary_html = format_filter_summary(filters)

# A Refresh click has already fetched in its callback.
data_ctx = dc.load_dashboard_data(fetch_missing=not st.session_state.pop("_records_refreshed", False))
ctx = dc.prepare_context(filters, data_ctx)

render_page_header("Dashboard", filter_summary_html, export_df=ctx["filtered_records"])

if ctx.get("error"):
    if data_ctx.get("status") == "idle":
        st.error(f"Could not load records: {ctx['error']}")
    else:
        st.error(f"Could not refresh records: {ctx['error']}. Showing the last loaded data.")

if data_ctx.get("status") == "idle":
    st.info("No records loaded yet. Use Refresh to try again.")
    st.stop()

payload = compute_dashboard(ctx["filters"], ctx)
status = payload["status"]
st.caption(
    f"{status['filtered_records']:,} of {status['valid_records']:,} valid records "
    f"({status['raw_records']:,} fetched)"
)

render_filter_controls(payload["facets"], filters)

chart_rows = [
    [("sector_bar", "By Sector"), ("intensity_line", "Over Time")],
    [("topic_radar", "By Topic"), ("impact_doughnut", "Impact Share")],
]
for row in chart_rows:
    cols = st.columns(2)
    for col, (key, title) in zip(cols, row):
        with col:
            with card(title):
                render_chart(payload["charts"].get(key, {}), "No data for the selected filters.")
