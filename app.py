from __future__ import annotations

import logging
import sqlite3
from datetime import date
from typing import Optional

import pandas as pd
import streamlit as st

import auth
import db
from auth import ActorContext, AuthenticationError, has_capability, visible_pages
from charts import (
    build_location_figure,
    build_product_average_figure,
    build_shift_performance_figure,
    build_user_activity_figure,
    build_variation_figure,
)
from constants import (
    CHART_PAGE_SIZE,
    FROZEN_ALERT_THRESHOLD_C,
    LOCATIONS,
    MARKETS,
    PAGE_CHARTS,
    PAGE_DASHBOARD,
    PAGE_PERFORMANCE,
    PAGE_RECORD,
    PAGE_SETTINGS,
    PAGE_USERS,
    PAGE_VIEW,
    PERM_DELETE_RECORDS,
    SHIFTS,
    STATES,
)
from exports import readings_table, summary_table, to_csv_bytes, to_excel_bytes, to_pdf_bytes
from forms import render_add_reading_form, render_change_password_form, render_user_form
from logging_config import configure_logging
from models import readings_from_frame
from reports import (
    by_day,
    by_location,
    by_product,
    chunked,
    dashboard_summary,
    group_and_average,
    shift_performance,
    threshold_alerts,
    top_n,
    user_activity,
)
from settings import get_settings
from utils.time import day_range, retention_cutoff

logger = logging.getLogger(__name__)

_ALL = "All"
_ACTOR_KEY = "actor"


def _current_actor() -> Optional[ActorContext]:
    return st.session_state.get(_ACTOR_KEY)


def _storage_failed(action: str, exc: Exception) -> None:
    logger.exception("%s failed", action, extra={"reason": type(exc).__name__})
    st.error(f"{action} failed. Try again.")


def _render_login() -> None:
    st.title("🧊 QC Temperature Log")
    with st.form("login_form"):
        identifier = st.text_input("Badge number or e-mail")
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Sign in", type="primary"):
            try:
                st.session_state[_ACTOR_KEY] = auth.login(identifier, password)
            except AuthenticationError as e:
                st.error(str(e))
            except sqlite3.Error as e:
                _storage_failed("Sign in", e)
            else:
                st.rerun()


def _date_range_inputs(prefix: str, default_start: date) -> tuple[str, str]:
    col1, col2 = st.columns(2)
    with col1:
        start = st.date_input("From", value=default_start, key=f"{prefix}_start")
    with col2:
        end = st.date_input("To", value=date.today(), key=f"{prefix}_end")
    if start > end:
        st.warning("The start date is after the end date.")
    return day_range(start, end)


def _option(value: str) -> Optional[str]:
    return None if value == _ALL else value


def _render_filters(prefix: str) -> tuple[str, str, dict]:
    with st.expander("Filters", expanded=False):
        start_iso, end_iso = _date_range_inputs(prefix, date.today())
        col1, col2, col3 = st.columns(3)
        with col1:
            location = st.selectbox("Location", (_ALL,) + LOCATIONS, key=f"{prefix}_location")
            shift = st.selectbox("Shift", (_ALL,) + SHIFTS, key=f"{prefix}_shift")
        with col2:
            market = st.selectbox("Market", (_ALL,) + MARKETS, key=f"{prefix}_market")
            state = st.selectbox("State", (_ALL,) + STATES, key=f"{prefix}_state")
        with col3:
            products = db.fetch_products()
            labels = {row.code: f"{row.code} - {row.name}" for row in products.itertuples()}
            product_code = st.selectbox(
                "Product",
                [_ALL] + list(labels),
                format_func=lambda c: labels.get(c, "All products"),
                key=f"{prefix}_product",
            )
    filters = dict(
        location=_option(location),
        shift=_option(shift),
        market=_option(market),
        state=_option(state),
        product_code=_option(product_code),
    )
    return start_iso, end_iso, filters


def _fmt_temp(value: Optional[float]) -> str:
    return "—" if value is None else f"{value:.2f}°C"


def _render_dashboard(actor: ActorContext) -> None:
    st.subheader("Quality dashboard")
    today = date.today()
    start_iso, end_iso = _date_range_inputs("dash", today.replace(day=1))
    readings = readings_from_frame(db.fetch_readings(start_iso, end_iso))
    summary = dashboard_summary(readings)

    cols = st.columns(4)
    cols[0].metric("Total readings", summary.total_readings)
    cols[1].metric("Locations measured", summary.distinct_locations)
    cols[2].metric("Mean temp. internal", _fmt_temp(summary.internal_mean))
    cols[3].metric("Mean temp. external", _fmt_temp(summary.external_mean))

    by_prod = group_and_average(readings, by_product)
    col_hot, col_cold = st.columns(2)
    for col, title, descending in ((col_hot, "Top 5 highest means", True), (col_cold, "Top 5 lowest means", False)):
        with col:
            st.markdown(f"**{title}**")
            ranked = top_n(by_prod, 5, descending=descending)
            if ranked:
                st.dataframe(
                    pd.DataFrame({"Product": [r.key for r in ranked], "Mean (°C)": [r.mean for r in ranked]}),
                    use_container_width=True,
                    hide_index=True,
                )
            else:
                st.info("No readings in the period.")

    col_users, col_days = st.columns([2, 1])
    with col_users:
        st.markdown("**Entries per user**")
        activity = user_activity(readings, db.fetch_users(include_admins=False))
        if any(entries for _, entries in activity):
            st.plotly_chart(build_user_activity_figure(activity), use_container_width=True)
        else:
            st.info("No entries by staff in the period.")
    with col_days:
        st.markdown("**Entries per day**")
        days = group_and_average(readings, by_day)
        if days:
            st.dataframe(
                pd.DataFrame({"Day": [d.key for d in days], "Readings": [d.count for d in days]}).iloc[::-1],
                use_container_width=True,
                hide_index=True,
            )

    alerts = threshold_alerts(readings)
    st.markdown(f"**Frozen external-market readings above {FROZEN_ALERT_THRESHOLD_C:.0f}°C**")
    if alerts:
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "When": a.reading.measured_at,
                        "Location": a.reading.location,
                        "Product": a.reading.product_name,
                        "Start": a.reading.temp_start,
                        "Middle": a.reading.temp_middle,
                        "End": a.reading.temp_end,
                        "Breached": ", ".join(a.breaches),
                    }
                    for a in alerts
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.success("No readings above the limit.")


def _render_view(actor: ActorContext) -> None:
    st.subheader("Readings")
    start_iso, end_iso, filters = _render_filters("view")
    try:
        df = db.fetch_readings(start_iso, end_iso, **filters)
    except sqlite3.Error as e:
        _storage_failed("Loading readings", e)
        return
    if df.empty:
        st.info("No readings found for the selected filters.")
        return

    table = readings_table(df)
    st.dataframe(table, use_container_width=True, hide_index=True)

    col_csv, col_xlsx, col_pdf = st.columns(3)
    with col_csv:
        st.download_button("Download CSV", data=to_csv_bytes(table), file_name="temperature_readings.csv", mime="text/csv")
    with col_xlsx:
        st.download_button(
            "Download Excel",
            data=to_excel_bytes(table),
            file_name="temperature_readings.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
    with col_pdf:
        st.download_button(
            "Download PDF",
            data=to_pdf_bytes([("Temperature report", table)]),
            file_name="temperature_readings.pdf",
            mime="application/pdf",
        )

    if not has_capability(actor, PERM_DELETE_RECORDS):
        return
    with st.expander("Delete readings"):
        confirm = st.checkbox(f"Delete all {len(df)} reading(s) matching the filters.", key="confirm_delete_filtered")
        if st.button("Delete filtered readings", disabled=not confirm, key="btn_delete_filtered"):
            try:
                deleted = db.delete_readings(start_iso, end_iso, **filters)
            except sqlite3.Error as e:
                _storage_failed("Deleting readings", e)
                return
            st.success(f"Deleted {deleted} reading(s).")
            st.rerun()
        st.divider()
        df_del = df[["id", "measured_at", "location", "product_name", "temp_start", "temp_middle", "temp_end"]].copy()
        df_del.insert(0, "delete", False)
        edited_del = st.data_editor(
            df_del,
            use_container_width=True,
            hide_index=True,
            num_rows="fixed",
            disabled=[c for c in df_del.columns if c != "delete"],
            column_config={"delete": st.column_config.CheckboxColumn("delete")},
            key="delete_editor_readings",
        )
        if st.button("Delete selected readings", type="primary", key="btn_delete_readings"):
            to_delete = edited_del[edited_del["delete"] == True]  # noqa: E712
            if to_delete.empty:
                st.info("No rows selected.")
                return
            try:
                deleted = sum(db.delete_reading(int(rid)) for rid in to_delete["id"].tolist())
            except sqlite3.Error as e:
                _storage_failed("Deleting readings", e)
                return
            st.success(f"Deleted {deleted} reading(s).")
            st.rerun()


def _render_charts(actor: ActorContext) -> None:
    st.subheader("Temperature analysis")
    start_iso, end_iso, filters = _render_filters("charts")
    readings = readings_from_frame(db.fetch_readings(start_iso, end_iso, **filters))
    if not readings:
        st.info("No data found for the selected filters.")
        return

    by_prod = group_and_average(readings, by_product)
    by_loc = group_and_average(readings, by_location)
    pages = list(chunked(by_prod, CHART_PAGE_SIZE))
    for idx, page in enumerate(pages, start=1):
        st.plotly_chart(
            build_product_average_figure(page, part=idx, parts=len(pages)),
            use_container_width=True,
        )
    st.plotly_chart(build_location_figure(by_loc), use_container_width=True)
    st.plotly_chart(build_variation_figure(readings), use_container_width=True)

    st.download_button(
        "Download chart data (PDF)",
        data=to_pdf_bytes(
            [
                ("Mean temperature by product", summary_table(by_prod, "Product")),
                ("Mean temperatures by location", summary_table(by_loc, "Location")),
            ]
        ),
        file_name="temperature_charts.pdf",
        mime="application/pdf",
    )


def _render_performance(actor: ActorContext) -> None:
    st.subheader("Staff performance")
    today = date.today()
    start_iso, end_iso = _date_range_inputs("perf", today.replace(day=1))
    readings = readings_from_frame(db.fetch_readings(start_iso, end_iso))
    report = shift_performance(readings, db.fetch_users(include_admins=False))

    cols = st.columns(3)
    cols[0].metric("Total readings", len(readings))
    cols[1].metric("Active users", len({r.recorded_by for r in readings if r.recorded_by is not None}))
    cols[2].metric("Most productive shift", f"Shift {report.top_shift}" if report.top_shift else "N/A")

    st.plotly_chart(build_shift_performance_figure(report), use_container_width=True)
    ranking = pd.DataFrame(
        [{"Position": i, "Name": p.name, "Shift": p.shift or "", "Readings": p.entries} for i, p in enumerate(report.ranking, start=1)],
        columns=["Position", "Name", "Shift", "Readings"],
    )
    st.dataframe(ranking, use_container_width=True, hide_index=True)
    if not ranking.empty:
        st.download_button(
            "Download report (PDF)",
            data=to_pdf_bytes([("Staff performance", ranking)]),
            file_name="staff_performance.pdf",
            mime="application/pdf",
        )


def _render_users(actor: ActorContext) -> None:
    st.subheader("User management")
    users = db.fetch_users(include_admins=False)
    if users:
        st.dataframe(
            pd.DataFrame(
                [
                    {"Name": u.name, "Badge": u.badge, "E-mail": u.email, "Shift": u.shift or "", "Permissions": ", ".join(sorted(u.permissions))}
                    for u in users
                ]
            ),
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.info("No staff accounts yet.")

    with st.expander("Add user"):
        render_user_form()

    if not users:
        return
    by_id = {u.id: u for u in users}
    selected = st.selectbox("Edit or remove", list(by_id), format_func=lambda uid: f"{by_id[uid].name} ({by_id[uid].badge})")
    render_user_form(by_id[selected])
    if st.button("Remove user", key=f"remove_user_{selected}"):
        try:
            db.delete_user(selected)
        except sqlite3.Error as e:
            _storage_failed("Removing user", e)
            return
        st.success("User removed.")
        st.rerun()


def _render_product_catalog() -> None:
    st.markdown("**Product catalog**")
    products = db.fetch_products()
    df_products = products.copy()
    df_products.insert(0, "delete", False)
    edited = st.data_editor(
        df_products,
        use_container_width=True,
        hide_index=True,
        num_rows="dynamic",
        column_config={
            "delete": st.column_config.CheckboxColumn("delete"),
            "code": st.column_config.TextColumn("code"),
            "name": st.column_config.TextColumn("name"),
            "market": st.column_config.SelectboxColumn("market", options=list(MARKETS)),
        },
        key="editor_products",
    )
    if st.button("Apply changes to catalog"):
        deletions, upserts = [], []
        for row in edited.itertuples(index=False):
            code = str(row.code).strip() if pd.notna(row.code) else ""
            if not code:
                continue
            if pd.notna(row.delete) and bool(row.delete):
                deletions.append(code)
            else:
                name = str(row.name) if pd.notna(row.name) else ""
                upserts.append((code, name, row.market if pd.notna(row.market) else None))
        try:
            changed = db.apply_product_changes(upserts, deletions)
        except ValueError as e:
            st.warning(f"Nothing was saved. {e}")
            return
        except sqlite3.Error as e:
            _storage_failed("Updating catalog", e)
            return
        if changed:
            st.success(f"Applied {changed} change(s) to the catalog.")
            st.rerun()


def _render_settings(actor: ActorContext) -> None:
    st.subheader("Settings")
    tab_labels = ["Account", "Data"] if actor.is_admin else ["Account"]
    tabs = st.tabs(tab_labels)
    with tabs[0]:
        render_change_password_form(actor)
    if not actor.is_admin:
        return
    with tabs[1]:
        st.markdown("**Retention sweep**")
        days = st.number_input(
            "Delete readings older than (days)", min_value=1, value=get_settings().retention_days, step=1
        )
        if st.button("Delete old readings"):
            try:
                deleted = db.delete_readings_before(retention_cutoff(int(days)))
            except sqlite3.Error as e:
                _storage_failed("Cleaning old readings", e)
            else:
                if deleted:
                    st.success(f"{deleted} old reading(s) deleted.")
                else:
                    st.success("No old readings to delete.")

        st.divider()
        st.markdown("**Full reset**")
        confirm = st.checkbox("I understand every reading will be deleted permanently.")
        if st.button("Delete all readings", type="primary", disabled=not confirm):
            try:
                deleted = db.delete_all_readings()
            except sqlite3.Error as e:
                _storage_failed("Reset", e)
            else:
                st.success(f"Reset complete. {deleted} reading(s) deleted." if deleted else "There are no readings.")

        st.divider()
        _render_product_catalog()


_PAGES = {
    PAGE_DASHBOARD: _render_dashboard,
    PAGE_RECORD: render_add_reading_form,
    PAGE_VIEW: _render_view,
    PAGE_CHARTS: _render_charts,
    PAGE_PERFORMANCE: _render_performance,
    PAGE_USERS: _render_users,
    PAGE_SETTINGS: _render_settings,
}


def main() -> None:
    st.set_page_config(page_title="QC Temperature Log", page_icon="🧊", layout="wide")
    configure_logging()
    db.initialize_database()
    auth.bootstrap_admin()

    actor = _current_actor()
    if actor is None:
        _render_login()
        return

    pages = visible_pages(actor)
    with st.sidebar:
        st.markdown(f"**{actor.name}**  \n{actor.email}")
        labels = dict(pages)
        path = st.radio("Navigation", list(labels), format_func=labels.get, label_visibility="collapsed")
        if st.button("Sign out"):
            st.session_state.pop(_ACTOR_KEY, None)
            st.rerun()

    st.title("🧊 QC Temperature Log")
    try:
        _PAGES[path](actor)
    except sqlite3.Error as e:
        _storage_failed("Loading data", e)


if __name__ == "__main__":
    main()
