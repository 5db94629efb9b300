from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Optional

import streamlit as st

import auth
import db
from auth import ActorContext
from constants import (
    LOCATIONS,
    MARKETS,
    NAV_ITEMS,
    SHIFTS,
    SPECIAL_PERMISSIONS,
    STATES,
    USER_SHIFTS,
)
from models import UserProfile

logger = logging.getLogger(__name__)


def render_add_reading_form(actor: ActorContext) -> None:
    st.subheader("New reading")
    # Outside the form so a known code can prefill name and market.
    code = st.text_input("Product code", key="reading_code").strip().upper()
    product = db.get_product(code) if code else None
    if code and product is None:
        st.caption("Code not in the catalog; enter the product name.")

    with st.form("reading_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            shift = st.selectbox("Shift *", options=SHIFTS, format_func=lambda s: f"Shift {s}")
            location = st.selectbox("Location *", options=LOCATIONS, index=None, placeholder="Select location")
            product_name = st.text_input("Product *", value=product["name"] if product else "")
            market_default = product["market"] if product and product["market"] in MARKETS else None
            market = st.selectbox(
                "Market *",
                options=MARKETS,
                index=MARKETS.index(market_default) if market_default else None,
                placeholder="Select market",
            )
            state = st.selectbox("State *", options=STATES, index=None, placeholder="Select state")
        with col2:
            d = st.date_input("Date *", value=date.today())
            t = st.time_input("Time *", value=datetime.now().time().replace(second=0, microsecond=0), step=60)
            temp_start = st.number_input("Start temperature (°C) *", value=None, step=0.1, format="%.1f")
            temp_middle = st.number_input("Middle temperature (°C) *", value=None, step=0.1, format="%.1f")
            temp_end = st.number_input("End temperature (°C) *", value=None, step=0.1, format="%.1f")
        submitted = st.form_submit_button("Save reading", type="primary")
        if submitted:
            try:
                db.add_reading(
                    shift=shift,
                    location=location,
                    product_code=code or None,
                    product_name=product_name,
                    market=market,
                    state=state,
                    measured_date=d.isoformat() if d else "",
                    measured_time=t.strftime("%H:%M") if t else "",
                    temp_start=temp_start,
                    temp_middle=temp_middle,
                    temp_end=temp_end,
                    recorded_by=actor.user_id,
                )
            except ValueError as e:
                st.error(str(e))
            except sqlite3.Error:
                logger.exception("Recording reading failed", extra={"user_id": actor.user_id})
                st.error("Error recording the temperature.")
            else:
                st.success("Temperature recorded.")


def _permission_label(permission: str) -> str:
    for path, label, _admin in NAV_ITEMS:
        if path == permission:
            return label
    return SPECIAL_PERMISSIONS.get(permission, permission)


def render_user_form(editing: Optional[UserProfile] = None) -> None:
    """Create a staff account, or edit name, shift and permissions of one."""
    key = f"user_form_{editing.id if editing else 'new'}"
    grantable = [path for path, _label, admin_only in NAV_ITEMS if not admin_only] + list(SPECIAL_PERMISSIONS)
    with st.form(key, clear_on_submit=editing is None):
        name = st.text_input("Full name", value=editing.name if editing else "")
        badge = st.text_input("Badge number", value=editing.badge if editing else "", disabled=editing is not None)
        if editing is None:
            st.caption(f"Login e-mail: {auth.email_for_badge(badge) if badge.strip() else '(from badge number)'}")
            password = st.text_input("Password", type="password", placeholder="At least 6 characters")
        shift_options = list(USER_SHIFTS)
        shift = st.selectbox(
            "Shift",
            options=shift_options,
            index=shift_options.index(editing.shift) if editing and editing.shift in shift_options else None,
            format_func=lambda s: f"Shift {s}",
        )
        permissions = st.multiselect(
            "Permissions",
            options=grantable,
            default=[p for p in (editing.permissions if editing else ()) if p in grantable],
            format_func=_permission_label,
        )
        if st.form_submit_button("Save user" if editing else "Add user", type="primary"):
            try:
                if editing is None:
                    auth.register_user(name, badge, password, shift=shift, permissions=permissions)
                    st.success("User added.")
                else:
                    db.update_user_profile(editing.id, name, shift, permissions)
                    st.success("User updated.")
            except ValueError as e:
                st.error(str(e))
            except sqlite3.Error:
                logger.exception("Saving user failed")
                st.error("Error saving the user.")
            else:
                st.rerun()


def render_change_password_form(actor: ActorContext) -> None:
    st.subheader("Change password")
    with st.form("password_form", clear_on_submit=True):
        current = st.text_input("Current password", type="password")
        new = st.text_input("New password", type="password")
        confirm = st.text_input("Confirm new password", type="password")
        if st.form_submit_button("Change password"):
            try:
                auth.change_own_password(actor, current, new, confirm)
            except ValueError as e:
                st.error(str(e))
            except sqlite3.Error:
                logger.exception("Password change failed", extra={"user_id": actor.user_id})
                st.error("Error changing the password. Try again.")
            else:
                st.success("Password changed.")
