from __future__ import annotations

# Frozen product for the external market must stay at or below this (°C).
FROZEN_ALERT_THRESHOLD_C: float = -18.0

# Products per bar chart; keeps chart width manageable.
CHART_PAGE_SIZE: int = 45

UNKNOWN_KEY = "unknown"
NO_PRODUCT_CODE = "N/A"

SHIFTS = ("1", "2")
USER_SHIFTS = ("1", "2", "3")
MARKETS = ("internal", "external")
STATES = ("frozen", "chilled")
POSITIONS = ("start", "middle", "end")

LOCATION_GROUPS: dict[str, tuple[str, ...]] = {
    "Freezer spirals": ("Giro Freezer 1", "Giro Freezer 2", "Giro Freezer 3", "Giro Freezer 4"),
    "Tunnels": ("Túnel 1", "Túnel 2", "Túnel 3", "Túnel 4"),
    "Cuts": ("Cortes 1", "Cortes 2", "Rependura Cortes 1", "Rependura Cortes 2"),
    "Packaging": ("Embalagem Secundária",),
    "Shipping": ("Expedição 1", "Expedição 2"),
    "Palletizing": ("Paletização 1", "Paletização 2"),
    "Other": ("Miudos", "Evisceração 1", "Evisceração 2"),
    "Chambers": ("Câmara A", "Câmara C", "Câmara D", "Câmara F"),
}
LOCATIONS: tuple[str, ...] = tuple(
    loc for group in LOCATION_GROUPS.values() for loc in group
)

ROLE_ADMIN = "admin"
ROLE_USER = "user"

# Page paths double as permission names.
PAGE_DASHBOARD = "/"
PAGE_RECORD = "/record"
PAGE_VIEW = "/view"
PAGE_CHARTS = "/charts"
PAGE_PERFORMANCE = "/performance"
PAGE_USERS = "/users"
PAGE_SETTINGS = "/settings"

# (path, label, admin only)
NAV_ITEMS: tuple[tuple[str, str, bool], ...] = (
    (PAGE_DASHBOARD, "Dashboard", False),
    (PAGE_RECORD, "Record", False),
    (PAGE_VIEW, "View", False),
    (PAGE_CHARTS, "Charts", False),
    (PAGE_PERFORMANCE, "Performance", True),
    (PAGE_USERS, "Users", True),
    (PAGE_SETTINGS, "Settings", False),
)

PERM_DELETE_RECORDS = "delete_records"
SPECIAL_PERMISSIONS: dict[str, str] = {PERM_DELETE_RECORDS: "Can delete records"}

MIN_PASSWORD_LENGTH = 6
