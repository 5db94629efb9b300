"""CSV, Excel and PDF renditions of readings and report rows."""

from __future__ import annotations

import io
from typing import Sequence

import fitz
import pandas as pd

from reports import GroupSummary

READING_EXPORT_COLUMNS = {
    "measured_date": "Date",
    "measured_time": "Time",
    "shift": "Shift",
    "location": "Location",
    "product_code": "Code",
    "product_name": "Product",
    "market": "Market",
    "state": "State",
    "temp_start": "Start (°C)",
    "temp_middle": "Middle (°C)",
    "temp_end": "End (°C)",
}

_HEADER_FILL = (75 / 255, 0, 130 / 255)
_MARGIN = 28
_FONT_SIZE = 8
_ROW_HEIGHT = 14


def readings_table(readings_df: pd.DataFrame) -> pd.DataFrame:
    """Readings reduced to the exported columns with display headers."""
    columns = [c for c in READING_EXPORT_COLUMNS if c in readings_df.columns]
    table = readings_df[columns].copy()
    for col in ("temp_start", "temp_middle", "temp_end"):
        if col in table.columns:
            table[col] = table[col].astype(float).round(1)
    return table.rename(columns=READING_EXPORT_COLUMNS)


def summary_table(rows: Sequence[GroupSummary], key_label: str) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                key_label: row.key,
                "Readings": row.count,
                "Mean (°C)": row.mean,
                "Start (°C)": row.start_mean,
                "Middle (°C)": row.middle_mean,
                "End (°C)": row.end_mean,
            }
            for row in rows
        ],
        columns=[key_label, "Readings", "Mean (°C)", "Start (°C)", "Middle (°C)", "End (°C)"],
    )


def _require_rows(table: pd.DataFrame) -> None:
    if table.empty:
        raise ValueError("No data to export.")


def to_csv_bytes(table: pd.DataFrame) -> bytes:
    _require_rows(table)
    return table.to_csv(index=False).encode("utf-8")


def to_excel_bytes(table: pd.DataFrame, sheet_name: str = "Readings") -> bytes:
    _require_rows(table)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        table.to_excel(writer, index=False, sheet_name=sheet_name)
    return buffer.getvalue()


def _cell_text(value, width: float) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        text = ""
    elif isinstance(value, float):
        text = f"{value:.1f}"
    else:
        text = str(value)
    max_chars = max(int(width / (_FONT_SIZE * 0.52)), 1)
    if len(text) > max_chars:
        text = text[:max_chars]
    return text


def _draw_header(page: fitz.Page, columns: Sequence[str], y: float, col_width: float) -> float:
    rect = fitz.Rect(_MARGIN, y, page.rect.width - _MARGIN, y + _ROW_HEIGHT)
    page.draw_rect(rect, color=None, fill=_HEADER_FILL)
    for idx, name in enumerate(columns):
        page.insert_text(
            (_MARGIN + idx * col_width + 3, y + _ROW_HEIGHT - 4),
            _cell_text(name, col_width),
            fontsize=_FONT_SIZE,
            fontname="helv",
            color=(1, 1, 1),
        )
    return y + _ROW_HEIGHT


def to_pdf_bytes(tables: Sequence[tuple[str, pd.DataFrame]]) -> bytes:
    """Render (title, table) pairs as landscape A4 pages.

    Long tables continue on new pages with the header repeated.
    """
    if not tables or all(table.empty for _title, table in tables):
        raise ValueError("No data to export.")

    paper = fitz.paper_rect("a4-l")
    doc = fitz.open()
    try:
        for title, table in tables:
            if table.empty:
                continue
            columns = [str(c) for c in table.columns]
            col_width = (paper.width - 2 * _MARGIN) / len(columns)
            page = doc.new_page(width=paper.width, height=paper.height)
            page.insert_text((_MARGIN, _MARGIN + 6), title, fontsize=14, fontname="helv")
            y = _draw_header(page, columns, _MARGIN + 16, col_width)
            for values in table.itertuples(index=False):
                if y + _ROW_HEIGHT > paper.height - _MARGIN:
                    page = doc.new_page(width=paper.width, height=paper.height)
                    y = _draw_header(page, columns, _MARGIN, col_width)
                for idx, value in enumerate(values):
                    page.insert_text(
                        (_MARGIN + idx * col_width + 3, y + _ROW_HEIGHT - 4),
                        _cell_text(value, col_width),
                        fontsize=_FONT_SIZE,
                        fontname="helv",
                    )
                y += _ROW_HEIGHT
        return doc.tobytes(garbage=4, deflate=True)
    finally:
        doc.close()
