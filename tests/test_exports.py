import io

import fitz
import pandas as pd
import pytest

from exports import readings_table, summary_table, to_csv_bytes, to_excel_bytes, to_pdf_bytes
from models import TemperatureReading
from reports import by_product, group_and_average


def make_df_readings(n=2):
    return pd.DataFrame(
        [
            {
                "id": i,
                "shift": "1",
                "location": "Túnel 1",
                "product_code": "F100",
                "product_name": "Frango Inteiro",
                "market": "external",
                "state": "frozen",
                "measured_date": "2026-02-01",
                "measured_time": f"{i % 24:02d}:00",
                "temp_start": -19.04,
                "temp_middle": -20.0,
                "temp_end": -21.0,
                "recorded_by": 1,
                "measured_at": f"2026-02-01T{i % 24:02d}:00",
            }
            for i in range(n)
        ]
    )


def test_readings_table_keeps_export_columns_only():
    table = readings_table(make_df_readings())
    assert list(table.columns) == [
        "Date",
        "Time",
        "Shift",
        "Location",
        "Code",
        "Product",
        "Market",
        "State",
        "Start (°C)",
        "Middle (°C)",
        "End (°C)",
    ]
    assert table["Start (°C)"].tolist() == [-19.0, -19.0]


def test_summary_table():
    rows = group_and_average([TemperatureReading(product_name="A", temp_start=-20, temp_middle=-21, temp_end=-19)], by_product)
    table = summary_table(rows, "Product")
    assert table.iloc[0].to_dict() == {
        "Product": "A",
        "Readings": 1,
        "Mean (°C)": -20.0,
        "Start (°C)": -20.0,
        "Middle (°C)": -21.0,
        "End (°C)": -19.0,
    }
    assert list(summary_table([], "Location").columns)[0] == "Location"


def test_csv_export_has_header_and_rows():
    lines = to_csv_bytes(readings_table(make_df_readings())).decode("utf-8").splitlines()
    assert lines[0].startswith("Date,Time,Shift,Location")
    assert len(lines) == 3


def test_excel_export_round_trips_through_pandas():
    data = to_excel_bytes(readings_table(make_df_readings()), sheet_name="Readings")
    back = pd.read_excel(io.BytesIO(data), sheet_name="Readings", engine="openpyxl")
    assert len(back) == 2
    assert back["Product"].tolist() == ["Frango Inteiro", "Frango Inteiro"]


def test_pdf_export_repeats_over_pages():
    long_table = readings_table(make_df_readings(80))
    data = to_pdf_bytes([("Readings", long_table)])
    assert data.startswith(b"%PDF")

    with fitz.open(stream=data, filetype="pdf") as doc:
        assert doc.page_count >= 2
        assert "Readings" in doc[0].get_text()
        # Header repeated on the overflow page
        assert "Product" in doc[1].get_text()


def test_pdf_export_skips_empty_tables():
    data = to_pdf_bytes([("Empty", pd.DataFrame()), ("Readings", readings_table(make_df_readings(1)))])
    with fitz.open(stream=data, filetype="pdf") as doc:
        assert doc.page_count == 1


@pytest.mark.parametrize("export", [to_csv_bytes, to_excel_bytes])
def test_tabular_exports_reject_empty_input(export):
    with pytest.raises(ValueError, match="No data"):
        export(pd.DataFrame())


def test_pdf_export_rejects_empty_input():
    with pytest.raises(ValueError, match="No data"):
        to_pdf_bytes([])
    with pytest.raises(ValueError, match="No data"):
        to_pdf_bytes([("Readings", pd.DataFrame())])
