#!/usr/bin/env python3
"""
Generates sample-data/customers.xlsx and sample-data/customers.csv for trying
out sheet-chat by hand.

Run from the repo root:
    python sample-data/generate_samples.py

Quirks baked in:
  customers.xlsx
    - Blank leading row and blank leading column (data starts at B2)
    - Mixed cell types: ints, floats, booleans, dates, text
    - Empty cells in "phone" and "notes"
    - Second sheet "Archive", which ingestion ignores with a warning
  customers.csv
    - Semicolon delimiter and a UTF-8 BOM
    - A quoted field containing the delimiter, a comma and a double quote
    - A short row (missing trailing cells)
"""

from datetime import date
from pathlib import Path

import openpyxl

HERE = Path(__file__).parent
XLSX_OUTPUT = HERE / "customers.xlsx"
CSV_OUTPUT = HERE / "customers.csv"

HEADERS = ["id", "name", "email", "city", "phone", "active", "balance", "joined", "notes"]
ROWS = [
    [1, "Alice Martin", "alice@example.com", "Lyon", "+33 4 11 22 33", True, 1250.5, date(2021, 3, 14), "VIP"],
    [2, "Bob Stone", "bob@example.com", "Berlin", None, False, 0, date(2022, 7, 1), None],
    [3, "Chloé Durand", "chloe@example.com", "Paris", "+33 1 44 55 66", True, 310.25, date(2020, 11, 30), 'Says "hi"'],
    [4, "Dan O'Neil", "dan@example.com", "Dublin", "+353 1 234 5678", True, 78, date(2023, 1, 9), "Late, twice"],
    [5, "Eve Zhang", "eve@example.com", "Singapore", None, False, -12.75, date(2019, 5, 20), None],
    [6, "Frank Ruiz", "frank@example.com", "Madrid", "+34 91 123 4567", True, 940, date(2024, 2, 29), "Prefers email"],
    [7, "Grace Kim", "grace@example.com", "Seoul", "+82 2 555 0101", True, 5000, date(2018, 8, 8), None],
]


def write_xlsx() -> None:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Customers"

    # Row 1 stays blank; column A stays blank.
    for col, header in enumerate(HEADERS, start=2):
        ws.cell(row=2, column=col, value=header)
    for row_idx, row in enumerate(ROWS, start=3):
        for col, value in enumerate(row, start=2):
            if value is not None:
                ws.cell(row=row_idx, column=col, value=value)

    archive = wb.create_sheet("Archive")
    archive.append(["id", "name", "closed"])
    archive.append([99, "Old Customer", date(2017, 6, 1)])

    wb.save(XLSX_OUTPUT)
    print(f"Created: {XLSX_OUTPUT}")


def write_csv() -> None:
    lines = [
        "id;name;email;city;notes",
        "1;Alice Martin;alice@example.com;Lyon;VIP",
        '2;Bob Stone;bob@example.com;Berlin;"Owes 5; pays, later"',
        '3;Chloé Durand;chloe@example.com;Paris;"Says ""hi"""',
        "4;Dan O'Neil;dan@example.com",
        "5;Eve Zhang;eve@example.com;Singapore;",
    ]
    CSV_OUTPUT.write_bytes(b"\xef\xbb\xbf" + ("\n".join(lines) + "\n").encode("utf-8"))
    print(f"Created: {CSV_OUTPUT}")


if __name__ == "__main__":
    write_xlsx()
    write_csv()
