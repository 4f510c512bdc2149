"""
Code Mapping CSV export and single-mapping report.
"""
import csv
import io
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

EXPORT_COLUMNS = (
    "id", "namaste_code", "namaste_name", "icd11_code", "icd11_name",
    "category", "symptoms", "description", "status", "created_at",
)
EXPORT_FILENAME = "codemap_export.csv"

REPORT_LINES = (
    ("NAMASTE Code", "namaste_code"),
    ("NAMASTE Name", "namaste_name"),
    ("ICD-11 Code", "icd11_code"),
    ("ICD-11 Name", "icd11_name"),
    ("Category", "category"),
    ("Symptoms", "symptoms"),
    ("Description", "description"),
    ("Status", "status"),
)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def export_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    """All rows as CSV text, header first, columns in EXPORT_COLUMNS order."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    for row in rows:
        writer.writerow([_cell(row.get(column)) for column in EXPORT_COLUMNS])
    return buffer.getvalue()


def mapping_report(row: Mapping[str, Any]) -> str:
    """Eight `label,value` lines describing one mapping."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    for label, column in REPORT_LINES:
        value = _cell(row.get(column))
        if column == "description":
            value = value.replace("\r\n", " ").replace("\n", " ")
        writer.writerow([label, value])
    return buffer.getvalue()


def report_filename(namaste_code: str) -> str:
    return f"{namaste_code}_report.csv"


def symptom_list(symptoms: Optional[str]) -> List[str]:
    """Split the comma-joined symptoms column into trimmed labels."""
    if not symptoms:
        return []
    return [s.strip() for s in symptoms.split(",") if s.strip()]
