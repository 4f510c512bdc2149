"""
NAMASTE → ICD-11 code mapping CSV import and export.
"""
from .importer import CodeMapImporter, ImportResult, HEADER_SYNONYMS, map_csv_row, parse_mappings
from .exporter import EXPORT_FILENAME, export_csv, mapping_report, report_filename, symptom_list

__all__ = [
    "CodeMapImporter",
    "ImportResult",
    "HEADER_SYNONYMS",
    "map_csv_row",
    "parse_mappings",
    "EXPORT_FILENAME",
    "export_csv",
    "mapping_report",
    "report_filename",
    "symptom_list",
]
