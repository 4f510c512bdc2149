"""
Code Mapping CSV Importer

Reads an uploaded CSV of NAMASTE → ICD-11 mappings whose header labels
vary between sources ("NAMASTE Code", "namaste_code", "namaste", ...),
drops rows without both codes, skips pairs that already exist and inserts
the rest in batches.

Batches run one after another. If a batch fails the import stops there;
batches inserted before it stay committed.
"""
import csv
import io
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from ..gateway import CodeMapGateway, CodePair, pair_key
from ..schemas import CATEGORIES, MAPPING_STATUSES

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

# Target column → accepted header labels, in priority order (compared lower-cased)
HEADER_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "namaste_code": ("namaste_code", "namaste code", "namaste"),
    "namaste_name": ("namaste_name", "namaste name"),
    "icd11_code": ("icd11_code", "icd11 code", "icd_code", "icd"),
    "icd11_name": ("icd11_name", "icd name"),
    "category": ("category", "system"),
    "symptoms": ("symptoms", "symptom"),
    "description": ("description", "desc"),
    "status": ("status",),
}

DEFAULT_CATEGORY = "Ayurveda"
DEFAULT_STATUS = "pending"


@dataclass
class ImportResult:
    """Counts reported back after an upload."""
    inserted: int = 0
    skipped: int = 0
    dropped: int = 0

    def summary(self) -> str:
        if not self.inserted:
            return f"No new rows: {self.skipped} rows existed already."
        return f"Inserted {self.inserted}, skipped {self.skipped}."


def normalize_header(label: Any) -> str:
    return str(label).strip().lower()


def lookup(row: Mapping[str, Any], field: str) -> Optional[str]:
    """
    First non-blank value among the synonyms of `field`.

    `row` must already have normalized (lower-cased, trimmed) keys.
    """
    for label in HEADER_SYNONYMS[field]:
        value = row.get(label)
        if value is not None and str(value).strip() != "":
            return str(value).strip()
    return None


def normalize_category(value: Optional[str]) -> str:
    if value:
        for category in CATEGORIES:
            if category.lower() == value.lower():
                return category
    return DEFAULT_CATEGORY


def normalize_status(value: Optional[str]) -> str:
    status = (value or "").lower()
    return status if status in MAPPING_STATUSES else DEFAULT_STATUS


def map_csv_row(raw: Mapping[Any, Any]) -> Row:
    """Translate one parsed CSV row into a codemap row."""
    row = {normalize_header(k): v for k, v in raw.items() if k is not None}
    return {
        "namaste_code": lookup(row, "namaste_code") or "",
        "namaste_name": lookup(row, "namaste_name"),
        "icd11_code": lookup(row, "icd11_code") or "",
        "icd11_name": lookup(row, "icd11_name"),
        "category": normalize_category(lookup(row, "category")),
        "symptoms": lookup(row, "symptoms"),
        "description": lookup(row, "description"),
        "status": normalize_status(lookup(row, "status")),
    }


def read_csv(text: str) -> List[Dict[str, Any]]:
    """Parse header-labeled CSV text into dicts, skipping blank lines."""
    text = text.lstrip("\ufeff")
    reader = csv.DictReader(io.StringIO(text))
    return [
        raw for raw in reader
        if any(value is not None and str(value).strip() for value in raw.values())
    ]


def parse_mappings(text: str) -> Tuple[List[Row], int]:
    """
    Map every CSV row and keep the ones carrying both codes.

    Returns:
        (rows, number of rows dropped for a missing code)
    """
    mapped = [map_csv_row(raw) for raw in read_csv(text)]
    kept = [r for r in mapped if r["namaste_code"] and r["icd11_code"]]
    return kept, len(mapped) - len(kept)


def chunked(rows: Sequence[Row], size: int) -> Iterator[Sequence[Row]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


class CodeMapImporter:
    """
    Imports CSV uploads into the codemap table.

    Usage:
        importer = CodeMapImporter(CodeMapGateway(db))
        result = importer.import_text(csv_text)
        print(result.summary())
    """

    def __init__(self, gateway: CodeMapGateway, check_batch_size: int = 100, insert_batch_size: int = 200):
        self.gateway = gateway
        self.check_batch_size = max(1, check_batch_size)
        self.insert_batch_size = max(1, insert_batch_size)

    def filter_out_existing(self, rows: Sequence[Row]) -> Tuple[List[Row], int]:
        """
        Drop rows whose (NAMASTE, ICD-11) pair is already stored or already
        appeared earlier in the same upload. Case-insensitive.

        Returns:
            (rows to insert, number skipped)
        """
        existing: Set[CodePair] = set()
        for batch in chunked(rows, self.check_batch_size):
            existing |= self.gateway.find_pairs(r["namaste_code"] for r in batch)

        unique_rows = []
        for row in rows:
            key = pair_key(row["namaste_code"], row["icd11_code"])
            if key in existing:
                continue
            existing.add(key)
            unique_rows.append(row)
        return unique_rows, len(rows) - len(unique_rows)

    def import_rows(self, rows: Sequence[Row], dropped: int = 0) -> ImportResult:
        unique_rows, skipped = self.filter_out_existing(rows)
        result = ImportResult(skipped=skipped, dropped=dropped)

        for batch in chunked(unique_rows, self.insert_batch_size):
            # A GatewayError here aborts the remaining batches
            result.inserted += len(self.gateway.insert_many(batch))

        logger.info(
            "CSV import: inserted=%d skipped=%d dropped=%d",
            result.inserted, result.skipped, result.dropped,
        )
        return result

    def import_text(self, text: str) -> ImportResult:
        """Parse CSV text and import it."""
        rows, dropped = parse_mappings(text)
        return self.import_rows(rows, dropped=dropped)
