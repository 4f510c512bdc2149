"""
Row ↔ Domain Mappers

Converts flat, column-named rows (dicts as stored in the database) into
domain objects and back. Pure functions with no database access.

Direction rules:
- row → domain: null columns are dropped so the field is absent on the
  domain object (and excluded from JSON responses).
- domain → row: every column is present, omitted optional fields
  become None.

Mappings:
- accounts          → Account   (password_hash never leaves the row)
- patients          → Patient
- patient_diagnoses → Diagnosis (created_at → recorded_at)
- codemap           → CodeMapping
"""
from typing import Any, Dict, Mapping, Optional, Tuple, Type, Union

from pydantic import BaseModel

from .schemas import Account, Patient, Diagnosis, CodeMapping


Row = Dict[str, Any]

ACCOUNT_COLUMNS: Tuple[str, ...] = (
    "id", "email", "first_name", "last_name", "role", "avatar", "created_at",
)

PATIENT_COLUMNS: Tuple[str, ...] = (
    "id", "user_id", "first_name", "last_name", "date_of_birth", "gender",
    "admit_date", "diagnosis", "email", "phone", "guardian_name",
    "guardian_phone", "address", "diagnosis_count", "created_at",
)

DIAGNOSIS_COLUMNS: Tuple[str, ...] = (
    "id", "patient_id", "namaste_code", "icd11_code", "symptoms",
    "clinical_notes", "created_at",
)

CODEMAP_COLUMNS: Tuple[str, ...] = (
    "id", "namaste_code", "namaste_name", "icd11_code", "icd11_name",
    "category", "symptoms", "description", "status", "created_at",
)

# Column → field renames beyond the snake/camel convention
DIAGNOSIS_RENAMES = {"created_at": "recorded_at"}


def _present(row: Mapping[str, Any], columns: Tuple[str, ...], renames: Mapping[str, str]) -> Dict[str, Any]:
    """Non-null columns of a row, keyed by domain field name."""
    return {
        renames.get(column, column): row[column]
        for column in columns
        if row.get(column) is not None
    }


def _field_values(obj: Union[BaseModel, Mapping[str, Any], None], model: Type[BaseModel]) -> Dict[str, Any]:
    """
    Read a domain object (or a dict of its fields) into snake_case names.

    Dicts may use either the attribute names or their camelCase aliases.
    """
    if obj is None:
        return {}
    if isinstance(obj, BaseModel):
        return obj.model_dump()

    values: Dict[str, Any] = {}
    for name, field in model.model_fields.items():
        if name in obj:
            values[name] = obj[name]
        elif field.alias and field.alias in obj:
            values[name] = obj[field.alias]
    return values


def _to_row(
    obj: Union[BaseModel, Mapping[str, Any], None],
    model: Type[BaseModel],
    columns: Tuple[str, ...],
    renames: Optional[Mapping[str, str]] = None,
) -> Row:
    renames = renames or {}
    values = _field_values(obj, model)
    return {column: values.get(renames.get(column, column)) for column in columns}


# ============================================================================
# row → domain
# ============================================================================

def account_from_row(row: Mapping[str, Any]) -> Account:
    """Build an Account from an accounts row (password hash is not carried)."""
    return Account(**_present(row, ACCOUNT_COLUMNS, {}))


def patient_from_row(row: Mapping[str, Any]) -> Patient:
    """Build a Patient from a patients row."""
    return Patient(**_present(row, PATIENT_COLUMNS, {}))


def diagnosis_from_row(row: Mapping[str, Any]) -> Diagnosis:
    """Build a Diagnosis from a patient_diagnoses row."""
    return Diagnosis(**_present(row, DIAGNOSIS_COLUMNS, DIAGNOSIS_RENAMES))


def codemap_from_row(row: Mapping[str, Any]) -> CodeMapping:
    """Build a CodeMapping from a codemap row."""
    return CodeMapping(**_present(row, CODEMAP_COLUMNS, {}))


# ============================================================================
# domain → row
# ============================================================================

def account_to_row(account: Union[BaseModel, Mapping[str, Any], None]) -> Row:
    return _to_row(account, Account, ACCOUNT_COLUMNS)


def patient_to_row(patient: Union[BaseModel, Mapping[str, Any], None]) -> Row:
    """
    Flatten a (possibly partial) patient into a patients row.

    Accepts a Patient, a PatientCreate form or a plain dict; anything the
    input does not carry is written as None.
    """
    return _to_row(patient, Patient, PATIENT_COLUMNS)


def diagnosis_to_row(diagnosis: Union[BaseModel, Mapping[str, Any], None]) -> Row:
    return _to_row(diagnosis, Diagnosis, DIAGNOSIS_COLUMNS, DIAGNOSIS_RENAMES)


def codemap_to_row(mapping: Union[BaseModel, Mapping[str, Any], None]) -> Row:
    return _to_row(mapping, CodeMapping, CODEMAP_COLUMNS)
