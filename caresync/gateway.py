"""
Data Gateway

Thin create / get / list / delete wrappers over the four tables
(accounts, patients, patient_diagnoses, codemap). Every call is a single
commit and returns plain row dicts; caresync.mappers turns those into
domain objects.

Failures raise GatewayError subclasses and are never retried. Unique
violations are pattern-matched (Postgres constraint name or SQLite column
list) into a readable DuplicateRecordError message.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from sqlalchemy import func, inspect, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import GatewayError, RecordNotFoundError, DuplicateRecordError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
CodePair = Tuple[str, str]

# Columns the caller may never set directly
_READ_ONLY = ("id", "created_at")


def row_dict(record) -> Row:
    """Snapshot an ORM instance as a column-name → value dict."""
    return {attr.key: getattr(record, attr.key) for attr in inspect(record).mapper.column_attrs}


def pair_key(namaste_code: str, icd11_code: str) -> CodePair:
    """Case-insensitive identity of a code mapping."""
    return (namaste_code.strip().lower(), icd11_code.strip().lower())


class TableGateway:
    """Shared CRUD for one table"""

    model = None
    family = "Record"
    # (substrings to look for in the database error, message shown to the user)
    duplicate_messages: Tuple[Tuple[Tuple[str, ...], str], ...] = ()

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------ reads

    def get(self, record_id: str) -> Row:
        """Fetch one row by ID or raise RecordNotFoundError."""
        return row_dict(self._get_record(record_id))

    def list(self) -> List[Row]:
        """All rows, newest first."""
        try:
            records = self.db.query(self.model).order_by(self.model.created_at.desc()).all()
        except SQLAlchemyError as e:
            raise GatewayError(f"Failed to load {self.family.lower()} records: {e}") from e
        return [row_dict(r) for r in records]

    # ----------------------------------------------------------------- writes

    def create(self, row: Mapping[str, Any]) -> Row:
        """Insert a row and return it as stored (with generated id and created_at)."""
        record = self.model(**self._insertable(row))
        self.db.add(record)
        self._commit("create")
        self.db.refresh(record)
        logger.info("Created %s %s", self.family.lower(), record.id)
        return row_dict(record)

    def delete(self, record_id: str) -> Row:
        """Delete by ID and return the removed row."""
        record = self._get_record(record_id)
        removed = row_dict(record)
        self.db.delete(record)
        self._commit("delete")
        logger.info("Deleted %s %s", self.family.lower(), record_id)
        return removed

    def _update(self, record_id: str, changes: Mapping[str, Any]) -> Row:
        record = self._get_record(record_id)
        columns = self._column_names()
        for key, value in changes.items():
            if key in columns and key not in _READ_ONLY:
                setattr(record, key, value)
        self._commit("update")
        self.db.refresh(record)
        logger.info("Updated %s %s", self.family.lower(), record_id)
        return row_dict(record)

    # ---------------------------------------------------------------- helpers

    def _get_record(self, record_id: str):
        try:
            record = self.db.query(self.model).filter(self.model.id == record_id).first()
        except SQLAlchemyError as e:
            raise GatewayError(f"Failed to load {self.family.lower()}: {e}") from e
        if record is None:
            raise RecordNotFoundError(self.family, record_id)
        return record

    def _column_names(self) -> Set[str]:
        return {c.key for c in inspect(self.model).mapper.column_attrs}

    def _insertable(self, row: Mapping[str, Any]) -> Row:
        """
        Keep known columns; drop None where the table supplies a value
        (primary key, defaults) so the database fills it in.
        """
        table = self.model.__table__
        values = {}
        for key, value in row.items():
            if key not in table.c:
                continue
            column = table.c[key]
            if value is None and (column.primary_key or column.default is not None):
                continue
            values[key] = value
        return values

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            detail = str(e.orig)
            logger.warning("%s %s rejected: %s", self.family, action, detail)
            raise self._integrity_error(detail, action) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("%s %s failed: %s", self.family, action, e)
            raise GatewayError(f"Failed to {action} {self.family.lower()}: {e}") from e

    def _integrity_error(self, detail: str, action: str) -> GatewayError:
        for markers, message in self.duplicate_messages:
            if any(marker in detail for marker in markers):
                return DuplicateRecordError(message)
        lowered = detail.lower()
        if "unique" in lowered or "duplicate" in lowered:
            return DuplicateRecordError(f"{self.family} already exists.")
        return GatewayError(f"Failed to {action} {self.family.lower()}: {detail}")


class AccountGateway(TableGateway):
    model = models.Account
    family = "Account"
    duplicate_messages = (
        (("accounts.email", "accounts_email", "ix_accounts_email"),
         "An account with this email address already exists."),
    )

    def get_by_email(self, email: str) -> Optional[Row]:
        """Look up an account by email (case-insensitive), None if unknown."""
        record = self.db.query(models.Account).filter(
            func.lower(models.Account.email) == email.strip().lower()
        ).first()
        return row_dict(record) if record else None

    def update(self, account_id: str, changes: Mapping[str, Any]) -> Row:
        """Apply profile changes and return the stored row."""
        return self._update(account_id, changes)


class PatientGateway(TableGateway):
    model = models.Patient
    family = "Patient"
    duplicate_messages = (
        (("unique_patient_name_dob", "patients.first_name"),
         "A patient with the same first name, last name and date of birth already exists."),
        (("unique_patient_email", "patients.email"),
         "This email address is already used by another patient."),
    )

    def search(self, term: str = "") -> List[Row]:
        """Patients whose first or last name contains the term, newest first."""
        term = (term or "").strip()
        if not term:
            return self.list()
        pattern = f"%{term}%"
        records = (
            self.db.query(models.Patient)
            .filter(or_(
                models.Patient.first_name.ilike(pattern),
                models.Patient.last_name.ilike(pattern),
            ))
            .order_by(models.Patient.created_at.desc())
            .all()
        )
        return [row_dict(r) for r in records]


class DiagnosisGateway(TableGateway):
    """
    Diagnoses of a patient.

    create/delete keep the parent's denormalized diagnosis_count in step,
    in the same commit as the diagnosis itself.
    """
    model = models.PatientDiagnosis
    family = "Diagnosis"

    def create(self, row: Mapping[str, Any]) -> Row:
        patient = self._get_patient(row.get("patient_id"))
        record = models.PatientDiagnosis(**self._insertable(row))
        self.db.add(record)
        patient.diagnosis_count = (patient.diagnosis_count or 0) + 1
        self._commit("create")
        self.db.refresh(record)
        logger.info("Recorded diagnosis %s for patient %s", record.id, patient.id)
        return row_dict(record)

    def delete(self, record_id: str) -> Row:
        record = self._get_record(record_id)
        removed = row_dict(record)
        patient = self.db.query(models.Patient).filter(models.Patient.id == record.patient_id).first()
        if patient is not None:
            patient.diagnosis_count = max((patient.diagnosis_count or 0) - 1, 0)
        self.db.delete(record)
        self._commit("delete")
        logger.info("Deleted diagnosis %s", record_id)
        return removed

    def list_for_patient(self, patient_id: str) -> List[Row]:
        """Diagnoses of one patient, oldest first (history order)."""
        records = (
            self.db.query(models.PatientDiagnosis)
            .filter(models.PatientDiagnosis.patient_id == patient_id)
            .order_by(models.PatientDiagnosis.created_at.asc())
            .all()
        )
        return [row_dict(r) for r in records]

    def _get_patient(self, patient_id: Optional[str]) -> models.Patient:
        patient = None
        if patient_id:
            patient = self.db.query(models.Patient).filter(models.Patient.id == patient_id).first()
        if patient is None:
            raise RecordNotFoundError("Patient", patient_id or "")
        return patient


class CodeMapGateway(TableGateway):
    """
    NAMASTE → ICD-11 mappings.

    The (namaste_code, icd11_code) pair is checked before insert, not
    enforced by the database, so two concurrent writers can still create
    the same pair.
    """
    model = models.CodeMapping
    family = "Mapping"

    def create(self, row: Mapping[str, Any]) -> Row:
        namaste_code = row.get("namaste_code") or ""
        icd11_code = row.get("icd11_code") or ""
        if self.pair_exists(namaste_code, icd11_code):
            raise DuplicateRecordError(
                f"Mapping {namaste_code} → {icd11_code} already exists."
            )
        return super().create(row)

    def update(self, mapping_id: str, changes: Mapping[str, Any]) -> Row:
        """Apply edited fields and return the stored row."""
        return self._update(mapping_id, changes)

    def insert_many(self, rows: Iterable[Mapping[str, Any]]) -> List[Row]:
        """Insert a batch in one commit (no duplicate check, see find_pairs)."""
        records = [models.CodeMapping(**self._insertable(row)) for row in rows]
        if not records:
            return []
        self.db.add_all(records)
        self._commit("import")
        return [row_dict(r) for r in records]

    def find_pairs(self, namaste_codes: Iterable[str]) -> Set[CodePair]:
        """
        Lower-cased (namaste_code, icd11_code) pairs already stored for the
        given NAMASTE codes (one `in`-list query).
        """
        codes = sorted({code.strip().lower() for code in namaste_codes if code})
        if not codes:
            return set()
        try:
            results = (
                self.db.query(models.CodeMapping.namaste_code, models.CodeMapping.icd11_code)
                .filter(func.lower(models.CodeMapping.namaste_code).in_(codes))
                .all()
            )
        except SQLAlchemyError as e:
            raise GatewayError(f"Failed to check existing mappings: {e}") from e
        return {pair_key(namaste, icd) for namaste, icd in results}

    def pair_exists(self, namaste_code: str, icd11_code: str) -> bool:
        return pair_key(namaste_code, icd11_code) in self.find_pairs([namaste_code])

    def get_by_namaste_code(self, namaste_code: str) -> List[Row]:
        """Every mapping for one NAMASTE code (case-insensitive)."""
        records = (
            self.db.query(models.CodeMapping)
            .filter(func.lower(models.CodeMapping.namaste_code) == namaste_code.strip().lower())
            .order_by(models.CodeMapping.created_at.desc())
            .all()
        )
        return [row_dict(r) for r in records]

    def search(self, term: str = "", category: Optional[str] = None) -> List[Row]:
        """Substring search over both codes and names, optionally within one category."""
        query = self.db.query(models.CodeMapping)
        term = (term or "").strip()
        if term:
            pattern = f"%{term}%"
            query = query.filter(or_(
                models.CodeMapping.namaste_code.ilike(pattern),
                models.CodeMapping.namaste_name.ilike(pattern),
                models.CodeMapping.icd11_code.ilike(pattern),
                models.CodeMapping.icd11_name.ilike(pattern),
            ))
        if category and category != "all":
            query = query.filter(models.CodeMapping.category == category)
        records = query.order_by(models.CodeMapping.created_at.desc()).all()
        return [row_dict(r) for r in records]
