"""
Unit tests for the data gateway.

Runs against SQLite in /tmp; unique constraints and the diagnosis count
bookkeeping are exercised through real commits.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from caresync.database import Base
from caresync.errors import DuplicateRecordError, GatewayError, RecordNotFoundError
from caresync.gateway import (
    AccountGateway, PatientGateway, DiagnosisGateway, CodeMapGateway, pair_key,
)
from caresync.models import Account, Patient, PatientDiagnosis, CodeMapping

SQLALCHEMY_DATABASE_URL = "sqlite:////tmp/test_caresync_gateway.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    for model in (PatientDiagnosis, Patient, CodeMapping, Account):
        session.query(model).delete()
    session.commit()
    yield session
    session.close()


def patient_row(**overrides):
    row = {"first_name": "Asha", "last_name": "Rao", "date_of_birth": "1990-05-04"}
    row.update(overrides)
    return row


def mapping_row(**overrides):
    row = {"namaste_code": "AYU-001", "icd11_code": "MG40", "namaste_name": "Jwara"}
    row.update(overrides)
    return row


# ============================================================================
# PATIENTS
# ============================================================================

def test_create_patient_generates_id_and_timestamp(db):
    row = PatientGateway(db).create(patient_row(email="asha@example.com"))

    assert row["id"]
    assert row["created_at"] is not None
    assert row["diagnosis_count"] == 0
    assert row["email"] == "asha@example.com"
    assert row["phone"] is None


def test_get_missing_patient_raises_not_found(db):
    with pytest.raises(RecordNotFoundError) as exc:
        PatientGateway(db).get("does-not-exist")
    assert exc.value.status_code == 404
    assert exc.value.message == "Patient not found"


def test_duplicate_name_and_dob_has_friendly_message(db):
    gateway = PatientGateway(db)
    gateway.create(patient_row())

    with pytest.raises(DuplicateRecordError) as exc:
        gateway.create(patient_row(email="other@example.com"))
    assert exc.value.message == (
        "A patient with the same first name, last name and date of birth already exists."
    )


def test_duplicate_email_has_friendly_message(db):
    gateway = PatientGateway(db)
    gateway.create(patient_row(email="shared@example.com"))

    with pytest.raises(DuplicateRecordError) as exc:
        gateway.create(patient_row(first_name="Meera", email="shared@example.com"))
    assert exc.value.message == "This email address is already used by another patient."


def test_gateway_usable_after_rejected_write(db):
    gateway = PatientGateway(db)
    gateway.create(patient_row())
    with pytest.raises(DuplicateRecordError):
        gateway.create(patient_row())

    gateway.create(patient_row(first_name="Meera"))
    assert len(gateway.list()) == 2


def test_list_patients_newest_first(db):
    gateway = PatientGateway(db)
    first = gateway.create(patient_row(first_name="First"))
    second = gateway.create(patient_row(first_name="Second"))

    ids = [row["id"] for row in gateway.list()]
    assert ids.index(second["id"]) < ids.index(first["id"])


def test_search_patients_by_name(db):
    gateway = PatientGateway(db)
    gateway.create(patient_row(first_name="Asha", last_name="Rao"))
    gateway.create(patient_row(first_name="Meera", last_name="Iyer"))

    assert [r["first_name"] for r in gateway.search("iye")] == ["Meera"]
    assert len(gateway.search("")) == 2


# ============================================================================
# DIAGNOSES
# ============================================================================

def test_diagnosis_updates_patient_count(db):
    patients = PatientGateway(db)
    diagnoses = DiagnosisGateway(db)
    patient = patients.create(patient_row())

    first = diagnoses.create({"patient_id": patient["id"], "namaste_code": "AYU-001", "icd11_code": "MG40"})
    diagnoses.create({"patient_id": patient["id"], "namaste_code": "AYU-002", "icd11_code": "CA23"})
    assert patients.get(patient["id"])["diagnosis_count"] == 2

    diagnoses.delete(first["id"])
    assert patients.get(patient["id"])["diagnosis_count"] == 1


def test_diagnoses_listed_oldest_first(db):
    patient = PatientGateway(db).create(patient_row())
    diagnoses = DiagnosisGateway(db)
    for code in ("AYU-001", "AYU-002", "AYU-003"):
        diagnoses.create({"patient_id": patient["id"], "namaste_code": code, "icd11_code": "MG40"})

    codes = [row["namaste_code"] for row in diagnoses.list_for_patient(patient["id"])]
    assert codes == ["AYU-001", "AYU-002", "AYU-003"]


def test_diagnosis_for_unknown_patient(db):
    with pytest.raises(RecordNotFoundError) as exc:
        DiagnosisGateway(db).create({"patient_id": "missing", "namaste_code": "A", "icd11_code": "B"})
    assert exc.value.message == "Patient not found"


def test_deleting_patient_removes_diagnoses(db):
    patient = PatientGateway(db).create(patient_row())
    diagnoses = DiagnosisGateway(db)
    diagnoses.create({"patient_id": patient["id"], "namaste_code": "AYU-001", "icd11_code": "MG40"})

    removed = PatientGateway(db).delete(patient["id"])

    assert removed["id"] == patient["id"]
    assert diagnoses.list_for_patient(patient["id"]) == []
    assert db.query(PatientDiagnosis).count() == 0


# ============================================================================
# CODE MAP
# ============================================================================

def test_create_mapping_applies_defaults(db):
    row = CodeMapGateway(db).create(mapping_row())
    assert row["category"] == "Ayurveda"
    assert row["status"] == "pending"


def test_duplicate_pair_is_case_insensitive(db):
    gateway = CodeMapGateway(db)
    gateway.create(mapping_row())

    with pytest.raises(DuplicateRecordError) as exc:
        gateway.create(mapping_row(namaste_code="ayu-001", icd11_code="mg40"))
    assert "already exists" in exc.value.message

    # Same NAMASTE code, other ICD-11 code is a different mapping
    gateway.create(mapping_row(icd11_code="MG41"))
    assert len(gateway.list()) == 2


def test_find_pairs_returns_lowercased_pairs(db):
    gateway = CodeMapGateway(db)
    gateway.insert_many([mapping_row(), mapping_row(namaste_code="SID-010", icd11_code="FA20")])

    pairs = gateway.find_pairs(["AYU-001", "sid-010", "UNA-999"])
    assert pairs == {pair_key("AYU-001", "MG40"), pair_key("SID-010", "FA20")}
    assert gateway.find_pairs([]) == set()


def test_update_mapping(db):
    gateway = CodeMapGateway(db)
    created = gateway.create(mapping_row())

    updated = gateway.update(created["id"], {"status": "verified", "id": "ignored"})
    assert updated["id"] == created["id"]
    assert updated["status"] == "verified"
    assert updated["namaste_name"] == "Jwara"


def test_search_by_term_and_category(db):
    gateway = CodeMapGateway(db)
    gateway.create(mapping_row(namaste_name="Jwara", category="Ayurveda"))
    gateway.create(mapping_row(namaste_code="SID-010", icd11_code="FA20", namaste_name="Vadham", category="Siddha"))

    assert [r["namaste_code"] for r in gateway.search("vadh")] == ["SID-010"]
    assert [r["namaste_code"] for r in gateway.search("", "Ayurveda")] == ["AYU-001"]
    assert len(gateway.search("", "all")) == 2


def test_get_by_namaste_code(db):
    gateway = CodeMapGateway(db)
    gateway.create(mapping_row())
    gateway.create(mapping_row(icd11_code="MG41"))

    assert len(gateway.get_by_namaste_code("ayu-001")) == 2
    assert gateway.get_by_namaste_code("none") == []


def test_delete_mapping_returns_row(db):
    gateway = CodeMapGateway(db)
    created = gateway.create(mapping_row())

    removed = gateway.delete(created["id"])
    assert removed["namaste_code"] == "AYU-001"
    with pytest.raises(RecordNotFoundError):
        gateway.get(created["id"])


# ============================================================================
# ACCOUNTS
# ============================================================================

def test_account_email_is_unique(db):
    gateway = AccountGateway(db)
    gateway.create({"email": "doc@example.com", "password_hash": "x"})

    with pytest.raises(DuplicateRecordError) as exc:
        gateway.create({"email": "doc@example.com", "password_hash": "y"})
    assert exc.value.status_code == 409


def test_get_account_by_email_case_insensitive(db):
    gateway = AccountGateway(db)
    created = gateway.create({"email": "doc@example.com", "password_hash": "x"})

    assert gateway.get_by_email("DOC@example.com ")["id"] == created["id"]
    assert gateway.get_by_email("nobody@example.com") is None


def test_not_null_violation_is_gateway_error(db):
    with pytest.raises(GatewayError) as exc:
        CodeMapGateway(db).insert_many([{"namaste_code": "AYU-001"}])
    assert not isinstance(exc.value, DuplicateRecordError)
    assert exc.value.status_code == 500
