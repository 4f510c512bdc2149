"""
Integration tests for the HTTP API.

Uses SQLite in /tmp through the get_db override and an in-memory
session store.
"""
import csv
import io
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from caresync.auth import InMemorySessionStore
from caresync.chat import ChatAssistant
from caresync.config import Settings
from caresync.database import Base, get_db
from caresync.main import app, get_assistant
from caresync.models import Account, Patient, PatientDiagnosis, CodeMapping

# Test database (SQLite in /tmp for container compatibility)
SQLALCHEMY_DATABASE_URL = "sqlite:////tmp/test_caresync_api.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)


def override_get_db():
    """Override database dependency for testing"""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db
client = TestClient(app)


@pytest.fixture(autouse=True)
def clean_database():
    """Clean database and sessions before each test"""
    db = TestingSessionLocal()
    for model in (PatientDiagnosis, Patient, CodeMapping, Account):
        db.query(model).delete()
    db.commit()
    db.close()
    app.state.session_store = InMemorySessionStore()


@pytest.fixture
def auth_headers():
    response = client.post("/api/auth/signup", json={
        "email": "doc@example.com",
        "password": "s3cret",
        "firstName": "Dev",
        "lastName": "Patel",
    })
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['token']}"}


def create_patient(headers, **fields):
    body = {"firstName": "Asha", "lastName": "Rao", "dateOfBirth": "1990-05-04"}
    body.update(fields)
    return client.post("/api/patients", json=body, headers=headers)


# ============================================================================
# HEALTH
# ============================================================================

def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_default_database_url_names_the_driver():
    assert Settings.model_fields["database_url"].default.startswith("postgresql+psycopg2://")


def test_ping():
    response = client.get("/api/ping")
    assert response.status_code == 200
    assert response.json() == {"message": "pong"}


# ============================================================================
# AUTH
# ============================================================================

def test_signup_login_me_logout(auth_headers):
    me = client.get("/api/auth/me", headers=auth_headers)
    assert me.status_code == 200
    assert me.json()["email"] == "doc@example.com"
    assert me.json()["role"] == "user"
    assert "passwordHash" not in me.json()

    login = client.post("/api/auth/login", json={"email": "doc@example.com", "password": "s3cret"})
    assert login.status_code == 200
    assert login.json()["account"]["firstName"] == "Dev"

    assert client.post("/api/auth/logout", headers=auth_headers).status_code == 204
    assert client.get("/api/auth/me", headers=auth_headers).status_code == 401


def test_login_invalid_credentials():
    response = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "x"})
    assert response.status_code == 401


def test_me_without_token():
    assert client.get("/api/auth/me").status_code == 401


def test_update_profile(auth_headers):
    response = client.patch("/api/auth/me", json={"firstName": "Asha", "lastName": ""}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["firstName"] == "Asha"
    assert response.json()["lastName"] == "Patel"
    assert response.json()["role"] == "user"


def test_avatar_can_be_cleared(auth_headers):
    response = client.patch("/api/auth/me", json={"avatar": "https://example.com/a.png"}, headers=auth_headers)
    assert response.json()["avatar"] == "https://example.com/a.png"

    response = client.patch("/api/auth/me", json={"firstName": "Asha"}, headers=auth_headers)
    assert response.json()["avatar"] == "https://example.com/a.png"

    response = client.patch("/api/auth/me", json={"avatar": ""}, headers=auth_headers)
    assert response.status_code == 200
    assert "avatar" not in response.json()
    assert "avatar" not in client.get("/api/auth/me", headers=auth_headers).json()


# ============================================================================
# PATIENTS
# ============================================================================

def test_create_patient_requires_session():
    response = create_patient({})
    assert response.status_code == 401


def test_create_patient(auth_headers):
    response = create_patient(auth_headers, email="asha@example.com", phone="")
    assert response.status_code == 201
    data = response.json()
    assert data["firstName"] == "Asha"
    assert data["diagnosisCount"] == 0
    assert data["userId"]
    assert "phone" not in data
    assert "id" in data and "createdAt" in data


def test_create_patient_missing_name(auth_headers):
    response = client.post("/api/patients", json={"firstName": "Asha"}, headers=auth_headers)
    assert response.status_code == 422


def test_duplicate_patient_conflict(auth_headers):
    create_patient(auth_headers)
    response = create_patient(auth_headers)
    assert response.status_code == 409
    assert response.json()["detail"] == (
        "A patient with the same first name, last name and date of birth already exists."
    )


def test_list_and_search_patients(auth_headers):
    create_patient(auth_headers, firstName="Asha")
    create_patient(auth_headers, firstName="Meera", lastName="Iyer")

    assert len(client.get("/api/patients").json()) == 2
    found = client.get("/api/patients", params={"search": "mee"}).json()
    assert [p["firstName"] for p in found] == ["Meera"]


def test_patient_detail_with_diagnoses(auth_headers):
    patient_id = create_patient(auth_headers).json()["id"]

    response = client.post(f"/api/patients/{patient_id}/diagnoses", json={
        "namasteCode": "AYU-001",
        "icd11Code": "MG40",
        "symptoms": "fever, chills",
    })
    assert response.status_code == 201
    assert "recordedAt" in response.json()

    detail = client.get(f"/api/patients/{patient_id}").json()
    assert detail["patient"]["diagnosisCount"] == 1
    assert [d["namasteCode"] for d in detail["diagnoses"]] == ["AYU-001"]


def test_diagnosis_requires_both_codes(auth_headers):
    patient_id = create_patient(auth_headers).json()["id"]
    response = client.post(f"/api/patients/{patient_id}/diagnoses", json={"namasteCode": "AYU-001"})
    assert response.status_code == 422


def test_delete_diagnosis_and_patient(auth_headers):
    patient_id = create_patient(auth_headers).json()["id"]
    diagnosis_id = client.post(f"/api/patients/{patient_id}/diagnoses", json={
        "namasteCode": "AYU-001", "icd11Code": "MG40",
    }).json()["id"]

    assert client.delete(f"/api/diagnoses/{diagnosis_id}").status_code == 204
    assert client.get(f"/api/patients/{patient_id}").json()["patient"]["diagnosisCount"] == 0

    assert client.delete(f"/api/patients/{patient_id}").status_code == 204
    assert client.get(f"/api/patients/{patient_id}").status_code == 404


def test_stored_values_outside_form_choices_still_list():
    db = TestingSessionLocal()
    db.add(Patient(first_name="Ravi", last_name="Kumar", gender="Male"))
    db.add(CodeMapping(namaste_code="HOM-001", icd11_code="MG40", category="Homeopathy", status="approved"))
    db.commit()
    db.close()

    patients = client.get("/api/patients")
    assert patients.status_code == 200
    assert patients.json()[0]["gender"] == "Male"

    mappings = client.get("/api/codemap")
    assert mappings.status_code == 200
    assert mappings.json()[0]["category"] == "Homeopathy"
    assert mappings.json()[0]["status"] == "approved"

    patient_id = patients.json()[0]["id"]
    bundle = client.get(f"/api/patients/{patient_id}/fhir").json()
    assert bundle["entry"][0]["resource"]["gender"] == "male"


def test_unknown_patient_is_404():
    response = client.get("/api/patients/missing")
    assert response.status_code == 404
    assert response.json()["detail"] == "Patient not found"


def test_fhir_download(auth_headers):
    patient_id = create_patient(auth_headers).json()["id"]
    client.post(f"/api/patients/{patient_id}/diagnoses", json={"namasteCode": "AYU-001", "icd11Code": "MG40"})

    response = client.get(f"/api/patients/{patient_id}/fhir")

    assert response.status_code == 200
    assert f"patient-{patient_id}-fhir.json" in response.headers["content-disposition"]
    bundle = response.json()
    assert bundle["type"] == "document"
    assert [e["resource"]["resourceType"] for e in bundle["entry"]] == ["Patient", "Condition"]
    assert bundle["entry"][1]["resource"]["subject"]["reference"] == f"Patient/{patient_id}"


# ============================================================================
# CODE MAP
# ============================================================================

def create_mapping(**fields):
    body = {"namasteCode": "AYU-001", "icd11Code": "MG40", "namasteName": "Jwara", "category": ""}
    body.update(fields)
    return client.post("/api/codemap", json=body)


def test_create_and_get_mapping():
    response = create_mapping()
    assert response.status_code == 201
    data = response.json()
    assert data["category"] == "Ayurveda"
    assert data["status"] == "pending"

    assert client.get(f"/api/codemap/{data['id']}").json()["namasteName"] == "Jwara"


def test_duplicate_mapping_conflict():
    create_mapping()
    response = create_mapping(namasteCode="ayu-001", icd11Code="mg40")
    assert response.status_code == 409


def test_update_and_delete_mapping():
    mapping_id = create_mapping().json()["id"]

    response = client.patch(f"/api/codemap/{mapping_id}", json={"status": "verified", "icd11Code": ""})
    assert response.status_code == 200
    assert response.json()["status"] == "verified"
    assert response.json()["icd11Code"] == "MG40"

    assert client.delete(f"/api/codemap/{mapping_id}").status_code == 204
    assert client.get(f"/api/codemap/{mapping_id}").status_code == 404


def test_code_search_and_lookup():
    create_mapping()
    create_mapping(namasteCode="SID-010", icd11Code="FA20", namasteName="Vadham", category="Siddha")

    results = client.get("/api/codes/search", params={"q": "vadh"}).json()
    assert [r["namasteCode"] for r in results] == ["SID-010"]
    assert len(client.get("/api/codes/search", params={"category": "all"}).json()) == 2

    assert client.get("/api/codes/AYU-001").json()[0]["icd11Code"] == "MG40"
    assert client.get("/api/codes/NOPE").status_code == 404


def test_csv_import():
    create_mapping()
    content = (
        "NAMASTE Code,ICD,System\n"
        "AYU-001,MG40,Ayurveda\n"
        "AYU-002,CA23,Ayurveda\n"
        "SID-010,FA20,Siddha\n"
        ",RA01,Unani\n"
    )
    response = client.post(
        "/api/codemap/import",
        files={"file": ("mappings.csv", content.encode("utf-8"), "text/csv")},
    )

    assert response.status_code == 200
    assert response.json() == {
        "inserted": 2,
        "skipped": 1,
        "dropped": 1,
        "message": "Inserted 2, skipped 1.",
    }
    assert len(client.get("/api/codemap").json()) == 3


def test_csv_import_rejects_non_utf8():
    response = client.post(
        "/api/codemap/import",
        files={"file": ("mappings.csv", b"namaste,icd\n\xff\xfe,MG40\n", "text/csv")},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "The uploaded file is not valid UTF-8 text."
    assert client.get("/api/codemap").json() == []


def test_csv_export_and_report():
    mapping_id = create_mapping(description="Raised\ntemperature").json()["id"]

    export = client.get("/api/codemap/export")
    assert export.status_code == 200
    assert "codemap_export.csv" in export.headers["content-disposition"]
    assert len(list(csv.reader(io.StringIO(export.text)))) == 2

    report = client.get(f"/api/codemap/{mapping_id}/report")
    assert report.status_code == 200
    assert "AYU-001_report.csv" in report.headers["content-disposition"]
    lines = list(csv.reader(io.StringIO(report.text)))
    assert lines[0] == ["NAMASTE Code", "AYU-001"]
    assert lines[6] == ["Description", "Raised temperature"]


# ============================================================================
# CHAT
# ============================================================================

def test_chat_reply():
    response = client.post("/api/chat/reply", json={"message": "hi"})
    assert response.json() == {"answer": "Hello! How can I assist you today?"}


def test_chat_ask_uses_assistant():
    provider = AsyncMock()
    provider.generate.return_value = "MG40 is fever."
    app.dependency_overrides[get_assistant] = lambda: ChatAssistant(provider)
    try:
        response = client.post("/api/chat/ask", json={"question": "What is MG40?"})
    finally:
        del app.dependency_overrides[get_assistant]

    assert response.status_code == 200
    assert response.json() == {"answer": "MG40 is fever."}


def test_chat_ask_empty_question():
    response = client.post("/api/chat/ask", json={})
    assert response.json() == {"answer": "Please provide a question."}
