import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Depends, File, HTTPException, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import models, schemas, database, mappers
from .auth import AuthService, AuthSession, InMemorySessionStore, JsonFileSessionStore
from .chat import ChatAssistant, generate_static_reply
from .codemap import CodeMapImporter, EXPORT_FILENAME, export_csv, mapping_report, report_filename
from .config import settings
from .errors import AuthError, GatewayError
from .fhir import FHIRConverter, export_filename
from .gateway import AccountGateway, CodeMapGateway, DiagnosisGateway, PatientGateway

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database tables on startup"""
    models.Base.metadata.create_all(bind=database.engine)
    logger.info("Database tables created")
    yield


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Patient records with NAMASTE / ICD-11 coded diagnoses",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.session_store_path:
    app.state.session_store = JsonFileSessionStore(settings.session_store_path)
else:
    app.state.session_store = InMemorySessionStore()

bearer = HTTPBearer(auto_error=False)


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": exc.message},
        headers={"WWW-Authenticate": "Bearer"},
    )


# ============================================================================
# Dependencies
# ============================================================================

def get_auth_service(request: Request, db: Session = Depends(database.get_db)) -> AuthService:
    return AuthService(AccountGateway(db), request.app.state.session_store)


def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    auth: AuthService = Depends(get_auth_service),
) -> AuthSession:
    """Resolve the Bearer token to an active session or answer 401."""
    session = auth.restore(credentials.credentials) if credentials else None
    if session is None:
        raise AuthError("Not signed in")
    return session


def get_assistant() -> ChatAssistant:
    return ChatAssistant()


# ============================================================================
# Health
# ============================================================================

@app.get("/health", response_model=schemas.HealthResponse)
def health_check():
    """Health check endpoint - returns {"status": "ok"}"""
    return {"status": "ok"}


@app.get("/api/ping", response_model=schemas.PingResponse)
def ping():
    return {"message": settings.ping_message}


# ============================================================================
# Auth
# ============================================================================

@app.post("/api/auth/signup", response_model=schemas.SessionResponse,
          response_model_exclude_none=True, status_code=status.HTTP_201_CREATED)
def signup(body: schemas.SignupRequest, auth: AuthService = Depends(get_auth_service)):
    """Create a 'user' account and return its session token."""
    session = auth.signup(body.email, body.password, body.first_name or "", body.last_name or "")
    return schemas.SessionResponse(token=session.token, account=session.account)


@app.post("/api/auth/login", response_model=schemas.SessionResponse, response_model_exclude_none=True)
def login(body: schemas.LoginRequest, auth: AuthService = Depends(get_auth_service)):
    session = auth.login(body.email, body.password)
    return schemas.SessionResponse(token=session.token, account=session.account)


@app.post("/api/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    session: AuthSession = Depends(get_current_session),
    auth: AuthService = Depends(get_auth_service),
):
    auth.logout(session)
    return None


@app.get("/api/auth/me", response_model=schemas.Account, response_model_exclude_none=True)
def me(session: AuthSession = Depends(get_current_session)):
    return session.account


@app.patch("/api/auth/me", response_model=schemas.Account, response_model_exclude_none=True)
def update_me(
    body: schemas.ProfileUpdate,
    session: AuthSession = Depends(get_current_session),
    auth: AuthService = Depends(get_auth_service),
):
    """Update the signed-in account's profile (role kept unless sent)."""
    return auth.update_profile(session, body.model_dump(exclude_unset=True)).account


# ============================================================================
# Patients and diagnoses
# ============================================================================

@app.post("/api/patients", response_model=schemas.Patient,
          response_model_exclude_none=True, status_code=status.HTTP_201_CREATED)
def create_patient(
    body: schemas.PatientCreate,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(database.get_db),
):
    """
    Register a patient owned by the signed-in account.

    Returns 409 when the name + date of birth or the email is taken.
    """
    row = mappers.patient_to_row(body)
    row["user_id"] = session.account.id
    return mappers.patient_from_row(PatientGateway(db).create(row))


@app.get("/api/patients", response_model=List[schemas.Patient], response_model_exclude_none=True)
def list_patients(search: str = "", db: Session = Depends(database.get_db)):
    """All patients, newest first, optionally filtered by name."""
    return [mappers.patient_from_row(r) for r in PatientGateway(db).search(search)]


@app.get("/api/patients/{patient_id}", response_model=schemas.PatientDetailResponse,
         response_model_exclude_none=True)
def get_patient(patient_id: str, db: Session = Depends(database.get_db)):
    patient = mappers.patient_from_row(PatientGateway(db).get(patient_id))
    diagnoses = [mappers.diagnosis_from_row(r) for r in DiagnosisGateway(db).list_for_patient(patient_id)]
    return schemas.PatientDetailResponse(patient=patient, diagnoses=diagnoses)


@app.delete("/api/patients/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_patient(patient_id: str, db: Session = Depends(database.get_db)):
    """Delete a patient and, with it, all of its diagnoses."""
    PatientGateway(db).delete(patient_id)
    return None


@app.post("/api/patients/{patient_id}/diagnoses", response_model=schemas.Diagnosis,
          response_model_exclude_none=True, status_code=status.HTTP_201_CREATED)
def add_diagnosis(patient_id: str, body: schemas.DiagnosisCreate, db: Session = Depends(database.get_db)):
    row = mappers.diagnosis_to_row(body)
    row["patient_id"] = patient_id
    return mappers.diagnosis_from_row(DiagnosisGateway(db).create(row))


@app.delete("/api/diagnoses/{diagnosis_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_diagnosis(diagnosis_id: str, db: Session = Depends(database.get_db)):
    DiagnosisGateway(db).delete(diagnosis_id)
    return None


@app.get("/api/patients/{patient_id}/fhir")
def export_patient_fhir(patient_id: str, db: Session = Depends(database.get_db)):
    """
    Download the patient as a FHIR document Bundle.

    One Patient entry followed by a Condition per diagnosis.
    """
    patient = mappers.patient_from_row(PatientGateway(db).get(patient_id))
    diagnoses = [mappers.diagnosis_from_row(r) for r in DiagnosisGateway(db).list_for_patient(patient_id)]

    result = FHIRConverter().convert(patient, diagnoses)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error)

    return Response(
        content=result.to_json(),
        media_type="application/fhir+json",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(patient_id)}"'},
    )


# ============================================================================
# Code lookup
# ============================================================================

@app.get("/api/codes/search", response_model=List[schemas.CodeMapping], response_model_exclude_none=True)
def search_codes(q: str = "", category: Optional[str] = None, db: Session = Depends(database.get_db)):
    """Substring search over codes and names; category 'all' or empty means any."""
    return [mappers.codemap_from_row(r) for r in CodeMapGateway(db).search(q, category)]


@app.get("/api/codes/{namaste_code}", response_model=List[schemas.CodeMapping],
         response_model_exclude_none=True)
def get_code(namaste_code: str, db: Session = Depends(database.get_db)):
    rows = CodeMapGateway(db).get_by_namaste_code(namaste_code)
    if not rows:
        raise HTTPException(status_code=404, detail="Code not found")
    return [mappers.codemap_from_row(r) for r in rows]


# ============================================================================
# Code map
# ============================================================================

@app.get("/api/codemap", response_model=List[schemas.CodeMapping], response_model_exclude_none=True)
def list_mappings(db: Session = Depends(database.get_db)):
    return [mappers.codemap_from_row(r) for r in CodeMapGateway(db).list()]


@app.post("/api/codemap", response_model=schemas.CodeMapping,
          response_model_exclude_none=True, status_code=status.HTTP_201_CREATED)
def create_mapping(body: schemas.CodeMappingCreate, db: Session = Depends(database.get_db)):
    """Add one mapping; 409 if the NAMASTE / ICD-11 pair already exists."""
    return mappers.codemap_from_row(CodeMapGateway(db).create(mappers.codemap_to_row(body)))


@app.post("/api/codemap/import", response_model=schemas.ImportResponse)
def import_mappings(file: UploadFile = File(...), db: Session = Depends(database.get_db)):
    """
    Bulk import mappings from an uploaded CSV.

    Rows without both codes are dropped, rows whose pair already exists
    are skipped. A failing insert batch aborts the rest; earlier batches
    stay committed.
    """
    try:
        text = file.file.read().decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="The uploaded file is not valid UTF-8 text.")
    importer = CodeMapImporter(
        CodeMapGateway(db),
        check_batch_size=settings.import_check_batch_size,
        insert_batch_size=settings.import_insert_batch_size,
    )
    result = importer.import_text(text)
    return schemas.ImportResponse(
        inserted=result.inserted,
        skipped=result.skipped,
        dropped=result.dropped,
        message=result.summary(),
    )


@app.get("/api/codemap/export")
def export_mappings(db: Session = Depends(database.get_db)):
    return Response(
        content=export_csv(CodeMapGateway(db).list()),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@app.get("/api/codemap/{mapping_id}", response_model=schemas.CodeMapping, response_model_exclude_none=True)
def get_mapping(mapping_id: str, db: Session = Depends(database.get_db)):
    return mappers.codemap_from_row(CodeMapGateway(db).get(mapping_id))


@app.patch("/api/codemap/{mapping_id}", response_model=schemas.CodeMapping, response_model_exclude_none=True)
def update_mapping(mapping_id: str, body: schemas.CodeMappingUpdate, db: Session = Depends(database.get_db)):
    return mappers.codemap_from_row(CodeMapGateway(db).update(mapping_id, body.changes()))


@app.delete("/api/codemap/{mapping_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_mapping(mapping_id: str, db: Session = Depends(database.get_db)):
    CodeMapGateway(db).delete(mapping_id)
    return None


@app.get("/api/codemap/{mapping_id}/report")
def mapping_report_download(mapping_id: str, db: Session = Depends(database.get_db)):
    row = CodeMapGateway(db).get(mapping_id)
    return Response(
        content=mapping_report(row),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(row["namaste_code"])}"'},
    )


# ============================================================================
# Chat
# ============================================================================

@app.post("/api/chat/reply", response_model=schemas.ChatResponse)
def chat_reply(body: schemas.ChatReplyRequest):
    """Canned keyword reply, no external calls."""
    return {"answer": generate_static_reply(body.message)}


@app.post("/api/chat/ask", response_model=schemas.ChatResponse)
async def chat_ask(body: schemas.AskRequest, assistant: ChatAssistant = Depends(get_assistant)):
    """Forward the question to the generative-text API; failures come back as text."""
    return {"answer": await assistant.ask(body.question)}
