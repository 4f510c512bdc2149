from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, List, Literal

Role = Literal["admin", "user"]
Gender = Literal["male", "female", "other"]
Category = Literal["Ayurveda", "Siddha", "Unani"]
MappingStatus = Literal["verified", "pending", "rejected"]

CATEGORIES = ("Ayurveda", "Siddha", "Unani")
MAPPING_STATUSES = ("verified", "pending", "rejected")


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire (both accepted on input)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FormModel(CamelModel):
    """Request body from a form: blank strings count as not provided"""

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


# Health check schemas
class HealthResponse(BaseModel):
    """Health check response"""
    status: str


class PingResponse(BaseModel):
    message: str


# ============================================================================
# Domain objects (built from rows by caresync.mappers)
# ============================================================================

class Account(CamelModel):
    """Signed-in staff member"""
    id: str = ""
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    role: str = "user"
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None


class Patient(CamelModel):
    """Patient as shown in lists and detail views; absent fields were null in the store"""
    id: str = ""
    user_id: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    admit_date: Optional[str] = None
    diagnosis: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    address: Optional[str] = None
    diagnosis_count: int = 0
    created_at: Optional[datetime] = None


class Diagnosis(CamelModel):
    """Diagnosis entry; recorded_at is the row's creation timestamp"""
    id: str = ""
    patient_id: str = ""
    namaste_code: str = ""
    icd11_code: str = ""
    symptoms: Optional[str] = None
    clinical_notes: Optional[str] = None
    recorded_at: Optional[datetime] = None


class CodeMapping(CamelModel):
    """NAMASTE → ICD-11 mapping"""
    id: str = ""
    namaste_code: str = ""
    namaste_name: Optional[str] = None
    icd11_code: str = ""
    icd11_name: Optional[str] = None
    category: str = "Ayurveda"
    symptoms: Optional[str] = None
    description: Optional[str] = None
    status: str = "pending"
    created_at: Optional[datetime] = None


# ============================================================================
# Request schemas
# ============================================================================

class PatientCreate(FormModel):
    """Create-patient form; only the names are required"""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: Optional[str] = None
    gender: Optional[Gender] = None
    admit_date: Optional[str] = None
    diagnosis: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    address: Optional[str] = None


class DiagnosisCreate(FormModel):
    """Add-diagnosis form; both codes are required"""
    namaste_code: str = Field(..., min_length=1, max_length=50)
    icd11_code: str = Field(..., min_length=1, max_length=50)
    symptoms: Optional[str] = None
    clinical_notes: Optional[str] = None


class CodeMappingCreate(FormModel):
    """Manual mapping form"""
    namaste_code: str = Field(..., min_length=1, max_length=50)
    namaste_name: Optional[str] = None
    icd11_code: str = Field(..., min_length=1, max_length=50)
    icd11_name: Optional[str] = None
    category: Category = "Ayurveda"
    symptoms: Optional[str] = None
    description: Optional[str] = None
    status: MappingStatus = "pending"

    @field_validator("category", "status", mode="before")
    @classmethod
    def default_when_blank(cls, value, info):
        if value is None or (isinstance(value, str) and not value.strip()):
            return "Ayurveda" if info.field_name == "category" else "pending"
        return value


class CodeMappingUpdate(FormModel):
    """Edit-mapping form (all fields optional, only sent fields change)"""
    namaste_code: Optional[str] = Field(None, min_length=1, max_length=50)
    namaste_name: Optional[str] = None
    icd11_code: Optional[str] = Field(None, min_length=1, max_length=50)
    icd11_name: Optional[str] = None
    category: Optional[Category] = None
    symptoms: Optional[str] = None
    description: Optional[str] = None
    status: Optional[MappingStatus] = None

    def changes(self) -> dict:
        """Sent fields only; required columns are never cleared."""
        values = self.model_dump(exclude_unset=True)
        required = ("namaste_code", "icd11_code", "category", "status")
        return {k: v for k, v in values.items() if v is not None or k not in required}


class SignupRequest(FormModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(FormModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class ProfileUpdate(FormModel):
    """Profile edit; role is kept unless explicitly sent"""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[Role] = None
    avatar: Optional[str] = None


# ============================================================================
# Response schemas
# ============================================================================

class SessionResponse(CamelModel):
    token: str
    account: Account


class PatientDetailResponse(CamelModel):
    """Patient with its diagnoses, oldest first"""
    patient: Patient
    diagnoses: List[Diagnosis]


class ImportResponse(CamelModel):
    """Outcome of a CSV upload"""
    inserted: int
    skipped: int
    dropped: int
    message: str


class ChatReplyRequest(BaseModel):
    message: str = Field(..., description="Free text typed into the chat widget")


class AskRequest(BaseModel):
    question: str = Field("", max_length=4000, description="Question forwarded to the assistant")


class ChatResponse(BaseModel):
    answer: str
