from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid

from .database import Base


def utcnow():
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a record ID (UUID string, as the hosted store issued them)."""
    return str(uuid.uuid4())


class Account(Base):
    """Staff account created at signup"""
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    role = Column(String(20), nullable=False, default="user")  # 'admin' or 'user'
    avatar = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    patients = relationship("Patient", back_populates="owner")


class Patient(Base):
    """
    Patient record.

    (first_name, last_name, date_of_birth) and email are unique. The
    constraint names are matched by the gateway to build friendly
    duplicate messages.
    """
    __tablename__ = "patients"
    __table_args__ = (
        UniqueConstraint("first_name", "last_name", "date_of_birth", name="unique_patient_name_dob"),
        UniqueConstraint("email", name="unique_patient_email"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("accounts.id"), nullable=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(String(10), nullable=True)  # YYYY-MM-DD
    gender = Column(String(10), nullable=True)  # 'male', 'female', 'other'
    admit_date = Column(String(10), nullable=True)
    diagnosis = Column(Text, nullable=True)  # free-text summary
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    guardian_name = Column(String(200), nullable=True)
    guardian_phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    diagnosis_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    owner = relationship("Account", back_populates="patients")
    diagnoses = relationship(
        "PatientDiagnosis",
        back_populates="patient",
        cascade="all, delete-orphan",
    )


class PatientDiagnosis(Base):
    """A NAMASTE / ICD-11 coded diagnosis recorded against one patient"""
    __tablename__ = "patient_diagnoses"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    namaste_code = Column(String(50), nullable=False)
    icd11_code = Column(String(50), nullable=False)
    symptoms = Column(Text, nullable=True)
    clinical_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    patient = relationship("Patient", back_populates="diagnoses")


class CodeMapping(Base):
    """
    NAMASTE → ICD-11 translation entry.

    The (namaste_code, icd11_code) pair is meant to be unique, but that is
    only checked before insert, there is no database constraint on it.
    """
    __tablename__ = "codemap"

    id = Column(String(36), primary_key=True, default=new_id)
    namaste_code = Column(String(50), nullable=False, index=True)
    namaste_name = Column(String(255), nullable=True)
    icd11_code = Column(String(50), nullable=False)
    icd11_name = Column(String(255), nullable=True)
    category = Column(String(20), nullable=False, default="Ayurveda")  # 'Ayurveda', 'Siddha', 'Unani'
    symptoms = Column(Text, nullable=True)  # comma-joined list
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")  # 'verified', 'pending', 'rejected'
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
