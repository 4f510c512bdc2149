"""
FHIR Resource Mappers

Maps Care Sync domain objects to FHIR resource dicts. FHIRBundler
validates them, inside the Bundle, with the fhir.resources models.

Mappings:
- Patient   → Patient
- Diagnosis → Condition (ICD-11 MMS coding, NAMASTE coding alongside)

Each mapper builds the plain JSON dict first (`to_dict`) and only adds
elements whose source value is present, so the exported document never
carries null placeholders.
"""
from typing import Optional, Dict, Any, List
from datetime import date, datetime, timezone

from ..schemas import Patient, Diagnosis


ICD11_SYSTEM = "http://id.who.int/icd/release/11/mms"
NAMASTE_SYSTEM = "http://namaste.ayush.gov.in/codes"
CONDITION_CLINICAL_SYSTEM = "http://terminology.hl7.org/CodeSystem/condition-clinical"

# AdministrativeGender; any other stored value is left out
FHIR_GENDERS = ("male", "female", "other", "unknown")


def fhir_datetime(value: Optional[datetime]) -> Optional[str]:
    """ISO dateTime with offset; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def fhir_date(value: Optional[str]) -> Optional[str]:
    """Keep YYYY-MM-DD strings, drop anything FHIR would reject as a date."""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip()).isoformat()
    except ValueError:
        return None


class PatientMapper:
    """Maps a Patient to a FHIR Patient resource."""

    @staticmethod
    def to_dict(patient: Patient) -> Dict[str, Any]:
        """
        Convert a patient to a FHIR Patient dict.

        Args:
            patient: Domain patient

        Returns:
            FHIR Patient as a JSON-ready dict (absent values elided)
        """
        patient_dict: Dict[str, Any] = {"resourceType": "Patient"}
        if patient.id:
            patient_dict["id"] = patient.id

        name: Dict[str, Any] = {"use": "official"}
        if patient.first_name:
            name["given"] = [patient.first_name]
        if patient.last_name:
            name["family"] = patient.last_name
        if len(name) > 1:
            patient_dict["name"] = [name]

        birth_date = fhir_date(patient.date_of_birth)
        if birth_date:
            patient_dict["birthDate"] = birth_date

        gender = (patient.gender or "").strip().lower()
        if gender in FHIR_GENDERS:
            patient_dict["gender"] = gender

        telecom: List[Dict[str, str]] = []
        if patient.email:
            telecom.append({"system": "email", "value": patient.email})
        if patient.phone:
            telecom.append({"system": "phone", "value": patient.phone})
        if telecom:
            patient_dict["telecom"] = telecom

        if patient.address:
            patient_dict["address"] = [{"text": patient.address}]

        return patient_dict


class ConditionMapper:
    """Maps a Diagnosis to a FHIR Condition resource."""

    @staticmethod
    def to_dict(diagnosis: Diagnosis, patient_reference: str) -> Dict[str, Any]:
        """
        Convert a diagnosis to a FHIR Condition dict.

        Args:
            diagnosis: Domain diagnosis
            patient_reference: Reference to the Patient resource ("Patient/<id>")

        Returns:
            FHIR Condition as a JSON-ready dict (absent values elided)
        """
        condition_dict: Dict[str, Any] = {
            "resourceType": "Condition",
            "subject": {"reference": patient_reference},
            # Required element in FHIR R5; recorded diagnoses are current
            "clinicalStatus": {
                "coding": [{
                    "system": CONDITION_CLINICAL_SYSTEM,
                    "code": "active",
                }]
            },
        }
        if diagnosis.id:
            condition_dict["id"] = diagnosis.id

        codings = []
        if diagnosis.icd11_code:
            codings.append({"system": ICD11_SYSTEM, "code": diagnosis.icd11_code})
        if diagnosis.namaste_code:
            codings.append({"system": NAMASTE_SYSTEM, "code": diagnosis.namaste_code})
        if codings:
            condition_dict["code"] = {"coding": codings}

        recorded = fhir_datetime(diagnosis.recorded_at)
        if recorded:
            condition_dict["recordedDate"] = recorded

        notes = []
        if diagnosis.symptoms:
            notes.append({"text": f"Symptoms: {diagnosis.symptoms}"})
        if diagnosis.clinical_notes:
            notes.append({"text": diagnosis.clinical_notes})
        if notes:
            condition_dict["note"] = notes

        return condition_dict
