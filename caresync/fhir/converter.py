"""
FHIR Converter Service

Turns one patient and its diagnoses into the FHIR document Bundle offered
as a download on the patient page.

Orchestrates:
1. Patient resource creation
2. Condition resources (ICD-11 coded), one per diagnosis, in input order
3. Bundle assembly
"""
from typing import Dict, Any, Optional, List
from dataclasses import dataclass
from datetime import datetime
import json
import logging

from ..schemas import Patient, Diagnosis
from .mappers import PatientMapper, ConditionMapper
from .bundler import FHIRBundler

logger = logging.getLogger(__name__)


@dataclass
class ConversionResult:
    """Result of FHIR conversion."""
    success: bool
    bundle_dict: Optional[Dict[str, Any]] = None
    resource_counts: Optional[Dict[str, int]] = None
    error: Optional[str] = None

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.bundle_dict, indent=indent)


def export_filename(patient_id: str) -> str:
    """Download name for a patient's FHIR export."""
    return f"patient-{patient_id}-fhir.json"


class FHIRConverter:
    """
    Converts a patient record to a FHIR document Bundle.

    Usage:
        converter = FHIRConverter()
        result = converter.convert(patient, diagnoses)

        if result.success:
            fhir_bundle = result.bundle_dict
    """

    def __init__(self):
        """Initialize the converter."""
        self.bundler = FHIRBundler(bundle_type="document")

    def convert(
        self,
        patient: Patient,
        diagnoses: List[Diagnosis],
        timestamp: Optional[datetime] = None,
    ) -> ConversionResult:
        """
        Convert a patient and its diagnoses to a FHIR Bundle.

        Args:
            patient: Domain patient
            diagnoses: The patient's diagnoses (kept in the given order)
            timestamp: Bundle timestamp; pass one for reproducible output

        Returns:
            ConversionResult with the bundle dict and resource counts
        """
        try:
            self.bundler.clear()

            # 1. Patient resource first, Conditions reference it
            self.bundler.add_resource(PatientMapper.to_dict(patient))
            patient_reference = f"Patient/{patient.id}"

            # 2. One Condition per diagnosis
            for diagnosis in diagnoses:
                self.bundler.add_resource(ConditionMapper.to_dict(diagnosis, patient_reference))

            bundle_dict = self.bundler.to_dict(timestamp)

            return ConversionResult(
                success=True,
                bundle_dict=bundle_dict,
                resource_counts={"Patient": 1, "Condition": len(diagnoses)},
            )

        except Exception as e:
            logger.warning("FHIR export failed for patient %s: %s", patient.id, e)
            return ConversionResult(
                success=False,
                error=f"FHIR conversion failed: {str(e)}"
            )
