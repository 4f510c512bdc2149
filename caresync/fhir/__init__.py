"""
FHIR Export Module

Converts a patient and its diagnoses into a FHIR document Bundle
(Patient + Condition resources), validated with the fhir.resources
library.

Components:
- mappers: Patient and Condition mappers
- bundler: FHIR Bundle assembler
- converter: Export service used by the patient routes
"""
from .converter import FHIRConverter, ConversionResult, export_filename
from .bundler import FHIRBundler

__all__ = [
    "FHIRConverter",
    "ConversionResult",
    "FHIRBundler",
    "export_filename",
]
