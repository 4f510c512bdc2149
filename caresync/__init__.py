"""Care Sync: patient records and NAMASTE → ICD-11 code mapping service."""
