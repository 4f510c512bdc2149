"""
FHIR Bundle Assembler

Creates a FHIR Bundle of type "document" holding one patient's export:
the Patient resource followed by its Condition resources.
"""
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone

from fhir.resources.bundle import Bundle

from .mappers import fhir_datetime


class FHIRBundler:
    """
    Assembles FHIR resource dicts into a document Bundle.

    Entries keep insertion order. The timestamp can be pinned so the same
    input always yields the same document.
    """

    def __init__(self, bundle_type: str = "document"):
        """Initialize the bundler."""
        self.bundle_type = bundle_type
        self.entries: List[Dict[str, Any]] = []

    def add_resource(self, resource: Dict[str, Any]) -> None:
        """
        Add a resource dict to the bundle.

        Args:
            resource: FHIR resource as a JSON-ready dict
        """
        entry: Dict[str, Any] = {}
        if resource.get("id"):
            entry["fullUrl"] = f"urn:uuid:{resource['id']}"
        entry["resource"] = resource
        self.entries.append(entry)

    def add_resources(self, resources: List[Dict[str, Any]]) -> None:
        """Add multiple resource dicts to the bundle."""
        for resource in resources:
            self.add_resource(resource)

    def to_dict(self, timestamp: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Build the bundle as a JSON-ready dict.

        Args:
            timestamp: Bundle timestamp (defaults to now, UTC)

        Returns:
            Bundle dict, validated against the FHIR Bundle model
        """
        bundle_dict: Dict[str, Any] = {
            "resourceType": "Bundle",
            "type": self.bundle_type,
            "timestamp": fhir_datetime(timestamp or datetime.now(timezone.utc)),
        }
        if self.entries:
            bundle_dict["entry"] = list(self.entries)

        # Raises on any element the FHIR model rejects
        Bundle(**bundle_dict)
        return bundle_dict

    @property
    def resource_count(self) -> int:
        """Number of resources in the bundle."""
        return len(self.entries)

    def get_resource_types(self) -> List[str]:
        """Get list of resource types in the bundle."""
        return [entry["resource"]["resourceType"] for entry in self.entries]

    def clear(self) -> None:
        """Clear all entries from the bundle."""
        self.entries = []
