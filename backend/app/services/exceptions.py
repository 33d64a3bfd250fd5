"""Exception hierarchy for catalog services and migration drivers."""
from typing import Any, Dict, List, Optional


class CatalogError(Exception):
    """Base exception for catalog errors."""

    def __init__(self, message: str, record_id: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.record_id = record_id
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "record_id": self.record_id,
            **self.details,
        }


class ConfigurationError(CatalogError):
    """Missing or invalid process configuration; fatal before any work starts."""


class RecordValidationError(CatalogError):
    """A record would violate a catalog invariant if written."""


class AliasConflictError(RecordValidationError):
    """A property definition claims a spelling owned by another definition."""

    def __init__(self, conflicts: List[Dict[str, str]], record_id: Optional[str] = None):
        spellings = ", ".join(f"'{c['spelling']}' ({c['definition']})" for c in conflicts)
        super().__init__(
            f"Aliases already in use by other property definitions: {spellings}",
            record_id=record_id,
            details={"conflicts": conflicts},
        )
        self.conflicts = conflicts
