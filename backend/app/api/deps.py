"""FastAPI helpers shared by the catalog routers - id parsing + response envelope."""
import os
import uuid
from typing import Any, Optional
from fastapi import HTTPException, status


def parse_id(value: str, label: str) -> str:
    """Validate a path id; malformed ids are a 400, not a 404."""
    try:
        return str(uuid.UUID(value))
    except (ValueError, AttributeError, TypeError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {label} ID format")


def ok(data: Any = None, message: Optional[str] = None, **extra) -> dict:
    body: dict = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    body.update(extra)
    return body


def bad_request(message: str, **extra) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"message": message, **extra})


def not_found(label: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")


def expose_errors() -> bool:
    """Underlying error messages are only returned outside production."""
    return os.getenv("ENVIRONMENT", "development").lower() != "production"
