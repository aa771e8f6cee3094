from __future__ import annotations

"""
Pydantic schemas for the Receipt Spooler intake API (v1).

An event names one remote image by its `fullPath` (the field storage
notifications carry); `source_uri` is accepted as an alias. A request may be
a single event or a batch under `events`. The batch limit comes from the
validation context so it can be env-driven.
"""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationInfo, field_validator, model_validator


def _has_control_chars(s: str) -> bool:
    return any(ord(c) < 32 or ord(c) == 127 for c in s)


class PrintEvent(BaseModel):
    """One print notification."""

    full_path: str = Field(
        validation_alias=AliasChoices("fullPath", "source_uri", "sourceUri"),
        min_length=1,
        max_length=2048,
        description="Absolute image URL, or a path resolved against image_base_url",
        examples=["https://example.com/receipts/R2024121800006.jpg", "receipts/R2024121800006.jpg"],
    )

    @field_validator("full_path")
    @classmethod
    def _validate_full_path(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("fullPath must not be empty")
        if _has_control_chars(v):
            raise ValueError("fullPath contains control characters")
        return v


class JobSubmitRequest(BaseModel):
    events: List[PrintEvent] = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _wrap_single_event(cls, data: Any) -> Any:
        if isinstance(data, dict) and "events" not in data:
            return {"events": [data]}
        return data

    @field_validator("events")
    @classmethod
    def _limit_batch(cls, v: List[PrintEvent], info: ValidationInfo) -> List[PrintEvent]:
        limits = (info.context or {}).get("limits", {})
        max_events = int(limits.get("MAX_EVENTS", 50))
        if len(v) > max_events:
            raise ValueError(f"too many events (max {max_events})")
        return v


class Links(BaseModel):
    self: str
    job: Optional[str] = None


class JobAcceptedResponse(BaseModel):
    id: str
    status: str
    source_uri: str
    links: Links


class BatchAcceptedResponse(BaseModel):
    jobs: List[JobAcceptedResponse]


def first_error_message(errors: List[Dict[str, Any]]) -> str:
    """
    Render the first pydantic error as `field: message`.
    """
    if not errors:
        return "invalid payload"
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()) if p != "full_path") or "body"
    msg = err.get("msg") or "invalid value"
    return f"{loc}: {msg}"


__all__ = [
    "BatchAcceptedResponse",
    "JobAcceptedResponse",
    "JobSubmitRequest",
    "Links",
    "PrintEvent",
    "first_error_message",
]
