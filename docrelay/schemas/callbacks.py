"""
Scanner callback payload.
The scanner posts report_id/plagiarism_report_url; job_id/report_ref are accepted too.
"""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


class CallbackEvent(BaseModel):
    """One status notification from the scanning service."""
    job_id: str = Field(validation_alias=AliasChoices("job_id", "report_id"))
    status: str = ""
    report_ref: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("report_ref", "plagiarism_report_url"),
    )

    model_config = {"extra": "ignore"}

    @field_validator("job_id", mode="before")
    @classmethod
    def _coerce_job_id(cls, value: Any) -> str:
        # The scanner sends numeric report ids
        if value is None or isinstance(value, bool):
            raise ValueError("job_id is required")
        job_id = str(value).strip()
        if not job_id:
            raise ValueError("job_id is required")
        return job_id

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("report_ref", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @property
    def normalized_status(self) -> str:
        return self.status.strip().lower()


class CallbackAck(BaseModel):
    """Response body for the callback webhook. Always sent with HTTP 200."""
    received: bool = True
    outcome: str
