import math
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, field_validator

from app.config import ADVISORY_TABLE, DIAGNOSTIC_TABLE, DEFAULT_LANGUAGE


class RecordKind(str, Enum):
    """The two kinds of stored results"""
    ADVISORY = "advisory"
    DIAGNOSTIC = "diagnostic"

    @property
    def table(self) -> str:
        return ADVISORY_TABLE if self is RecordKind.ADVISORY else DIAGNOSTIC_TABLE

    @property
    def has_blob(self) -> bool:
        return self is RecordKind.DIAGNOSTIC


# ============================================================================#
# Stored rows
# ============================================================================#
class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    owner_id: str = Field(..., alias="user_id")
    diagnosis: str = ""
    created_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value):
        return str(value)

    @field_validator("diagnosis", mode="before")
    @classmethod
    def _null_text(cls, value):
        return "" if value is None else value


class AdvisoryRecord(_Record):
    """Row of ``advisory_logs``; ``advice`` is the JSON-encoded advice tree"""
    advice: str = ""


class DiagnosticRecord(_Record):
    """Row of ``crop_diagnostics``; ``image_url`` points at the owned blob"""
    image_url: str
    advice: Optional[str] = ""
    confidence: Optional[int] = None


# ============================================================================#
# Extracted model output
# ============================================================================#
class AdvisoryResult(BaseModel):
    diagnosis: StrictStr
    advice: Any

    @field_validator("advice")
    @classmethod
    def _advice_present(cls, value):
        if value is None:
            raise ValueError("advice is required")
        return value


class DiagnosisResult(BaseModel):
    diagnosis: StrictStr
    advice: StrictStr
    # Not clamped: values outside 0-100 are kept as the model wrote them
    confidence: Union[StrictInt, StrictFloat]

    @field_validator("confidence")
    @classmethod
    def _finite(cls, value):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("confidence must be a finite number")
        return value


# ============================================================================#
# API payloads
# ============================================================================#
class AdvisoryRequest(BaseModel):
    crop: Optional[str] = Field("", max_length=200)
    location: Optional[str] = Field("", max_length=200)
    season: Optional[str] = Field("", max_length=200)
    language: str = DEFAULT_LANGUAGE


class ReconcileRequest(BaseModel):
    owner_id: str = Field(..., min_length=1)
    dry_run: bool = True
