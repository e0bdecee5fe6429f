"""
Request payload schemas.

Bodies arrive in camelCase (``includeVat``, ``doctorFee``...). Multipart
forms send nested objects as JSON strings, so fee and branch fields accept
either form.
"""

import json
from datetime import date
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from clinicapi.config import (
    ADDRESS_MAX,
    ASSISTANT_NAME_MAX,
    NATIONALITY_MAX,
    NICKNAME_MAX,
    TREATMENT_NAME_MAX,
)
from clinicapi.errors import AppError, ValidationError
from clinicapi.fees import validate_fee
from clinicapi.models import DayOfWeek, EmploymentType, FeeSpec, FeeType, Gender


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        allow_inf_nan=False,
        extra="ignore",
    )


class _PartialPayload(_Payload):
    @model_validator(mode="after")
    def _not_empty(self):
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided")
        return self


def _json_string(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            raise ValueError("must be valid JSON")
    return value


# ── Fees / treatments ────────────────────────────────────────────────

class FeeSpecIn(_Payload):
    amount: float
    type: FeeType

    @model_validator(mode="after")
    def _within_bounds(self):
        try:
            validate_fee(FeeSpec(amount=self.amount, type=self.type), "fee")
        except AppError as e:
            raise ValueError(e.message)
        return self

    def to_fee(self) -> FeeSpec:
        return FeeSpec(amount=self.amount, type=self.type)


class _FeeFields(_Payload):
    @field_validator("doctor_fee", "assistant_fee", mode="before", check_fields=False)
    @classmethod
    def _decode_fee(cls, value):
        return _json_string(value)


class TreatmentCreate(_FeeFields):
    name: str = Field(min_length=1, max_length=TREATMENT_NAME_MAX)
    price: float = Field(ge=0)
    include_vat: bool = False
    doctor_fee: Optional[FeeSpecIn] = None
    assistant_fee: Optional[FeeSpecIn] = None
    clinic_id: Optional[str] = None


class TreatmentUpdate(_FeeFields, _PartialPayload):
    name: Optional[str] = Field(default=None, min_length=1, max_length=TREATMENT_NAME_MAX)
    price: Optional[float] = Field(default=None, ge=0)
    include_vat: Optional[bool] = None
    doctor_fee: Optional[FeeSpecIn] = None        # explicit null clears the fee
    assistant_fee: Optional[FeeSpecIn] = None


class FeePreview(_FeeFields):
    doctor_fee: Optional[FeeSpecIn] = None
    assistant_fee: Optional[FeeSpecIn] = None
    include_vat: Optional[bool] = None


# ── Diagnoses ────────────────────────────────────────────────────────

class DiagnosisCreate(_Payload):
    name: str = Field(min_length=1)
    clinic_id: Optional[str] = None


class DiagnosisUpdate(_PartialPayload):
    name: str = Field(min_length=1)


# ── Assistants ───────────────────────────────────────────────────────

class TimetableIn(_Payload):
    day: DayOfWeek
    time: List[str] = Field(min_length=1)


class BranchIn(_Payload):
    branch_id: str = Field(min_length=1)
    timetable: List[TimetableIn] = Field(default_factory=list)


class _AssistantFields(_Payload):
    @field_validator("branches", mode="before", check_fields=False)
    @classmethod
    def _decode_branches(cls, value):
        return _json_string(value)

    @field_validator("birthday", check_fields=False)
    @classmethod
    def _not_in_future(cls, value):
        if value is not None and value > date.today():
            raise ValueError("birthday must not be in the future")
        return value


class AssistantCreate(_AssistantFields):
    name: str = Field(min_length=1, max_length=ASSISTANT_NAME_MAX)
    surname: str = Field(min_length=1, max_length=ASSISTANT_NAME_MAX)
    nickname: Optional[str] = Field(default=None, max_length=NICKNAME_MAX)
    gender: Gender
    nationality: Optional[str] = Field(default=None, max_length=NATIONALITY_MAX)
    birthday: Optional[date] = None
    address: Optional[str] = Field(default=None, max_length=ADDRESS_MAX)
    employment_type: EmploymentType
    clinic_id: Optional[str] = None
    branches: List[BranchIn] = Field(default_factory=list)
    is_active: bool = True


class AssistantUpdate(_AssistantFields, _PartialPayload):
    name: Optional[str] = Field(default=None, min_length=1, max_length=ASSISTANT_NAME_MAX)
    surname: Optional[str] = Field(default=None, min_length=1, max_length=ASSISTANT_NAME_MAX)
    nickname: Optional[str] = Field(default=None, max_length=NICKNAME_MAX)
    gender: Optional[Gender] = None
    nationality: Optional[str] = Field(default=None, max_length=NATIONALITY_MAX)
    birthday: Optional[date] = None
    address: Optional[str] = Field(default=None, max_length=ADDRESS_MAX)
    employment_type: Optional[EmploymentType] = None
    clinic_id: Optional[str] = None
    branches: Optional[List[BranchIn]] = None
    is_active: Optional[bool] = None


class AssistantStatus(_Payload):
    is_active: bool


# ── Helpers ──────────────────────────────────────────────────────────

def parse_payload(model, data: Any):
    """Validate *data* against *model*, reporting failures as ValidationError."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        problems = []
        for err in e.errors():
            where = ".".join(str(p) for p in err["loc"])
            msg = err["msg"].removeprefix("Value error, ")
            problems.append(f"{where}: {msg}" if where else msg)
        raise ValidationError("Invalid input: " + "; ".join(problems))


def to_service_data(payload: BaseModel, partial: bool = False) -> dict:
    """Snake-case dict for the services; partial payloads keep only sent fields."""
    return payload.model_dump(exclude_unset=partial)
