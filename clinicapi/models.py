"""
Domain dataclasses used across the application.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional, Union


class FeeType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class UserRole(str, Enum):
    SUPER_ADMIN = "superAdmin"
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    STAFF = "staff"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class EmploymentType(str, Enum):
    PART_TIME = "partTime"
    FULL_TIME = "fullTime"


class DayOfWeek(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


@dataclass(frozen=True)
class FeeSpec:
    """A professional fee: a fixed amount or a percentage of the VAT-exclusive price."""
    amount: float
    type: FeeType

    def to_dict(self) -> dict:
        return {"amount": self.amount, "type": self.type.value}


@dataclass(frozen=True)
class FeeCalculation:
    """Derived pricing figures for a treatment."""
    vat_amount: float
    price_excluding_vat: float
    doctor_fee_amount: float
    assistant_fee_amount: float
    total_price: float

    def to_dict(self) -> dict:
        return {
            "doctorFeeAmount": self.doctor_fee_amount,
            "assistantFeeAmount": self.assistant_fee_amount,
            "vatAmount": self.vat_amount,
            "priceExcludingVat": self.price_excluding_vat,
            "totalPrice": self.total_price,
        }


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated caller, attached once per request."""
    user_id: str
    role: str                  # one of UserRole values
    clinic_id: Optional[str]   # None only for super admins without a home clinic

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN.value


# ── Clinic references ────────────────────────────────────────────────
# A clinic is either known only by id, or joined with its record.

@dataclass(frozen=True)
class UnresolvedClinic:
    id: str


@dataclass(frozen=True)
class ResolvedClinic:
    id: str
    name: str


ClinicRef = Union[UnresolvedClinic, ResolvedClinic]


def normalize_clinic_id(value: Any) -> str:
    """Canonical string form of a clinic id, whatever shape it arrives in."""
    if value is None:
        return ""
    if isinstance(value, (UnresolvedClinic, ResolvedClinic)):
        value = value.id
    elif isinstance(value, dict):
        value = value.get("id", value.get("_id"))
        if value is None:
            return ""
    return str(value).strip()


# ── Entities ─────────────────────────────────────────────────────────

@dataclass
class Treatment:
    id: str
    name: str
    price: float
    include_vat: bool
    clinic: ClinicRef
    doctor_fee: Optional[FeeSpec] = None
    assistant_fee: Optional[FeeSpec] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def clinic_id(self) -> str:
        return normalize_clinic_id(self.clinic)


@dataclass
class Diagnosis:
    id: str
    name: str
    clinic: ClinicRef
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def clinic_id(self) -> str:
        return normalize_clinic_id(self.clinic)


@dataclass
class TimetableEntry:
    day: DayOfWeek
    time: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"day": self.day.value, "time": list(self.time)}


@dataclass
class BranchRef:
    branch_id: str
    name: Optional[str] = None   # set when the branch record was found


@dataclass
class AssistantBranch:
    branch: BranchRef
    timetable: List[TimetableEntry] = field(default_factory=list)


@dataclass
class Assistant:
    id: str
    name: str
    surname: str
    gender: Gender
    employment_type: EmploymentType
    clinic: ClinicRef
    branches: List[AssistantBranch] = field(default_factory=list)
    is_active: bool = True
    nickname: Optional[str] = None
    nationality: Optional[str] = None
    birthday: Optional[date] = None
    address: Optional[str] = None
    photo: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def clinic_id(self) -> str:
        return normalize_clinic_id(self.clinic)

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}"

    @property
    def age(self) -> Optional[int]:
        return age_on(self.birthday, date.today())


def age_on(birthday: Optional[date], today: date) -> Optional[int]:
    """Whole years between *birthday* and *today*."""
    if birthday is None:
        return None
    years = today.year - birthday.year
    if (today.month, today.day) < (birthday.month, birthday.day):
        years -= 1
    return years
