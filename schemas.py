"""
Database Schemas

MongoDB collection schemas as Pydantic models.
Dates are kept as ISO strings (YYYY-MM-DD), the way they are stored.

Request payloads are validated strictly. Documents read back from the store
are validated with STORED as context, which relaxes the input-only checks so
legacy records still show up in listings.

Collections:
- teachers            -> Teacher
- adminSupervisions   -> Supervision (kind=admin)
- kbmSupervisions     -> Supervision (kind=kbm)
- classicSupervisions -> Supervision (kind=classic)
- headmasterNotes     -> HeadmasterNote
"""
from datetime import datetime
from enum import Enum
from pydantic import AfterValidator, BaseModel, Field, ValidationInfo, computed_field, field_validator, model_validator
from typing import Annotated, Dict, List, Literal, Optional, Union

Unit = Literal["RA", "SD", "SMP"]
Gender = Literal["male", "female"]
UNITS = ("RA", "SD", "SMP")
GRADES = ("A", "B", "C", "D")

STORED = {"stored": True}


def _from_store(info: ValidationInfo) -> bool:
    return bool(info.context and info.context.get("stored"))


def _check_iso_date(value: str, info: ValidationInfo) -> str:
    if not _from_store(info):
        try:
            datetime.fromisoformat(value)
        except ValueError:
            raise ValueError("date must be an ISO date (YYYY-MM-DD)") from None
    return value


IsoDate = Annotated[str, AfterValidator(_check_iso_date)]


class SupervisionKind(str, Enum):
    admin = "admin"
    kbm = "kbm"
    classic = "classic"

    @property
    def collection(self) -> str:
        return f"{self.value}Supervisions"

    @property
    def label(self) -> str:
        return KIND_LABELS[self]


KIND_LABELS = {
    SupervisionKind.admin: "Supervisi ADM",
    SupervisionKind.kbm: "Supervisi KBM",
    SupervisionKind.classic: "Supervisi Klasik",
}

NOTE_LABEL = "Catatan Kepala Sekolah"

CASE_CATEGORIES = [
    "Disiplin Kehadiran",
    "Etika & Perilaku",
    "Kinerja Mengajar",
    "Administrasi & Tugas Tambahan",
    "Pelanggaran Aturan Sekolah/Etika Profesi",
]

ACHIEVEMENT_CATEGORIES = [
    "Kehadiran & Disiplin",
    "Kinerja Mengajar",
    "Pengembangan Diri",
    "Kontribusi di Luar Kelas",
    "Etika & Keteladanan",
    "Penghargaan Eksternal",
]


class TeacherStatus(str, Enum):
    active = "active"
    archived = "archived"


class Teacher(BaseModel):
    id: Optional[str] = Field(None, description="Store-assigned id, absent on create")
    name: str = Field(..., description="Full name of teacher")
    gender: Gender
    unit: Unit
    className: str = Field("", description="Classes taught, e.g. '1A, 1B'")
    subject: str = ""
    position: str = ""
    archived: bool = False
    archivedDate: Optional[str] = Field(None, description="YYYY-MM-DD, set only while archived")

    @model_validator(mode="after")
    def check_archive_state(self, info: ValidationInfo):
        if _from_store(info):
            return self
        if self.archived and not self.archivedDate:
            raise ValueError("archived teacher requires archivedDate")
        if not self.archived and self.archivedDate:
            raise ValueError("active teacher must not carry archivedDate")
        return self

    @computed_field
    @property
    def status(self) -> TeacherStatus:
        return TeacherStatus.archived if self.archived else TeacherStatus.active


class Supervision(BaseModel):
    id: Optional[str] = None
    teacherId: str = Field(..., description="Reference to teacher id (not enforced)")
    teacherName: str
    teacherGender: Optional[Gender] = None
    unit: Optional[Unit] = None
    date: IsoDate = Field(..., description="Supervision date (YYYY-MM-DD)")
    score: Union[int, float] = Field(..., description="Score 0-100; whole numbers on input")
    grade: Optional[str] = Field(None, description="Derived from score on save")
    notes: str = ""

    @field_validator("score")
    @classmethod
    def check_score(cls, value, info: ValidationInfo):
        if _from_store(info):
            return value
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError("score must be a whole number")
            value = int(value)
        if not 0 <= value <= 100:
            raise ValueError("score must be between 0 and 100")
        return value


class HeadmasterNote(BaseModel):
    id: Optional[str] = None
    teacherId: str
    teacherName: str
    date: IsoDate
    categories: List[str] = Field(default_factory=list)
    note: str


class MonthlyGroup(BaseModel):
    label: str
    year: int
    month: int
    total: int
    avgScore: float


class TrendSeries(BaseModel):
    labels: List[str] = Field(default_factory=list)
    admin: List[int] = Field(default_factory=list)
    kbm: List[int] = Field(default_factory=list)
    classic: List[int] = Field(default_factory=list)
    adminAvg: List[float] = Field(default_factory=list)
    kbmAvg: List[float] = Field(default_factory=list)
    classicAvg: List[float] = Field(default_factory=list)


class RecentUpdate(BaseModel):
    type: Literal["admin", "kbm", "classic", "note"]
    label: str
    id: Optional[str] = None
    teacherId: str
    teacherName: str
    unit: Optional[Unit] = None
    date: str
    score: Optional[Union[int, float]] = None
    grade: Optional[str] = None
    categories: Optional[List[str]] = None
    note: Optional[str] = None


class Dashboard(BaseModel):
    teacherCount: int
    teachersByUnit: Dict[str, int]
    supervisionCounts: Dict[str, int]
    gradeDistribution: Dict[str, int]
    trends: TrendSeries


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    token: str
    role: str
