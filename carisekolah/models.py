"""Data models for school records and derived statistics."""

import math

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Sentinel values used by the KPM spreadsheet
NO_FAX = "TIADA"
HAS_PRESCHOOL = "ADA"


class CamelModel(BaseModel):
    """Base model serialised with the camelCase keys used by the dataset."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SchoolRecord(CamelModel):
    """One physical school, as written by the ingestion command.

    Every field except the school code is optional. Numbers are either a
    parsed value or None, so "0 teachers" and "unknown" stay distinct.
    Spreadsheet columns without a known mapping are kept as extra keys.
    """

    model_config = ConfigDict(extra="allow")

    kod_sekolah: str
    nama_sekolah: str | None = None

    negeri: str | None = None
    ppd: str | None = None
    parlimen: str | None = None
    dun: str | None = None

    peringkat: str | None = None
    jenis: str | None = None
    lokasi: str | None = None
    gred: str | None = None
    bantuan: str | None = None

    alamat: str | None = None
    poskod: str | None = None
    bandar: str | None = None
    telefon: str | None = None
    fax: str | None = None
    email: str | None = None

    bil_sesi: str | None = None
    sesi: str | None = None

    enrolmen: int | float | None = None
    enrolmen_prasekolah: int | float | None = None
    enrolmen_khas: int | float | None = None
    guru: int | float | None = None

    prasekolah: str | None = None
    integrasi: str | None = None
    skm_under150: str | None = None

    lat: float | None = None
    lng: float | None = None

    @property
    def has_preschool(self) -> bool:
        return (self.prasekolah or "").strip().upper() == HAS_PRESCHOOL

    @property
    def fax_number(self) -> str | None:
        fax = (self.fax or "").strip()
        if not fax or fax.upper() == NO_FAX:
            return None
        return fax

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    def to_json_dict(self) -> dict:
        """Serialise with dataset keys, omitting absent fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class SchoolSuggestion(CamelModel):
    kod_sekolah: str
    nama_sekolah: str | None = None
    negeri: str | None = None


class ComparisonStats(CamelModel):
    """How one school compares with its state, its type and the country."""

    school_ptr: float | None
    national_ptr: float | None
    state_ptr: float | None
    type_ptr: float | None
    is_packed: bool
    enrolment_percentile_in_state: int | None
    state_enrolment_count: int
    state_name: str | None
    type_name: str | None


class StaffingEstimate(CamelModel):
    """Class and teacher needs under an ideal class size."""

    ideal_class_size: int
    estimated_class_size: float | None
    min_classes_for_ideal: int | None
    min_teachers_for_ideal: int | None
    teacher_shortfall: int | None


class NamedValue(CamelModel):
    name: str
    value: int | float


class PackedSchool(CamelModel):
    kod_sekolah: str
    nama_sekolah: str | None
    negeri: str | None
    ratio: float


class DatasetStatistics(CamelModel):
    """Dataset-wide aggregates for the statistics page."""

    total_schools: int
    total_teachers: int | float
    total_enrolment: int | float
    national_ptr: float | None
    urban_count: int
    rural_count: int
    preschool_count: int
    by_negeri: list[NamedValue]
    by_jenis: list[NamedValue]
    teachers_by_state: list[NamedValue]
    enrolment_by_state: list[NamedValue]
    avg_ptr_by_state: list[NamedValue]
    packed_schools: list[PackedSchool]


def to_number(value) -> int | float | None:
    """Parse a spreadsheet cell as a number, dropping thousands separators.

    Returns None for empty, unparseable or non-finite values.
    """
    if value is None:
        return None
    text = str(value).replace(",", "").strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    if number.is_integer():
        return int(number)
    return number


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return math.floor(value + 0.5)
