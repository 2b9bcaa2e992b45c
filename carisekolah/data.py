"""Loading and read access for the school dataset."""

import logging
from collections.abc import Iterator, Sequence
from pathlib import Path

import polars as pl
from pydantic import TypeAdapter, ValidationError

from carisekolah import config
from carisekolah.errors import DatasetError
from carisekolah.models import SchoolRecord

logger = logging.getLogger(__name__)

_SCHOOL_LIST = TypeAdapter(list[SchoolRecord])

# Columns of the polars view used by search and aggregation
TEXT_COLUMNS = [
    "kod_sekolah",
    "nama_sekolah",
    "negeri",
    "ppd",
    "jenis",
    "lokasi",
    "poskod",
    "alamat",
    "bandar",
    "prasekolah",
]
NUMERIC_COLUMNS = ["enrolmen", "guru", "lat", "lng"]

FRAME_SCHEMA = {
    "row_nr": pl.Int64,
    **{col: pl.Utf8 for col in TEXT_COLUMNS},
    **{col: pl.Float64 for col in NUMERIC_COLUMNS},
}


def build_frame(schools: Sequence[SchoolRecord]) -> pl.DataFrame:
    """Build a polars view of the records; ``row_nr`` is the ingestion position."""
    data: dict[str, list] = {"row_nr": list(range(len(schools)))}
    for col in TEXT_COLUMNS:
        data[col] = [getattr(s, col) for s in schools]
    for col in NUMERIC_COLUMNS:
        data[col] = [None if getattr(s, col) is None else float(getattr(s, col)) for s in schools]
    return pl.DataFrame(data, schema=FRAME_SCHEMA)


class SchoolDataset:
    """Immutable in-memory collection of school records.

    Safe to share between request handlers: nothing mutates it after
    construction.
    """

    def __init__(self, schools: Sequence[SchoolRecord]):
        self._schools = tuple(schools)
        self._by_kod: dict[str, SchoolRecord] = {}
        for school in self._schools:
            self._by_kod.setdefault(school.kod_sekolah.strip().upper(), school)
        self._frame = build_frame(self._schools)

    def __len__(self) -> int:
        return len(self._schools)

    def __iter__(self) -> Iterator[SchoolRecord]:
        return iter(self._schools)

    @property
    def frame(self) -> pl.DataFrame:
        return self._frame

    def records_at(self, row_numbers: Sequence[int]) -> list[SchoolRecord]:
        """Records for ``row_nr`` values of ``frame``, in the given order."""
        return [self._schools[i] for i in row_numbers]

    def get_all_schools(self) -> list[SchoolRecord]:
        return list(self._schools)

    def get_school_by_kod(self, kod: str | None) -> SchoolRecord | None:
        """Case-insensitive lookup; None for unknown or blank codes."""
        normalized = (kod or "").strip().upper()
        if not normalized:
            return None
        return self._by_kod.get(normalized)

    def _unique_values(self, col: str) -> list[str]:
        values = self._frame.get_column(col).str.strip_chars()
        values = values.filter(values.is_not_null() & (values != ""))
        return values.unique().sort().to_list()

    def get_unique_negeri(self) -> list[str]:
        return self._unique_values("negeri")

    def get_unique_ppd(self) -> list[str]:
        return self._unique_values("ppd")

    def get_unique_jenis(self) -> list[str]:
        return self._unique_values("jenis")

    def get_unique_lokasi(self) -> list[str]:
        return self._unique_values("lokasi")

    def get_filter_options(self) -> dict[str, list[str]]:
        return {
            "negeri": self.get_unique_negeri(),
            "ppd": self.get_unique_ppd(),
            "jenis": self.get_unique_jenis(),
            "lokasi": self.get_unique_lokasi(),
        }


def load_dataset(path: Path | str | None = None) -> SchoolDataset:
    """Read and validate the JSON dataset written by the ingestion command."""
    path = Path(path or config.DATA_PATH)
    try:
        raw = path.read_bytes()
    except FileNotFoundError as e:
        raise DatasetError(f"Dataset not found at {path}; run carisekolah-ingest first") from e

    try:
        schools = _SCHOOL_LIST.validate_json(raw)
    except ValidationError as e:
        raise DatasetError(f"Invalid dataset {path}: {e.error_count()} validation errors") from e

    with_coords = sum(1 for s in schools if s.has_coordinates)
    logger.info("Loaded %d schools (%d with coordinates) from %s", len(schools), with_coords, path)
    return SchoolDataset(schools)


# Loaded on first use, then shared for the lifetime of the process
_dataset: SchoolDataset | None = None


def get_dataset() -> SchoolDataset:
    """Get the process-wide dataset, loading it if necessary."""
    global _dataset
    if _dataset is None:
        _dataset = load_dataset()
    return _dataset
