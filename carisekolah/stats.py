"""Pupil-teacher ratios, percentiles and dataset-wide aggregates.

Everything here is a pure function of its inputs. Missing enrolment or
teacher counts degrade to None instead of raising.
"""

import math
from bisect import bisect_left
from collections.abc import Iterable, Sequence

import polars as pl

from carisekolah import config
from carisekolah.data import SchoolDataset
from carisekolah.models import (
    ComparisonStats,
    DatasetStatistics,
    NamedValue,
    PackedSchool,
    SchoolRecord,
    StaffingEstimate,
    round_half_up,
)

# Label for schools without a state or type in the dashboard breakdowns
OTHER_LABEL = "Lain"


def pupil_teacher_ratio(schools: Iterable[SchoolRecord]) -> float | None:
    """Total enrolment over total teachers for a group of schools.

    Only schools reporting both numbers contribute. None when the group has
    no teachers.
    """
    enrolment = 0
    teachers = 0
    for school in schools:
        if school.enrolmen is None or school.guru is None:
            continue
        enrolment += school.enrolmen
        teachers += school.guru

    if teachers <= 0:
        return None
    return enrolment / teachers


def school_ptr(school: SchoolRecord) -> float | None:
    return pupil_teacher_ratio([school])


def is_packed(ptr: float | None, threshold: float = config.PACKED_PTR_THRESHOLD) -> bool:
    return ptr is not None and ptr >= threshold


def enrolment_percentile(values: Sequence[float], value: float | None) -> int | None:
    """Percentile of ``value`` among ``values`` (0-100).

    Uses the first position whose value is >= ``value``. None for an empty
    list or a missing value. A one-school list still yields a number; callers
    should check the group size before showing it.
    """
    if not values or value is None:
        return None

    ordered = sorted(values)
    position = bisect_left(ordered, value)
    if position >= len(ordered):
        return 100
    return round_half_up((1 - position / len(ordered)) * 100)


def _key(value: str | None) -> str:
    return (value or "").strip()


def get_school_comparison_stats(
    all_schools: Iterable[SchoolRecord], school: SchoolRecord
) -> ComparisonStats:
    """Compare one school with its state, its type and the whole country."""
    schools = list(all_schools)
    state = _key(school.negeri)
    jenis = _key(school.jenis)

    same_state = [s for s in schools if state and _key(s.negeri) == state]
    same_type = [s for s in schools if jenis and _key(s.jenis) == jenis]
    state_enrolments = [s.enrolmen for s in same_state if s.enrolmen is not None]

    ptr = school_ptr(school)
    return ComparisonStats(
        school_ptr=ptr,
        national_ptr=pupil_teacher_ratio(schools),
        state_ptr=pupil_teacher_ratio(same_state) if state else None,
        type_ptr=pupil_teacher_ratio(same_type) if jenis else None,
        is_packed=is_packed(ptr),
        enrolment_percentile_in_state=enrolment_percentile(state_enrolments, school.enrolmen),
        state_enrolment_count=len(state_enrolments),
        state_name=state or None,
        type_name=jenis or None,
    )


def staffing_estimate(
    school: SchoolRecord, ideal_class_size: int = config.IDEAL_CLASS_SIZE
) -> StaffingEstimate:
    """Minimum classes and teachers for ``ideal_class_size`` pupils per class.

    Both minimums use ceil(enrolment / ideal_class_size); one teacher per
    class is assumed.
    """
    enrolmen = school.enrolmen
    guru = school.guru

    estimated = None
    if enrolmen is not None and guru is not None and guru > 0:
        estimated = enrolmen / guru

    min_classes = None
    if enrolmen is not None and enrolmen > 0:
        min_classes = math.ceil(enrolmen / ideal_class_size)
    min_teachers = min_classes

    shortfall = None
    if min_teachers is not None and guru is not None:
        shortfall = max(0, math.ceil(min_teachers - guru))

    return StaffingEstimate(
        ideal_class_size=ideal_class_size,
        estimated_class_size=estimated,
        min_classes_for_ideal=min_classes,
        min_teachers_for_ideal=min_teachers,
        teacher_shortfall=shortfall,
    )


def _whole(value: float | None) -> int | float:
    if value is None:
        return 0
    return int(value) if float(value).is_integer() else value


def _named_values(df: pl.DataFrame, col: str) -> list[NamedValue]:
    return [NamedValue(name=row["name"], value=_whole(row[col])) for row in df.iter_rows(named=True)]


def compute_dataset_statistics(
    dataset: SchoolDataset,
    packed_threshold: float = config.PACKED_PTR_THRESHOLD,
    packed_limit: int = config.PACKED_LIST_SIZE,
) -> DatasetStatistics:
    """Aggregate counts, totals and ratios over the whole dataset."""
    df = dataset.frame.with_columns(
        pl.col("negeri").fill_null("").str.strip_chars().alias("state"),
        pl.col("jenis").fill_null("").str.strip_chars().alias("type"),
        pl.col("lokasi").fill_null("").str.to_lowercase().alias("lokasi_lower"),
        pl.when((pl.col("guru") > 0) & pl.col("enrolmen").is_not_null())
        .then(pl.col("enrolmen") / pl.col("guru"))
        .alias("ratio"),
    ).with_columns(
        pl.when(pl.col("state") == "").then(pl.lit(OTHER_LABEL)).otherwise(pl.col("state")).alias("state"),
        pl.when(pl.col("type") == "").then(pl.lit(OTHER_LABEL)).otherwise(pl.col("type")).alias("type"),
    )

    by_state = (
        df.group_by("state")
        .agg(
            pl.len().alias("count"),
            pl.col("guru").sum().alias("teachers"),
            pl.col("enrolmen").sum().alias("enrolment"),
            pl.col("ratio").mean().alias("avg_ptr"),
        )
        .rename({"state": "name"})
        .sort(["count", "name"], descending=[True, False])
    )
    by_type = (
        df.group_by("type")
        .agg(pl.len().alias("count"))
        .rename({"type": "name"})
        .sort(["count", "name"], descending=[True, False])
    )

    urban = pl.col("lokasi_lower").str.contains("bandar", literal=True) & ~pl.col(
        "lokasi_lower"
    ).str.contains("luar", literal=True)
    rural = pl.col("lokasi_lower").str.contains("luar", literal=True)
    preschool = pl.col("prasekolah").fill_null("").str.strip_chars().str.to_uppercase() == "ADA"
    counts = df.select(
        urban.sum().alias("urban"),
        rural.sum().alias("rural"),
        preschool.sum().alias("preschool"),
    ).row(0, named=True)

    packed = (
        df.filter(pl.col("ratio") >= packed_threshold)
        .sort("ratio", descending=True, maintain_order=True)
        .head(packed_limit)
    )

    return DatasetStatistics(
        total_schools=len(dataset),
        total_teachers=_whole(df.get_column("guru").sum()),
        total_enrolment=_whole(df.get_column("enrolmen").sum()),
        national_ptr=pupil_teacher_ratio(dataset),
        urban_count=counts["urban"] or 0,
        rural_count=counts["rural"] or 0,
        preschool_count=counts["preschool"] or 0,
        by_negeri=_named_values(by_state, "count"),
        by_jenis=_named_values(by_type, "count"),
        teachers_by_state=_named_values(by_state, "teachers"),
        enrolment_by_state=_named_values(by_state, "enrolment"),
        avg_ptr_by_state=_named_values(by_state, "avg_ptr"),
        packed_schools=[
            PackedSchool(
                kod_sekolah=row["kod_sekolah"],
                nama_sekolah=row["nama_sekolah"],
                negeri=row["negeri"],
                ratio=row["ratio"],
            )
            for row in packed.iter_rows(named=True)
        ],
    )
