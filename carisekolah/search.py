"""Free-text search, categorical filters and relevance ranking.

Two separate scorers:

- ``relevance_expr`` ranks general search results; a record is a candidate
  when ``match_expr`` holds (name, code, address, town, state or district).
- ``suggestion_expr`` ranks typeahead suggestions; only name, code, town and
  address hits count, and zero scores are dropped.
"""

import polars as pl

from carisekolah import config
from carisekolah.data import SchoolDataset
from carisekolah.models import SchoolRecord, SchoolSuggestion

# Points per field containing the query
RELEVANCE_WEIGHTS = {
    "nama_sekolah": 100,
    "kod_sekolah": 80,
    "bandar": 20,
    "alamat": 15,
    "negeri": 10,
    "ppd": 10,
}
NAME_BOUNDARY_BONUS = 50
NAME_WORD_START_BONUS = 30

MATCH_COLUMNS = ["nama_sekolah", "kod_sekolah", "alamat", "bandar", "negeri", "ppd"]
SUGGESTION_COLUMNS = ["nama_sekolah", "kod_sekolah", "bandar", "alamat"]
FILTER_COLUMNS = ["negeri", "ppd", "jenis", "lokasi", "poskod"]


def normalize_query(query: str | None) -> str:
    """Trim, lowercase and collapse internal whitespace."""
    return " ".join((query or "").lower().split())


def _lower(col: str) -> pl.Expr:
    return pl.col(col).fill_null("").str.to_lowercase()


def _contains(col: str, q: str) -> pl.Expr:
    return _lower(col).str.contains(q, literal=True)


def _weighted_hits(columns: list[str], q: str) -> pl.Expr:
    return pl.sum_horizontal(
        [pl.when(_contains(col, q)).then(RELEVANCE_WEIGHTS[col]).otherwise(0) for col in columns]
    )


def _name_boundary(q: str) -> pl.Expr:
    # q at the start of the name, or with a space before or after it
    name = _lower("nama_sekolah")
    return (
        name.str.starts_with(q)
        | name.str.contains(" " + q, literal=True)
        | name.str.contains(q + " ", literal=True)
    )


def _name_word_starts_with(q: str) -> pl.Expr:
    # no single word starts with a multi-word query
    if " " in q:
        return pl.lit(False)
    words = _lower("nama_sekolah").str.replace_all(r"\s+", " ").str.split(" ")
    return words.list.eval(pl.element().str.starts_with(q)).list.any()


def match_expr(q: str) -> pl.Expr:
    """True when the normalized query is a substring of any searchable field."""
    return pl.any_horizontal([_contains(col, q) for col in MATCH_COLUMNS])


def relevance_expr(q: str) -> pl.Expr:
    """Additive relevance score for general search."""
    boundary = pl.when(_contains("nama_sekolah", q) & _name_boundary(q))
    return _weighted_hits(MATCH_COLUMNS, q) + boundary.then(NAME_BOUNDARY_BONUS).otherwise(0)


def suggestion_expr(q: str) -> pl.Expr:
    """Strict typeahead score: zero unless name, code, town or address contains q."""
    hit = pl.any_horizontal([_contains(col, q) for col in SUGGESTION_COLUMNS])
    score = (
        _weighted_hits(SUGGESTION_COLUMNS, q)
        + pl.when(_contains("nama_sekolah", q) & _name_boundary(q))
        .then(NAME_BOUNDARY_BONUS)
        .otherwise(0)
        + pl.when(_name_word_starts_with(q)).then(NAME_WORD_START_BONUS).otherwise(0)
    )
    return pl.when(hit).then(score).otherwise(0)


def _filtered_frame(
    dataset: SchoolDataset,
    q: str,
    filters: dict[str, str | None],
) -> pl.DataFrame:
    df = dataset.frame

    if q:
        df = df.filter(match_expr(q))

    for col in FILTER_COLUMNS:
        value = (filters.get(col) or "").strip()
        if value:
            df = df.filter(pl.col(col).fill_null("").str.strip_chars() == value)

    return df


def filter_schools(
    dataset: SchoolDataset,
    query: str | None = None,
    negeri: str | None = None,
    ppd: str | None = None,
    jenis: str | None = None,
    lokasi: str | None = None,
    poskod: str | None = None,
) -> list[SchoolRecord]:
    """Schools matching the query and every given filter, in dataset order."""
    filters = {"negeri": negeri, "ppd": ppd, "jenis": jenis, "lokasi": lokasi, "poskod": poskod}
    df = _filtered_frame(dataset, normalize_query(query), filters)
    return dataset.records_at(df.get_column("row_nr").to_list())


def search_schools(
    dataset: SchoolDataset,
    query: str | None = None,
    negeri: str | None = None,
    ppd: str | None = None,
    jenis: str | None = None,
    lokasi: str | None = None,
    poskod: str | None = None,
) -> list[SchoolRecord]:
    """Like ``filter_schools`` but ranked by relevance when there is a query.

    Equal scores keep dataset order.
    """
    q = normalize_query(query)
    filters = {"negeri": negeri, "ppd": ppd, "jenis": jenis, "lokasi": lokasi, "poskod": poskod}
    df = _filtered_frame(dataset, q, filters)

    if q:
        df = df.with_columns(relevance_expr(q).alias("score")).sort(
            "score", descending=True, maintain_order=True
        )

    return dataset.records_at(df.get_column("row_nr").to_list())


def clamp_limit(limit: int | None) -> int:
    """Clamp a suggestion limit to 1..SUGGEST_MAX_LIMIT."""
    if limit is None:
        return config.SUGGEST_DEFAULT_LIMIT
    return max(1, min(int(limit), config.SUGGEST_MAX_LIMIT))


def get_search_suggestions(
    dataset: SchoolDataset,
    query: str | None,
    limit: int | None = config.SUGGEST_DEFAULT_LIMIT,
) -> list[SchoolSuggestion]:
    """Typeahead suggestions, best first.

    Empty for queries under 2 characters or a limit below 1; at most
    SUGGEST_MAX_LIMIT results.
    """
    q = normalize_query(query)
    if len(q) < config.SUGGEST_MIN_QUERY_LENGTH:
        return []

    if limit is None:
        limit = config.SUGGEST_DEFAULT_LIMIT
    if limit <= 0:
        return []

    df = (
        dataset.frame.with_columns(suggestion_expr(q).alias("score"))
        .filter(pl.col("score") > 0)
        .sort("score", descending=True, maintain_order=True)
        .head(min(int(limit), config.SUGGEST_MAX_LIMIT))
    )

    return [
        SchoolSuggestion(
            kod_sekolah=row["kod_sekolah"],
            nama_sekolah=row["nama_sekolah"],
            negeri=row["negeri"],
        )
        for row in df.iter_rows(named=True)
    ]
