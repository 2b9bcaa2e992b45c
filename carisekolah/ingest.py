"""Fetch the KPM school list (Google Sheets CSV export) and convert it to JSON.

Usage:
    carisekolah-ingest
    carisekolah-ingest --dry-run
    DRY_RUN=1 carisekolah-ingest --url "https://.../export?format=csv&gid=..."
"""

import json
import logging
import os
import tempfile
from pathlib import Path

import click
import httpx

from carisekolah import config
from carisekolah.errors import IngestionError
from carisekolah.models import to_number

logger = logging.getLogger(__name__)

# Map sheet column names to normalized keys
HEADER_MAP = {
    "NEGERI": "negeri",
    "PPD": "ppd",
    "PARLIMEN": "parlimen",
    "DUN": "dun",
    "PERINGKAT": "peringkat",
    "JENIS/LABEL": "jenis",
    "KODSEKOLAH": "kodSekolah",
    "NAMASEKOLAH": "namaSekolah",
    "ALAMATSURAT": "alamat",
    "POSKODSURAT": "poskod",
    "BANDARSURAT": "bandar",
    "NOTELEFON": "telefon",
    "NOFAX": "fax",
    "EMAIL": "email",
    "LOKASI": "lokasi",
    "GRED": "gred",
    "BANTUAN": "bantuan",
    "BILSESI": "bilSesi",
    "SESI": "sesi",
    "ENROLMEN PRASEKOLAH": "enrolmenPrasekolah",
    "ENROLMEN": "enrolmen",
    "ENROLMEN KHAS": "enrolmenKhas",
    "GURU": "guru",
    "PRASEKOLAH": "prasekolah",
    "INTEGRASI": "integrasi",
    "KOORDINATXX": "lng",
    "KOORDINATYY": "lat",
    "SKM<=150": "skmUnder150",
}

NUMERIC_FIELDS = ["enrolmenPrasekolah", "enrolmen", "enrolmenKhas", "guru", "lat", "lng"]

DRY_RUN_SAMPLE_SIZE = 3


# =============================================================================
# CSV parsing
# =============================================================================


def split_csv_rows(csv_text: str) -> list[str]:
    """Split CSV text into logical rows.

    Newlines inside double-quoted fields are not row breaks. ``\\r\\n`` counts
    as a single break and a lone ``\\r`` is also accepted.
    """
    rows = []
    current: list[str] = []
    in_quotes = False
    i = 0
    while i < len(csv_text):
        c = csv_text[i]
        if c == '"':
            in_quotes = not in_quotes
            current.append(c)
        elif not in_quotes and c in "\r\n":
            if c == "\r" and csv_text[i + 1 : i + 2] == "\n":
                i += 1
            rows.append("".join(current))
            current = []
        else:
            current.append(c)
        i += 1

    last = "".join(current)
    if last.strip():
        rows.append(last)
    return rows


def split_csv_fields(row: str) -> list[str]:
    """Split one logical row on commas outside quotes.

    Quote characters are kept; ``unquote`` removes them.
    """
    fields = []
    current: list[str] = []
    in_quotes = False
    for c in row:
        if c == '"':
            in_quotes = not in_quotes
            current.append(c)
        elif c == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(c)
    fields.append("".join(current))
    return fields


def unquote(value: str | None) -> str | None:
    """Strip surrounding quotes, collapse doubled quotes and trim."""
    if value is None:
        return None
    s = str(value).strip()
    if len(s) >= 2 and s.startswith('"') and s.endswith('"'):
        return s[1:-1].replace('""', '"').strip()
    return s


def parse_csv_rows(csv_text: str) -> list[list[str]]:
    """Parse CSV text into rows of unquoted cell values, skipping blank rows."""
    return [
        [unquote(field) for field in split_csv_fields(row)]
        for row in split_csv_rows(csv_text)
        if row.strip()
    ]


def header_key(header: str | None, index: int) -> str:
    """Normalized record key for a sheet column header."""
    header = (header or "").strip()
    if header in HEADER_MAP:
        return HEADER_MAP[header]
    if header:
        return "_".join(header.split())
    return f"col_{index}"


def parse_csv(csv_text: str) -> list[dict]:
    """Parse the sheet export into one dict per data row, keyed by normalized header."""
    rows = parse_csv_rows(csv_text)
    if len(rows) < 2:
        return []

    keys = [header_key(h, idx) for idx, h in enumerate(rows[0])]
    records = []
    for values in rows[1:]:
        records.append(
            {key: values[idx] if idx < len(values) else None for idx, key in enumerate(keys)}
        )
    return records


# =============================================================================
# Normalization
# =============================================================================


def normalize_row(row: dict) -> dict:
    """Convert numeric columns to numbers and drop empty cells.

    A numeric cell that is empty or fails to parse is dropped, never zeroed.
    """
    normalized = {}
    for key, value in row.items():
        if key in NUMERIC_FIELDS:
            value = to_number(value)
        elif value == "":
            value = None
        if value is not None:
            normalized[key] = value
    return normalized


def filter_valid_schools(rows: list[dict]) -> list[dict]:
    """Keep rows with a school code; the first row wins for a repeated code."""
    seen = set()
    valid = []
    for row in rows:
        kod = str(row.get("kodSekolah") or "").strip()
        if not kod:
            continue
        if kod.upper() in seen:
            logger.warning("Duplicate kodSekolah %s skipped", kod)
            continue
        seen.add(kod.upper())
        valid.append(row)
    return valid


def convert_csv(csv_text: str) -> list[dict]:
    """Parse, normalize and filter a sheet export into dataset records."""
    return filter_valid_schools([normalize_row(row) for row in parse_csv(csv_text)])


# =============================================================================
# Fetching and writing
# =============================================================================


def fetch_csv(url: str, transport: httpx.BaseTransport | None = None) -> str:
    """Download the sheet export, following at most MAX_REDIRECTS redirects."""
    try:
        with httpx.Client(
            timeout=config.FETCH_TIMEOUT_SECONDS,
            follow_redirects=True,
            max_redirects=config.MAX_REDIRECTS,
            headers={"User-Agent": config.USER_AGENT},
            transport=transport,
        ) as client:
            response = client.get(url)
    except httpx.TooManyRedirects as e:
        raise IngestionError(f"Too many redirects: {url}") from e
    except httpx.HTTPError as e:
        raise IngestionError(f"Request failed: {e}") from e

    if response.status_code != 200:
        raise IngestionError(f"HTTP {response.status_code}: {url}")

    try:
        return response.content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise IngestionError(f"Response is not UTF-8: {url}") from e


def write_dataset(records: list[dict], path: Path) -> Path:
    """Write records as a JSON array, replacing ``path`` atomically."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(records, f, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path


# =============================================================================
# CLI
# =============================================================================


@click.command()
@click.option("--url", envvar="SHEET_CSV_URL", default=config.SHEET_CSV_URL, help="CSV export URL.")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=config.DATA_PATH,
    show_default=True,
    help="Where to write the JSON dataset.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    envvar="DRY_RUN",
    help="Parse and print a sample without writing the dataset.",
)
def main(url: str, output: Path, dry_run: bool):
    """Fetch the school sheet and write the JSON dataset."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    click.echo(f"Fetching CSV from {url}")
    try:
        csv_text = fetch_csv(url)
    except IngestionError as e:
        raise click.ClickException(f"Fetch failed: {e}") from e

    rows = [normalize_row(row) for row in parse_csv(csv_text)]
    schools = filter_valid_schools(rows)
    click.echo(f"Raw CSV: {len(csv_text)} chars")
    click.echo(f"Parsed {len(rows)} rows, {len(schools)} schools with code.")

    skipped = [row for row in rows if not str(row.get("kodSekolah") or "").strip()]
    if skipped:
        sample_keys = ", ".join(list(skipped[0].keys())[:5])
        click.echo(
            f"Warning: {len(skipped)} rows without kodSekolah skipped (sample keys: {sample_keys})",
            err=True,
        )

    if not schools:
        raise click.ClickException("No schools with kodSekolah found; dataset not written")

    if dry_run:
        click.echo(f"\n--- DRY RUN: first {DRY_RUN_SAMPLE_SIZE} schools (no file written) ---\n")
        click.echo(json.dumps(schools[:DRY_RUN_SAMPLE_SIZE], ensure_ascii=False, indent=2))
        click.echo(f"\n--- Run without --dry-run to write {output} ---")
        return

    try:
        write_dataset(schools, output)
    except OSError as e:
        raise click.ClickException(f"Could not write {output}: {e}") from e
    click.echo(f"Wrote {output}")


if __name__ == "__main__":
    main()
