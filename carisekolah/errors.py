"""Exceptions raised by carisekolah."""


class CariSekolahError(Exception):
    """Base class for carisekolah errors."""


class IngestionError(CariSekolahError):
    """The spreadsheet could not be fetched, parsed or written."""


class DatasetError(CariSekolahError):
    """The dataset file is missing or does not contain school records."""
