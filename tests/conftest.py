"""Shared fixtures: a small dataset covering the awkward cases."""

import pytest
from fastapi.testclient import TestClient

from carisekolah.data import SchoolDataset
from carisekolah.main import create_app
from carisekolah.models import SchoolRecord
from carisekolah.rate_limit import RateLimiter

SCHOOLS = [
    {
        "kodSekolah": "JBA0001",
        "namaSekolah": "SK BATU PAHAT",
        "negeri": "JOHOR",
        "ppd": "PPD BATU PAHAT",
        "jenis": "SK",
        "lokasi": "BANDAR",
        "alamat": "JALAN KLUANG",
        "poskod": "83000",
        "bandar": "BATU PAHAT",
        "fax": "TIADA",
        "prasekolah": "ADA",
        "enrolmen": 68,
        "guru": 20,
        "lat": 1.8741,
        "lng": 102.7954,
    },
    {
        "kodSekolah": "JBA0002",
        "namaSekolah": "SMK SERI GADING",
        "negeri": "JOHOR",
        "ppd": "PPD BATU PAHAT",
        "jenis": "SMK",
        "lokasi": "LUAR BANDAR",
        "alamat": "JALAN MERSING",
        "poskod": "83300",
        "bandar": "BATU PAHAT",
        "fax": "07-4551234",
        "prasekolah": "TIADA",
        "enrolmen": 900,
        "guru": 40,
        "lat": 1.85,
        "lng": 102.93,
    },
    {
        "kodSekolah": "JBA0003",
        "namaSekolah": "SK TAMAN UNIVERSITI",
        "negeri": "JOHOR",
        "ppd": "PPD JOHOR BAHRU",
        "jenis": "SK",
        "lokasi": "BANDAR",
        "alamat": "JALAN PENDIDIKAN",
        "poskod": "81300",
        "bandar": "SKUDAI",
        "enrolmen": 1200,
        "guru": 50,
        "lat": 1.5343,
        "lng": 103.6594,
    },
    {
        "kodSekolah": "KBA1001",
        "namaSekolah": "SK ALOR SETAR",
        "negeri": "KEDAH",
        "ppd": "PPD KOTA SETAR",
        "jenis": "SK",
        "lokasi": "LUAR BANDAR",
        "alamat": "JALAN SULTAN",
        "bandar": "ALOR SETAR",
        "enrolmen": 300,
        "guru": 0,
    },
    {
        "kodSekolah": "KDX001",
        "namaSekolah": "SJKC CHUNG HWA",
        "negeri": "KEDAH",
        "ppd": "PPD KOTA SETAR",
        "jenis": "SJKC",
        "alamat": "JALAN PEKAN CINA",
        "bandar": "ALOR SETAR",
        "guru": 5,
    },
    {
        "kodSekolah": "WBA0001",
        "namaSekolah": "SMK BATU",
        "negeri": "W.P. KUALA LUMPUR",
        "ppd": "PPD KERAMAT",
        "jenis": "SMK",
        "lokasi": "BANDAR",
        "alamat": "JALAN BATU CAVES",
        "bandar": "KUALA LUMPUR",
        "enrolmen": 500,
        "guru": 25,
        "lat": 3.139,
        "lng": 101.6869,
    },
    {
        "kodSekolah": "PBA0001",
        "namaSekolah": "SK GEORGE TOWN",
        "negeri": "PULAU PINANG",
        "ppd": "PPD TIMUR LAUT",
        "jenis": "SK",
        "lokasi": "BANDAR",
        "alamat": "LEBUH FARQUHAR",
        "bandar": "GEORGE TOWN",
        "enrolmen": 150,
        "guru": 15,
        "lat": 5.4141,
        "lng": 100.3288,
    },
    {
        "kodSekolah": "MBA0001",
        "negeri": " MELAKA",
        "jenis": "  ",
    },
]


@pytest.fixture
def schools() -> list[SchoolRecord]:
    return [SchoolRecord.model_validate(row) for row in SCHOOLS]


@pytest.fixture
def dataset(schools) -> SchoolDataset:
    return SchoolDataset(schools)


@pytest.fixture
def client(dataset):
    app = create_app(dataset=dataset, rate_limiter=RateLimiter())
    return TestClient(app)
