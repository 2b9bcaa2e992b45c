"""FastAPI application for carisekolah."""

import json
import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response

from carisekolah import config
from carisekolah.data import SchoolDataset, get_dataset
from carisekolah.errors import DatasetError
from carisekolah.geo import format_distance_km, schools_with_distance
from carisekolah.rate_limit import RateLimiter, Throttled, client_identifier
from carisekolah.search import clamp_limit, filter_schools, get_search_suggestions, search_schools
from carisekolah.stats import (
    compute_dataset_statistics,
    get_school_comparison_stats,
    staffing_estimate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_school_data(request: Request) -> SchoolDataset:
    """Dataset attached to the app, loading the configured file on first use."""
    if request.app.state.dataset is None:
        request.app.state.dataset = get_dataset()
    return request.app.state.dataset


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


Dataset = Annotated[SchoolDataset, Depends(get_school_data)]
Limiter = Annotated[RateLimiter, Depends(get_rate_limiter)]


@router.get("/api/schools/suggest")
async def suggest_schools(
    request: Request,
    dataset: Dataset,
    limiter: Limiter,
    q: Annotated[str, Query(max_length=config.SUGGEST_MAX_QUERY_LENGTH)] = "",
    limit: int = config.SUGGEST_DEFAULT_LIMIT,
):
    """Typeahead suggestions (rate limited per client)."""
    identifier = client_identifier(request.headers.get("x-forwarded-for"))
    result = limiter.check_and_increment(identifier)
    if isinstance(result, Throttled):
        return JSONResponse(
            {"error": "rate_limited", "retryAfter": result.retry_after},
            status_code=429,
            headers={"Retry-After": str(result.retry_after)},
        )

    suggestions = get_search_suggestions(dataset, q.strip(), clamp_limit(limit))
    return [s.model_dump(by_alias=True, exclude_none=True) for s in suggestions]


@router.get("/api/schools/export")
async def export_schools(dataset: Dataset):
    """Entire dataset as a downloadable JSON document."""
    body = json.dumps(
        [school.to_json_dict() for school in dataset], ensure_ascii=False, separators=(",", ":")
    )
    return Response(
        content=body,
        media_type="application/json",
        headers={
            "Content-Disposition": 'attachment; filename="schools.json"',
            "Cache-Control": f"public, max-age={config.EXPORT_CACHE_MAX_AGE}",
        },
    )


@router.get("/api/schools")
async def list_schools(
    dataset: Dataset,
    q: Annotated[str, Query(max_length=config.SUGGEST_MAX_QUERY_LENGTH)] = "",
    negeri: str = "",
    ppd: str = "",
    jenis: str = "",
    lokasi: str = "",
    poskod: str = "",
    sort: Literal["relevance", "none"] = "relevance",
    offset: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=config.SEARCH_MAX_PAGE_SIZE)] = config.SEARCH_DEFAULT_PAGE_SIZE,
):
    """Search and filter schools, one page at a time."""
    find = search_schools if sort == "relevance" else filter_schools
    schools = find(dataset, query=q, negeri=negeri, ppd=ppd, jenis=jenis, lokasi=lokasi, poskod=poskod)

    return {
        "total": len(schools),
        "offset": offset,
        "limit": limit,
        "schools": [s.to_json_dict() for s in schools[offset : offset + limit]],
    }


@router.get("/api/schools/near")
async def schools_near(
    dataset: Dataset,
    lat: Annotated[float, Query(ge=-90, le=90)],
    lng: Annotated[float, Query(ge=-180, le=180)],
    radius: Annotated[float, Query(gt=0, le=config.NEAR_MAX_RADIUS_KM)] = config.NEAR_DEFAULT_RADIUS_KM,
    limit: Annotated[int, Query(ge=1, le=config.SEARCH_MAX_PAGE_SIZE)] = config.SEARCH_DEFAULT_PAGE_SIZE,
):
    """Schools within ``radius`` km of a point, nearest first."""
    nearby = schools_with_distance(dataset, lat, lng, radius)

    return {
        "total": len(nearby),
        "schools": [
            {**school.to_json_dict(), "distanceKm": km, "distance": format_distance_km(km)}
            for school, km in nearby[:limit]
        ],
    }


@router.get("/api/schools/{kod}")
async def school_detail(dataset: Dataset, kod: str):
    """One school with its comparison statistics."""
    school = dataset.get_school_by_kod(kod)
    if school is None:
        return JSONResponse({"error": "not_found", "kodSekolah": kod}, status_code=404)

    comparison = get_school_comparison_stats(dataset, school)
    staffing = staffing_estimate(school)

    return {
        "school": school.to_json_dict(),
        "facts": {
            "hasPreschool": school.has_preschool,
            "faxNumber": school.fax_number,
            "hasCoordinates": school.has_coordinates,
        },
        "comparison": comparison.model_dump(by_alias=True),
        "staffing": staffing.model_dump(by_alias=True),
    }


@router.get("/api/filters")
async def filter_options(dataset: Dataset):
    """Option lists for the state, district, type and locality filters."""
    return dataset.get_filter_options()


@router.get("/api/statistics")
async def statistics(dataset: Dataset):
    """Dataset-wide aggregates for the statistics page."""
    return compute_dataset_statistics(dataset).model_dump(by_alias=True)


async def dataset_unavailable(request: Request, exc: DatasetError):
    logger.error("Dataset unavailable: %s", exc)
    return JSONResponse({"error": "dataset_unavailable", "message": str(exc)}, status_code=503)


def create_app(
    dataset: SchoolDataset | None = None, rate_limiter: RateLimiter | None = None
) -> FastAPI:
    """Build the API. The dataset is loaded lazily when not given."""
    app = FastAPI(title="carisekolah", description="Malaysian school directory and statistics")
    app.state.dataset = dataset
    app.state.rate_limiter = rate_limiter or RateLimiter()
    app.include_router(router)
    app.add_exception_handler(DatasetError, dataset_unavailable)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8000)
