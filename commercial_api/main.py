from __future__ import annotations

import logging
import math
from dataclasses import asdict
from datetime import date
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from commercial_api.config import settings
from commercial_api.logging import setup_logging
from commercial_api.schemas import AnalysisRequest, ErrorResponse
from commercial_core.cascade import cascade_many
from commercial_core.data import load_context, windows_payload
from commercial_core.exceptions import InvalidConfigurationError
from commercial_core.metrics_abc import compute_abc
from commercial_core.metrics_customers import compute_customers
from commercial_core.metrics_hierarchy import compute_hierarchy
from commercial_core.metrics_mix import compute_mix
from commercial_core.metrics_overview import compute_overview
from commercial_core.periods import period_shape
from commercial_core.projection import repository_from_payload


setup_logging(settings.log_level, settings.service_name)

app = FastAPI(title="Commercial Analytics API", version="0.1.0")
logger = logging.getLogger(__name__)

ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    413: {"model": ErrorResponse, "description": "Too many records"},
    422: {"model": ErrorResponse, "description": "Invalid analysis configuration"},
    500: {"model": ErrorResponse, "description": "Unexpected failure"},
}

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> Optional[float]:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
                date: lambda d: d.isoformat(),
            },
        )
    )


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _too_large(request: AnalysisRequest) -> Optional[JSONResponse]:
    if len(request.records) <= settings.max_records:
        return None
    logger.warning("rejected request with %d records (max %d)", len(request.records), settings.max_records)
    return JSONResponse(
        status_code=413,
        content={
            "error": f"{len(request.records)} records exceed the limit of {settings.max_records}",
            "type": "PayloadTooLarge",
        },
    )


def _context(request: AnalysisRequest) -> Dict[str, Any]:
    raw_filters = request.filters.model_dump(exclude_none=True)
    return load_context(request.records, request.mapping, raw_filters)


@app.get("/health")
def health():
    return {"status": "ok", "service": settings.service_name}


@app.post("/cascade", responses=ERROR_RESPONSES)
def cascade(request: AnalysisRequest):
    rejected = _too_large(request)
    if rejected is not None:
        return rejected
    try:
        ctx = _context(request)
        mapping = ctx["mapping"]
        return _json(
            {
                "filters": asdict(ctx["filters"]),
                "windows": windows_payload(ctx),
                "current": cascade_many(ctx["current_records"], mapping).to_dict(),
                "all_records": cascade_many(ctx["all_records"], mapping).to_dict(),
            }
        )
    except InvalidConfigurationError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("cascade failed")
        return _error(500, exc)


@app.post("/periods", responses=ERROR_RESPONSES)
def periods(request: AnalysisRequest):
    rejected = _too_large(request)
    if rejected is not None:
        return rejected
    try:
        ctx = _context(request)
        filters = ctx["filters"]
        shape = period_shape(filters.start, filters.end).value if filters.start and filters.end else None
        return _json(
            {
                "filters": asdict(filters),
                "shape": shape,
                "windows": windows_payload(ctx),
                "record_counts": {
                    "current": len(ctx["current_records"]),
                    "mom": len(ctx["mom_records"]),
                    "yoy": len(ctx["yoy_records"]),
                    "total": len(ctx["all_records"]),
                },
            }
        )
    except InvalidConfigurationError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("periods failed")
        return _error(500, exc)


@app.post("/overview", responses=ERROR_RESPONSES)
def overview(request: AnalysisRequest):
    rejected = _too_large(request)
    if rejected is not None:
        return rejected
    try:
        ctx = _context(request)
        goals = repository_from_payload(request.goals, request.working_days)
        return _json(compute_overview(ctx["filters"], ctx, goals))
    except InvalidConfigurationError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("overview failed")
        return _error(500, exc)


@app.post("/hierarchy", responses=ERROR_RESPONSES)
def hierarchy(request: AnalysisRequest):
    rejected = _too_large(request)
    if rejected is not None:
        return rejected
    try:
        ctx = _context(request)
        return _json(compute_hierarchy(ctx["filters"], ctx, request.include_transactions))
    except InvalidConfigurationError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("hierarchy failed")
        return _error(500, exc)


@app.post("/abc", responses=ERROR_RESPONSES)
def abc(request: AnalysisRequest):
    rejected = _too_large(request)
    if rejected is not None:
        return rejected
    try:
        ctx = _context(request)
        return _json(compute_abc(ctx["filters"], ctx))
    except InvalidConfigurationError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("abc failed")
        return _error(500, exc)


@app.post("/customers", responses=ERROR_RESPONSES)
def customers(request: AnalysisRequest):
    rejected = _too_large(request)
    if rejected is not None:
        return rejected
    try:
        ctx = _context(request)
        return _json(compute_customers(ctx["filters"], ctx))
    except InvalidConfigurationError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("customers failed")
        return _error(500, exc)


@app.post("/mix", responses=ERROR_RESPONSES)
def mix(request: AnalysisRequest):
    rejected = _too_large(request)
    if rejected is not None:
        return rejected
    try:
        ctx = _context(request)
        return _json(compute_mix(ctx["filters"], ctx))
    except InvalidConfigurationError as exc:
        return _error(422, exc)
    except Exception as exc:
        logger.exception("mix failed")
        return _error(500, exc)
