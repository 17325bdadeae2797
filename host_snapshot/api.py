"""FastAPI application exposing host telemetry snapshots."""
from __future__ import annotations

import logging
from typing import Mapping, Optional

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse

from .aggregator import AggregationError, Aggregator
from .config import Settings, get_settings
from .probes import ProbeFn, default_probes
from .upstream import fetch_upstream_status
from .writer import SNAPSHOT_ERROR_BODY, snapshot_to_dict

UPSTREAM_ERROR_BODY = {"status": "error"}


def create_app(settings: Optional[Settings] = None, probes: Optional[Mapping[str, ProbeFn]] = None) -> FastAPI:
    settings = settings or get_settings()
    aggregator = Aggregator(
        probes if probes is not None else default_probes(settings),
        timeout=settings.probe_timeout,
    )

    app = FastAPI(
        title="Host Snapshot Service",
        description="FastAPI service exposing a point-in-time snapshot of host telemetry.",
        version="0.1.0",
    )
    app.state.settings = settings

    @app.get("/api/system-info", summary="Return a snapshot of host telemetry", tags=["system"])
    async def system_info():
        try:
            snapshot = await aggregator.snapshot()
        except AggregationError as exc:
            logging.error(
                "System info error: every probe failed (%s)",
                ", ".join(f"{name}={error.kind}" for name, error in exc.failures.items()),
            )
            return JSONResponse(status_code=500, content=SNAPSHOT_ERROR_BODY)
        except Exception:  # pylint: disable=broad-except
            logging.exception("System info error")
            return JSONResponse(status_code=500, content=SNAPSHOT_ERROR_BODY)
        return snapshot_to_dict(snapshot)

    # Plain def: requests blocks, so FastAPI runs this in its threadpool.
    @app.get("/api/llm-status", summary="Forward the upstream service status", tags=["upstream"])
    def llm_status():
        status = fetch_upstream_status(settings.upstream_url, settings.upstream_timeout)
        if status is None:
            return JSONResponse(status_code=500, content=UPSTREAM_ERROR_BODY)
        return Response(status_code=status)

    @app.get("/health", summary="Service health check", tags=["system"])
    async def health():
        return {"status": "ok"}

    return app
