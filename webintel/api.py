"""
WebIntel Web API
FastAPI backend: spreadsheet enrichment and ad hoc domain lookups
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, File, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from . import __version__
from .config import Settings, get_settings
from .documents import MEDIA_TYPES, Table, read_table, results_filename, table_format, write_table
from .errors import InputError, WebIntelError
from .logging_utils import configure_logging
from .models import ENRICHMENT_COLUMNS
from .pipeline import RowScheduler, analyze_domain, analyze_rows

_LOG = logging.getLogger(__name__)


class StatusResponse(BaseModel):
    status: str
    message: str


class DomainAnalysis(BaseModel):
    domain: str
    cdn: str
    waf: str


def create_app(scheduler: Optional[RowScheduler] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the API. Without a scheduler, one is built from settings on first use."""
    app = FastAPI(
        title="WebIntel",
        description="CDN, security and traffic enrichment for website lists",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    state: dict[str, RowScheduler] = {}
    if scheduler is not None:
        state["scheduler"] = scheduler

    def get_scheduler() -> RowScheduler:
        if "scheduler" not in state:
            state["scheduler"] = RowScheduler.from_settings(settings or get_settings())
        return state["scheduler"]

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        _LOG.info(
            "%s %s -> %d (%.0f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    @app.exception_handler(WebIntelError)
    async def webintel_error(_request: Request, exc: WebIntelError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/api/status", response_model=StatusResponse)
    async def status():
        """Health check endpoint"""
        return {"status": "ok", "message": "WebIntel backend is running"}

    @app.post("/api/analyze")
    async def analyze(file: Optional[UploadFile] = File(None)):
        """Enrich an uploaded spreadsheet and send it back in the same format."""
        if file is None or not file.filename:
            raise InputError("No file uploaded")

        fmt = table_format(file.filename)
        data = await file.read()
        try:
            table = read_table(data, file.filename)
            rows = await run_in_threadpool(analyze_rows, table.rows, get_scheduler())
            out = Table.from_rows(rows, [*table.columns, *ENRICHMENT_COLUMNS.values()])
            body = write_table(out, fmt)
        except WebIntelError:
            raise
        except Exception as e:
            _LOG.exception("Error processing spreadsheet %s", file.filename)
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to process spreadsheet", "details": str(e)},
            )

        filename = results_filename(fmt)
        return Response(
            content=body,
            media_type=MEDIA_TYPES[fmt],
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.get("/api/analyze/domain", response_model=DomainAnalysis)
    async def analyze_single(domain: Optional[str] = Query(None, description="Domain or URL to analyze")):
        """Ad hoc CDN + WAF lookup for one domain."""
        try:
            return await run_in_threadpool(analyze_domain, domain, get_scheduler())
        except WebIntelError:
            raise
        except Exception:
            _LOG.exception("Error analyzing domain %r", domain)
            return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return app


app = create_app()


def main(host: str = "0.0.0.0", port: Optional[int] = None) -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(app, host=host, port=port or settings.port)


if __name__ == "__main__":
    main()
