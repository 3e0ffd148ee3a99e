"""
HTTP API for the employee enrichment service
Accepts CSV uploads, streams job progress as Server-Sent Events and serves results
"""
import json
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, StreamingResponse
from loguru import logger

from config import get_settings
from enrichment_service import EnrichmentService
from job_manager import JobNotFoundError, JobNotReadyError
from models import InvalidSubmissionError, JobOptions
from table_io import UploadTooLargeError

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

DOWNLOAD_FILENAME = "enriched-employees.csv"


def format_event(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def _progress_stream(service: EnrichmentService, job_id: str) -> AsyncIterator[str]:
    """
    Render a job's snapshots as SSE frames; None becomes a comment-line ping

    The subscription is only attached once the response body is being sent,
    so a client that disconnects earlier never leaves a listener behind.
    """
    try:
        events = await service.subscribe(job_id)
    except JobNotFoundError:
        yield format_event({"error": "Job not found"})
        return

    try:
        async for payload in events:
            if payload is None:
                yield ": ping\n\n"
            else:
                yield format_event(payload)
    finally:
        await events.aclose()


def create_app(service: Optional[EnrichmentService] = None) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        service: Service to expose; one is created on startup when omitted
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """FastAPI lifespan manager"""
        logger.info("Starting Employee Enrichment API Service")
        app.state.service = service or EnrichmentService(settings)
        try:
            yield
        finally:
            await app.state.service.close()
            logger.info("Shutting down Employee Enrichment API Service")

    app = FastAPI(
        title="Employee Enrichment API",
        description="Find company employees and enrich them with emails and phone numbers",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check(request: Request):
        """Basic health check endpoint"""
        return {
            "status": "healthy",
            "service": settings.service_name,
            "jobs": len(request.app.state.service.registry),
        }

    @app.post("/api/enrich")
    async def create_enrichment_job(
        request: Request,
        file: Optional[UploadFile] = File(None),
        apiKey: str = Form(""),
        skipPhone: str = Form("false"),
    ):
        """Upload a CSV of companies and start enriching their employees"""
        if file is None:
            raise HTTPException(status_code=400, detail="No file uploaded")

        enrichment: EnrichmentService = request.app.state.service
        # Read at most one byte past the limit
        data = await file.read(enrichment.settings.max_upload_bytes + 1)

        try:
            result = await enrichment.submit_csv(
                data,
                apiKey,
                JobOptions(skip_phone=skipPhone.strip().lower() == "true"),
            )
        except UploadTooLargeError as e:
            raise HTTPException(status_code=413, detail=str(e))
        except InvalidSubmissionError as e:
            logger.warning(f"Rejected upload {file.filename!r}: {e}")
            raise HTTPException(status_code=400, detail=str(e))

        logger.info(f"Created job {result.job_id} via API ({result.total_rows} rows)")
        return result.model_dump(by_alias=True)

    @app.get("/api/progress/{job_id}")
    async def stream_progress(job_id: str, request: Request):
        """Stream job snapshots as Server-Sent Events"""
        return StreamingResponse(
            _progress_stream(request.app.state.service, job_id),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.get("/api/download/{job_id}")
    async def download_results(job_id: str, request: Request):
        """Download the enriched employees of a finished job as CSV"""
        enrichment: EnrichmentService = request.app.state.service
        try:
            csv_text = await enrichment.export_csv(job_id)
        except JobNotFoundError:
            raise HTTPException(status_code=404, detail="Job not found or expired")
        except JobNotReadyError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return Response(
            content=csv_text,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{DOWNLOAD_FILENAME}"'},
        )

    return app


app = create_app()


if __name__ == "__main__":
    # Setup logging
    from main import setup_production_logging
    setup_production_logging()

    settings = get_settings()
    port = int(os.getenv("PORT", settings.port))
    host = os.getenv("HOST", settings.host)

    logger.info(f"Starting Employee Enrichment API Service on {host}:{port}")
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
        access_log=False
    )
