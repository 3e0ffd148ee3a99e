"""
Command line entry point for the employee enrichment service
Runs the HTTP service or enriches a single CSV file locally
"""
# -*- coding: utf-8 -*-
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from loguru import logger

from config import get_settings
from enrichment_service import EnrichmentService
from models import InvalidSubmissionError, JobOptions, JobPhase

# CLI Application
app = typer.Typer(help="Employee Enrichment Service - find employees and enrich their contacts")


def setup_production_logging():
    """Setup optimized logging for production service"""
    settings = get_settings()
    logger.remove()  # Remove default handler

    # Production log format (more compact, structured)
    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan> | "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stdout,
        level=settings.log_level,
        format=log_format,
        colorize=True,
        backtrace=False,
        diagnose=False    # Don't show variable values in production
    )

    if settings.log_file_enabled and not settings.debug_mode:
        os.makedirs(settings.log_file_path, exist_ok=True)

        logger.add(
            f"{settings.log_file_path}/service.log",
            level=settings.log_level,
            format=log_format,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            compression="gz",
            colorize=False
        )

    if settings.log_file_enabled:
        os.makedirs(settings.log_file_path, exist_ok=True)

        logger.add(
            f"{settings.log_file_path}/errors.log",
            level="ERROR",
            format=log_format,
            rotation=settings.log_rotation,
            retention="90 days",
            compression="gz",
            colorize=False
        )

    logger.info(f"Production logging configured (level: {settings.log_level})")


def setup_cli_logging():
    """Setup detailed console logging for CLI commands"""
    settings = get_settings()
    logger.remove()

    cli_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stderr,
        level=settings.log_level,
        format=cli_format,
        colorize=True
    )


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port for the HTTP service"),
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host for the HTTP service"),
):
    """Run the HTTP service in production mode"""
    setup_production_logging()

    from api_service import app as api_app

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port

    logger.info(f"Starting Employee Enrichment API Service on {host}:{port}")
    uvicorn.run(
        api_app,
        host=host,
        port=port,
        log_level="info",
        access_log=False  # Reduce noise in production
    )


@app.command()
def enrich(
    input_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV of companies with LinkedIn URLs"),
    output: Path = typer.Option(Path("enriched-employees.csv"), "--output", "-o", help="Where to write the results"),
    api_key: Optional[str] = typer.Option(None, "--api-key", "-k", help="Blitz API key (defaults to BLITZ_API_KEY)"),
    skip_phone: bool = typer.Option(False, "--skip-phone", help="Skip mobile phone lookups"),
):
    """Enrich one CSV file locally and write the results"""

    async def run():
        settings = get_settings()
        service = EnrichmentService(settings)
        try:
            try:
                result = await service.submit_csv(
                    input_file.read_bytes(),
                    api_key or settings.blitz_api_key or "",
                    JobOptions(skip_phone=skip_phone),
                )
            except InvalidSubmissionError as e:
                typer.echo(f"Error: {e}", err=True)
                raise typer.Exit(1)

            typer.echo(
                f"Job {result.job_id}: {result.total_rows} companies "
                f"(LinkedIn column: {result.detected_column})"
            )

            final = {}
            events = await service.subscribe(result.job_id)
            async for snapshot in events:
                if snapshot is None:
                    continue
                final = snapshot
                logger.info(
                    f"[{snapshot['companyCurrent']}/{snapshot['companyTotal']}] "
                    f"{snapshot.get('currentCompanyName', '')} - "
                    f"employees: {snapshot['employeesFound']}, "
                    f"emails: {snapshot['emailsFound']}, phones: {snapshot['phonesFound']}"
                )

            if final.get("phase") != JobPhase.DONE.value:
                typer.echo(f"Enrichment failed: {final.get('error', 'unknown error')}", err=True)
                raise typer.Exit(1)

            output.write_text(await service.export_csv(result.job_id), encoding="utf-8")
            typer.echo(f"Wrote {final['employeesFound']} employees to {output}")
        finally:
            await service.close()

    setup_cli_logging()
    asyncio.run(run())


if __name__ == "__main__":
    app()
