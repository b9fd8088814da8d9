"""Stand-in cloud FastAPI application with lifespan management and CLI."""

import os
from contextlib import asynccontextmanager
from typing import Optional

import typer
import uvicorn
from fastapi import FastAPI, Request

from cloud_server.config import ServerConfig, get_config
from cloud_server.endpoints import compute, failure, health, identity, storage
from cloud_server.faults import (
    FaultException,
    InjectedFailure,
    fault_response,
    injected_response,
)
from cloud_server.logging_config import get_logger, setup_logging
from cloud_server.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from cloud_server.state import ServerState


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown."""
    config: ServerConfig = app.state.config
    setup_logging(config.log_level, config.log_format)
    logger = get_logger("cloud_server.startup")
    logger.info(
        "Stand-in cloud starting up",
        config={
            "username": config.username,
            "tenant": config.tenant,
            "regions": config.region_list,
            "log_level": config.log_level,
            "log_format": config.log_format,
        },
    )

    yield

    logger.info("Stand-in cloud shutting down")


async def handle_fault(request: Request, exc: FaultException):
    return fault_response(exc.status_code, exc.fault, exc.message)


async def handle_injected_failure(request: Request, exc: InjectedFailure):
    return injected_response(exc.status_code, exc.plain_body)


def create_app(config: Optional[ServerConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or get_config()

    app = FastAPI(
        title="Stand-in Cloud",
        description="Identity, compute and object-store endpoints for client testing",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if config.enable_docs else None,
        redoc_url="/redoc" if config.enable_docs else None,
    )
    app.state.config = config
    app.state.server_state = ServerState()

    # Error handling (outermost), then request logging
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)

    app.add_exception_handler(FaultException, handle_fault)
    app.add_exception_handler(InjectedFailure, handle_injected_failure)

    app.include_router(identity.router)
    app.include_router(compute.router)
    app.include_router(storage.router)
    app.include_router(failure.router)
    app.include_router(health.router)
    return app


app = create_app()


# CLI interface using Typer
cli = typer.Typer(name="cloud-server", help="Stand-in cloud for client validation")


@cli.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    regions: Optional[str] = typer.Option(None, help="Comma-separated catalog regions"),
    log_level: Optional[str] = typer.Option(None, help="Log level (DEBUG, INFO, WARNING, ERROR)"),
    log_format: Optional[str] = typer.Option(None, help="Log format (json, console)"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
):
    """Start the stand-in cloud."""
    # Override environment config with CLI arguments if provided
    if regions is not None:
        os.environ["SERVER_REGIONS"] = regions
    if log_level is not None:
        os.environ["SERVER_LOG_LEVEL"] = log_level
    if log_format is not None:
        os.environ["SERVER_LOG_FORMAT"] = log_format

    uvicorn.run(
        "cloud_server.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
        access_log=False,
    )


@cli.command()
def config_info():
    """Display current configuration."""
    config = get_config()

    typer.echo("Current Stand-in Cloud Configuration:")
    typer.echo(f"  Host: {config.host}")
    typer.echo(f"  Port: {config.port}")
    typer.echo(f"  Username: {config.username}")
    typer.echo(f"  Tenant: {config.tenant}")
    typer.echo(f"  Regions: {', '.join(config.region_list)}")
    typer.echo(f"  Log Level: {config.log_level}")
    typer.echo(f"  Log Format: {config.log_format}")


if __name__ == "__main__":
    cli()
