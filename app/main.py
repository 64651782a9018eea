# Copyright 2025 John Brosnihan
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""FastAPI application factory and configuration."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pythonjsonlogger.json import JsonFormatter

from app.api import health, plans
from app.config import Settings, get_settings


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure JSON-structured logging for the application.

    Sets up a JSON formatter that includes timestamp, level, message,
    and service name for all log entries.
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    class CustomJsonFormatter(JsonFormatter):
        """Custom JSON formatter that adds service name and handles encoding issues."""

        def add_fields(self, log_record, record, message_dict):
            """Add custom fields to log records."""
            super().add_fields(log_record, record, message_dict)
            log_record['service'] = settings.SERVICE_NAME

        def format(self, record):
            """Format log record, handling unicode and binary payloads gracefully."""
            try:
                return super().format(record)
            except (UnicodeDecodeError, UnicodeEncodeError, TypeError) as e:
                safe_record = {
                    'service': settings.SERVICE_NAME,
                    'timestamp': self.formatTime(record, self.datefmt),
                    'level': record.levelname,
                    'message': f'[Encoding error: {str(e)}] {repr(record.msg)}',
                    'error': str(e)
                }
                return self.serialize_log_record(safe_record)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    formatter = CustomJsonFormatter(
        fmt='%(timestamp)s %(levelname)s %(name)s %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%S'
    )
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    root_logger.info(f"Logging configured for service: {settings.SERVICE_NAME}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events.
    """
    logger = logging.getLogger(__name__)
    logger.info(
        "Application starting up",
        extra={"default_working_dir": app.state.default_working_dir},
    )
    yield
    logger.info("Application shutting down")


def create_app(
    settings: Settings | None = None,
    default_working_dir: str | None = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Settings to use instead of the cached environment settings
        default_working_dir: Directory for plan requests that do not name
            one; overrides PROJECT_ROOT and the process working directory

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    settings = settings or get_settings()
    setup_logging(settings)

    logger = logging.getLogger(__name__)

    app = FastAPI(
        title="Plan Documents Service",
        description="FastAPI service for reading and writing markdown plan documents",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    # Resolved once so every request shares the same default
    app.state.default_working_dir = default_working_dir or settings.default_working_dir()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CORS_ORIGIN],
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.get("/", tags=["root"])
    async def root() -> dict:
        return {"message": "Plan Documents API Server"}

    app.include_router(health.router)
    app.include_router(plans.router)

    logger.info(
        f"Application created: service={settings.SERVICE_NAME}, "
        f"port={settings.PORT}, default_working_dir={app.state.default_working_dir}"
    )

    return app


def get_app() -> FastAPI:
    """
    Get or create the application instance.

    This function is used by the ASGI server to import the app.
    """
    return create_app()


# Create app instance for ASGI server to import
# This is required for uvicorn to find the app with "app.main:app"
app = get_app()
