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
"""Health check endpoints."""

import logging
import os
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Response, status

from app.dependencies import get_default_working_dir

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check() -> dict:
    """
    Basic health check endpoint.

    Returns an OK status with the current server time without touching
    the filesystem.
    """
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/readiness")
async def readiness_check(
    response: Response,
    default_working_dir: str = Depends(get_default_working_dir),
) -> dict:
    """
    Readiness probe endpoint.

    Checks that the default working directory exists and is writable, since
    plan requests without an explicit workingDir are stored beneath it.

    Returns:
        dict: Status with ready flag and any issues detected
    """
    issues = []

    if not os.path.isdir(default_working_dir):
        issues.append(f"Default working directory not found: {default_working_dir}")
    elif not os.access(default_working_dir, os.W_OK):
        issues.append(f"Default working directory not writable: {default_working_dir}")

    if issues:
        logger.warning(f"Readiness check failed: {issues}")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready", "issues": issues}

    return {"status": "ready"}


@router.get("/liveness")
async def liveness_check() -> dict:
    """
    Liveness probe endpoint.

    Does not check dependencies, only that the process is responsive.
    """
    return {"status": "alive"}
