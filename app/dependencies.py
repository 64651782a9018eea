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
"""Shared dependencies for dependency injection."""

import logging

from fastapi import Request

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


def get_cached_settings() -> Settings:
    """
    Get cached settings instance for dependency injection.

    This wraps get_settings() which is already cached with @lru_cache.
    """
    return get_settings()


def get_default_working_dir(request: Request) -> str:
    """
    Get the default working directory for plan requests.

    The value is resolved once by the application factory and stored on
    ``app.state``, so every request in an application instance shares it.
    Applications built without one fall back to the cached settings.

    Returns:
        str: Directory used when a request does not name its own workingDir
    """
    default_working_dir = getattr(request.app.state, "default_working_dir", None)
    if default_working_dir:
        return default_working_dir

    logger.warning("Default working directory not set on app state, using settings")
    return get_cached_settings().default_working_dir()


def resolve_working_dir(requested: str | None, default_working_dir: str) -> str:
    """Pick the request's workingDir when given, else the default."""
    return requested or default_working_dir
