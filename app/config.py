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
"""Application configuration using pydantic BaseSettings."""

import logging
import os
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Plan storage configuration
    PROJECT_ROOT: str = Field(
        default="",
        description=(
            "Default working directory for plan files. "
            "Falls back to the process working directory when empty."
        ),
    )

    # Service configuration
    PORT: int = Field(default=3001, description="Port to run the service on", ge=1, le=65535)

    SERVICE_NAME: str = Field(default="plan-docs", description="Name of the service for logging")

    LOG_LEVEL: str = Field(default="INFO", description="Root log level")

    CORS_ORIGIN: str = Field(
        default="http://localhost:5173", description="Origin allowed to call the API"
    )

    def model_post_init(self, __context):
        """Warn early about configuration that will break plan storage."""
        logger = logging.getLogger(__name__)

        if self.PROJECT_ROOT and not os.path.isdir(self.PROJECT_ROOT):
            logger.warning(
                f"PROJECT_ROOT does not exist or is not a directory: {self.PROJECT_ROOT}. "
                "Plan requests without an explicit workingDir may fail."
            )

    def default_working_dir(self) -> str:
        """Resolve the default working directory for plan requests."""
        return self.PROJECT_ROOT or os.getcwd()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
