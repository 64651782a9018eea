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
"""Plan document API endpoints.

GET    /api/plans            - List all plans
GET    /api/plans/{filename} - Get a specific plan
POST   /api/plans            - Create a new plan
PUT    /api/plans/{filename} - Update a plan
DELETE /api/plans/{filename} - Delete a plan
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from app.dependencies import get_default_working_dir, resolve_working_dir
from app.models.plan import (
    ErrorResponse,
    Plan,
    PlanCreateRequest,
    PlanDeleteResponse,
    PlanListResponse,
    PlanMutationResponse,
    PlanUpdateRequest,
)
from app.services import plan_store
from app.services.plan_store import InvalidPlanFilenameError, PlanStoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plans", tags=["plans"])

_NOT_FOUND = {404: {"description": "Plan not found", "model": ErrorResponse}}
_BAD_FILENAME = {400: {"description": "Invalid plan filename", "model": ErrorResponse}}
_SERVER_ERROR = {500: {"description": "Internal server error", "model": ErrorResponse}}


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _internal_error(message: str, **context) -> JSONResponse:
    logger.error(message, extra=context, exc_info=True)
    # Internal details stay in the logs
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@router.get("", response_model=PlanListResponse, responses=_SERVER_ERROR)
async def list_plans(
    working_dir: str | None = Query(default=None, alias="workingDir"),
    default_working_dir: str = Depends(get_default_working_dir),
):
    """
    List all plans in a working directory.

    Plans are ordered by last update, newest first. An empty list is
    returned when no plans have been saved yet.
    """
    resolved = resolve_working_dir(working_dir, default_working_dir)

    try:
        plans = plan_store.list_plans(resolved)
    except PlanStoreError:
        return _internal_error("Plan listing failed", working_dir=resolved)

    return PlanListResponse(plans=plans, count=len(plans), working_dir=resolved)


@router.get(
    "/{filename}",
    response_model=Plan,
    responses={**_NOT_FOUND, **_BAD_FILENAME, **_SERVER_ERROR},
)
async def get_plan(
    filename: str,
    working_dir: str | None = Query(default=None, alias="workingDir"),
    default_working_dir: str = Depends(get_default_working_dir),
):
    """Get a specific plan by filename."""
    resolved = resolve_working_dir(working_dir, default_working_dir)

    try:
        plan = plan_store.load_plan(resolved, filename)
    except InvalidPlanFilenameError as e:
        return _error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except PlanStoreError:
        return _internal_error("Plan load failed", plan_file=filename, working_dir=resolved)

    if plan is None:
        return _error_response(status.HTTP_404_NOT_FOUND, f"Plan not found: {filename}")

    return plan


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=PlanMutationResponse,
    responses=_SERVER_ERROR,
)
async def create_plan(
    plan_in: PlanCreateRequest,
    default_working_dir: str = Depends(get_default_working_dir),
):
    """
    Create a new plan.

    Title and type are detected from the content when not supplied.
    A plan whose title slug matches an existing file replaces that file.
    """
    resolved = resolve_working_dir(plan_in.working_dir, default_working_dir)
    title = plan_in.title or plan_store.extract_title_from_content(plan_in.content)
    plan_type = plan_in.type or plan_store.detect_plan_type(plan_in.content)

    try:
        plan = plan_store.save_plan(
            resolved,
            title,
            plan_in.content,
            plan_type=plan_type,
            session_id=plan_in.session_id,
            tags=plan_in.tags or [],
        )
    except PlanStoreError:
        return _internal_error("Plan creation failed", title=title, working_dir=resolved)

    logger.info(
        "Plan created",
        extra={
            "plan_id": plan.id,
            "plan_file": plan.file_path,
            "plan_type": plan.type.value,
            "working_dir": resolved,
        },
    )
    return PlanMutationResponse(plan=plan)


@router.put(
    "/{filename}",
    response_model=PlanMutationResponse,
    responses={**_NOT_FOUND, **_BAD_FILENAME, **_SERVER_ERROR},
)
async def update_plan(
    filename: str,
    plan_in: PlanUpdateRequest,
    default_working_dir: str = Depends(get_default_working_dir),
):
    """
    Update an existing plan's content and, optionally, its title.

    Type, session, tags, id and creation time are carried over from the
    stored plan. The plan keeps its filename even when the title changes.
    """
    resolved = resolve_working_dir(plan_in.working_dir, default_working_dir)

    try:
        existing = plan_store.load_plan(resolved, filename)
        if existing is None:
            return _error_response(status.HTTP_404_NOT_FOUND, f"Plan not found: {filename}")

        plan = plan_store.save_plan(
            resolved,
            plan_in.title or existing.title,
            plan_in.content,
            plan_type=existing.type,
            session_id=existing.session_id,
            tags=existing.tags,
            existing_id=existing.id,
            filename=filename,
        )
    except InvalidPlanFilenameError as e:
        return _error_response(status.HTTP_400_BAD_REQUEST, str(e))
    except PlanStoreError:
        return _internal_error("Plan update failed", plan_file=filename, working_dir=resolved)

    logger.info(
        "Plan updated",
        extra={"plan_id": plan.id, "plan_file": filename, "working_dir": resolved},
    )
    return PlanMutationResponse(plan=plan)


@router.delete(
    "/{filename}",
    response_model=PlanDeleteResponse,
    responses={**_NOT_FOUND, **_BAD_FILENAME},
)
async def delete_plan(
    filename: str,
    working_dir: str | None = Query(default=None, alias="workingDir"),
    default_working_dir: str = Depends(get_default_working_dir),
):
    """Delete a plan file."""
    resolved = resolve_working_dir(working_dir, default_working_dir)

    try:
        deleted = plan_store.delete_plan(resolved, filename)
    except InvalidPlanFilenameError as e:
        return _error_response(status.HTTP_400_BAD_REQUEST, str(e))

    if not deleted:
        return _error_response(
            status.HTTP_404_NOT_FOUND,
            f"Plan not found or could not be deleted: {filename}",
        )

    return PlanDeleteResponse()
