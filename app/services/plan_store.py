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
"""Filesystem-backed plan storage.

Plans are markdown files with a frontmatter block, kept in
``<working_dir>/.codepilot/plans/`` so they can be referenced across sessions.
"""

import logging
import re
import secrets
import time
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from app.models.plan import Plan, PlanMetadata, PlanSummary, PlanType

logger = logging.getLogger(__name__)

PLANS_DIR_NAME = ".codepilot/plans"
PLAN_EXTENSION = ".md"
PREVIEW_LENGTH = 200
MAX_SLUG_LENGTH = 50
MAX_TITLE_LINE_LENGTH = 60
DEFAULT_TITLE = "Untitled Plan"

_BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
_FRONTMATTER_PATTERN = re.compile(r"^---\n(.*?)\n---\n(.*)$", re.DOTALL)
_FRONTMATTER_LINE_PATTERN = re.compile(r"^(\w+):\s*(.*)$")
_HEADING_PATTERN = re.compile(r"^#+ (.+)$", re.MULTILINE)
_SLUG_SEPARATOR_PATTERN = re.compile(r"[^a-z0-9]+")
_LINE_BREAK_PATTERN = re.compile(r"[\x00-\x1f\x7f\u2028\u2029]+")

_RESEARCH_KEYWORDS = ("research", "findings", "analysis")
_IMPLEMENTATION_KEYWORDS = ("implementation", "steps", "## files")


class PlanStoreError(Exception):
    """Raised when a plan file cannot be read or written."""

    pass


class InvalidPlanFilenameError(ValueError):
    """Raised when a caller-supplied filename could escape the plans directory."""

    pass


def get_plans_dir(working_dir: str | Path) -> Path:
    """Get the plans directory path for a working directory."""
    return Path(working_dir) / PLANS_DIR_NAME


def ensure_plans_dir(working_dir: str | Path) -> Path:
    """
    Ensure the plans directory exists.

    Raises:
        PlanStoreError: If the directory cannot be created
    """
    plans_dir = get_plans_dir(working_dir)
    try:
        plans_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PlanStoreError(f"Failed to create plans directory {plans_dir}: {e}") from e
    return plans_dir


def validate_filename(filename: str) -> str:
    """Reject filenames that are empty or point outside the plans directory."""
    if not filename or filename in (".", ".."):
        raise InvalidPlanFilenameError(f"Invalid plan filename: {filename!r}")
    if "/" in filename or "\\" in filename or "\x00" in filename:
        raise InvalidPlanFilenameError(f"Invalid plan filename: {filename!r}")
    return filename


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_plan_id() -> str:
    """Generate a unique plan ID of the form ``plan_<time>_<random>``."""
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(6))
    return f"plan_{timestamp}_{suffix}"


def title_to_filename(title: str) -> str:
    """Slugify a title into a filename stem."""
    slug = _SLUG_SEPARATOR_PATTERN.sub("-", title.lower()).strip("-")
    return slug[:MAX_SLUG_LENGTH] or "untitled"


def _utcnow() -> datetime:
    # Frontmatter keeps millisecond precision
    now = datetime.now(UTC)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _unquote(value: str) -> str:
    if value[:1] in ('"', "'"):
        value = value[1:]
    if value[-1:] in ('"', "'"):
        value = value[:-1]
    return value.replace('\\"', '"')


def _single_line(value: str) -> str:
    return _LINE_BREAK_PATTERN.sub(" ", value).strip()


def clean_session_id(session_id: str | None) -> str | None:
    """Flatten a session id onto one line; blank ids become None."""
    if session_id is None:
        return None
    return _single_line(session_id) or None


def clean_tags(tags: list[str] | None) -> list[str]:
    """Flatten tags onto one line each, replacing commas and dropping blanks."""
    cleaned = []
    for tag in tags or []:
        tag = _single_line(tag.replace(",", " "))
        if tag:
            cleaned.append(tag)
    return cleaned


def clean_title(title: str) -> str:
    """Flatten a title onto one frontmatter line."""
    return _single_line(title)


def parse_frontmatter(text: str) -> tuple[dict, str]:
    """
    Split a plan file into frontmatter fields and body.

    Frontmatter is a flat ``key: value`` block; ``tags`` is a comma-separated
    list. Files without frontmatter return an empty dict and the full text.

    Returns:
        Tuple of (metadata dict, stripped body)
    """
    match = _FRONTMATTER_PATTERN.match(text)
    if not match:
        return {}, text

    frontmatter, body = match.groups()
    metadata: dict = {}

    for line in frontmatter.split("\n"):
        line_match = _FRONTMATTER_LINE_PATTERN.match(line)
        if not line_match:
            continue
        key, value = line_match.groups()
        if key == "tags":
            metadata["tags"] = [tag.strip() for tag in value.split(",") if tag.strip()]
        elif key == "title":
            metadata["title"] = _unquote(value)
        else:
            metadata[key] = value.strip()

    return metadata, body.strip()


def generate_frontmatter(metadata: PlanMetadata) -> str:
    """Render plan metadata as a frontmatter block."""
    # Every value must stay on its own frontmatter line
    escaped_title = clean_title(metadata.title).replace('"', '\\"')
    session_id = clean_session_id(metadata.session_id)
    lines = [
        "---",
        f"id: {_single_line(metadata.id)}",
        f'title: "{escaped_title}"',
        f"type: {metadata.type.value}",
        f"createdAt: {_format_timestamp(metadata.created_at)}",
        f"updatedAt: {_format_timestamp(metadata.updated_at)}",
        f"sessionId: {session_id or 'null'}",
        f"tags: {', '.join(clean_tags(metadata.tags))}",
        "---",
    ]
    return "\n".join(lines)


def save_plan(
    working_dir: str | Path,
    title: str,
    content: str,
    *,
    plan_type: PlanType | None = None,
    session_id: str | None = None,
    tags: list[str] | None = None,
    existing_id: str | None = None,
    filename: str | None = None,
) -> Plan:
    """
    Write a plan to its markdown file.

    The filename defaults to a slug of the title. When a file with that name
    already exists its ``createdAt`` timestamp is kept; everything else is
    overwritten.

    Args:
        working_dir: Directory the plans directory lives under
        title: Plan title
        content: Markdown body
        plan_type: Plan type (default: implementation)
        session_id: Optional associated session
        tags: Optional labels
        existing_id: ID to keep when rewriting an existing plan
        filename: Explicit filename to write to

    Returns:
        The saved Plan

    Raises:
        InvalidPlanFilenameError: If an explicit filename is unsafe
        PlanStoreError: If the file cannot be read or written
    """
    if filename is not None:
        validate_filename(filename)
    else:
        filename = f"{title_to_filename(title)}{PLAN_EXTENSION}"

    plans_dir = ensure_plans_dir(working_dir)
    file_path = plans_dir / filename
    now = _utcnow()

    created_at = now
    try:
        existing_text = file_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        pass
    except (OSError, UnicodeDecodeError) as e:
        raise PlanStoreError(f"Failed to read existing plan {file_path}: {e}") from e
    else:
        existing_metadata, _ = parse_frontmatter(existing_text)
        created_at = _parse_timestamp(existing_metadata.get("createdAt")) or now

    body = content.strip()
    plan = Plan(
        id=existing_id or generate_plan_id(),
        title=clean_title(title),
        type=plan_type or PlanType.IMPLEMENTATION,
        created_at=created_at,
        updated_at=now,
        session_id=clean_session_id(session_id),
        tags=clean_tags(tags),
        content=body,
        file_path=filename,
    )

    try:
        file_path.write_text(f"{generate_frontmatter(plan)}\n\n{body}", encoding="utf-8")
    except OSError as e:
        raise PlanStoreError(f"Failed to write plan {file_path}: {e}") from e

    logger.info(
        "Plan saved",
        extra={"plan_id": plan.id, "plan_file": filename, "working_dir": str(working_dir)},
    )
    return plan


def load_plan(working_dir: str | Path, filename: str) -> Plan | None:
    """
    Load a plan from its file.

    Returns:
        The Plan, or None if no readable plan exists at ``filename``

    Raises:
        InvalidPlanFilenameError: If the filename is unsafe
        PlanStoreError: If the file exists but cannot be read
    """
    validate_filename(filename)
    file_path = get_plans_dir(working_dir) / filename

    try:
        text = file_path.read_text(encoding="utf-8")
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
        return None
    except UnicodeDecodeError:
        logger.warning(f"Skipping plan file that is not valid UTF-8: {file_path}")
        return None
    except OSError as e:
        raise PlanStoreError(f"Failed to read plan {file_path}: {e}") from e

    metadata, body = parse_frontmatter(text)
    now = _utcnow()

    try:
        plan_type = PlanType(metadata.get("type") or PlanType.IMPLEMENTATION)
    except ValueError:
        plan_type = PlanType.IMPLEMENTATION

    session_id = metadata.get("sessionId")
    if session_id in ("", "null"):
        session_id = None

    try:
        return Plan(
            id=metadata.get("id") or filename,
            title=metadata.get("title") or filename.removesuffix(PLAN_EXTENSION),
            type=plan_type,
            created_at=_parse_timestamp(metadata.get("createdAt")) or now,
            updated_at=_parse_timestamp(metadata.get("updatedAt")) or now,
            session_id=session_id,
            tags=metadata.get("tags", []),
            content=body,
            file_path=filename,
        )
    except ValidationError as e:
        logger.warning(f"Skipping malformed plan file {file_path}: {e}")
        return None


def build_preview(content: str) -> str:
    """Truncate content to a listing preview."""
    if len(content) > PREVIEW_LENGTH:
        return content[:PREVIEW_LENGTH] + "..."
    return content


def list_plans(working_dir: str | Path) -> list[PlanSummary]:
    """
    List all plans in a working directory, most recently updated first.

    Returns an empty list if the plans directory does not exist yet.
    """
    plans_dir = get_plans_dir(working_dir)

    try:
        filenames = sorted(
            entry.name
            for entry in plans_dir.iterdir()
            if entry.name.endswith(PLAN_EXTENSION) and entry.is_file()
        )
    except (FileNotFoundError, NotADirectoryError):
        return []
    except OSError as e:
        raise PlanStoreError(f"Failed to list plans in {plans_dir}: {e}") from e

    summaries = []
    for filename in filenames:
        try:
            plan = load_plan(working_dir, filename)
        except PlanStoreError as e:
            logger.warning(f"Skipping unreadable plan file {filename}: {e}")
            continue
        if plan is None:
            continue
        summaries.append(
            PlanSummary(
                **plan.model_dump(exclude={"content"}),
                preview=build_preview(plan.content),
            )
        )

    summaries.sort(key=lambda summary: summary.updated_at, reverse=True)
    return summaries


def delete_plan(working_dir: str | Path, filename: str) -> bool:
    """
    Delete a plan file.

    Returns:
        True if the file was removed, False if it was absent or undeletable
    """
    validate_filename(filename)
    file_path = get_plans_dir(working_dir) / filename

    try:
        file_path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Failed to delete plan {file_path}: {e}")
        return False

    logger.info("Plan deleted", extra={"plan_file": filename, "working_dir": str(working_dir)})
    return True


def extract_title_from_content(content: str) -> str:
    """
    Extract a title from plan content.

    Uses the first markdown heading, else the first non-empty line, else a
    placeholder.
    """
    heading = _HEADING_PATTERN.search(content)
    if heading:
        return heading.group(1).strip()

    first_line = next((line for line in content.split("\n") if line.strip()), None)
    if first_line:
        return first_line[:MAX_TITLE_LINE_LENGTH].strip()

    return DEFAULT_TITLE


def detect_plan_type(content: str) -> PlanType:
    """Guess the plan type from keywords in the content."""
    lowered = content.lower()

    if any(keyword in lowered for keyword in _RESEARCH_KEYWORDS):
        return PlanType.RESEARCH

    if any(keyword in lowered for keyword in _IMPLEMENTATION_KEYWORDS):
        return PlanType.IMPLEMENTATION

    return PlanType.CUSTOM
