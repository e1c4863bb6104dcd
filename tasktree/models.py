"""Type-safe record and configuration models with validation."""
from __future__ import annotations
import json
from pathlib import Path
from typing import Literal
from pydantic import BaseModel, Field, TypeAdapter, field_validator

from .tasks.store import TaskStatus
from .tasks.visibility import DEFAULT_TEXT_LENGTH_THRESHOLD


class TaskRecord(BaseModel):
    """A task as exchanged with the persistence/import layer.

    Accepts both snake_case names and the camelCase names used by the
    browser front-end (``mainParent``, ``currentlyWorking``...). Unknown
    fields such as canvas coordinates are ignored.
    """
    model_config = {"populate_by_name": True}

    id: int
    title: str = ""
    status: TaskStatus = TaskStatus.TODO
    main_parent: int | None = Field(default=None, alias="mainParent")
    children: list[int] = Field(default_factory=list)
    dependencies: list[int] = Field(default_factory=list)
    currently_working: bool = Field(default=False, alias="currentlyWorking")
    text_expanded: bool = Field(default=False, alias="textExpanded")
    text_locked: bool = Field(default=False, alias="textLocked")

    @field_validator("status", mode="before")
    @classmethod
    def migrate_status(cls, v):
        # Older exports used "pending" for open tasks
        if v == "pending":
            return TaskStatus.TODO
        return v

    @field_validator("title", mode="before")
    @classmethod
    def none_title(cls, v):
        return "" if v is None else v


class TaskTreeConfig(BaseModel):
    """Repo-level configuration (.tasktreerc)."""
    text_length_threshold: int = Field(default=DEFAULT_TEXT_LENGTH_THRESHOLD, ge=10, le=200)
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    output_format: Literal["rich", "json", "plain"] = "rich"


def load_config(repo: Path) -> TaskTreeConfig:
    """Load config from .tasktreerc or defaults.

    Raises json.JSONDecodeError or pydantic.ValidationError on a malformed file.
    """
    rc_file = repo / ".tasktreerc"
    if rc_file.exists():
        data = json.loads(rc_file.read_text(encoding="utf-8"))
        return TaskTreeConfig.model_validate(data)
    return TaskTreeConfig()


_records_adapter = TypeAdapter(list[TaskRecord])


def load_records(path: Path) -> list[TaskRecord]:
    """Read a JSON list of task records (or an object with a ``tasks`` list)."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("tasks", [])
    return _records_adapter.validate_python(data)
