from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .models import Prompt
from .store import read_json

KNOWN_CATEGORIES = (
    "ideation",
    "documentation",
    "automation",
    "refactoring",
    "testing",
    "debugging",
    "workflow",
    "communication",
)
DEFAULT_CATEGORY = "general"


def normalize_category(value: Any) -> str:
    if isinstance(value, str):
        v = value.strip().lower()
        if v in KNOWN_CATEGORIES:
            return v
    return DEFAULT_CATEGORY


def read_offline_library(path: str | Path) -> list[dict[str, Any]]:
    raw = read_json(path)
    if isinstance(raw, dict):
        raw = raw.get("prompts")
    if not isinstance(raw, list):
        return []

    items: list[dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        if not isinstance(item.get("id"), str) or not item["id"].strip():
            continue
        if not isinstance(item.get("content"), str):
            continue
        items.append(item)
    return items


def load_offline_prompts(path: str | Path) -> list[Prompt]:
    """Offline saves as prompts; they lead every merged registry listing."""
    prompts: list[Prompt] = []
    for item in read_offline_library(path):
        tags = item.get("tags")
        prompts.append(
            Prompt(
                id=item["id"].strip(),
                title=str(item.get("title") or item["id"]),
                description=str(item.get("description") or ""),
                content=item["content"],
                category=normalize_category(item.get("category")),
                tags=[t for t in tags if isinstance(t, str)] if isinstance(tags, list) else [],
                author="",
                version="1.0.0",
                created=item.get("saved_at") if isinstance(item.get("saved_at"), str) else None,
            )
        )
    return prompts


def load_local_prompts(directory: str | Path) -> list[Prompt]:
    d = Path(directory)
    if not d.is_dir():
        return []

    prompts: list[Prompt] = []
    for path in sorted(d.iterdir()):
        if not path.is_file() or path.suffix != ".json":
            continue
        parsed = read_json(path)
        if parsed is None:
            continue
        items = parsed if isinstance(parsed, list) else [parsed]
        for item in items:
            try:
                prompts.append(Prompt.model_validate(item))
            except ValidationError as e:
                # Only objects that look like prompts are worth a warning.
                if isinstance(item, dict) and "id" in item:
                    first = e.errors()[0]["msg"] if e.errors() else str(e)
                    print(f"warning: invalid local prompt in {path.name}: {first}", file=sys.stderr)
    return prompts
