from __future__ import annotations

import hashlib

import yaml

from ._version import __version__
from .models import Prompt

GENERATED_MARKER = "x_promptdock_generated"


def generate_skill_md(prompt: Prompt, *, tool_version: str = __version__) -> str:
    front_matter = {
        "name": prompt.id,
        "description": prompt.description or prompt.title,
        "version": prompt.version,
        "category": prompt.category,
        "tags": list(prompt.tags),
        GENERATED_MARKER: True,
        "x_promptdock_version": tool_version,
    }
    header = yaml.safe_dump(front_matter, sort_keys=False, allow_unicode=True, default_flow_style=False)

    parts = ["---\n", header, "---\n\n", f"# {prompt.title or prompt.id}\n\n"]
    if prompt.description:
        parts.append(f"{prompt.description}\n\n")
    parts.append(prompt.content.rstrip("\n") + "\n")
    return "".join(parts)


def compute_skill_hash(content: str | bytes) -> str:
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()
