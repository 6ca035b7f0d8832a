from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

import yaml

from ._version import __version__
from .client import UnsafePathError
from .models import SkillManifest, SkillManifestEntry, isoformat_z, utc_now
from .render import GENERATED_MARKER, compute_skill_hash
from .store import read_model, write_json_atomic

MANIFEST_FILENAME = "manifest.json"
SKILL_FILENAME = "SKILL.md"

# Lowercase alphanumerics and hyphens, starting and ending alphanumeric.
_SAFE_SKILL_ID = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")
_FRONT_MATTER = re.compile(r"\A---\r?\n(.*?)\r?\n---(?:\r?\n|\Z)", re.DOTALL)


@dataclass(frozen=True)
class ModificationCheck:
    id: str
    exists: bool
    is_tool_generated: bool
    manifest_entry: SkillManifestEntry | None
    current_hash: str | None
    was_modified: bool
    can_overwrite: bool


@dataclass(frozen=True)
class InstalledSkill:
    id: str
    kind: str
    version: str
    location: str


def is_safe_skill_id(skill_id: str) -> bool:
    return bool(_SAFE_SKILL_ID.match(skill_id))


def manifest_path(root: str | Path) -> Path:
    return Path(root) / MANIFEST_FILENAME


def read_manifest(root: str | Path) -> SkillManifest | None:
    return read_model(manifest_path(root), SkillManifest)


def write_manifest(root: str | Path, manifest: SkillManifest) -> None:
    write_json_atomic(manifest_path(root), manifest)


def create_empty_manifest(tool_version: str = __version__) -> SkillManifest:
    return SkillManifest(generated_at=isoformat_z(utc_now()), tool_version=tool_version, entries=[])


def resolve_skill_dir(root: str | Path, skill_id: str) -> Path:
    """
    Resolve ``skill_id`` to a directory strictly inside ``root``.

    The lexical check runs first so a traversal id is rejected without
    looking at anything outside the root.
    """
    base = os.path.abspath(os.fspath(root))
    candidate = os.path.normpath(os.path.join(base, skill_id))
    if not skill_id or os.path.commonpath([base, candidate]) != base or candidate == base:
        raise UnsafePathError(f"Unsafe skill path: {skill_id!r}")

    resolved_base = Path(base).resolve()
    resolved = Path(candidate).resolve()
    if resolved == resolved_base or not resolved.is_relative_to(resolved_base):
        raise UnsafePathError(f"Unsafe skill path: {skill_id!r}")
    return resolved


def is_tool_generated(skill_md: Path) -> bool:
    try:
        text = skill_md.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return False
    m = _FRONT_MATTER.match(text)
    if not m:
        return False
    try:
        meta = yaml.safe_load(m.group(1))
    except yaml.YAMLError:
        return False
    return isinstance(meta, dict) and meta.get(GENERATED_MARKER) is True


def compute_file_hash(path: Path) -> str | None:
    try:
        return compute_skill_hash(path.read_bytes())
    except OSError:
        return None


def check_modification(root: str | Path, skill_id: str, manifest: SkillManifest | None) -> ModificationCheck:
    try:
        skill_dir = resolve_skill_dir(root, skill_id)
    except (UnsafePathError, OSError, ValueError):
        # Fail closed: an id that escapes the root is neither present nor writable.
        return ModificationCheck(
            id=skill_id,
            exists=False,
            is_tool_generated=False,
            manifest_entry=None,
            current_hash=None,
            was_modified=False,
            can_overwrite=False,
        )

    skill_md = skill_dir / SKILL_FILENAME
    exists = skill_md.is_file()
    generated = is_tool_generated(skill_md) if exists else False
    entry = manifest.find_entry(skill_id) if manifest is not None else None
    current_hash = compute_file_hash(skill_md) if exists else None

    was_modified = bool(exists and entry is not None and current_hash and entry.hash != current_hash)
    can_overwrite = not exists or (generated and not was_modified)

    return ModificationCheck(
        id=skill_id,
        exists=exists,
        is_tool_generated=generated,
        manifest_entry=entry,
        current_hash=current_hash,
        was_modified=was_modified,
        can_overwrite=can_overwrite,
    )


def list_installed(root: str | Path, location: str) -> list[InstalledSkill]:
    manifest = read_manifest(root)
    if manifest is None:
        return []
    return [InstalledSkill(id=e.id, kind=e.kind, version=e.version, location=location) for e in manifest.entries]


def all_installed(personal_root: str | Path, project_root: str | Path) -> list[InstalledSkill]:
    # The two roots keep separate manifests; they are listed side by side, never merged.
    return list_installed(personal_root, "personal") + list_installed(project_root, "project")
