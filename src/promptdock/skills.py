from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from ._version import __version__
from .client import ConfirmationRequiredError, UnsafePathError
from .manifest import (
    SKILL_FILENAME,
    check_modification,
    create_empty_manifest,
    is_safe_skill_id,
    read_manifest,
    resolve_skill_dir,
    write_manifest,
)
from .models import Prompt, SkillManifestEntry, isoformat_z, utc_now
from .render import compute_skill_hash, generate_skill_md
from .store import write_text_atomic


@dataclass(frozen=True)
class BatchResult:
    succeeded: tuple[str, ...]
    skipped: tuple[str, ...]
    failed: tuple[str, ...]
    target_dir: Path
    messages: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failed


class SkillInstaller:
    """Writes generated SKILL.md files under one root and keeps its manifest in step."""

    def __init__(self, root: str | Path, *, tool_version: str = __version__) -> None:
        self.root = Path(root).expanduser().resolve()
        self.tool_version = tool_version

    def install(self, prompts: Iterable[Prompt], ids: Iterable[str], *, force: bool = False) -> BatchResult:
        by_id = {p.id: p for p in prompts}
        manifest = read_manifest(self.root) or create_empty_manifest(self.tool_version)

        installed: list[str] = []
        skipped: list[str] = []
        failed: list[str] = []
        messages: list[str] = []

        for skill_id in ids:
            prompt = by_id.get(skill_id)
            if prompt is None:
                messages.append(f"Prompt '{skill_id}' not found.")
                skipped.append(skill_id)
                continue
            if not is_safe_skill_id(prompt.id):
                messages.append(f"Unsafe prompt id {prompt.id!r}; refusing to write files.")
                failed.append(skill_id)
                continue

            check = check_modification(self.root, prompt.id, manifest)
            if not check.can_overwrite and not force:
                reason = "user modifications detected" if check.was_modified else "not generated by promptdock"
                messages.append(f"Skipping {prompt.id}: {reason}. Use --force to overwrite.")
                skipped.append(skill_id)
                continue

            try:
                content = generate_skill_md(prompt, tool_version=self.tool_version)
                skill_md = resolve_skill_dir(self.root, prompt.id) / SKILL_FILENAME
                write_text_atomic(skill_md, content)
            except (OSError, UnsafePathError) as e:
                messages.append(f"Failed to install '{skill_id}': {e}")
                failed.append(skill_id)
                continue

            manifest = manifest.upsert_entry(
                SkillManifestEntry(
                    id=prompt.id,
                    kind="prompt",
                    version=prompt.version or "1.0.0",
                    hash=compute_skill_hash(content),
                    updated_at=isoformat_z(utc_now()),
                )
            )
            installed.append(skill_id)
            messages.append(f"Installed {prompt.id} to {skill_md}")

        if installed:
            write_manifest(self.root, manifest)

        return BatchResult(
            succeeded=tuple(installed),
            skipped=tuple(skipped),
            failed=tuple(failed),
            target_dir=self.root,
            messages=tuple(messages),
        )

    def uninstall(self, ids: Iterable[str], *, confirmed: bool = False, interactive: bool = False) -> BatchResult:
        if not interactive and not confirmed:
            raise ConfirmationRequiredError("Non-interactive mode requires --yes to remove skills.")

        manifest = read_manifest(self.root)

        removed: list[str] = []
        not_found: list[str] = []
        failed: list[str] = []
        messages: list[str] = []

        for skill_id in ids:
            try:
                skill_dir = resolve_skill_dir(self.root, skill_id)
            except (UnsafePathError, OSError, ValueError):
                messages.append(f"Unsafe skill id {skill_id!r}; refusing to delete files.")
                failed.append(skill_id)
                continue

            entry = manifest.find_entry(skill_id) if manifest is not None else None
            dir_exists = skill_dir.exists()
            if entry is None and not dir_exists:
                messages.append(f"Skill '{skill_id}' not found.")
                not_found.append(skill_id)
                continue

            try:
                if dir_exists:
                    shutil.rmtree(skill_dir)
            except OSError as e:
                messages.append(f"Failed to uninstall '{skill_id}': {e}")
                failed.append(skill_id)
                continue

            if manifest is not None and entry is not None:
                manifest = manifest.remove_entry(skill_id)
            removed.append(skill_id)
            messages.append(f"Uninstalled {skill_id}")

        if manifest is not None and removed:
            write_manifest(self.root, manifest)

        return BatchResult(
            succeeded=tuple(removed),
            skipped=tuple(not_found),
            failed=tuple(failed),
            target_dir=self.root,
            messages=tuple(messages),
        )
