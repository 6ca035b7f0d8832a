"""Typed documents exchanged with the registry and kept on disk.

Wire and file formats use camelCase keys; the models expose snake_case
attributes and serialise back by alias. Every model is parsed with
``model_validate`` so a malformed document fails as a whole.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_z(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Prompt(BaseModel):
    # Unknown keys (variables, tips, changelog, ...) ride along untouched.
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    title: str = ""
    description: str = ""
    content: str = ""
    category: str = "general"
    tags: list[str] = Field(default_factory=list)
    author: str = ""
    version: str = "1.0.0"
    created: str | None = None


class RegistryPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    version: str | None = None
    prompts: list[Prompt] | None = None
    bundles: list[Any] = Field(default_factory=list)
    workflows: list[Any] = Field(default_factory=list)


class RegistryMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str
    etag: str | None = None
    fetched_at: datetime = Field(alias="fetchedAt")
    prompt_count: int = Field(default=0, alias="promptCount")

    @field_validator("fetched_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class SkillManifestEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    kind: str
    version: str
    hash: str
    updated_at: str = Field(alias="updatedAt")


class SkillManifest(BaseModel):
    """Ledger of generated skill files under one installation root."""

    model_config = ConfigDict(populate_by_name=True)

    generated_at: str = Field(alias="generatedAt")
    tool_version: str = Field(alias="toolVersion")
    entries: list[SkillManifestEntry] = Field(default_factory=list)

    @field_validator("entries")
    @classmethod
    def _unique_ids(cls, value: list[SkillManifestEntry]) -> list[SkillManifestEntry]:
        seen: set[str] = set()
        for entry in value:
            if entry.id in seen:
                raise ValueError(f"duplicate manifest entry: {entry.id}")
            seen.add(entry.id)
        return value

    def find_entry(self, skill_id: str) -> SkillManifestEntry | None:
        for entry in self.entries:
            if entry.id == skill_id:
                return entry
        return None

    def upsert_entry(self, entry: SkillManifestEntry) -> SkillManifest:
        entries = list(self.entries)
        for index, existing in enumerate(entries):
            if existing.id == entry.id:
                entries[index] = entry
                break
        else:
            entries.append(entry)
        return self.model_copy(update={"generated_at": isoformat_z(utc_now()), "entries": entries})

    def remove_entry(self, skill_id: str) -> SkillManifest:
        entries = [e for e in self.entries if e.id != skill_id]
        return self.model_copy(update={"generated_at": isoformat_z(utc_now()), "entries": entries})
