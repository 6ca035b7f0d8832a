from __future__ import annotations

import enum
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from .bundled import BUNDLED_BUNDLES, BUNDLED_PROMPTS, BUNDLED_WORKFLOWS
from .client import FetchOutcome, FetchResult, RegistryClient
from .config import Config
from .models import Prompt, RegistryMeta, RegistryPayload, utc_now
from .offline import load_local_prompts, load_offline_prompts
from .store import read_model, write_json_atomic


class RegistrySource(str, enum.Enum):
    CACHE = "cache"
    REMOTE = "remote"
    BUNDLED = "bundled"


@dataclass(frozen=True)
class LoadedRegistry:
    prompts: list[Prompt]
    source: RegistrySource
    meta: RegistryMeta | None = None
    bundles: list[Any] = field(default_factory=list)
    workflows: list[Any] = field(default_factory=list)

    def get(self, prompt_id: str) -> Prompt | None:
        for prompt in self.prompts:
            if prompt.id == prompt_id:
                return prompt
        return None


def merge_prompts(base: list[Prompt], extras: list[Prompt]) -> list[Prompt]:
    """
    Merge two prompt lists keyed by id.

    ``base`` keeps its order. An ``extras`` entry with a new id is appended;
    one whose id is already in ``base`` replaces that entry in place. So the
    later argument wins on content while the earlier one fixes the ordering.
    """
    merged = list(base)
    if not extras:
        return merged
    index_by_id = {prompt.id: i for i, prompt in enumerate(merged)}
    for prompt in extras:
        index = index_by_id.get(prompt.id)
        if index is None:
            index_by_id[prompt.id] = len(merged)
            merged.append(prompt)
        else:
            merged[index] = prompt
    return merged


def is_cache_fresh(meta: RegistryMeta | None, ttl_s: float, now: datetime) -> bool:
    if meta is None:
        return False
    return (now - meta.fetched_at).total_seconds() < ttl_s


@dataclass(frozen=True)
class _CacheState:
    payload: RegistryPayload | None
    meta: RegistryMeta | None

    @property
    def prompts(self) -> list[Prompt]:
        if self.payload is None or not self.payload.prompts:
            return []
        return self.payload.prompts


class RegistryLoader:
    """
    Stale-while-revalidate access to the prompt registry.

    ``load()`` answers from the local cache whenever it holds prompts, and
    only kicks off a background refresh when the cache is older than the
    configured TTL. Without a cache it fetches in the foreground, and as a
    last resort it serves the bundled prompt set. Network and parse problems
    never escape; a failed cache write does.
    """

    def __init__(
        self,
        cfg: Config,
        *,
        client_factory: Callable[[], RegistryClient] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.cfg = cfg
        self._clock = clock or utc_now
        self._client_factory = client_factory or (lambda: RegistryClient(timeout_s=cfg.timeout_s, clock=self._clock))
        self._background: threading.Thread | None = None

    @property
    def background_refresh(self) -> threading.Thread | None:
        return self._background

    def _read_cache(self) -> _CacheState:
        return _CacheState(
            payload=read_model(self.cfg.cache_path, RegistryPayload),
            meta=read_model(self.cfg.meta_path, RegistryMeta),
        )

    def _compose(self, registry_prompts: list[Prompt]) -> list[Prompt]:
        # offline saves first, registry next, user-local files win collisions
        offline = load_offline_prompts(self.cfg.offline_library_path)
        local = load_local_prompts(self.cfg.local_prompts_dir) if self.cfg.local_prompts_enabled else []
        return merge_prompts(merge_prompts(offline, registry_prompts), local)

    def _from_cache(self, cache: _CacheState, meta: RegistryMeta | None = None) -> LoadedRegistry:
        payload = cache.payload
        return LoadedRegistry(
            prompts=self._compose(cache.prompts),
            source=RegistrySource.CACHE,
            meta=meta if meta is not None else cache.meta,
            bundles=list(payload.bundles) if payload else [],
            workflows=list(payload.workflows) if payload else [],
        )

    def _bundled(self) -> LoadedRegistry:
        return LoadedRegistry(
            prompts=self._compose(BUNDLED_PROMPTS),
            source=RegistrySource.BUNDLED,
            meta=None,
            bundles=list(BUNDLED_BUNDLES),
            workflows=list(BUNDLED_WORKFLOWS),
        )

    def _stamp(self, previous: RegistryMeta | None) -> datetime:
        now = self._clock()
        if previous is not None and previous.fetched_at > now:
            return previous.fetched_at
        return now

    def _fetch(self, etag: str | None) -> FetchResult:
        with self._client_factory() as client:
            return client.fetch(self.cfg.registry_url, etag)

    def _persist_remote(self, payload: RegistryPayload, meta: RegistryMeta, previous: RegistryMeta | None) -> LoadedRegistry:
        meta = meta.model_copy(update={"fetched_at": self._stamp(previous)})
        write_json_atomic(self.cfg.cache_path, payload)
        write_json_atomic(self.cfg.meta_path, meta)
        return LoadedRegistry(
            prompts=self._compose(payload.prompts or []),
            source=RegistrySource.REMOTE,
            meta=meta,
            bundles=list(payload.bundles),
            workflows=list(payload.workflows),
        )

    def load(self) -> LoadedRegistry:
        cache = self._read_cache()

        if cache.prompts:
            if self.cfg.auto_refresh and not is_cache_fresh(cache.meta, self.cfg.cache_ttl_s, self._clock()):
                self.spawn_refresh()
            return self._from_cache(cache)

        # A 304 here has no cached body behind it and falls through to the bundled set.
        result = self._fetch(cache.meta.etag if cache.meta is not None else None)
        if result.outcome is FetchOutcome.FETCHED and result.payload is not None and result.meta is not None:
            if result.payload.prompts is not None:
                return self._persist_remote(result.payload, result.meta, cache.meta)

        return self._bundled()

    def refresh(self) -> LoadedRegistry:
        cache = self._read_cache()
        result = self._fetch(cache.meta.etag if cache.meta is not None else None)

        if result.not_modified and cache.prompts:
            refreshed: RegistryMeta | None = None
            if cache.meta is not None:
                refreshed = cache.meta.model_copy(update={"fetched_at": self._stamp(cache.meta)})
                write_json_atomic(self.cfg.meta_path, refreshed)
            return self._from_cache(cache, meta=refreshed)

        if result.outcome is FetchOutcome.FETCHED and result.payload is not None and result.meta is not None:
            if result.payload.prompts is not None:
                return self._persist_remote(result.payload, result.meta, cache.meta)

        if cache.prompts:
            return self._from_cache(cache)
        return self._bundled()

    def spawn_refresh(self) -> threading.Thread:
        """Start a refresh that nobody waits for; failures end as a warning."""

        def _worker() -> None:
            try:
                self.refresh()
            except Exception as e:  # noqa: BLE001 - background task must not raise
                print(f"warning: background registry refresh failed: {e}", file=sys.stderr)

        thread = threading.Thread(target=_worker, name="promptdock-refresh", daemon=True)
        thread.start()
        self._background = thread
        return thread
