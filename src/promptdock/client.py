from __future__ import annotations

import enum
import json
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import httpx
from pydantic import ValidationError

from ._version import __version__
from .config import DEFAULT_TIMEOUT_S
from .models import RegistryMeta, RegistryPayload, utc_now


class PromptdockError(RuntimeError):
    pass


class UnsafePathError(PromptdockError):
    pass


class ConfirmationRequiredError(PromptdockError):
    pass


class FetchOutcome(str, enum.Enum):
    FETCHED = "fetched"
    NOT_MODIFIED = "not-modified"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchResult:
    outcome: FetchOutcome
    payload: RegistryPayload | None = None
    meta: RegistryMeta | None = None

    @property
    def not_modified(self) -> bool:
        return self.outcome is FetchOutcome.NOT_MODIFIED


FAILED = FetchResult(FetchOutcome.FAILED)
NOT_MODIFIED = FetchResult(FetchOutcome.NOT_MODIFIED)


class RegistryClient:
    """
    Conditional GET against the remote prompt registry.

    Every failure (timeout, transport error, unexpected status, bad JSON,
    payload that fails validation) collapses into ``FetchOutcome.FAILED``.
    The client never writes to disk.
    """

    def __init__(
        self,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        default_headers: dict[str, str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.timeout_s = timeout_s
        self._default_headers = {"User-Agent": f"promptdock/{__version__}", "Accept": "application/json"}
        self._default_headers.update(default_headers or {})
        self._clock = clock or utc_now
        # Per-phase limit; fetch() also enforces one deadline over the whole exchange.
        self._http = httpx.Client(timeout=httpx.Timeout(timeout_s), follow_redirects=True)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "RegistryClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def fetch(self, url: str, etag: str | None = None) -> FetchResult:
        headers = dict(self._default_headers)
        if etag:
            headers["If-None-Match"] = etag

        deadline = time.monotonic() + self.timeout_s
        try:
            with self._http.stream("GET", url, headers=headers) as resp:
                if resp.status_code == 304:
                    return NOT_MODIFIED
                if not 200 <= resp.status_code < 300:
                    return FAILED
                chunks: list[bytes] = []
                for chunk in resp.iter_bytes():
                    # A server trickling bytes never trips the per-read timeout.
                    if time.monotonic() > deadline:
                        return FAILED
                    chunks.append(chunk)
                if time.monotonic() > deadline:
                    return FAILED
                etag_header = resp.headers.get("etag")
        except httpx.HTTPError:
            return FAILED

        try:
            raw = json.loads(b"".join(chunks))
        except ValueError:
            return FAILED
        if not isinstance(raw, dict):
            return FAILED

        raw_prompts = raw.get("prompts")
        if not isinstance(raw_prompts, list):
            raw = {**raw, "prompts": None}
        try:
            payload = RegistryPayload.model_validate(raw)
        except ValidationError:
            return FAILED

        meta = RegistryMeta(
            version=payload.version or "unknown",
            etag=etag_header,
            fetched_at=self._clock(),
            prompt_count=len(raw_prompts) if isinstance(raw_prompts, list) else 0,
        )
        return FetchResult(FetchOutcome.FETCHED, payload=payload, meta=meta)
