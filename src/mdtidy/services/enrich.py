"""Enrichment coordinator — remote link previews and screenshots.

For a file whose frontmatter carries a ``url`` (or ``link``), two
independent field groups may be fetched concurrently:

- ``preview``: :data:`PREVIEW_FIELDS` from a metadata provider
- ``screenshot``: :data:`SCREENSHOT_FIELD` from a screenshot provider

Whether a group is needed is decided by key *presence*, not truthiness:
a field present with an empty string has already been attempted.  After
a successful response every group field that is still absent is written
as ``""`` for the same reason, so URLs that legitimately have no
metadata are not refetched forever.  A failed fetch writes nothing and is
retried on the next run.

Two concurrent passes over the same resource never issue two calls to
the same provider: the :class:`InFlightRegistry` is checked and updated
without an intervening ``await``, and the second caller skips.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Protocol
from urllib.parse import urlsplit, urlunsplit

from mdtidy.config.models import EnrichmentConfig
from mdtidy.domain.types import EnrichmentGroup
from mdtidy.services._helpers import now_iso

logger = logging.getLogger(__name__)

PREVIEW_FIELDS: tuple[str, ...] = (
    "og_image",
    "og_url",
    "video",
    "favicon",
    "site_name",
    "title",
    "description",
    "og_images",
)
SCREENSHOT_FIELD = "og_screenshot_url"
OG_FIELDS: tuple[str, ...] = (*PREVIEW_FIELDS, SCREENSHOT_FIELD)
LAST_FETCH_FIELD = "og_last_fetch"
LINK_FIELDS: tuple[str, ...] = ("url", "link")

_GROUP_FIELDS: dict[EnrichmentGroup, tuple[str, ...]] = {
    EnrichmentGroup.PREVIEW: PREVIEW_FIELDS,
    EnrichmentGroup.SCREENSHOT: (SCREENSHOT_FIELD,),
}

_EDGE_QUOTES_RE = re.compile(r"^['\"]|['\"]$")

Outcome = Literal["succeeded", "failed", "skipped"]


class PreviewProvider(Protocol):
    async def fetch_preview(self, url: str) -> Mapping[str, Any]: ...


class ScreenshotProvider(Protocol):
    async def fetch_screenshot(self, url: str) -> str | None: ...


class EnrichmentFailed(Exception):
    """Retry budget exhausted for one group of one resource."""


# ---------------------------------------------------------------------------
# Policy and registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retries with a doubling delay: ``base, 2*base, 4*base, ...``."""

    max_attempts: int = 3
    backoff_base: float = 1.0

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed *attempt* (1-based)."""
        return self.backoff_base * 2 ** (attempt - 1)


@dataclass(frozen=True)
class EnrichmentPolicy:
    preview: RetryPolicy = field(default_factory=lambda: RetryPolicy(max_attempts=3))
    screenshot: RetryPolicy = field(default_factory=lambda: RetryPolicy(max_attempts=2))

    @classmethod
    def from_config(cls, config: EnrichmentConfig) -> EnrichmentPolicy:
        return cls(
            preview=RetryPolicy(config.preview_max_attempts, config.backoff_base_seconds),
            screenshot=RetryPolicy(config.screenshot_max_attempts, config.backoff_base_seconds),
        )

    def for_group(self, group: EnrichmentGroup) -> RetryPolicy:
        return self.preview if group == EnrichmentGroup.PREVIEW else self.screenshot


class InFlightRegistry:
    """Set of ``(group, resource_key)`` pairs with a fetch outstanding."""

    def __init__(self) -> None:
        self._active: set[tuple[EnrichmentGroup, str]] = set()

    def try_acquire(self, group: EnrichmentGroup, key: str) -> bool:
        """Register a fetch; False if one is already running.  Never awaits."""
        entry = (group, key)
        if entry in self._active:
            return False
        self._active.add(entry)
        return True

    def release(self, group: EnrichmentGroup, key: str) -> None:
        self._active.discard((group, key))

    def __contains__(self, entry: object) -> bool:
        return entry in self._active

    def __len__(self) -> int:
        return len(self._active)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def needs_preview(frontmatter: Mapping[str, Any]) -> bool:
    return any(name not in frontmatter for name in PREVIEW_FIELDS)


def needs_screenshot(frontmatter: Mapping[str, Any]) -> bool:
    return SCREENSHOT_FIELD not in frontmatter


def normalize_url(raw: str) -> str | None:
    """Canonical form used as the resource key; None for non-http(s) values."""
    text = _EDGE_QUOTES_RE.sub("", raw.strip()).strip()
    parts = urlsplit(text)
    scheme = parts.scheme.lower()
    if scheme not in ("http", "https") or not parts.netloc:
        return None
    return urlunsplit((scheme, parts.netloc.lower(), parts.path, parts.query, ""))


def resource_key(frontmatter: Mapping[str, Any]) -> str | None:
    for name in LINK_FIELDS:
        value = frontmatter.get(name)
        if isinstance(value, str) and value.strip():
            return normalize_url(value)
    return None


def _clean(text: str) -> str:
    return _EDGE_QUOTES_RE.sub("", text.strip()).strip()


def _normalize_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        inner = value.get("url")
        return _normalize_value(inner) if isinstance(inner, str) else None
    if isinstance(value, (list, tuple)):
        items: list[str] = []
        for item in value:
            if isinstance(item, Mapping):
                item = item.get("url")
            if isinstance(item, str) and _clean(item):
                items.append(_clean(item))
        return items or None
    if isinstance(value, str):
        return _clean(value) or None
    if isinstance(value, (bool, int, float)):
        return value
    return None


def normalize_preview(raw: Mapping[str, Any], fields: tuple[str, ...] = OG_FIELDS) -> dict[str, Any]:
    """Keep *fields* whose value resolves to something non-empty.

    ``{"url": ...}`` objects collapse to their url, lists of them to a
    list of urls, strings are trimmed and stripped of stray edge quotes.
    """
    resolved: dict[str, Any] = {}
    for name in fields:
        value = _normalize_value(raw.get(name))
        if value is not None:
            resolved[name] = value
    return resolved


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == []


def merge_group(
    frontmatter: dict[str, Any], resolved: Mapping[str, Any], group_fields: tuple[str, ...]
) -> bool:
    """Merge a successful response into *frontmatter*; True if anything changed.

    Existing non-empty values are never overwritten.  Group fields the
    provider did not return are written as ``""`` only if absent.
    """
    changed = False
    for name in group_fields:
        current = frontmatter.get(name)
        if name in resolved:
            if _is_blank(current) and current != resolved[name]:
                frontmatter[name] = resolved[name]
                changed = True
        elif name not in frontmatter:
            frontmatter[name] = ""
            changed = True
    return changed


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GroupOutcome:
    group: EnrichmentGroup
    outcome: Outcome
    detail: str = ""


@dataclass(frozen=True)
class EnrichmentResult:
    updated: dict[str, Any]
    changed: bool
    outcomes: tuple[GroupOutcome, ...] = ()


class EnrichmentCoordinator:
    """Fetch missing preview/screenshot fields for one document at a time.

    The coordinator is safe to share across concurrently processed files;
    it owns its :class:`InFlightRegistry` unless one is injected.

    Args:
        preview_provider: Source of link-preview metadata, or None to disable.
        screenshot_provider: Source of screenshots, or None to disable.
        policy: Retry bounds and backoff per group.
        registry: In-flight set; a fresh one per coordinator by default.
        sleep: Awaitable delay, injectable so tests don't wait.
        clock: ``og_last_fetch`` timestamp source.
    """

    def __init__(
        self,
        preview_provider: PreviewProvider | None,
        screenshot_provider: ScreenshotProvider | None,
        *,
        policy: EnrichmentPolicy | None = None,
        registry: InFlightRegistry | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], str] = now_iso,
    ) -> None:
        self._preview = preview_provider
        self._screenshot = screenshot_provider
        self._policy = policy or EnrichmentPolicy()
        self.registry = registry if registry is not None else InFlightRegistry()
        self._sleep = sleep
        self._clock = clock

    async def process(self, frontmatter: Mapping[str, Any], file_path: Path) -> EnrichmentResult:
        """Fetch and merge whatever groups *frontmatter* lacks.

        The input is not mutated.  ``changed`` is False, and
        ``og_last_fetch`` untouched, when no field value changed.
        """
        updated = dict(frontmatter)
        key = resource_key(updated)
        if key is None:
            return EnrichmentResult(updated, changed=False)

        jobs: list[Awaitable[tuple[GroupOutcome, dict[str, Any] | None]]] = []
        if self._preview is not None and needs_preview(updated):
            jobs.append(self._run(EnrichmentGroup.PREVIEW, key, file_path))
        if self._screenshot is not None and needs_screenshot(updated):
            jobs.append(self._run(EnrichmentGroup.SCREENSHOT, key, file_path))
        if not jobs:
            return EnrichmentResult(updated, changed=False)

        changed = False
        outcomes: list[GroupOutcome] = []
        for outcome, resolved in await asyncio.gather(*jobs):
            outcomes.append(outcome)
            if resolved is not None:
                changed |= merge_group(updated, resolved, _GROUP_FIELDS[outcome.group])

        if changed:
            updated[LAST_FETCH_FIELD] = self._clock()
        return EnrichmentResult(updated, changed=changed, outcomes=tuple(outcomes))

    async def _run(
        self, group: EnrichmentGroup, key: str, file_path: Path
    ) -> tuple[GroupOutcome, dict[str, Any] | None]:
        if not self.registry.try_acquire(group, key):
            logger.info("%s fetch for %s already in flight; skipping %s", group, key, file_path)
            return GroupOutcome(group, "skipped", "already in flight"), None
        try:
            resolved = await self._with_retry(group, key)
        except EnrichmentFailed as exc:
            logger.warning("%s fetch for %s gave up: %s", group, key, exc.__cause__)
            return GroupOutcome(group, "failed", str(exc.__cause__ or exc)), None
        finally:
            self.registry.release(group, key)
        return GroupOutcome(group, "succeeded"), resolved

    async def _with_retry(self, group: EnrichmentGroup, key: str) -> dict[str, Any]:
        policy = self._policy.for_group(group)
        last_error: Exception | None = None
        for attempt in range(1, policy.max_attempts + 1):
            try:
                return await self._fetch(group, key)
            except Exception as exc:
                last_error = exc
                logger.info(
                    "%s fetch for %s failed (attempt %d/%d): %s",
                    group,
                    key,
                    attempt,
                    policy.max_attempts,
                    exc,
                )
                if attempt < policy.max_attempts:
                    await self._sleep(policy.delay(attempt))
        msg = f"{group} fetch failed after {policy.max_attempts} attempts"
        raise EnrichmentFailed(msg) from last_error

    async def _fetch(self, group: EnrichmentGroup, key: str) -> dict[str, Any]:
        if group == EnrichmentGroup.PREVIEW:
            assert self._preview is not None
            raw = await self._preview.fetch_preview(key)
            return normalize_preview(raw, PREVIEW_FIELDS)
        assert self._screenshot is not None
        shot = await self._screenshot.fetch_screenshot(key)
        return normalize_preview({SCREENSHOT_FIELD: shot}, (SCREENSHOT_FIELD,))
