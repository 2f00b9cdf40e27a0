"""Tests for EnrichmentCoordinator and its pure helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pytest

from mdtidy.config.models import EnrichmentConfig
from mdtidy.domain.types import EnrichmentGroup
from mdtidy.services.enrich import (
    LAST_FETCH_FIELD,
    OG_FIELDS,
    PREVIEW_FIELDS,
    SCREENSHOT_FIELD,
    EnrichmentCoordinator,
    EnrichmentPolicy,
    InFlightRegistry,
    RetryPolicy,
    merge_group,
    needs_preview,
    needs_screenshot,
    normalize_preview,
    normalize_url,
    resource_key,
)

STAMP = "2024-06-01T12:00:00+00:00"
NOTE = Path("content/tooling/tool.md")


class FakeProvider:
    """Scripted preview + screenshot provider that records calls."""

    def __init__(
        self,
        preview: Mapping[str, Any] | None = None,
        screenshot: str | None = "https://shots.example/1.png",
        *,
        preview_failures: int = 0,
        screenshot_failures: int = 0,
    ) -> None:
        self.preview = dict(preview or {"title": "Example", "site_name": "Example Inc"})
        self.screenshot = screenshot
        self.preview_failures = preview_failures
        self.screenshot_failures = screenshot_failures
        self.preview_calls: list[str] = []
        self.screenshot_calls: list[str] = []

    async def fetch_preview(self, url: str) -> Mapping[str, Any]:
        self.preview_calls.append(url)
        if self.preview_failures:
            self.preview_failures -= 1
            raise ConnectionError("preview down")
        return self.preview

    async def fetch_screenshot(self, url: str) -> str | None:
        self.screenshot_calls.append(url)
        if self.screenshot_failures:
            self.screenshot_failures -= 1
            raise TimeoutError("screenshot timed out")
        return self.screenshot


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _coordinator(
    provider: FakeProvider, sleep: RecordingSleep | None = None, **kwargs: Any
) -> EnrichmentCoordinator:
    return EnrichmentCoordinator(
        provider,
        provider,
        sleep=sleep or RecordingSleep(),
        clock=lambda: STAMP,
        **kwargs,
    )


class TestHelpers:
    def test_needs_is_presence_based(self) -> None:
        complete = {name: "" for name in OG_FIELDS}
        assert not needs_preview(complete)
        assert not needs_screenshot(complete)
        partial = {name: "x" for name in PREVIEW_FIELDS[:-1]}
        assert needs_preview(partial)
        assert needs_screenshot(partial)

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("https://Example.COM/Path?q=1#frag", "https://example.com/Path?q=1"),
            ("  'http://example.com'  ", "http://example.com"),
            ("mailto:someone@example.com", None),
            ("example.com", None),
        ],
    )
    def test_normalize_url(self, raw: str, expected: str | None) -> None:
        assert normalize_url(raw) == expected

    def test_resource_key_prefers_url_then_link(self) -> None:
        assert resource_key({"link": "https://b.example"}) == "https://b.example"
        assert resource_key({"url": "https://a.example", "link": "https://b.example"}) == (
            "https://a.example"
        )
        assert resource_key({"url": "  "}) is None
        assert resource_key({}) is None

    def test_normalize_preview(self) -> None:
        raw = {
            "title": "  'Quoted Title'  ",
            "description": "",
            "og_image": {"url": "https://img.example/a.png"},
            "og_images": [{"url": "https://img.example/1.png"}, "https://img.example/2.png", {}],
            "video": None,
            "unrelated": "dropped",
        }
        assert normalize_preview(raw) == {
            "title": "Quoted Title",
            "og_image": "https://img.example/a.png",
            "og_images": ["https://img.example/1.png", "https://img.example/2.png"],
        }

    def test_merge_group_never_overwrites(self) -> None:
        fm: dict[str, Any] = {"title": "Mine", "site_name": ""}
        changed = merge_group(fm, {"title": "Theirs", "site_name": "Site"}, ("title", "site_name"))
        assert changed
        assert fm == {"title": "Mine", "site_name": "Site"}

    def test_merge_group_marks_unreturned_fields(self) -> None:
        fm: dict[str, Any] = {"favicon": "keep"}
        merge_group(fm, {}, ("favicon", "video"))
        assert fm == {"favicon": "keep", "video": ""}

    def test_retry_policy_doubles(self) -> None:
        policy = RetryPolicy(max_attempts=4, backoff_base=0.5)
        assert [policy.delay(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]

    def test_policy_from_config(self) -> None:
        policy = EnrichmentPolicy.from_config(
            EnrichmentConfig(preview_max_attempts=5, screenshot_max_attempts=1)
        )
        assert policy.for_group(EnrichmentGroup.PREVIEW).max_attempts == 5
        assert policy.for_group(EnrichmentGroup.SCREENSHOT).max_attempts == 1


class TestInFlightRegistry:
    def test_acquire_release(self) -> None:
        registry = InFlightRegistry()
        assert registry.try_acquire(EnrichmentGroup.PREVIEW, "k")
        assert not registry.try_acquire(EnrichmentGroup.PREVIEW, "k")
        assert registry.try_acquire(EnrichmentGroup.SCREENSHOT, "k")
        assert (EnrichmentGroup.PREVIEW, "k") in registry
        registry.release(EnrichmentGroup.PREVIEW, "k")
        assert len(registry) == 1

    def test_coordinators_do_not_share_state(self) -> None:
        first = _coordinator(FakeProvider())
        second = _coordinator(FakeProvider())
        assert first.registry is not second.registry


class TestProcess:
    def test_no_url_does_nothing(self) -> None:
        provider = FakeProvider()
        result = asyncio.run(_coordinator(provider).process({"title": "x"}, NOTE))
        assert not result.changed
        assert provider.preview_calls == provider.screenshot_calls == []

    def test_fully_enriched_makes_zero_calls(self) -> None:
        provider = FakeProvider()
        fm = {"url": "https://example.com", **{name: "" for name in OG_FIELDS}}
        fm[LAST_FETCH_FIELD] = "2024-01-01T00:00:00+00:00"

        result = asyncio.run(_coordinator(provider).process(fm, NOTE))
        assert not result.changed
        assert result.updated == fm
        assert provider.preview_calls == provider.screenshot_calls == []

    def test_fetches_both_groups_and_stamps(self) -> None:
        provider = FakeProvider()
        fm = {"url": "https://example.com"}

        result = asyncio.run(_coordinator(provider).process(fm, NOTE))
        assert result.changed
        assert fm == {"url": "https://example.com"}
        assert result.updated["title"] == "Example"
        assert result.updated["site_name"] == "Example Inc"
        assert result.updated["favicon"] == ""
        assert result.updated[SCREENSHOT_FIELD] == "https://shots.example/1.png"
        assert result.updated[LAST_FETCH_FIELD] == STAMP
        assert provider.preview_calls == ["https://example.com"]
        assert {o.outcome for o in result.outcomes} == {"succeeded"}

    def test_only_missing_group_fetched(self) -> None:
        provider = FakeProvider()
        fm = {"url": "https://example.com", **{name: "" for name in PREVIEW_FIELDS}}

        result = asyncio.run(_coordinator(provider).process(fm, NOTE))
        assert provider.preview_calls == []
        assert provider.screenshot_calls == ["https://example.com"]
        assert [o.group for o in result.outcomes] == [EnrichmentGroup.SCREENSHOT]

    def test_retries_with_exponential_backoff(self) -> None:
        provider = FakeProvider(preview_failures=2)
        sleep = RecordingSleep()
        coordinator = _coordinator(
            provider,
            sleep,
            policy=EnrichmentPolicy(preview=RetryPolicy(3, 1.0), screenshot=RetryPolicy(2, 1.0)),
        )
        fm = {"url": "https://example.com", SCREENSHOT_FIELD: ""}

        result = asyncio.run(coordinator.process(fm, NOTE))
        assert len(provider.preview_calls) == 3
        assert sleep.delays == [1.0, 2.0]
        assert result.updated["title"] == "Example"

    def test_exhausted_retries_leave_fields_unset(self) -> None:
        provider = FakeProvider(preview_failures=10, screenshot_failures=10)
        sleep = RecordingSleep()
        fm = {"url": "https://example.com"}

        result = asyncio.run(_coordinator(provider, sleep).process(fm, NOTE))
        assert not result.changed
        assert result.updated == fm
        assert LAST_FETCH_FIELD not in result.updated
        assert len(provider.preview_calls) == 3
        assert len(provider.screenshot_calls) == 2
        assert sorted(sleep.delays) == [1.0, 1.0, 2.0]
        assert {o.outcome for o in result.outcomes} == {"failed"}

    def test_failure_does_not_poison_next_run(self) -> None:
        provider = FakeProvider(preview_failures=3, screenshot_failures=2)
        coordinator = _coordinator(provider)
        fm = {"url": "https://example.com"}

        first = asyncio.run(coordinator.process(fm, NOTE))
        second = asyncio.run(coordinator.process(first.updated, NOTE))
        assert not first.changed
        assert second.changed
        assert second.updated["title"] == "Example"
        assert len(coordinator.registry) == 0

    def test_partial_success_keeps_successful_group(self) -> None:
        provider = FakeProvider(screenshot_failures=5)
        result = asyncio.run(_coordinator(provider).process({"url": "https://example.com"}, NOTE))
        assert result.changed
        assert SCREENSHOT_FIELD not in result.updated
        assert result.updated[LAST_FETCH_FIELD] == STAMP

    def test_empty_screenshot_is_recorded_as_attempted(self) -> None:
        provider = FakeProvider(screenshot=None)
        fm = {"url": "https://example.com", **{name: "" for name in PREVIEW_FIELDS}}
        result = asyncio.run(_coordinator(provider).process(fm, NOTE))
        assert result.updated[SCREENSHOT_FIELD] == ""
        assert not needs_screenshot(result.updated)

    def test_concurrent_same_resource_issues_one_call(self) -> None:
        release = asyncio.Event()

        class SlowProvider(FakeProvider):
            async def fetch_preview(self, url: str) -> Mapping[str, Any]:
                self.preview_calls.append(url)
                await release.wait()
                return self.preview

        provider = SlowProvider()
        coordinator = _coordinator(provider)
        fm = {"url": "https://example.com", SCREENSHOT_FIELD: ""}

        async def scenario() -> tuple[Any, Any]:
            first = asyncio.create_task(coordinator.process(fm, Path("a.md")))
            while not provider.preview_calls:
                await asyncio.sleep(0)
            second = await coordinator.process(fm, Path("b.md"))
            release.set()
            return await first, second

        first, second = asyncio.run(scenario())
        assert provider.preview_calls == ["https://example.com"]
        assert first.changed
        assert not second.changed
        assert second.outcomes[0].outcome == "skipped"
        assert len(coordinator.registry) == 0

    def test_disabled_provider_skips_group(self) -> None:
        provider = FakeProvider()
        coordinator = EnrichmentCoordinator(provider, None, clock=lambda: STAMP)
        result = asyncio.run(coordinator.process({"url": "https://example.com"}, NOTE))
        assert provider.screenshot_calls == []
        assert SCREENSHOT_FIELD not in result.updated
