"""Shared fixtures: stub collaborators and a ready-to-use orchestrator."""

from __future__ import annotations

from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

import pytest

from job_sentinel.config import GlobalConfig
from job_sentinel.engine import SourceScanner
from job_sentinel.errors import FetchError
from job_sentinel.infra import SQLiteManager, StateStore
from job_sentinel.notify import NotificationDispatcher
from job_sentinel.orchestrator import ScanOrchestrator


@pytest.fixture(autouse=True, scope="session")
def sentinel_home(tmp_path_factory: pytest.TempPathFactory) -> Iterable[Path]:
    home = tmp_path_factory.mktemp("sentinel-home")
    with pytest.MonkeyPatch.context() as patch:
        patch.setenv("JOB_SENTINEL_HOME", str(home))
        yield home


class ImmediateExecutor(Executor):
    """Run submitted callables inline so tests can observe side effects."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn, /, *args, **kwargs):  # noqa: ANN001
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:  # noqa: BLE001
            future.set_exception(exc)
        return future


class StubFetcher:
    """Serve canned documents per endpoint; exceptions are raised instead."""

    def __init__(self, pages: Mapping[str, str | Exception] | None = None) -> None:
        self.pages: dict[str, str | Exception] = dict(pages or {})
        self.calls: list[str] = []
        self.on_fetch: Callable[[str], None] | None = None

    def fetch(self, endpoint: str) -> str:
        self.calls.append(endpoint)
        if self.on_fetch is not None:
            self.on_fetch(endpoint)
        page = self.pages.get(endpoint)
        if page is None:
            raise FetchError("Network response was not ok: 404 Not Found")
        if isinstance(page, Exception):
            raise page
        return page

    def close(self) -> None:
        return None


class StubExtractor:
    """Map document text to pre-baked candidate lists."""

    def __init__(self, results: Mapping[str, Any] | None = None) -> None:
        self.results: dict[str, Any] = dict(results or {})

    def extract(self, source_name: str, raw_content: str):
        result = self.results.get(raw_content, [])
        if isinstance(result, Exception):
            raise result
        return result


class RecordingNotifier:
    def __init__(self, permission: str = "granted") -> None:
        self.permission = permission
        self.messages: list[str] = []

    def notify(self, summary: str) -> None:
        self.messages.append(summary)


class RecordingWebhook:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.posts: list[tuple[str, dict]] = []

    def post(self, url: str, payload: dict) -> None:
        self.posts.append((url, payload))
        if self.error is not None:
            raise self.error


@pytest.fixture
def global_config() -> GlobalConfig:
    return GlobalConfig(inter_source_delay_seconds=0)


@pytest.fixture
def fetcher() -> StubFetcher:
    return StubFetcher()


@pytest.fixture
def extractor() -> StubExtractor:
    return StubExtractor()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def webhook() -> RecordingWebhook:
    return RecordingWebhook()


@pytest.fixture
def executor() -> ImmediateExecutor:
    return ImmediateExecutor()


@pytest.fixture
def state_store(tmp_path: Path) -> StateStore:
    return StateStore(SQLiteManager(), tmp_path / "state.db")


@pytest.fixture
def make_orchestrator(
    fetcher: StubFetcher,
    extractor: StubExtractor,
    notifier: RecordingNotifier,
    webhook: RecordingWebhook,
    executor: ImmediateExecutor,
    global_config: GlobalConfig,
) -> Callable[..., ScanOrchestrator]:
    def _builder(**overrides: Any) -> ScanOrchestrator:
        dispatcher = NotificationDispatcher(executor, notifier=notifier, webhook_sender=webhook)
        options: dict[str, Any] = {
            "scanner": SourceScanner(fetcher, extractor),
            "dispatcher": dispatcher,
            "store": None,
            "global_config": global_config,
        }
        options.update(overrides)
        return ScanOrchestrator(**options)

    return _builder
