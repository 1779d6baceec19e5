from __future__ import annotations

import logging
import threading

from job_sentinel.config import GlobalConfig
from job_sentinel.logging_conf import source_logger
from job_sentinel.models import LogLevel, MonitorSettings, MonitorStatus, SourceStatus
from job_sentinel.notify import DeliveryPool, NotificationDispatcher

ACME = "https://acme.example/careers"
GLOBEX = "https://globex.example/jobs"


def _serve(fetcher, extractor, url: str, jobs: list[dict]) -> None:
    fetcher.pages[url] = f"doc:{url}"
    extractor.results[f"doc:{url}"] = jobs


def _jobs(prefix: str, count: int) -> list[dict]:
    return [{"title": f"{prefix} {i}", "url": f"/{prefix}/{i}"} for i in range(count)]


def test_cycle_scans_sources_in_order_and_merges(make_orchestrator, fetcher, extractor):
    _serve(fetcher, extractor, ACME, _jobs("eng", 2))
    _serve(fetcher, extractor, GLOBEX, _jobs("ops", 1))
    orchestrator = make_orchestrator()
    orchestrator.add_source("Acme", ACME)
    orchestrator.add_source("Globex", GLOBEX)

    summary = orchestrator.run_cycle()

    assert fetcher.calls == [ACME, GLOBEX]
    assert summary.sources_scanned == 2
    assert summary.new_records == 3
    assert summary.errors == 0
    assert [job.source_name for job in orchestrator.jobs] == ["Globex", "Acme", "Acme"]
    assert [entry.message for entry in orchestrator.logs] == [
        "Scanned Globex: Found 1 jobs (1 new).",
        "Scanned Acme: Found 2 jobs (2 new).",
    ]
    assert [source.job_count for source in orchestrator.sources] == [2, 1]
    assert orchestrator.status is MonitorStatus.IDLE


def test_second_cycle_only_reports_unseen_postings(make_orchestrator, fetcher, extractor):
    _serve(fetcher, extractor, ACME, _jobs("eng", 2))
    orchestrator = make_orchestrator()
    orchestrator.add_source("Acme", ACME)
    orchestrator.run_cycle()

    _serve(fetcher, extractor, ACME, _jobs("eng", 3))
    summary = orchestrator.run_cycle()

    assert summary.new_records == 1
    assert len(orchestrator.jobs) == 3
    assert orchestrator.jobs[0].title == "eng 2"
    assert orchestrator.logs[0].message == "Scanned Acme: Found 3 jobs (1 new)."


def test_failing_source_does_not_stop_the_cycle(make_orchestrator, fetcher, extractor):
    _serve(fetcher, extractor, GLOBEX, _jobs("ops", 1))
    orchestrator = make_orchestrator()
    broken = orchestrator.add_source("Broken", "https://broken.example")
    orchestrator.add_source("Globex", GLOBEX)

    summary = orchestrator.run_cycle()

    assert summary.errors == 1
    assert summary.new_records == 1
    failed = orchestrator.find_source(broken.id)
    assert failed.status is SourceStatus.ERROR
    assert "404" in failed.last_error
    assert orchestrator.logs[1].level is LogLevel.ERROR


def test_empty_configuration_is_a_no_op(make_orchestrator):
    orchestrator = make_orchestrator()

    assert orchestrator.run_cycle() is None
    assert orchestrator.logs == ()


def test_status_is_scanning_while_a_cycle_runs(make_orchestrator, fetcher, extractor):
    _serve(fetcher, extractor, ACME, [])
    orchestrator = make_orchestrator()
    orchestrator.add_source("Acme", ACME)
    observed = []
    fetcher.on_fetch = lambda endpoint: observed.append(orchestrator.status)

    orchestrator.run_cycle()

    assert observed == [MonitorStatus.SCANNING]
    assert orchestrator.status is MonitorStatus.IDLE


def test_reentrant_cycle_request_is_rejected(make_orchestrator, fetcher, extractor):
    _serve(fetcher, extractor, ACME, _jobs("eng", 1))
    orchestrator = make_orchestrator()
    orchestrator.add_source("Acme", ACME)
    nested = []
    fetcher.on_fetch = lambda endpoint: nested.append(orchestrator.run_cycle())

    orchestrator.run_cycle()

    assert nested == [None]
    assert len(fetcher.calls) == 1
    assert len(orchestrator.logs) == 1


def test_source_removed_mid_cycle_is_skipped_and_not_resurrected(
    make_orchestrator, fetcher, extractor
):
    _serve(fetcher, extractor, ACME, _jobs("eng", 1))
    _serve(fetcher, extractor, GLOBEX, _jobs("ops", 1))
    orchestrator = make_orchestrator()
    acme = orchestrator.add_source("Acme", ACME)
    globex = orchestrator.add_source("Globex", GLOBEX)

    def _remove(endpoint: str) -> None:
        if endpoint == ACME:
            orchestrator.remove_source(acme.id)
            orchestrator.remove_source(globex.id)

    fetcher.on_fetch = _remove

    summary = orchestrator.run_cycle()

    assert orchestrator.sources == ()
    assert fetcher.calls == [ACME]
    assert summary.sources_scanned == 1


def test_source_added_mid_cycle_survives_and_waits(make_orchestrator, fetcher, extractor):
    _serve(fetcher, extractor, ACME, _jobs("eng", 1))
    orchestrator = make_orchestrator()
    orchestrator.add_source("Acme", ACME)
    fetcher.on_fetch = lambda endpoint: (
        orchestrator.add_source("Late", "https://late.example") if endpoint == ACME else None
    )

    orchestrator.run_cycle()

    assert [source.name for source in orchestrator.sources] == ["Acme", "Late"]
    assert fetcher.calls == [ACME]
    assert orchestrator.sources[0].job_count == 1


def test_records_and_logs_are_capped(make_orchestrator, fetcher, extractor):
    _serve(fetcher, extractor, ACME, _jobs("eng", 8))
    orchestrator = make_orchestrator(
        global_config=GlobalConfig(inter_source_delay_seconds=0, max_records=5, max_log_entries=2)
    )
    orchestrator.add_source("Acme", ACME)

    orchestrator.run_cycle()
    assert [job.title for job in orchestrator.jobs] == [f"eng {i}" for i in range(5)]

    for _ in range(2):
        orchestrator.run_cycle()

    assert len(orchestrator.jobs) == 5
    assert len(orchestrator.logs) == 2


def test_default_caps_hold_over_many_cycles(make_orchestrator, fetcher, extractor):
    orchestrator = make_orchestrator()
    orchestrator.add_source("Acme", ACME)
    for cycle in range(60):
        _serve(fetcher, extractor, ACME, _jobs(f"c{cycle}", 10))
        orchestrator.run_cycle()

    assert len(orchestrator.jobs) == 500
    assert len(orchestrator.logs) == 50
    assert orchestrator.jobs[0].title.startswith("c59")


def test_inter_source_delay_skipped_after_last_source(make_orchestrator, fetcher, extractor):
    pauses: list[float] = []
    _serve(fetcher, extractor, ACME, [])
    _serve(fetcher, extractor, GLOBEX, [])
    orchestrator = make_orchestrator(
        global_config=GlobalConfig(inter_source_delay_seconds=1.0), sleep=pauses.append
    )
    orchestrator.add_source("Acme", ACME)
    orchestrator.add_source("Globex", GLOBEX)

    orchestrator.run_cycle()

    assert pauses == [1.0]


def test_new_records_trigger_notifications(
    make_orchestrator, fetcher, extractor, notifier, webhook
):
    _serve(fetcher, extractor, ACME, _jobs("eng", 2))
    _serve(fetcher, extractor, GLOBEX, [])
    orchestrator = make_orchestrator()
    orchestrator.update_settings(
        MonitorSettings(enable_browser_notifications=True, webhook_url="https://hooks.example/x")
    )
    orchestrator.add_source("Acme", ACME)
    orchestrator.add_source("Globex", GLOBEX)

    orchestrator.run_cycle()

    assert notifier.messages == ["Found 2 new jobs at Acme"]
    assert [url for url, _ in webhook.posts] == ["https://hooks.example/x"]


def test_webhook_failure_does_not_affect_cycle(
    make_orchestrator, fetcher, extractor, webhook
):
    webhook.error = RuntimeError("hook down")
    _serve(fetcher, extractor, ACME, _jobs("eng", 1))
    orchestrator = make_orchestrator()
    orchestrator.update_settings(MonitorSettings(webhook_url="https://hooks.example/x"))
    orchestrator.add_source("Acme", ACME)

    summary = orchestrator.run_cycle()

    assert summary.new_records == 1
    assert len(webhook.posts) == 1
    assert orchestrator.sources[0].status is SourceStatus.ACTIVE


def test_state_round_trips_through_store(
    make_orchestrator, fetcher, extractor, state_store
):
    _serve(fetcher, extractor, ACME, _jobs("eng", 2))
    first = make_orchestrator(store=state_store)
    first.add_source("Acme", ACME)
    first.update_settings(MonitorSettings(check_interval_minutes=15))
    first.run_cycle()

    second = make_orchestrator(store=state_store)

    assert [source.name for source in second.sources] == ["Acme"]
    assert second.sources[0].job_count == 2
    assert [job.id for job in second.jobs] == [job.id for job in first.jobs]
    assert second.settings.check_interval_minutes == 15
    assert second.logs == ()
    assert second.run_cycle().new_records == 0


def test_corrupt_state_items_are_dropped(make_orchestrator, state_store):
    state_store.save("sentinel_sites", [{"name": "Acme", "url": ACME}, {"name": ""}])
    state_store.save("sentinel_jobs", {"not": "a list"})
    state_store.save("sentinel_settings", {"checkIntervalMinutes": -5})

    orchestrator = make_orchestrator(store=state_store)

    assert [source.name for source in orchestrator.sources] == ["Acme"]
    assert orchestrator.jobs == ()
    assert orchestrator.settings == MonitorSettings()


def test_mark_all_seen_and_clear_jobs(make_orchestrator, fetcher, extractor):
    _serve(fetcher, extractor, ACME, _jobs("eng", 3))
    orchestrator = make_orchestrator()
    orchestrator.add_source("Acme", ACME)
    orchestrator.run_cycle()

    assert orchestrator.mark_all_seen() == 3
    assert not any(job.is_new for job in orchestrator.jobs)
    assert orchestrator.mark_all_seen() == 0

    orchestrator.clear_jobs()
    assert orchestrator.jobs == ()
    assert orchestrator.run_cycle().new_records == 3


def test_settings_listeners_and_reload(make_orchestrator, state_store):
    orchestrator = make_orchestrator(store=state_store)
    received: list[MonitorSettings] = []
    orchestrator.subscribe_settings(received.append)

    assert orchestrator.reload_settings() is False

    state_store.save("sentinel_settings", MonitorSettings(check_interval_minutes=5).to_payload())
    assert orchestrator.reload_settings() is True
    assert orchestrator.settings.check_interval_minutes == 5
    assert [settings.check_interval_minutes for settings in received] == [5]


def test_settings_change_is_seen_by_next_cycle_only(
    make_orchestrator, fetcher, extractor, webhook
):
    _serve(fetcher, extractor, ACME, _jobs("eng", 1))
    orchestrator = make_orchestrator()
    orchestrator.add_source("Acme", ACME)

    def _enable(endpoint: str) -> None:
        orchestrator.update_settings(MonitorSettings(webhook_url="https://hooks.example/x"))

    fetcher.on_fetch = _enable
    orchestrator.run_cycle()
    assert webhook.posts == []

    fetcher.on_fetch = None
    _serve(fetcher, extractor, ACME, _jobs("eng", 2))
    orchestrator.run_cycle()
    assert len(webhook.posts) == 1


def test_find_source_by_id_name_and_prefix(make_orchestrator):
    orchestrator = make_orchestrator()
    acme = orchestrator.add_source("Acme", ACME)

    assert orchestrator.find_source(acme.id) == acme
    assert orchestrator.find_source("acme") == acme
    assert orchestrator.find_source(acme.id[:6]) == acme
    assert orchestrator.find_source("missing") is None
    assert orchestrator.remove_source("missing") is False


def test_sources_added_by_another_instance_survive_a_cycle(
    make_orchestrator, fetcher, extractor, state_store
):
    _serve(fetcher, extractor, ACME, _jobs("eng", 1))
    watcher = make_orchestrator(store=state_store)
    watcher.add_source("Acme", ACME)
    make_orchestrator(store=state_store).add_source("Late", GLOBEX)
    _serve(fetcher, extractor, GLOBEX, _jobs("ops", 1))

    summary = watcher.run_cycle()

    stored = [site["name"] for site in state_store.load("sentinel_sites")]
    assert stored == ["Acme", "Late"]
    assert summary.sources_scanned == 2
    assert [source.name for source in watcher.sources] == ["Acme", "Late"]


def test_source_removed_by_another_instance_mid_cycle_stays_removed(
    make_orchestrator, fetcher, extractor, state_store
):
    _serve(fetcher, extractor, ACME, _jobs("eng", 1))
    _serve(fetcher, extractor, GLOBEX, _jobs("ops", 1))
    watcher = make_orchestrator(store=state_store)
    acme = watcher.add_source("Acme", ACME)
    globex = watcher.add_source("Globex", GLOBEX)
    other = make_orchestrator(store=state_store)

    def _remove(endpoint: str) -> None:
        if endpoint == ACME:
            other.remove_source(acme.id)
            other.remove_source(globex.id)

    fetcher.on_fetch = _remove

    summary = watcher.run_cycle()

    assert state_store.load("sentinel_sites") == []
    assert watcher.sources == ()
    assert fetcher.calls == [ACME]
    assert summary.sources_scanned == 1


def test_job_edits_by_another_instance_are_not_reverted(
    make_orchestrator, fetcher, extractor, state_store
):
    _serve(fetcher, extractor, ACME, _jobs("eng", 2))
    watcher = make_orchestrator(store=state_store)
    watcher.add_source("Acme", ACME)
    watcher.run_cycle()

    assert make_orchestrator(store=state_store).mark_all_seen() == 2
    watcher.run_cycle()
    assert not any(job["isNew"] for job in state_store.load("sentinel_jobs"))

    make_orchestrator(store=state_store).clear_jobs()
    _serve(fetcher, extractor, GLOBEX, [])
    watcher.add_source("Globex", GLOBEX)
    watcher.run_cycle()
    assert len(state_store.load("sentinel_jobs")) == 2
    assert all(job["isNew"] for job in state_store.load("sentinel_jobs"))


def test_slow_webhook_does_not_hold_up_the_cycle(make_orchestrator, fetcher, extractor):
    release = threading.Event()
    delivered: list[str] = []

    class BlockingWebhook:
        def post(self, url: str, payload: dict) -> None:
            release.wait(timeout=10)
            delivered.append(url)

    _serve(fetcher, extractor, ACME, _jobs("eng", 1))
    _serve(fetcher, extractor, GLOBEX, _jobs("ops", 1))
    pool = DeliveryPool(workers=1)
    orchestrator = make_orchestrator(
        dispatcher=NotificationDispatcher(pool, webhook_sender=BlockingWebhook())
    )
    orchestrator.update_settings(MonitorSettings(webhook_url="https://hooks.example/x"))
    orchestrator.add_source("Acme", ACME)
    orchestrator.add_source("Globex", GLOBEX)

    try:
        summary = orchestrator.run_cycle()

        assert not release.is_set()
        assert fetcher.calls == [ACME, GLOBEX]
        assert summary.new_records == 2
        assert delivered == []
    finally:
        release.set()
        pool.shutdown(wait=True)
    assert delivered == ["https://hooks.example/x", "https://hooks.example/x"]


def test_removing_a_source_closes_its_log_handlers(make_orchestrator):
    orchestrator = make_orchestrator()
    source = orchestrator.add_source("Short Lived", ACME)
    source_logger(source.name)
    py_logger = logging.getLogger("job_sentinel.source.short-lived")
    assert py_logger.handlers

    orchestrator.remove_source(source.id)

    assert py_logger.handlers == []
