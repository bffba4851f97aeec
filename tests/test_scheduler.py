"""
Tests for the background scheduler setup and the per-hunt purge jobs.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.date import DateTrigger

from hunt_lifecycle import scheduler as scheduler_module
from hunt_lifecycle.background_tasks.hunt_cleanup_tasks import purge_waitlist_job


@pytest.fixture
def fake_scheduler(monkeypatch):
    """Installs a mock as the global scheduler and restores None afterwards."""
    instance = MagicMock()
    instance.running = True
    monkeypatch.setattr(scheduler_module, "scheduler", instance)
    return instance


@pytest.fixture
def no_scheduler(monkeypatch):
    monkeypatch.setattr(scheduler_module, "scheduler", None)


class TestInitScheduler:

    @pytest.fixture(autouse=True)
    def patched(self, monkeypatch, no_scheduler):
        scheduler_cls = MagicMock()
        monkeypatch.setattr(scheduler_module, "BackgroundScheduler", scheduler_cls)
        monkeypatch.setattr(scheduler_module, "_schedule_upcoming_purges", MagicMock(return_value=0))
        return scheduler_cls

    def test_registers_periodic_jobs_and_starts(self, patched):
        instance = scheduler_module.init_scheduler()

        assert instance is patched.return_value
        job_ids = [c.kwargs["id"] for c in instance.add_job.call_args_list]
        assert job_ids == ["expire_stale_requests", "purge_started_waitlists"]
        assert instance.add_listener.call_count == 2
        instance.start.assert_called_once()
        scheduler_module._schedule_upcoming_purges.assert_called_once()

    def test_second_init_returns_existing_instance(self, patched, caplog):
        first = scheduler_module.init_scheduler()
        second = scheduler_module.init_scheduler()

        assert first is second
        assert patched.call_count == 1
        assert "already initialized" in caplog.text

    def test_shutdown_clears_global(self, patched):
        instance = scheduler_module.init_scheduler()

        scheduler_module.shutdown_scheduler()

        instance.shutdown.assert_called_once_with(wait=True)
        assert scheduler_module.scheduler is None


class TestPrestartPurgeJobs:

    def test_schedules_one_second_before_start(self, fake_scheduler):
        start = datetime.now(timezone.utc) + timedelta(days=1)

        job_id = scheduler_module.schedule_prestart_purge("hnt_1", start)

        assert job_id == "prestart_purge:hnt_1"
        kwargs = fake_scheduler.add_job.call_args.kwargs
        assert kwargs["func"] is purge_waitlist_job
        assert kwargs["args"] == ["hnt_1"]
        assert kwargs["replace_existing"] is True
        assert isinstance(kwargs["trigger"], DateTrigger)
        assert kwargs["trigger"].run_date == start - timedelta(seconds=1)

    def test_past_start_is_left_to_fallback_sweep(self, fake_scheduler):
        start = datetime.now(timezone.utc) - timedelta(minutes=1)

        assert scheduler_module.schedule_prestart_purge("hnt_1", start) is None
        fake_scheduler.add_job.assert_not_called()

    def test_without_scheduler_nothing_is_scheduled(self, no_scheduler):
        start = datetime.now(timezone.utc) + timedelta(days=1)
        assert scheduler_module.schedule_prestart_purge("hnt_1", start) is None

    def test_cancel_removes_job(self, fake_scheduler):
        scheduler_module.cancel_prestart_purge("hnt_1")
        fake_scheduler.remove_job.assert_called_once_with("prestart_purge:hnt_1")

    def test_cancel_missing_job_is_ignored(self, fake_scheduler):
        fake_scheduler.remove_job.side_effect = JobLookupError("prestart_purge:hnt_1")
        scheduler_module.cancel_prestart_purge("hnt_1")


class TestSchedulerStatus:

    def test_not_initialized(self, no_scheduler):
        assert scheduler_module.get_scheduler_status() == {"status": "not_initialized", "jobs": []}

    def test_lists_jobs(self, fake_scheduler):
        job = MagicMock()
        job.id = "expire_stale_requests"
        job.name = "Expire Stale Hunt Requests"
        job.next_run_time = datetime(2026, 1, 10, 21, 0, tzinfo=timezone.utc)
        job.trigger = "interval[1:00:00]"
        fake_scheduler.get_jobs.return_value = [job]

        status = scheduler_module.get_scheduler_status()

        assert status["status"] == "running"
        assert status["jobs"] == [{
            "id": "expire_stale_requests",
            "name": "Expire Stale Hunt Requests",
            "next_run_time": "2026-01-10T21:00:00+00:00",
            "trigger": "interval[1:00:00]",
        }]
