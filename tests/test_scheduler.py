import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from pingsync.core.category_registry import Category
from pingsync.core.errors import SinkFatalError
from pingsync.engine.orchestrator import SyncOrchestrator
from pingsync.scheduler.jobs import SYNC_JOB_ID, start_scheduler, stop_scheduler, sync_job

from conftest import FakeEndpoints, FakeSink, InMemoryManifest


@pytest.mark.asyncio
async def test_interval_job_is_registered(config):
    config.sync_interval_minutes = 10
    orchestrator = SyncOrchestrator(endpoints=FakeEndpoints(), sink=FakeSink(), manifest=InMemoryManifest(), config=config)
    scheduler = AsyncIOScheduler()

    start_scheduler(orchestrator, config, target=scheduler)
    try:
        job = scheduler.get_job(SYNC_JOB_ID)
        assert job is not None
        assert job.trigger.interval.total_seconds() == 600
        assert job.max_instances == 1
        assert job.coalesce is True
    finally:
        stop_scheduler(scheduler)


@pytest.mark.asyncio
async def test_disabled_scheduler_registers_nothing(config):
    config.scheduler_enabled = False
    orchestrator = SyncOrchestrator(endpoints=FakeEndpoints(), sink=FakeSink(), manifest=InMemoryManifest(), config=config)
    scheduler = AsyncIOScheduler()

    start_scheduler(orchestrator, config, target=scheduler)

    assert not scheduler.running
    assert scheduler.get_jobs() == []


@pytest.mark.asyncio
async def test_sync_job_survives_aborted_run(config, check, tm):
    endpoints = FakeEndpoints(
        entities=[check, tm],
        results={(tm.id, Category.OUTAGE): [{"timefrom": 100, "timeto": 200, "status": "up"}]},
    )
    sink = FakeSink(fail_when=lambda points: SinkFatalError("down", 503))
    orchestrator = SyncOrchestrator(endpoints=endpoints, sink=sink, manifest=InMemoryManifest(), config=config)

    await sync_job(orchestrator)

    assert not orchestrator.running
    assert sink.batches == []
