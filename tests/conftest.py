"""Pytest configuration and fixtures."""

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from domains.base import ChatGateway
from domains.reminders import (
    DeliveryWorker,
    DestinationUnavailable,
    JobScheduler,
    JobStore,
    ReminderInteractions,
    ReminderManager,
    ReminderRecord,
)

USER_A = 111
USER_B = 222
GUILD = 900
OTHER_GUILD = 901
CHANNEL = 500


class FakeGateway(ChatGateway):
    """In-memory chat gateway that records what was sent."""

    def __init__(self):
        self.sent: list[tuple[int, str, object]] = []
        self.unreachable_channels: set[int] = set()
        self.unknown_users: set[int] = set()

    async def destination_mention(self, channel_id: int) -> str:
        if channel_id in self.unreachable_channels:
            raise DestinationUnavailable(f"Channel ID is unexpected: {channel_id}")
        return f"<#{channel_id}>"

    async def user_mention(self, user_id: int) -> str:
        if user_id in self.unknown_users:
            raise DestinationUnavailable(f"User ID is unexpected: {user_id}")
        return f"<@{user_id}>"

    async def send(self, channel_id: int, content: str, document) -> None:
        if channel_id in self.unreachable_channels:
            raise DestinationUnavailable(f"Channel ID is unexpected: {channel_id}")
        self.sent.append((channel_id, content, document))


@pytest.fixture
def job_store(tmp_path):
    """A fresh job database for each test."""
    store = JobStore(str(tmp_path / "jobs.db"))
    yield store
    store.close()


@pytest.fixture
def job_scheduler(job_store):
    """JobScheduler with a stopped APScheduler (triggers are only recorded)."""
    return JobScheduler(job_store, scheduler=AsyncIOScheduler(timezone=timezone.utc))


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def manager(job_scheduler, gateway):
    return ReminderManager(job_scheduler, gateway)


@pytest.fixture
def interactions(manager):
    return ReminderInteractions(manager)


@pytest.fixture
def delivery(job_scheduler, gateway):
    worker = DeliveryWorker(job_scheduler, gateway)
    worker.register()
    return worker


@pytest.fixture
def make_record():
    """Build a ReminderRecord with sensible defaults."""
    def _make(description="pay rent", user_id=USER_A, guild_id=GUILD, channel_id=CHANNEL, message_url=None):
        return ReminderRecord(
            user_id=user_id,
            channel_id=channel_id,
            guild_id=guild_id,
            description=description,
            message_url=message_url
        )
    return _make


@pytest.fixture
def add_reminders(job_scheduler, make_record):
    """Store reminders directly, ``hours`` apart, in the order given."""
    def _add(*descriptions, user_id=USER_A, guild_id=GUILD, start_hours=1):
        now = datetime.now(timezone.utc)
        jobs = []
        for i, description in enumerate(descriptions):
            record = make_record(description, user_id=user_id, guild_id=guild_id)
            jobs.append(job_scheduler.create_and_schedule(
                "reminder", record.to_dict(), now + timedelta(hours=start_hours + i)
            ))
        return jobs
    return _add
