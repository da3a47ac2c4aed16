"""Tests for maintenance windows: scheduled end, forced end and history."""
from datetime import datetime, timedelta

import pytest

from app.exceptions import MaintenanceActive, ValidationError
from app.models import MaintenanceMode, MaintenanceSource
from app.services.maintenance_service import maintenance_service
from app.services.scheduler.scheduler_service import SchedulerService
from app.utils.constants import API_PREFIX

from tests.conftest import ADMIN_HEADERS


async def test_scheduled_window_ends_automatically(db):
    end_time = datetime.utcnow() + timedelta(hours=1)
    await maintenance_service.set_state(db, True, "Database upgrade", end_time=end_time)

    assert await maintenance_service.expire_if_due(db) is False
    with pytest.raises(MaintenanceActive):
        await maintenance_service.ensure_open(db)

    assert await maintenance_service.expire_if_due(db, now=end_time + timedelta(seconds=1)) is True

    state = await maintenance_service.get_state(db)
    assert state.is_active is False
    assert "ended automatically" in state.message
    latest, first = await maintenance_service.history(db)
    assert latest.source == MaintenanceSource.AUTO.value
    assert latest.is_active is False
    assert first.source == MaintenanceSource.ADMIN.value
    assert first.end_time == end_time


async def test_window_cannot_end_in_the_past(db):
    with pytest.raises(ValidationError):
        await maintenance_service.set_state(db, True, "Oops", end_time=datetime.utcnow() - timedelta(minutes=5))

    assert (await maintenance_service.get_state(db)).is_active is False
    assert await maintenance_service.history(db) == []


async def test_overdue_window_no_longer_blocks(db):
    state = await maintenance_service.set_state(
        db, True, "Short break", end_time=datetime.utcnow() + timedelta(minutes=10)
    )
    # supervisor has not run yet
    state.end_time = datetime.utcnow() - timedelta(minutes=1)
    await db.commit()

    await maintenance_service.ensure_open(db)
    assert state.is_active is True


async def test_supervisor_pass_ends_overdue_window(db):
    state = await maintenance_service.set_state(
        db, True, "Short break", end_time=datetime.utcnow() + timedelta(minutes=10)
    )
    state.end_time = datetime.utcnow() - timedelta(minutes=1)
    await db.commit()

    assert await SchedulerService(check_interval=1).run_once() == 0

    fresh = await db.get(MaintenanceMode, state.id, populate_existing=True)
    assert fresh.is_active is False
    [latest, _] = await maintenance_service.history(db)
    assert latest.source == MaintenanceSource.AUTO.value


async def test_force_disable_is_recorded(db):
    await maintenance_service.set_state(db, True, "Incident")

    state = await maintenance_service.force_disable(db)

    assert state.is_active is False
    assert state.end_time is not None
    latest = (await maintenance_service.history(db, limit=1))[0]
    assert latest.source == MaintenanceSource.FORCE.value
    await maintenance_service.ensure_open(db)


async def test_prune_keeps_newest_entries(db):
    for index in range(5):
        await maintenance_service.set_state(db, index % 2 == 0, f"change {index}")

    assert await maintenance_service.prune_history(db, keep=2) == (2, 3)

    assert [event.message for event in await maintenance_service.history(db)] == ["change 4", "change 3"]
    assert await maintenance_service.prune_history(db, keep=2) == (2, 0)


async def test_admin_maintenance_schedule_and_history(api_client):
    end_time = datetime.utcnow() + timedelta(hours=2)

    enabled = await api_client.put(
        f"{API_PREFIX}/admin/maintenance",
        json={"is_active": True, "message": "Planned upgrade", "end_time": end_time.isoformat()},
        headers=ADMIN_HEADERS,
    )
    assert enabled.status_code == 200
    assert enabled.json()["end_time"] is not None

    past = await api_client.put(
        f"{API_PREFIX}/admin/maintenance",
        json={"is_active": True, "end_time": (datetime.utcnow() - timedelta(hours=1)).isoformat()},
        headers=ADMIN_HEADERS,
    )
    assert past.status_code == 400
    assert past.json()["error"]["code"] == "VALIDATION_ERROR"

    expired = await api_client.post(f"{API_PREFIX}/admin/maintenance/check-expired", headers=ADMIN_HEADERS)
    assert expired.json() == {"auto_disabled": False}

    forced = await api_client.post(f"{API_PREFIX}/admin/maintenance/force-disable", headers=ADMIN_HEADERS)
    assert forced.json()["is_active"] is False

    history = await api_client.get(
        f"{API_PREFIX}/admin/maintenance/history", params={"limit": 5}, headers=ADMIN_HEADERS
    )
    assert [event["source"] for event in history.json()["history"]] == ["force", "admin"]

    pruned = await api_client.delete(f"{API_PREFIX}/admin/maintenance/history", headers=ADMIN_HEADERS)
    assert pruned.json() == {"kept": 2, "deleted": 0}


async def test_maintenance_history_requires_admin_key(api_client):
    response = await api_client.get(f"{API_PREFIX}/admin/maintenance/history")

    assert response.status_code == 401
