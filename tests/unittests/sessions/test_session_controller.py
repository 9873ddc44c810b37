"""Unit tests for session lifecycle: start, stop, status and shutdown."""

import asyncio
from datetime import timedelta

import pytest

from autoclaim.main.exceptions import AlreadyRunningException, AuthenticationException
from autoclaim.sessions.session_controller import SessionController
from autoclaim.sessions.session_state import SessionPhase
from tests.fixtures import FakeClueQueue, make_clue, make_config


@pytest.fixture
def queue():
    return FakeClueQueue()


@pytest.fixture
def controller(queue, test_settings):
    return SessionController(client_factory=lambda config: queue, settings=test_settings)


async def test_status_before_any_session(controller):
    status = controller.status()

    assert status.phase is SessionPhase.IDLE
    assert status.is_active is False
    assert status.successful_claims == 0
    assert status.last_error == ""


async def test_start_returns_running_snapshot(controller):
    snapshot = controller.start(make_config(poll_interval=timedelta(seconds=30)))

    assert snapshot.is_active is True
    assert snapshot.session_id is not None

    controller.stop()
    assert await controller.wait_until_idle(timeout=1) is True


async def test_second_start_is_rejected_without_touching_counters(controller, queue):
    queue.clues = [make_clue(1)]
    first = controller.start(make_config(claim_limit=5, poll_interval=timedelta(seconds=30)))
    while controller.status().successful_claims < 1:
        await asyncio.sleep(0.005)

    with pytest.raises(AlreadyRunningException):
        controller.start(make_config(claim_limit=1))

    status = controller.status()
    assert status.session_id == first.session_id
    assert status.successful_claims == 1
    assert status.claim_limit == 5

    controller.stop()
    await controller.wait_until_idle(timeout=1)


async def test_stop_is_idempotent(controller):
    assert controller.stop() is False

    controller.start(make_config(poll_interval=timedelta(seconds=30)))
    assert controller.stop() is True
    assert controller.stop() is False
    assert controller.status().phase is SessionPhase.STOPPING

    await controller.wait_until_idle(timeout=1)
    assert controller.stop() is False


async def test_stop_during_interval_sleep_returns_quickly(controller, queue):
    controller.start(make_config(poll_interval=timedelta(seconds=60)))
    while not queue.list_calls:
        await asyncio.sleep(0.005)

    controller.stop()

    assert await controller.wait_until_idle(timeout=1) is True
    status = controller.status()
    assert status.phase is SessionPhase.IDLE
    assert status.stop_reason == "stop_requested"


async def test_limit_reached_ends_session_and_keeps_counters(controller, queue):
    queue.clues = [make_clue(index) for index in range(1, 6)]

    controller.start(make_config(claim_limit=2, concurrent_claims=3))
    assert await controller.wait_until_idle(timeout=2) is True

    status = controller.status()
    assert status.phase is SessionPhase.IDLE
    assert status.is_active is False
    assert status.successful_claims == 2
    assert status.stop_reason == "claim_limit_reached"
    assert len(queue.claimed) == 2


async def test_can_start_again_after_session_ends(controller, queue):
    queue.clues = [make_clue(1), make_clue(2)]
    first = controller.start(make_config(claim_limit=1))
    await controller.wait_until_idle(timeout=2)

    second = controller.start(make_config(claim_limit=1))
    await controller.wait_until_idle(timeout=2)

    assert second.session_id != first.session_id
    assert controller.status().successful_claims == 1
    assert sorted(queue.claimed) == [1, 2]


async def test_authentication_failure_surfaces_in_status(controller, queue):
    queue.list_errors = [AuthenticationException("List clues: credential rejected (HTTP 401)")]

    controller.start(make_config())
    await controller.wait_until_idle(timeout=2)

    status = controller.status()
    assert status.phase is SessionPhase.IDLE
    assert status.stop_reason == "authentication_failed"
    assert "credential rejected" in status.last_error


async def test_shutdown_drains_running_session(controller):
    controller.start(make_config(poll_interval=timedelta(seconds=60)))

    await controller.shutdown(timeout=1)

    status = controller.status()
    assert status.phase is SessionPhase.IDLE
    assert status.stop_reason == "shutdown"
