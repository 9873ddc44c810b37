"""End-to-end session runs against an in-memory clue queue.

The queue fake answers like the remote pool: claimed clues disappear from
later list pages and every claim takes a little while.
"""

from datetime import datetime

from autoclaim.sessions.auto_claim_service import AutoClaimService
from autoclaim.sessions.session_controller import SessionController
from autoclaim.sessions.session_models import StartAutoClaimRequest
from tests.fixtures import TEST_CREDENTIAL, FakeClueQueue, make_clue


def build_service(queue, test_settings):
    controller = SessionController(client_factory=lambda config: queue, settings=test_settings)
    return AutoClaimService(controller=controller, settings=test_settings)


async def test_claims_exactly_the_limit_under_concurrency(test_settings):
    queue = FakeClueQueue([make_clue(index) for index in range(1, 11)], claim_delay=0.05)
    service = build_service(queue, test_settings)

    response = await service.start_auto_claiming(
        StartAutoClaimRequest(
            claim_limit=3,
            concurrent_claims=5,
            interval=100,
            interval_unit="ms",
            credential=TEST_CREDENTIAL,
        )
    )
    assert response.success is True

    assert await service.controller.wait_until_idle(timeout=5) is True

    status = await service.get_auto_claim_status()
    assert status.is_active is False
    assert status.successful_claims == 3
    assert status.stop_reason == "claim_limit_reached"
    assert len(queue.claimed) == 3
    assert queue.peak_in_flight <= 5
    assert service.controller.poll_loop.scheduler.peak_in_flight <= 5


async def test_produce_session_respects_keywords_and_window(test_settings):
    inside = datetime(2024, 5, 1, 10, 0, 0)
    outside = datetime(2024, 5, 2, 10, 0, 0)
    queue = FakeClueQueue(
        [
            make_clue(1, clue_id=101, brief="高中数学 导数", dispatch_time=inside),
            make_clue(2, clue_id=102, brief="高中数学 作文", dispatch_time=inside),
            make_clue(3, clue_id=103, brief="高中数学 数列", dispatch_time=outside),
            make_clue(4, clue_id=104, brief="高中数学 概率", dispatch_time=None),
            make_clue(5, clue_id=105, brief="初中数学 方程", dispatch_time=inside),
        ]
    )
    service = build_service(queue, test_settings)

    await service.start_auto_claiming(
        StartAutoClaimRequest(
            task_type="produce",
            claim_limit=2,
            include_keywords=["数学"],
            exclude_keywords=["作文"],
            start_time="2024-05-01 00:00:00",
            end_time="2024-05-01 23:59:59",
            credential=TEST_CREDENTIAL,
        )
    )
    assert await service.controller.wait_until_idle(timeout=5) is True

    # Produce tasks are claimed by clue id
    assert sorted(queue.claimed) == [101, 105]
    assert (await service.get_auto_claim_status()).successful_claims == 2


async def test_refused_claims_surface_then_clear(test_settings):
    queue = FakeClueQueue([make_clue(1), make_clue(2)], refused=[1], claim_delay=0.01)
    service = build_service(queue, test_settings)

    await service.start_auto_claiming(
        StartAutoClaimRequest(
            claim_limit=1, concurrent_claims=1, interval=100, interval_unit="ms", credential=TEST_CREDENTIAL
        )
    )
    assert await service.controller.wait_until_idle(timeout=5) is True

    status = await service.get_auto_claim_status()
    assert status.successful_claims == 1
    assert queue.claimed == [2]
    assert status.last_error == ""
    assert service.controller.status().failed_claims == 1


async def test_utc_window_claims_queue_local_clue(test_settings):
    queue = FakeClueQueue(
        [make_clue(1, clue_id=201, dispatch_time=datetime(2024, 1, 1, 12, 0, 0))]
    )
    service = build_service(queue, test_settings)

    response = await service.start_auto_claiming(
        StartAutoClaimRequest(
            task_type="produce",
            claim_limit=1,
            start_time="2024-01-01T00:00:00Z",
            end_time="2024-01-02T00:00:00Z",
            credential=TEST_CREDENTIAL,
        )
    )
    assert response.success is True
    assert await service.controller.wait_until_idle(timeout=5) is True

    status = await service.get_auto_claim_status()
    assert status.successful_claims == 1
    assert status.stop_reason == "claim_limit_reached"
    assert queue.claimed == [201]
