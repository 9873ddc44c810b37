from unittest.mock import AsyncMock, MagicMock

import pytest

from autoclaim.cli.run_session import (
    build_parser,
    format_status,
    resolve_label_ids,
    run_session,
)
from autoclaim.clue_queue.task_label import TaskLabelResponse
from autoclaim.main.exceptions import InvalidConfigException
from autoclaim.sessions.auto_claim_service import AutoClaimService
from autoclaim.sessions.session_controller import SessionController
from autoclaim.sessions.session_models import AutoClaimStatusResponse
from tests.fixtures import TEST_CREDENTIAL, FakeClueQueue, make_clue

LABELS = TaskLabelResponse.model_validate(
    {
        "errno": 0,
        "data": {
            "filter": [
                {"id": "step", "name": "学段", "list": [{"id": 3, "name": "高中"}]},
                {"id": "subject", "name": "学科", "list": [{"id": 2, "name": "数学"}]},
                {"id": "clueType", "name": "类型", "list": [{"id": 5, "name": "纠错"}]},
            ]
        },
    }
)


def test_parser_collects_repeated_keywords():
    args = build_parser().parse_args(
        ["--credential", "c", "--include", "数学", "--include", "物理", "--exclude", "作文"]
    )

    assert args.include == ["数学", "物理"]
    assert args.exclude == ["作文"]
    assert args.interval_unit == "s"
    assert args.max_pages == 0


def test_format_status():
    status = AutoClaimStatusResponse(
        success=True,
        message="",
        is_active=False,
        successful_claims=2,
        last_error="Claim clue 9: already taken",
        phase="idle",
        claim_limit=5,
        stop_reason="stop_requested",
    )

    line = format_status(status)

    assert line.startswith("[idle] claimed 2/5")
    assert "already taken" in line
    assert "stop_requested" in line


async def test_label_names_resolve_to_ids():
    service = MagicMock()
    service.get_task_labels = AsyncMock(return_value=LABELS)
    args = build_parser().parse_args(["--credential", "c", "--subject", "数学", "--clue-type-id", "8"])

    resolved = await resolve_label_ids(service, args)

    assert resolved == {"step_id": 0, "subject_id": 2, "clue_type_id": 8}


async def test_unknown_label_name_is_invalid():
    service = MagicMock()
    service.get_task_labels = AsyncMock(return_value=LABELS)
    args = build_parser().parse_args(["--credential", "c", "--subject", "化学"])

    with pytest.raises(InvalidConfigException) as exc_info:
        await resolve_label_ids(service, args)

    assert exc_info.value.fields == ["subject_id"]


async def test_run_session_until_limit(test_settings, capsys):
    queue = FakeClueQueue([make_clue(1, "数学"), make_clue(2, "英语")])
    controller = SessionController(client_factory=lambda config: queue, settings=test_settings)
    service = AutoClaimService(controller=controller, settings=test_settings)
    args = build_parser().parse_args(
        ["--credential", TEST_CREDENTIAL, "--claim-limit", "1", "--include", "数学", "--status-every", "0.05"]
    )

    exit_code = await run_session(args, service=service)

    assert exit_code == 0
    assert queue.claimed == [1]
    output = capsys.readouterr().out
    assert "started" in output
    assert "[idle] claimed 1/1" in output


async def test_run_session_rejected_start(test_settings, capsys):
    controller = SessionController(client_factory=lambda config: FakeClueQueue(), settings=test_settings)
    service = AutoClaimService(controller=controller, settings=test_settings)
    args = build_parser().parse_args(["--claim-limit", "0"])

    exit_code = await run_session(args, service=service)

    assert exit_code == 1
    assert "Could not start" in capsys.readouterr().err
