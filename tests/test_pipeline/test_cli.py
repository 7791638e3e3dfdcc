# tests/test_pipeline/test_cli.py

from uuid import uuid4

import pytest

from app.cli import _build_parser, issue_token, run_process
from app.core.jwt import decode_token
from app.schemas.enums import ArtifactStatus, PrincipalRole
from tests.utils.factory import load_artifact


@pytest.mark.anyio
async def test_process_runs_in_foreground(coordinator, make_principal, make_artifact):
    owner = await make_principal()
    artifact = await make_artifact(owner)

    assert await run_process(artifact.id, coordinator) == ArtifactStatus.COMPLETED
    assert (await load_artifact(artifact.id)).status == ArtifactStatus.COMPLETED


@pytest.mark.anyio
async def test_process_unknown_or_settled_artifact(coordinator, make_principal, make_artifact):
    owner = await make_principal()
    settled = await make_artifact(owner, status=ArtifactStatus.FLAGGED)

    assert await run_process(uuid4(), coordinator) is None
    assert await run_process(settled.id, coordinator) is None


@pytest.mark.anyio
async def test_issue_token_uses_stored_role(redis_client, make_principal):
    editor = await make_principal(role=PrincipalRole.EDITOR)

    token = await issue_token(editor.id)

    payload = await decode_token(token)
    assert payload.sub == str(editor.id)
    assert payload.role == PrincipalRole.EDITOR
    assert await issue_token(uuid4()) is None


def test_parser_validates_ids():
    args = _build_parser().parse_args(["process", "6f1c7d3e-8a59-4c1b-9a57-2f0d3f4e5a6b"])
    assert args.command == "process"
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["process", "not-a-uuid"])
