#!/usr/bin/env python3
"""
StreamVault • Operations CLI
============================

Usage
-----
    python -m app.cli process <artifact_id>        # run ingestion in the foreground
    python -m app.cli issue-token <principal_id>   # mint an access token (dev/ops)
    python -m app.cli revoke-token <token>         # put a token on the revocation lane

`process` uses the same coordinator as the API; progress events go to an
in-process broadcaster that nobody observes, so only the terminal status is
printed. Exit code is 0 for COMPLETED, 1 for FLAGGED, 2 when nothing ran.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence
from uuid import UUID

from app.core import logger as _logsetup  # noqa: F401
from app.core.redis_client import redis_wrapper
from app.core.security import create_access_token, revoke_token
from app.db.models import MediaArtifact, Principal
from app.db.session import async_engine, async_session_maker
from app.schemas.enums import ArtifactStatus
from app.services.broadcast import ProgressBroadcaster
from app.services.pipeline import IngestionCoordinator

logger = logging.getLogger("streamvault.cli")

EXIT_COMPLETED = 0
EXIT_FLAGGED = 1
EXIT_NOT_RUN = 2


async def run_process(artifact_id: UUID, coordinator: Optional[IngestionCoordinator] = None) -> Optional[ArtifactStatus]:
    """Run one artifact through the pipeline; None when it was not PENDING or does not exist."""
    async with async_session_maker() as db:
        artifact = await db.get(MediaArtifact, artifact_id)
        tenant_id = artifact.tenant_id if artifact else None
    if tenant_id is None:
        logger.error("Artifact %s not found", artifact_id)
        return None

    if coordinator is None:
        broadcaster = ProgressBroadcaster()
        broadcaster.start()
        coordinator = IngestionCoordinator(async_session_maker, broadcaster)
    return await coordinator.process(artifact_id, tenant_id)


async def issue_token(principal_id: UUID) -> Optional[str]:
    async with async_session_maker() as db:
        principal = await db.get(Principal, principal_id)
    if principal is None or not principal.is_active:
        logger.error("Principal %s not found or inactive", principal_id)
        return None
    return create_access_token(principal.id, principal.tenant_id, principal.role)


async def _revoke(token: str) -> str:
    await redis_wrapper.connect()
    try:
        return await revoke_token(token)
    finally:
        await redis_wrapper.close()


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="python -m app.cli", description="StreamVault operations")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("process", help="Run ingestion for one PENDING artifact")
    p.add_argument("artifact_id", type=UUID)

    t = sub.add_parser("issue-token", help="Mint an access token for a principal")
    t.add_argument("principal_id", type=UUID)

    r = sub.add_parser("revoke-token", help="Revoke an access token until it expires")
    r.add_argument("token")
    return ap


async def _dispatch(args: argparse.Namespace) -> int:
    try:
        if args.command == "process":
            status = await run_process(args.artifact_id)
            if status is None:
                print(f"{args.artifact_id}: not processed (missing or not PENDING)")
                return EXIT_NOT_RUN
            print(f"{args.artifact_id}: {status.value}")
            return EXIT_COMPLETED if status == ArtifactStatus.COMPLETED else EXIT_FLAGGED

        if args.command == "issue-token":
            token = await issue_token(args.principal_id)
            if token is None:
                return EXIT_NOT_RUN
            print(token)
            return EXIT_COMPLETED

        jti = await _revoke(args.token)
        print(f"revoked {jti}")
        return EXIT_COMPLETED
    finally:
        await async_engine.dispose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    return asyncio.run(_dispatch(args))


if __name__ == "__main__":
    sys.exit(main())
