from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

from pdfpost.domain.contracts import ClaimStore
from pdfpost.domain.models import Claim

logger = logging.getLogger("runtime")


async def release_claim(claim_store: ClaimStore, claim: Claim) -> None:
    released = await claim_store.release(file_id=claim.file_id, holder_id=claim.holder_id)
    logger.info(
        "claim released",
        extra={
            "file_id": claim.file_id,
            "holder_id": claim.holder_id,
            "detail": "released" if released else "no matching claim",
        },
    )


@asynccontextmanager
async def held_claim(claim_store: ClaimStore, claim: Claim) -> AsyncIterator[Claim]:
    """Hold ``claim`` for the duration of the block and release it on every exit path."""
    try:
        yield claim
    finally:
        await release_claim(claim_store, claim)
