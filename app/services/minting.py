"""Simulated NFT minting.

Tokens are opaque identifiers; nothing leaves the process. The threaded minter
mimics the latency of an external chain by waiting before it writes.
"""

from __future__ import annotations

import logging
import secrets
import string
import threading
import time
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session

from app import models
from app.config import settings
from app.database import SessionLocal, unit_of_work
from app.services.provenance import record_provenance
from app.services.realtime import queue_event

logger = logging.getLogger("vault.minting")

_TOKEN_ALPHABET = string.ascii_uppercase + string.digits


class TokenMinter(Protocol):
    def schedule(self, masterpiece_id: int) -> None: ...


def generate_token_id(serial_id: str) -> str:
    suffix = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(8))
    return f"NFT-{serial_id}-{suffix}"


def mint_token(db: Session, masterpiece_id: int) -> Optional[str]:
    """Assign a token to the masterpiece unless it already has one.

    Returns the new token id, or None when nothing was minted.
    """

    piece = db.get(models.Masterpiece, int(masterpiece_id))
    if piece is None:
        logger.warning("nft_mint_skipped_missing", extra={"masterpiece_id": masterpiece_id})
        return None
    if piece.nft_token_id:
        return None

    token_id = generate_token_id(piece.serial_id)
    piece.nft_token_id = token_id
    db.flush()
    record_provenance(
        db=db,
        masterpiece_id=piece.id,
        event_type=models.ProvenanceEventType.certificate,
        description=f"Digital twin minted as {token_id}",
        meta={"nft_token_id": token_id},
    )
    queue_event(
        db,
        "NFT_MINTED",
        {"masterpieceId": piece.id, "tokenId": token_id},
        user_id=piece.current_owner_id,
        masterpiece_id=piece.id,
    )
    return token_id


class ThreadedTokenMinter:
    """Mint on a daemon thread after a fixed delay, in a private session."""

    def __init__(
        self,
        delay_seconds: float | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ) -> None:
        self.delay_seconds = (
            float(settings.nft_mint_delay_seconds) if delay_seconds is None else float(delay_seconds)
        )
        self._session_factory = session_factory

    def schedule(self, masterpiece_id: int) -> None:
        thread = threading.Thread(
            target=self._run,
            args=(int(masterpiece_id),),
            name=f"nft-mint-{int(masterpiece_id)}",
            daemon=True,
        )
        thread.start()

    def _run(self, masterpiece_id: int) -> None:
        if self.delay_seconds > 0:
            time.sleep(self.delay_seconds)
        db = self._session_factory()
        try:
            with unit_of_work(db):
                token_id = mint_token(db, masterpiece_id)
            if token_id:
                logger.info(
                    "nft_minted", extra={"masterpiece_id": masterpiece_id, "token_id": token_id}
                )
        except Exception as exc:
            logger.exception(
                "nft_mint_failed", extra={"masterpiece_id": masterpiece_id, "error": str(exc)}
            )
        finally:
            db.close()


default_minter = ThreadedTokenMinter()
