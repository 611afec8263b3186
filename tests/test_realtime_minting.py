import asyncio
import re

import pytest

from app import models
from app.database import SessionLocal, run_after_commit, unit_of_work
from app.services.masterpieces import assign_masterpiece
from app.services.minting import ThreadedTokenMinter, generate_token_id, mint_token
from app.services.notifications import notify_user
from app.services.realtime import EventHub, hub, user_topic


def test_hub_routes_by_topic():
    async def scenario():
        local = EventHub()
        everything = local.subscribe(["all"])
        mine = local.subscribe([user_topic(7)])
        theirs = local.subscribe([user_topic(8)])

        targeted = local.publish("NOTIFICATION", {"message": "hi"}, [user_topic(7)])
        assert targeted == 2

        got = await asyncio.wait_for(mine.queue.get(), timeout=1)
        seen = await asyncio.wait_for(everything.queue.get(), timeout=1)
        await asyncio.sleep(0)
        return got, seen, theirs.queue.qsize()

    got, seen, other_size = asyncio.run(scenario())
    assert got == {"type": "NOTIFICATION", "message": "hi"}
    assert seen == got
    assert other_size == 0


def test_hub_drops_messages_for_full_subscribers():
    async def scenario():
        local = EventHub(max_queue=1)
        sub = local.subscribe()
        local.publish("NEW_BID", {"amount": 1})
        local.publish("NEW_BID", {"amount": 2})
        await asyncio.sleep(0)
        first = sub.queue.get_nowait()
        local.unsubscribe(sub)
        return first, sub.queue.qsize(), local.subscriber_count

    first, remaining, count = asyncio.run(scenario())
    assert first["amount"] == 1
    assert remaining == 0
    assert count == 0


def test_events_publish_only_after_commit(db_session, buyer):
    async def scenario():
        sub = hub.subscribe([user_topic(buyer.id)])
        try:
            notify_user(db_session, buyer.id, "staged", "info")
            await asyncio.sleep(0)
            before_commit = sub.queue.qsize()
            db_session.commit()
            message = await asyncio.wait_for(sub.queue.get(), timeout=1)
            return before_commit, message
        finally:
            hub.unsubscribe(sub)

    before_commit, message = asyncio.run(scenario())
    assert before_commit == 0
    assert message["type"] == "NOTIFICATION"
    assert message["message"] == "staged"


def test_events_are_discarded_on_rollback(db_session, buyer):
    async def scenario():
        sub = hub.subscribe([user_topic(buyer.id)])
        try:
            with pytest.raises(RuntimeError):
                with unit_of_work(db_session):
                    notify_user(db_session, buyer.id, "discarded", "info")
                    raise RuntimeError("abort")
            # a later, unrelated commit must not flush the discarded event
            db_session.commit()
            await asyncio.sleep(0)
            return sub.queue.qsize()
        finally:
            hub.unsubscribe(sub)

    assert asyncio.run(scenario()) == 0
    assert db_session.query(models.Notification).count() == 0


def test_after_commit_callbacks_run_once(db_session):
    calls = []
    db_session.query(models.User).count()
    run_after_commit(db_session, lambda: calls.append("done"))
    assert calls == []
    db_session.commit()
    db_session.commit()
    assert calls == ["done"]


def test_token_id_format():
    token = generate_token_id("AV-0001")
    assert re.fullmatch(r"NFT-AV-0001-[A-Z0-9]{8}", token)


def test_mint_token_is_idempotent(db_session, admin, buyer, make_masterpiece):
    piece = make_masterpiece(serial_id="AV-MINT")
    with unit_of_work(db_session):
        assign_masterpiece(db_session, masterpiece_id=piece.id, user_id=buyer.id, admin=admin)

    with unit_of_work(db_session):
        token = mint_token(db_session, piece.id)
    with unit_of_work(db_session):
        again = mint_token(db_session, piece.id)

    db_session.refresh(piece)
    assert token.startswith("NFT-AV-MINT-")
    assert again is None
    assert piece.nft_token_id == token
    certificate_events = (
        db_session.query(models.ProvenanceEvent)
        .filter_by(masterpiece_id=piece.id, event_type=models.ProvenanceEventType.certificate)
        .all()
    )
    assert len(certificate_events) == 1


def test_threaded_minter_writes_in_its_own_session(db_session, make_masterpiece):
    piece = make_masterpiece(serial_id="AV-THREAD")
    minter = ThreadedTokenMinter(delay_seconds=0, session_factory=SessionLocal)

    minter._run(piece.id)

    db_session.expire_all()
    assert db_session.get(models.Masterpiece, piece.id).nft_token_id.startswith("NFT-AV-THREAD-")
