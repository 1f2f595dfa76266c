# tests/test_pipeline.py
"""Tests for the message pipeline: admission, persistence, delivery and deletion."""

import asyncio

import pytest
from sqlalchemy import select

from needboard.core.errors import MessageNotFoundError, NotMessageAuthorError, StoreError
from needboard.core.region import Region
from needboard.models import FlaggedMessage, Interaction, Message
from needboard.models.flagged import FLAG_STATUS_PENDING, FLAG_STATUS_REJECTED
from needboard.repositories.store import Attachment
from needboard.services.pipeline import (
    MESSAGE_DELETED_EVENT,
    MESSAGE_ERROR_EVENT,
    MESSAGE_POSTED_EVENT,
    MESSAGE_REJECTED_EVENT,
    OUTCOME_DELIVERED,
    OUTCOME_FAILED,
    OUTCOME_REJECTED,
)

IKEJA = Region.of("Lagos", "Ikeja")
GARKI = Region.of("FCT", "Garki")


def _all(session_factory, model):
    with session_factory() as db:
        return list(db.scalars(select(model).order_by(model.id)))


@pytest.mark.asyncio
async def test_accepted_message_is_saved_and_broadcast(board, connect, session_factory) -> None:
    """Test that an accepted post reaches everyone in the room, sender included."""
    ada = await connect("ada", IKEJA)
    bola = await connect("bola", IKEJA)
    chidi = await connect("chidi", GARKI)

    outcome = await board.pipeline.submit(ada, "I need a plumber in Ikeja")

    assert outcome.status == OUTCOME_DELIVERED
    assert outcome.delivered_to == 2
    stored = _all(session_factory, Message)
    assert [(m.username, m.state, m.lga, m.body) for m in stored] == [
        ("ada", "Lagos", "Ikeja", "I need a plumber in Ikeja"),
    ]
    for conn in (ada, bola):
        posted = conn.transport.events(MESSAGE_POSTED_EVENT)
        assert len(posted) == 1
        assert posted[0]["id"] == stored[0].id
        assert posted[0]["body"] == "I need a plumber in Ikeja"
        assert posted[0]["parent_id"] is None
    assert chidi.transport.sent == []
    assert _all(session_factory, FlaggedMessage) == []


@pytest.mark.asyncio
async def test_rejected_message_is_logged_and_only_sender_notified(board, connect, session_factory) -> None:
    """Test that a rejected post is never stored as a message and lands in the ledger."""
    ada = await connect("ada", IKEJA)
    bola = await connect("bola", IKEJA)

    outcome = await board.pipeline.submit(ada, "Good morning!")

    assert outcome.status == OUTCOME_REJECTED
    assert outcome.verdict.code == "casual"
    assert _all(session_factory, Message) == []
    entries = _all(session_factory, FlaggedMessage)
    assert len(entries) == 1
    assert entries[0].status == FLAG_STATUS_REJECTED
    assert entries[0].body == "Good morning!"
    assert entries[0].message_id is None
    assert (entries[0].state, entries[0].lga) == ("Lagos", "Ikeja")

    rejected = ada.transport.events(MESSAGE_REJECTED_EVENT)
    assert rejected == [
        {"reason": entries[0].rejection_reason, "code": "casual", "original_body": "Good morning!"},
    ]
    assert bola.transport.sent == []


@pytest.mark.asyncio
async def test_uncertain_message_is_posted_and_queued_for_review(board, connect, session_factory) -> None:
    ada = await connect("ada", IKEJA)

    outcome = await board.pipeline.submit(ada, "Plumber needed")

    assert outcome.status == OUTCOME_DELIVERED
    assert outcome.verdict.uncertain is True
    messages = _all(session_factory, Message)
    entries = _all(session_factory, FlaggedMessage)
    assert len(messages) == 1
    assert len(entries) == 1
    assert entries[0].status == FLAG_STATUS_PENDING
    assert entries[0].message_id == messages[0].id
    assert len(ada.transport.events(MESSAGE_POSTED_EVENT)) == 1


@pytest.mark.asyncio
async def test_persistence_failure_means_no_broadcast(board, connect, mocker) -> None:
    """Test that nothing is delivered when the store refuses the message."""
    ada = await connect("ada", IKEJA)
    bola = await connect("bola", IKEJA)
    mocker.patch.object(board.store, "insert_message", side_effect=StoreError("disk full"))

    outcome = await board.pipeline.submit(ada, "I need a plumber in Ikeja")

    assert outcome.status == OUTCOME_FAILED
    assert outcome.error == "disk full"
    assert ada.transport.events(MESSAGE_ERROR_EVENT) == [{"reason": "Failed to save message"}]
    assert ada.transport.events(MESSAGE_POSTED_EVENT) == []
    assert bola.transport.sent == []


@pytest.mark.asyncio
async def test_unjoined_connection_cannot_submit(board, make_connection, session_factory) -> None:
    conn = make_connection("ada")

    outcome = await board.pipeline.submit(conn, "I need a plumber in Ikeja")

    assert outcome.status == OUTCOME_FAILED
    assert conn.transport.events(MESSAGE_ERROR_EVENT)
    assert _all(session_factory, Message) == []


@pytest.mark.asyncio
async def test_reply_skips_admission_and_records_interaction(board, connect, session_factory) -> None:
    """Test that replies are not classified and count as a reply interaction."""
    ada = await connect("ada", IKEJA)
    bola = await connect("bola", IKEJA)
    parent = (await board.pipeline.submit(ada, "I need a plumber in Ikeja")).message

    outcome = await board.pipeline.submit(bola, "ok", parent_id=parent.id)

    assert outcome.status == OUTCOME_DELIVERED
    assert outcome.verdict is None
    assert outcome.message.parent_id == parent.id
    interactions = _all(session_factory, Interaction)
    assert [(i.username, i.message_id, i.type) for i in interactions] == [("bola", parent.id, "reply")]
    replies = ada.transport.events(MESSAGE_POSTED_EVENT)
    assert [r["parent_id"] for r in replies] == [None, parent.id]


@pytest.mark.asyncio
async def test_reply_to_missing_parent_fails(board, connect, session_factory) -> None:
    ada = await connect("ada", IKEJA)

    outcome = await board.pipeline.submit(ada, "I can do it", parent_id=9999)

    assert outcome.status == OUTCOME_FAILED
    assert ada.transport.events(MESSAGE_ERROR_EVENT) == [{"reason": "Parent message not found"}]
    assert _all(session_factory, Message) == []


@pytest.mark.asyncio
async def test_empty_reply_without_attachment_fails(board, connect) -> None:
    ada = await connect("ada", IKEJA)
    parent = (await board.pipeline.submit(ada, "I need a plumber in Ikeja")).message

    outcome = await board.pipeline.submit(ada, "   ", parent_id=parent.id)
    assert outcome.status == OUTCOME_FAILED

    photo = Attachment("/uploads/photo.jpg", "image")
    outcome = await board.pipeline.submit(ada, "", parent_id=parent.id, attachment=photo)
    assert outcome.status == OUTCOME_DELIVERED
    assert outcome.message.attachment_url == "/uploads/photo.jpg"


@pytest.mark.asyncio
async def test_reply_across_regions_moves_the_replier(board, connect) -> None:
    """Test that replying to a message from another region migrates the replier."""
    ada = await connect("ada", IKEJA)
    chidi = await connect("chidi", GARKI)
    parent = (await board.pipeline.submit(chidi, "Looking for a tailor in Garki")).message

    reply = (await board.pipeline.submit(ada, "My cousin sews", parent_id=parent.id)).message

    assert board.hub.router.region_of(ada) == GARKI
    assert board.store.get_user_region("ada") == GARKI
    assert ada.transport.events("room-changed") == [{"state": "FCT", "lga": "Garki"}]
    # The reply stays in the room it was written from, but the sender still sees it.
    assert (reply.state, reply.lga) == ("Lagos", "Ikeja")
    assert [p["id"] for p in ada.transport.events(MESSAGE_POSTED_EVENT)] == [reply.id]


@pytest.mark.asyncio
async def test_submissions_from_one_connection_arrive_in_order(board, connect) -> None:
    """Test that back-to-back posts are stored and delivered in submission order."""
    ada = await connect("ada", IKEJA)
    bola = await connect("bola", IKEJA)

    first, second = await asyncio.gather(
        board.pipeline.submit(ada, "I need a plumber"),
        board.pipeline.submit(ada, "I need an electrician"),
    )

    assert first.message.id < second.message.id
    bodies = [payload["body"] for payload in bola.transport.events(MESSAGE_POSTED_EVENT)]
    assert bodies == ["I need a plumber", "I need an electrician"]


@pytest.mark.asyncio
async def test_message_lands_in_region_of_submission(board, connect) -> None:
    """Test that a post made before a move stays in the old room, and later posts use the new one."""
    ada = await connect("ada", IKEJA)

    before = await board.pipeline.submit(ada, "I need a plumber")
    await board.migration.migrate(ada, GARKI)
    after = await board.pipeline.submit(ada, "I need a driver")

    assert (before.message.state, before.message.lga) == ("Lagos", "Ikeja")
    assert (after.message.state, after.message.lga) == ("FCT", "Garki")


@pytest.mark.asyncio
async def test_reply_is_delivered_when_interaction_log_fails(board, connect, mocker) -> None:
    """Test that a reply still goes out when its interaction cannot be recorded."""
    ada = await connect("ada", IKEJA)
    bola = await connect("bola", IKEJA)
    parent = (await board.pipeline.submit(ada, "I need a plumber in Ikeja")).message
    mocker.patch.object(board.store, "insert_interaction", side_effect=StoreError("locked"))

    outcome = await board.pipeline.submit(bola, "I can come today", parent_id=parent.id)

    assert outcome.status == OUTCOME_DELIVERED
    assert board.store.get_message(outcome.message.id) is not None
    assert [p["id"] for p in ada.transport.events(MESSAGE_POSTED_EVENT)] == [parent.id, outcome.message.id]
    assert bola.transport.events(MESSAGE_ERROR_EVENT) == []


@pytest.mark.asyncio
async def test_rejection_reaches_sender_when_ledger_write_fails(board, connect, session_factory, mocker) -> None:
    """Test that the sender is told about a rejection even if it cannot be logged."""
    ada = await connect("ada", IKEJA)
    mocker.patch.object(board.store, "insert_flagged", side_effect=StoreError("locked"))

    outcome = await board.pipeline.submit(ada, "Good morning!")

    assert outcome.status == OUTCOME_REJECTED
    rejected = ada.transport.events(MESSAGE_REJECTED_EVENT)
    assert len(rejected) == 1
    assert rejected[0]["code"] == "casual"
    assert _all(session_factory, Message) == []


@pytest.mark.asyncio
async def test_uncertain_message_is_broadcast_when_ledger_write_fails(board, connect, session_factory, mocker) -> None:
    """Test that a low-confidence post still goes live if its review entry is lost."""
    ada = await connect("ada", IKEJA)
    bola = await connect("bola", IKEJA)
    mocker.patch.object(board.store, "insert_flagged", side_effect=StoreError("locked"))

    outcome = await board.pipeline.submit(ada, "Plumber needed")

    assert outcome.status == OUTCOME_DELIVERED
    assert outcome.verdict.uncertain is True
    assert outcome.delivered_to == 2
    assert [p["body"] for p in bola.transport.events(MESSAGE_POSTED_EVENT)] == ["Plumber needed"]
    assert len(_all(session_factory, Message)) == 1


class TestDelete:
    """Tests for hard deletion of message subtrees."""

    @pytest.mark.asyncio
    async def test_delete_cascades_to_nested_replies(self, board, connect, session_factory) -> None:
        ada = await connect("ada", IKEJA)
        bola = await connect("bola", IKEJA)
        root = (await board.pipeline.submit(ada, "I need a plumber in Ikeja")).message
        child = (await board.pipeline.submit(bola, "What area?", parent_id=root.id)).message
        grandchild = (await board.pipeline.submit(ada, "Allen Avenue", parent_id=child.id)).message
        other = (await board.pipeline.submit(bola, "I need a mechanic")).message

        ids = await board.pipeline.delete("ada", root.id)

        assert ids == [root.id, child.id, grandchild.id]
        remaining = _all(session_factory, Message)
        assert [m.id for m in remaining] == [other.id]
        assert all(i.message_id == other.id for i in _all(session_factory, Interaction))
        deleted = bola.transport.events(MESSAGE_DELETED_EVENT)
        assert deleted == [{"id": root.id, "ids": [root.id, child.id, grandchild.id]}]

    @pytest.mark.asyncio
    async def test_only_author_may_delete(self, board, connect) -> None:
        ada = await connect("ada", IKEJA)
        root = (await board.pipeline.submit(ada, "I need a plumber in Ikeja")).message

        with pytest.raises(NotMessageAuthorError):
            await board.pipeline.delete("bola", root.id)
        assert board.store.get_message(root.id) is not None

    @pytest.mark.asyncio
    async def test_delete_missing_message(self, board) -> None:
        with pytest.raises(MessageNotFoundError):
            await board.pipeline.delete("ada", 12345)

    @pytest.mark.asyncio
    async def test_delete_removes_local_attachments(self, board, connect, upload_dir) -> None:
        """Test that uploaded files go with their messages and remote files are left alone."""
        ada = await connect("ada", IKEJA)
        local = upload_dir / "photo.jpg"
        local.write_bytes(b"jpeg")
        outside = upload_dir / "remote.jpg"
        outside.write_bytes(b"jpeg")
        root = (
            await board.pipeline.submit(
                ada,
                "I need this chair repaired",
                attachment=Attachment("/uploads/photo.jpg", "image"),
            )
        ).message
        await board.pipeline.submit(
            ada,
            "Like this one",
            parent_id=root.id,
            attachment=Attachment("https://cdn.example.com/remote.jpg", "image"),
        )

        await board.pipeline.delete("ada", root.id)

        assert not local.exists()
        assert outside.exists()
