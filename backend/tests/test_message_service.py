from datetime import timedelta
from itertools import count

import pytest
import pytest_asyncio

from messenger.core.exceptions import NotFoundError, UnauthorizedError, ValidationError, UnauthenticatedError
from messenger.core.time_utils import utc_now
from messenger.db.models.conversation import Conversation
from messenger.db.models.message import Message, DELETED_PLACEHOLDER
from messenger.services import conversation_service, message_service, reaction_service, unread_service


@pytest.fixture
def ticking_clock(monkeypatch):
    """Distinct, strictly increasing creation times for inserted messages."""
    start = utc_now()
    ticks = count()
    monkeypatch.setattr(message_service, "utc_now", lambda: start + timedelta(milliseconds=next(ticks)))


@pytest_asyncio.fixture
async def dm(db, make_user):
    ana = await make_user("ana")
    bruno = await make_user("bruno")
    conversation_id = await conversation_service.get_or_create_dm(db, ana, bruno)
    return ana, bruno, conversation_id


async def test_send_updates_last_message_pointer(db, dm, published_events):
    ana, bruno, conversation_id = dm

    first = await message_service.send(db, ana, conversation_id, "hello")
    second = await message_service.send(db, bruno, conversation_id, "hey")

    conversation = await db.get(Conversation, conversation_id)
    assert conversation.last_message_id == second.id
    assert await db.get(Message, conversation.last_message_id) is not None
    assert first.is_deleted is False and first.is_edited is False

    created = [p for c, p in published_events if p["type"] == "message.created"]
    assert [p["message_id"] for p in created] == [first.id, second.id]


async def test_send_validation(db, dm, make_user):
    ana, bruno, conversation_id = dm
    outsider = await make_user("outsider")

    with pytest.raises(UnauthenticatedError):
        await message_service.send(db, None, conversation_id, "hi")
    with pytest.raises(ValidationError):
        await message_service.send(db, ana, conversation_id, "   ")
    with pytest.raises(ValidationError):
        await message_service.send(db, ana, conversation_id, "x", type="video")
    with pytest.raises(ValidationError):
        await message_service.send(db, ana, conversation_id, "", type="image")
    with pytest.raises(NotFoundError):
        await message_service.send(db, ana, 9999, "hi")
    with pytest.raises(UnauthorizedError):
        await message_service.send(db, outsider, conversation_id, "hi")


async def test_attachment_placeholder_content(db, dm):
    ana, _, conversation_id = dm

    image = await message_service.send(db, ana, conversation_id, "", type="image", storage_handle="attachments/" + "a" * 32)
    doc = await message_service.send(db, ana, conversation_id, "  ", type="file", storage_handle="attachments/" + "b" * 32)
    captioned = await message_service.send(db, ana, conversation_id, "look", type="image", storage_handle="attachments/" + "c" * 32)

    assert image.content == "📷 Image"
    assert doc.content == "📄 File"
    assert captioned.content == "look"


async def test_pagination_is_complete_and_ordered(db, dm, ticking_clock):
    ana, bruno, conversation_id = dm
    sent = []
    for i in range(10):
        sender = ana if i % 2 == 0 else bruno
        message = await message_service.send(db, sender, conversation_id, f"m{i + 1}")
        sent.append(message.id)

    seen = []
    cursor = None
    pages = []
    for _ in range(4):
        page = await message_service.list_messages(db, ana, conversation_id, cursor=cursor, page_size=3)
        pages.append(page)
        seen.extend(page.page)
        cursor = page.continue_cursor

    assert [len(p.page) for p in pages] == [3, 3, 3, 1]
    assert [p.is_done for p in pages] == [False, False, False, True]
    assert [m.id for m in seen] == list(reversed(sent))
    times = [m.created_at for m in seen]
    assert all(a > b for a, b in zip(times, times[1:]))


async def test_pagination_is_stable_under_concurrent_inserts(db, dm, ticking_clock):
    ana, bruno, conversation_id = dm
    for i in range(6):
        await message_service.send(db, ana, conversation_id, f"old {i}")

    first = await message_service.list_messages(db, bruno, conversation_id, page_size=3)
    await message_service.send(db, bruno, conversation_id, "new while paging")
    second = await message_service.list_messages(db, bruno, conversation_id, cursor=first.continue_cursor, page_size=3)

    first_ids = {m.id for m in first.page}
    second_ids = {m.id for m in second.page}
    assert not first_ids & second_ids
    assert [m.content for m in second.page] == ["old 2", "old 1", "old 0"]


async def test_pagination_rejects_bad_input(db, dm):
    ana, _, conversation_id = dm
    with pytest.raises(ValidationError):
        await message_service.list_messages(db, ana, conversation_id, cursor="not-a-cursor")
    with pytest.raises(ValidationError):
        await message_service.list_messages(db, ana, conversation_id, page_size=0)


async def test_list_requires_membership(db, dm, make_user):
    _, _, conversation_id = dm
    outsider = await make_user("outsider")
    with pytest.raises(UnauthorizedError):
        await message_service.list_messages(db, outsider, conversation_id)


async def test_empty_conversation_page(db, dm):
    ana, _, conversation_id = dm
    page = await message_service.list_messages(db, ana, conversation_id)
    assert page.page == []
    assert page.is_done is True
    assert page.continue_cursor is None


async def test_list_joins_reactions_attachment_and_reply(db, dm):
    ana, bruno, conversation_id = dm
    handle = "attachments/" + "f" * 32
    photo = await message_service.send(db, ana, conversation_id, "", type="image", storage_handle=handle)
    await reaction_service.toggle_reaction(db, bruno, photo.id, "❤️")
    reply = await message_service.send(db, bruno, conversation_id, "nice", reply_to_id=photo.id)

    page = await message_service.list_messages(db, ana, conversation_id)
    by_id = {m.id: m for m in page.page}

    assert handle in by_id[photo.id].file_url
    assert [r.emoji for r in by_id[photo.id].reactions] == ["❤️"]
    assert by_id[reply.id].reply_to.id == photo.id
    assert by_id[reply.id].file_url is None


async def test_unresolvable_handle_does_not_fail_listing(db, dm):
    ana, _, conversation_id = dm
    broken = await message_service.send(db, ana, conversation_id, "", type="file", storage_handle="../etc/passwd")

    page = await message_service.list_messages(db, ana, conversation_id)
    assert page.page[0].id == broken.id
    assert page.page[0].file_url is None


async def test_reply_must_target_same_conversation(db, dm, make_user):
    ana, bruno, conversation_id = dm
    carla = await make_user("carla")
    other = await conversation_service.get_or_create_dm(db, ana, carla)
    elsewhere = await message_service.send(db, ana, other, "elsewhere")

    with pytest.raises(ValidationError):
        await message_service.send(db, ana, conversation_id, "re", reply_to_id=elsewhere.id)
    with pytest.raises(ValidationError):
        await message_service.send(db, ana, conversation_id, "re", reply_to_id=12345)


async def test_edit_is_sender_only(db, dm):
    ana, bruno, conversation_id = dm
    message = await message_service.send(db, ana, conversation_id, "helo")

    with pytest.raises(UnauthorizedError):
        await message_service.edit_message(db, bruno, message.id, "hacked")
    with pytest.raises(NotFoundError):
        await message_service.edit_message(db, ana, 9999, "x")

    edited = await message_service.edit_message(db, ana, message.id, "hello")
    assert edited.content == "hello"
    assert edited.is_edited is True


async def test_soft_delete_is_terminal(db, dm):
    ana, bruno, conversation_id = dm
    message = await message_service.send(
        db, ana, conversation_id, "secret", type="image", storage_handle="attachments/" + "d" * 32
    )
    await reaction_service.toggle_reaction(db, bruno, message.id, "👍")

    with pytest.raises(UnauthorizedError):
        await message_service.soft_delete(db, bruno, message.id)

    deleted = await message_service.soft_delete(db, ana, message.id)
    assert deleted.content == DELETED_PLACEHOLDER
    assert deleted.is_deleted is True

    with pytest.raises(ValidationError):
        await message_service.edit_message(db, ana, message.id, "undo")
    again = await message_service.soft_delete(db, ana, message.id)
    assert again.content == DELETED_PLACEHOLDER

    [item] = (await message_service.list_messages(db, bruno, conversation_id)).page
    assert item.is_deleted is True
    assert item.content == DELETED_PLACEHOLDER
    assert item.file_url is None
    assert item.storage_handle is None
    assert item.reactions == []


async def test_deleted_reply_target_still_resolves(db, dm):
    ana, bruno, conversation_id = dm
    original = await message_service.send(db, ana, conversation_id, "oops")
    reply = await message_service.send(db, bruno, conversation_id, "what?", reply_to_id=original.id)
    await message_service.soft_delete(db, ana, original.id)

    page = await message_service.list_messages(db, bruno, conversation_id)
    item = next(m for m in page.page if m.id == reply.id)
    assert item.reply_to.is_deleted is True
    assert item.reply_to.content == DELETED_PLACEHOLDER


async def test_hide_for_me_only_affects_the_caller(db, dm):
    ana, bruno, conversation_id = dm
    message = await message_service.send(db, ana, conversation_id, "embarrassing")

    await message_service.hide_for_me(db, bruno, message.id)
    await message_service.hide_for_me(db, bruno, message.id)

    assert (await message_service.list_messages(db, bruno, conversation_id)).page == []
    assert [m.id for m in (await message_service.list_messages(db, ana, conversation_id)).page] == [message.id]
    assert await unread_service.get_unread_count(db, conversation_id, bruno) == 1
    [item] = await conversation_service.list_conversations(db, bruno)
    assert item.last_message.id == message.id

    with pytest.raises(NotFoundError):
        await message_service.hide_for_me(db, bruno, 9999)


async def test_outsider_cannot_hide(db, dm, make_user):
    ana, _, conversation_id = dm
    message = await message_service.send(db, ana, conversation_id, "members only")
    mallory = await make_user("mallory")

    with pytest.raises(UnauthorizedError):
        await message_service.hide_for_me(db, mallory, message.id)

    assert [m.id for m in (await message_service.list_messages(db, ana, conversation_id)).page] == [message.id]


async def test_read_receipts(db, dm, ticking_clock):
    ana, bruno, conversation_id = dm
    before = await message_service.send(db, ana, conversation_id, "before")

    # Receipt lands between the two messages (the clock ticks 1ms per insert)
    await unread_service.mark_read(db, bruno, conversation_id, now=before.created_at + timedelta(microseconds=500))
    after = await message_service.send(db, ana, conversation_id, "after")

    page = await message_service.list_messages(db, ana, conversation_id)
    receipts = {m.id: m.read_by for m in page.page}
    assert receipts[before.id] == [bruno]
    assert receipts[after.id] == []
