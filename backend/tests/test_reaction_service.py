import pytest
import pytest_asyncio
from sqlalchemy import select

from messenger.core.exceptions import NotFoundError, UnauthorizedError, ValidationError
from messenger.db.models.message import MessageReaction
from messenger.services import conversation_service, message_service, reaction_service


async def user_reactions(db, message_id, user_id):
    result = await db.execute(
        select(MessageReaction.emoji)
        .where(MessageReaction.message_id == message_id, MessageReaction.user_id == user_id)
        .order_by(MessageReaction.id)
    )
    return list(result.scalars().all())


@pytest_asyncio.fixture
async def message(db, make_user):
    ana = await make_user("ana")
    bruno = await make_user("bruno")
    dm = await conversation_service.get_or_create_dm(db, ana, bruno)
    sent = await message_service.send(db, ana, dm, "react to me")
    return ana, bruno, sent.id


async def test_same_emoji_twice_toggles_off(db, message):
    _, bruno, message_id = message

    result = await reaction_service.toggle_reaction(db, bruno, message_id, "👍")
    assert result.emoji == "👍"
    assert await user_reactions(db, message_id, bruno) == ["👍"]

    result = await reaction_service.toggle_reaction(db, bruno, message_id, "👍")
    assert result.emoji is None
    assert await user_reactions(db, message_id, bruno) == []


@pytest.mark.parametrize("sequence", [
    ["👍", "❤️", "😂"],
    ["👍", "❤️", "❤️", "👍"],
    ["😂", "😂", "😂"],
])
async def test_at_most_one_row_after_every_toggle(db, message, sequence):
    _, bruno, message_id = message
    for emoji in sequence:
        await reaction_service.toggle_reaction(db, bruno, message_id, emoji)
        assert len(await user_reactions(db, message_id, bruno)) <= 1


async def test_different_emoji_replaces(db, message):
    ana, bruno, message_id = message
    await reaction_service.toggle_reaction(db, bruno, message_id, "👍")
    await reaction_service.toggle_reaction(db, ana, message_id, "👍")
    await reaction_service.toggle_reaction(db, bruno, message_id, "🎉")

    assert await user_reactions(db, message_id, bruno) == ["🎉"]
    assert await user_reactions(db, message_id, ana) == ["👍"]


async def test_legacy_duplicates_collapse_to_one(db, message):
    _, bruno, message_id = message
    db.add_all([
        MessageReaction(message_id=message_id, user_id=bruno, emoji="👍"),
        MessageReaction(message_id=message_id, user_id=bruno, emoji="❤️"),
        MessageReaction(message_id=message_id, user_id=bruno, emoji="👍"),
    ])
    await db.commit()

    await reaction_service.toggle_reaction(db, bruno, message_id, "😮")
    assert await user_reactions(db, message_id, bruno) == ["😮"]


async def test_legacy_duplicates_with_matching_emoji_toggle_off(db, message):
    _, bruno, message_id = message
    db.add_all([
        MessageReaction(message_id=message_id, user_id=bruno, emoji="👍"),
        MessageReaction(message_id=message_id, user_id=bruno, emoji="❤️"),
    ])
    await db.commit()

    result = await reaction_service.toggle_reaction(db, bruno, message_id, "❤️")
    assert result.emoji is None
    assert await user_reactions(db, message_id, bruno) == []


async def test_reaction_errors(db, message):
    ana, bruno, message_id = message
    with pytest.raises(NotFoundError):
        await reaction_service.toggle_reaction(db, bruno, 9999, "👍")
    with pytest.raises(ValidationError):
        await reaction_service.toggle_reaction(db, bruno, message_id, "  ")

    await message_service.soft_delete(db, ana, message_id)
    with pytest.raises(ValidationError):
        await reaction_service.toggle_reaction(db, bruno, message_id, "👍")


async def test_outsider_cannot_react(db, make_user, message, published_events):
    _, _, message_id = message
    mallory = await make_user("mallory")
    published_events.clear()

    with pytest.raises(UnauthorizedError):
        await reaction_service.toggle_reaction(db, mallory, message_id, "💩")

    assert await user_reactions(db, message_id, mallory) == []
    assert published_events == []
