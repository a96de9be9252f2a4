import pytest

from shared.utils import NotFoundError, StateError
from storefront.models import Lifecycle
from storefront.schemas import ContactMessageCreate
from storefront.services.contact import ContactService


@pytest.fixture
def contact(session_factory):
    return ContactService(session_factory)


async def send(contact, subject="Question", email="Visitor@Example.com"):
    return await contact.create_message(ContactMessageCreate(
        name="Visitor", email=email, subject=subject, message="<script>hi</script>",
    ))


async def test_new_message_is_unread_and_sanitized(contact):
    message = await send(contact)

    assert message.email == "visitor@example.com"
    assert "<script>" not in message.message
    assert not message.is_read
    assert not message.is_replied


async def test_read_flags(contact):
    message = await send(contact)

    assert (await contact.mark_read(message.id)).is_read
    assert not (await contact.mark_unread(message.id)).is_read
    assert (await contact.toggle_read(message.id)).is_read


async def test_reply_marks_read_and_replied(contact, make_user):
    admin = await make_user("root")
    message = await send(contact)

    replied = await contact.reply(message.id, "Thanks for writing", admin.id)

    assert replied.is_replied and replied.is_read
    assert replied.admin_reply == "Thanks for writing"
    assert replied.replied_date is not None


async def test_cannot_reply_to_deleted_message(contact, make_user):
    admin = await make_user("root")
    message = await send(contact)
    await contact.delete_message(message.id)

    with pytest.raises(StateError):
        await contact.reply(message.id, "Too late", admin.id)

    restored = await contact.restore_message(message.id)
    assert restored.lifecycle == Lifecycle.ACTIVE


async def test_bulk_operations_are_all_or_nothing(contact):
    first = await send(contact, "One")
    second = await send(contact, "Two")

    with pytest.raises(NotFoundError) as exc:
        await contact.bulk_mark([first.id, 404], True)
    assert exc.value.context == {"ids": [404]}
    assert not (await contact.get_message(first.id)).is_read

    assert await contact.bulk_mark([first.id, second.id, first.id], True) == 2
    assert await contact.bulk_delete([first.id]) == 1

    rows, total = await contact.list_messages()
    assert [m.subject for m in rows] == ["Two"]
    rows, total = await contact.list_messages(include_deleted=True)
    assert total == 2

    assert await contact.bulk_hard_delete([first.id, second.id]) == 2
    with pytest.raises(NotFoundError):
        await contact.get_message(first.id)


async def test_filters_and_statistics(contact, make_user):
    admin = await make_user("root")
    read = await send(contact, "Shipping delay")
    await send(contact, "Invoice copy", email="billing@example.com")
    await contact.reply(read.id, "On its way", admin.id)

    rows, _ = await contact.list_messages(search="billing")
    assert [m.subject for m in rows] == ["Invoice copy"]
    rows, _ = await contact.list_messages(is_replied=True)
    assert [m.subject for m in rows] == ["Shipping delay"]

    stats = await contact.get_statistics()
    assert stats.total_messages == 2
    assert stats.unread_messages == 1
    assert stats.replied_messages == 1
    assert stats.pending_replies == 1
    assert stats.today_messages == 2
    assert stats.deleted_messages == 0
