import pytest

from booking_engine.models.user import User, UserStatus
from booking_engine.services.identity_service import get_or_create_pending_user, get_user_by_email


@pytest.mark.asyncio
async def test_lookup_ignores_case_and_whitespace(db, pending_user):
    found = await get_user_by_email(db, "  GUEST@example.COM ")

    assert found.id == pending_user.id


@pytest.mark.asyncio
async def test_accounts_differing_only_in_case_resolve_to_the_oldest(db):
    older = User(email="Twin@Example.com", full_name="First Twin")
    newer = User(email="twin@example.com", full_name="Second Twin")
    db.add(older)
    await db.flush()
    db.add(newer)
    await db.commit()

    found = await get_user_by_email(db, "twin@example.com")
    bound = await get_or_create_pending_user(db, "TWIN@example.com")

    assert found.id == older.id
    assert bound.id == older.id


@pytest.mark.asyncio
async def test_unknown_email_provisions_pending_account(db):
    user = await get_or_create_pending_user(db, " New.Person@Example.com ", full_name="New Person")

    assert user.email == "new.person@example.com"
    assert user.full_name == "New Person"
    assert user.status == UserStatus.PENDING.value
