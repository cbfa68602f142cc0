"""Identity service against a real (SQLite) credential store."""

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from placebook.context import AppContext
from placebook.errors import AuthError, ConflictError, NotFoundError, ValidationError
from placebook.kernel.identity.identity_service import MAX_USERNAME_LENGTH, IdentityService
from placebook.kernel.identity.password import PasswordHasher
from placebook.kernel.store import Query, SqlCredentialStore


class StaleExistsStore(SqlCredentialStore):
    """Store whose existence checks always miss, like a concurrent writer racing us."""

    async def exists(self, query: Query) -> bool:
        return False


@pytest.mark.asyncio
async def test_register_derives_username_and_full_name(identity: IdentityService):
    user, token = await identity.register("a.b@x.com", "secret1")

    assert user.username == "ab"
    assert user.full_name == "ab"
    assert user.email == "a.b@x.com"
    assert user.is_verified is False
    assert user.version == 1
    assert identity.verify_token(token) == str(user.id)


@pytest.mark.asyncio
async def test_register_appends_counter_on_collision(identity: IdentityService):
    first, _ = await identity.register("a.b@x.com", "secret1")
    second, _ = await identity.register("ab@y.com", "secret2")
    third, _ = await identity.register("a-b@z.com", "secret3")

    assert first.username == "ab"
    assert second.username == "ab1"
    assert third.username == "ab2"


@pytest.mark.asyncio
async def test_register_empty_local_part_falls_back(identity: IdentityService):
    user, _ = await identity.register("...@example.com", "secret1")
    assert user.username == "user"


@pytest.mark.asyncio
async def test_register_normalizes_email(identity: IdentityService):
    user, _ = await identity.register("  Mary99@Example.COM ", "secret1")

    assert user.email == "mary99@example.com"
    assert user.username == "mary99"


@pytest.mark.asyncio
async def test_register_stores_hash_not_password(identity: IdentityService, hasher):
    user, _ = await identity.register("a@x.com", "secret1")

    assert user.password_hash != "secret1"
    assert user.password_hash.startswith("$2")
    assert hasher.verify("secret1", user.password_hash)


@pytest.mark.asyncio
async def test_register_duplicate_email(identity: IdentityService, store: SqlCredentialStore):
    await identity.register("a.b@x.com", "secret1")

    with pytest.raises(ConflictError) as exc_info:
        await identity.register("A.B@x.com", "another1")
    assert exc_info.value.message == "Email already registered"
    assert len(await store.find(Query())) == 1


@pytest.mark.asyncio
async def test_register_rejects_bad_input(identity: IdentityService, store: SqlCredentialStore):
    with pytest.raises(ValidationError):
        await identity.register("not-an-email", "secret1")
    with pytest.raises(ValidationError):
        await identity.register("a@x.com", "12345")

    assert await store.find(Query()) == []


@pytest.mark.asyncio
async def test_lost_username_race_is_a_conflict(
    context: AppContext,
    identity: IdentityService,
    db_session: AsyncSession,
):
    await identity.register("a.b@x.com", "secret1")
    await db_session.commit()

    racer = IdentityService(StaleExistsStore(db_session), context.hasher, context.tokens)
    with pytest.raises(ConflictError) as exc_info:
        await racer.register("ab@y.com", "secret2")
    assert exc_info.value.message == "Username already exists"

    users = await identity.list_users()
    assert [u.email for u in users] == ["a.b@x.com"]


@pytest.mark.asyncio
async def test_lost_email_race_is_a_conflict(
    context: AppContext,
    identity: IdentityService,
    db_session: AsyncSession,
):
    await identity.register("a.b@x.com", "secret1")
    await db_session.commit()

    racer = IdentityService(StaleExistsStore(db_session), context.hasher, context.tokens)
    with pytest.raises(ConflictError) as exc_info:
        await racer.register("a.b@x.com", "secret2")
    assert exc_info.value.message == "Email already registered"
    assert len(await identity.list_users()) == 1


@pytest.mark.asyncio
async def test_authenticate(identity: IdentityService):
    registered, _ = await identity.register("a@x.com", "secret1")

    user, token = await identity.authenticate("A@X.com", "secret1")

    assert user.id == registered.id
    assert identity.verify_token(token) == str(user.id)
    assert user.stats.last_active >= registered.stats.last_active


@pytest.mark.asyncio
async def test_authenticate_failures_are_indistinguishable(identity: IdentityService):
    await identity.register("a@x.com", "secret1")

    with pytest.raises(AuthError) as wrong_password:
        await identity.authenticate("a@x.com", "wrong-one")
    with pytest.raises(AuthError) as unknown_email:
        await identity.authenticate("nobody@x.com", "secret1")

    assert wrong_password.value.message == unknown_email.value.message == "Invalid credentials"
    assert wrong_password.value.code == unknown_email.value.code


@pytest.mark.asyncio
async def test_get_user_missing(identity: IdentityService):
    with pytest.raises(NotFoundError):
        await identity.get_user(uuid.uuid4())


@pytest.mark.asyncio
async def test_update_profile_applies_only_profile_fields(identity: IdentityService):
    user, _ = await identity.register("a@x.com", "secret1")

    updated = await identity.update_profile(user.id, {
        "fullName": "Ada Lovelace",
        "bio": "Engines and travel",
        "location": {"country": "UK", "city": "London"},
        "settings": {"language": "fr", "privacy": {"profileVisibility": "friends"}},
        "email": "evil@x.com",
        "password": "hijacked",
        "passwordHash": "hijacked",
        "isVerified": True,
        "username": "ada",
    })

    assert updated.full_name == "Ada Lovelace"
    assert updated.bio == "Engines and travel"
    assert updated.location.city == "London"
    assert updated.settings.language == "fr"
    assert updated.settings.privacy.profile_visibility == "friends"

    assert updated.email == "a@x.com"
    assert updated.password_hash == user.password_hash
    assert updated.is_verified is False
    assert updated.username == "a"
    assert updated.version == user.version + 1


@pytest.mark.asyncio
async def test_update_profile_with_only_protected_fields_changes_nothing(identity: IdentityService):
    user, _ = await identity.register("a@x.com", "secret1")

    unchanged = await identity.update_profile(user.id, {"email": "b@x.com", "isVerified": True})

    assert unchanged.email == "a@x.com"
    assert unchanged.version == user.version


@pytest.mark.asyncio
async def test_update_profile_validates(identity: IdentityService):
    user, _ = await identity.register("a@x.com", "secret1")

    with pytest.raises(ValidationError) as exc_info:
        await identity.update_profile(user.id, {"bio": "x" * 251})
    assert exc_info.value.details["errors"][0]["field"] == "bio"

    with pytest.raises(ValidationError):
        await identity.update_profile(user.id, {"social": {"instagram": "not a url"}})


@pytest.mark.asyncio
async def test_update_profile_missing_user(identity: IdentityService):
    with pytest.raises(NotFoundError):
        await identity.update_profile(uuid.uuid4(), {"bio": "hello"})


@pytest.mark.asyncio
async def test_change_password(identity: IdentityService):
    user, _ = await identity.register("a@x.com", "secret1")

    await identity.change_password(user.id, "secret1", "better-secret")

    await identity.authenticate("a@x.com", "better-secret")
    with pytest.raises(AuthError):
        await identity.authenticate("a@x.com", "secret1")


@pytest.mark.asyncio
async def test_change_password_wrong_current_keeps_hash(identity: IdentityService):
    user, _ = await identity.register("a@x.com", "secret1")

    with pytest.raises(AuthError) as exc_info:
        await identity.change_password(user.id, "wrong-one", "better-secret")
    assert exc_info.value.message == "Current password is incorrect"

    assert (await identity.get_user(user.id)).password_hash == user.password_hash


@pytest.mark.asyncio
async def test_change_password_too_short(identity: IdentityService):
    user, _ = await identity.register("a@x.com", "secret1")

    with pytest.raises(ValidationError):
        await identity.change_password(user.id, "secret1", "short")


@pytest.mark.asyncio
async def test_change_password_missing_user(identity: IdentityService):
    with pytest.raises(NotFoundError):
        await identity.change_password(uuid.uuid4(), "secret1", "better-secret")


@pytest.mark.asyncio
async def test_change_username(identity: IdentityService):
    user, _ = await identity.register("a@x.com", "secret1")
    await identity.register("b@x.com", "secret1")

    renamed = await identity.change_username(user.id, "ada")
    assert renamed.username == "ada"

    with pytest.raises(ValidationError):
        await identity.change_username(user.id, "ada lovelace")
    with pytest.raises(NotFoundError):
        await identity.change_username(uuid.uuid4(), "nobody")


@pytest.mark.asyncio
async def test_change_username_taken(identity: IdentityService, db_session: AsyncSession):
    user, _ = await identity.register("a@x.com", "secret1")
    await identity.register("b@x.com", "secret1")
    await db_session.commit()

    with pytest.raises(ConflictError):
        await identity.change_username(user.id, "b")


@pytest.mark.asyncio
async def test_reset_password(identity: IdentityService):
    await identity.register("a@x.com", "secret1")

    await identity.reset_password("A@x.com", "fresh-secret")

    await identity.authenticate("a@x.com", "fresh-secret")
    with pytest.raises(NotFoundError):
        await identity.reset_password("nobody@x.com", "fresh-secret")


@pytest.mark.asyncio
async def test_list_users_newest_first(identity: IdentityService, store: SqlCredentialStore):
    first, _ = await identity.register("a@x.com", "secret1")
    second, _ = await identity.register("b@x.com", "secret1")

    users = await identity.list_users()

    assert {u.id for u in users} == {first.id, second.id}
    assert users[0].created_at >= users[1].created_at


@pytest.mark.asyncio
async def test_login_upgrades_hash_work_factor(context: AppContext, db_session: AsyncSession):
    weak = IdentityService(SqlCredentialStore(db_session), PasswordHasher(rounds=4), context.tokens)
    strong = IdentityService(SqlCredentialStore(db_session), PasswordHasher(rounds=5), context.tokens)
    registered, _ = await weak.register("a@x.com", "secret1")

    user, _ = await strong.authenticate("a@x.com", "secret1")

    assert registered.password_hash.startswith("$2b$04$")
    assert user.password_hash.startswith("$2b$05$")
    await weak.authenticate("a@x.com", "secret1")


@pytest.mark.asyncio
async def test_long_local_part_collision_stays_within_column(identity: IdentityService):
    local = "x" * 64
    first, _ = await identity.register(f"{local}@a.com", "secret1")
    second, _ = await identity.register(f"{local}@b.com", "secret1")

    assert first.username == local
    assert second.username == "x" * 63 + "1"
    assert len(second.username) == MAX_USERNAME_LENGTH


@pytest.mark.asyncio
async def test_change_username_too_long(identity: IdentityService):
    user, _ = await identity.register("a@x.com", "secret1")

    with pytest.raises(ValidationError):
        await identity.change_username(user.id, "y" * (MAX_USERNAME_LENGTH + 1))
