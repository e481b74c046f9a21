"""User resolver tests."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from headless_oauth.common.exceptions import AccountLinkConflictError, UnknownProviderError
from headless_oauth.core.oauth.audit import BaseSecurityLogger
from headless_oauth.core.oauth.events import OAuthEventDispatcher, OAuthEventType
from headless_oauth.core.oauth.models import OAuthUserData
from headless_oauth.models.account import Customer
from headless_oauth.repositories.account_store import SqlAlchemyAccountStore
from headless_oauth.services.user_resolver import UserResolver, backfill_names

FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


# ==================== Helpers ====================


class RacingStore(SqlAlchemyAccountStore):
    """Misses the email lookup a few times, as if another request created the account meanwhile."""

    def __init__(self, db, misses: int = 1):
        super().__init__(db)
        self.misses = misses
        self.rollbacks = 0

    async def find_customer_by_email(self, email):
        if self.misses > 0:
            self.misses -= 1
            return None
        return await super().find_customer_by_email(email)

    async def rollback(self):
        self.rollbacks += 1
        await super().rollback()


def _user(provider="google", provider_id="g-1", email="jane@example.com", **kwargs) -> OAuthUserData:
    return OAuthUserData(provider=provider, provider_id=provider_id, email=email, **kwargs)


@pytest.fixture
def audit_logger():
    return MagicMock(spec=BaseSecurityLogger)


@pytest.fixture
def store(db_session):
    return SqlAlchemyAccountStore(db_session)


@pytest.fixture
def resolver(store, audit_logger):
    return UserResolver(store, audit_logger, clock=lambda: FIXED_NOW)


# ==================== Tests ====================


def test_backfill_names_only_fills_blanks():
    customer = Customer(email="a@b.com", first_name="Existing", last_name=None)

    changed = backfill_names(customer, _user(first_name="New", last_name="Name"))

    assert changed is True
    assert (customer.first_name, customer.last_name) == ("Existing", "Name")
    assert backfill_names(customer, _user(first_name="Other", last_name="Other")) is False


class TestUserResolver:
    @pytest.mark.asyncio
    async def test_creates_account(self, resolver, store):
        result = await resolver.resolve(_user(first_name="Jane", last_name="Doe"))

        assert result.is_new_user is True
        assert result.customer.email == "jane@example.com"
        assert (result.customer.first_name, result.customer.last_name) == ("Jane", "Doe")
        assert result.shop_user.customer_id == result.customer.id
        assert result.shop_user.has_usable_password is False
        assert result.shop_user.hashed_password
        assert result.shop_user.verified_at is not None
        assert (await store.find_by_external_id("google", "g-1")).customer_id == result.customer.id

    @pytest.mark.asyncio
    async def test_repeat_login_finds_same_account(self, resolver):
        first = await resolver.resolve(_user())
        second = await resolver.resolve(_user(email="renamed@example.com"))

        assert second.is_new_user is False
        assert second.customer.id == first.customer.id
        assert second.shop_user.id == first.shop_user.id

    @pytest.mark.asyncio
    async def test_links_existing_customer_by_email(self, resolver, store, audit_logger):
        customer = await store.create_customer("Jane@Example.com", "Janet", None)
        await store.commit()

        result = await resolver.resolve(_user(provider="github", provider_id="583231", first_name="Jane", last_name="Doe"))

        assert result.is_new_user is False
        assert result.customer.id == customer.id
        assert (result.customer.first_name, result.customer.last_name) == ("Janet", "Doe")
        assert (await store.find_by_external_id("github", "583231")).customer_id == customer.id
        audit_logger.log_provider_linked.assert_called_once_with("github", customer.id)

    @pytest.mark.asyncio
    async def test_existing_customer_gets_shop_user(self, resolver, store):
        customer = await store.create_customer("jane@example.com")
        await store.commit()

        result = await resolver.resolve(_user())

        assert result.shop_user.customer_id == customer.id
        assert (await store.get_shop_user(customer)).id == result.shop_user.id

    @pytest.mark.asyncio
    async def test_conflicting_identity_for_same_provider(self, resolver, store, audit_logger):
        first_customer_id = (await resolver.resolve(_user(provider_id="g-1"))).customer.id

        with pytest.raises(AccountLinkConflictError) as exc_info:
            await resolver.resolve(_user(provider_id="g-2"))

        assert exc_info.value.status_code == 409
        audit_logger.log_suspicious_activity.assert_called_once()
        assert audit_logger.log_suspicious_activity.call_args.args[0] == "account_link_conflict"
        assert await store.find_by_external_id("google", "g-2") is None
        assert [i.provider_account_id for i in await store.list_identities(first_customer_id)] == ["g-1"]

    @pytest.mark.asyncio
    async def test_concurrent_creation_converges(self, db_session, store):
        existing_id = (await store.create_customer("jane@example.com")).id
        await store.commit()
        racing = RacingStore(db_session, misses=1)

        result = await UserResolver(racing).resolve(_user())

        assert racing.rollbacks == 1
        assert result.is_new_user is False
        assert result.customer.id == existing_id

    @pytest.mark.asyncio
    async def test_case_variant_emails_share_one_account(self, db_session, store):
        racing = RacingStore(db_session, misses=1)
        first_id = (await UserResolver(racing).resolve(_user(provider="google", provider_id="g-1"))).customer.id

        racing.misses = 1
        second = await UserResolver(racing).resolve(
            _user(provider="github", provider_id="583231", email="Jane@Example.com")
        )

        assert racing.rollbacks == 1
        assert second.customer.id == first_id
        assert (await store.find_by_external_id("github", "583231")).customer_id == first_id
        count = await db_session.scalar(select(func.count()).select_from(Customer))
        assert count == 1

    @pytest.mark.asyncio
    async def test_persistent_conflict_gives_up(self, db_session, store):
        await store.create_customer("jane@example.com")
        await store.commit()
        racing = RacingStore(db_session, misses=10)

        with pytest.raises(AccountLinkConflictError, match="concurrent"):
            await UserResolver(racing, max_attempts=3).resolve(_user())
        assert racing.rollbacks == 3

    @pytest.mark.asyncio
    async def test_dangling_identity_is_replaced(self, resolver, store):
        await store.identities.create(customer_id="deleted-customer", provider="google", provider_account_id="g-1")
        await store.commit()

        result = await resolver.resolve(_user())

        assert result.is_new_user is True
        assert (await store.find_by_external_id("google", "g-1")).customer_id == result.customer.id

    @pytest.mark.asyncio
    async def test_requires_provider_identity(self, resolver):
        with pytest.raises(UnknownProviderError):
            await resolver.resolve(_user(provider=""))

    @pytest.mark.asyncio
    async def test_unexpected_error_rolls_back(self, db_session):
        store = RacingStore(db_session, misses=0)

        async def broken(*args, **kwargs):
            raise RuntimeError("database gone")

        store.find_by_external_id = broken

        with pytest.raises(RuntimeError):
            await UserResolver(store).resolve(_user())
        assert store.rollbacks == 1


class TestResolverHooks:
    @pytest.mark.asyncio
    async def test_pre_create_listener_shapes_new_customer(self, store):
        events = OAuthEventDispatcher()

        def customise(event):
            event.first_name = event.first_name or "Guest"
            event.additional_data["newsletter"] = False

        events.add_listener(OAuthEventType.PRE_USER_CREATE, customise)

        result = await UserResolver(store, events=events).resolve(_user(last_name="Doe"))

        assert (result.customer.first_name, result.customer.last_name) == ("Guest", "Doe")
        assert result.additional_data == {"newsletter": False}

    @pytest.mark.asyncio
    async def test_pre_create_failure_creates_nothing(self, db_session, store):
        events = OAuthEventDispatcher()

        async def veto(event):
            raise AccountLinkConflictError("sign-ups are closed")

        events.add_listener(OAuthEventType.PRE_USER_CREATE, veto)

        with pytest.raises(AccountLinkConflictError, match="closed"):
            await UserResolver(store, events=events).resolve(_user())
        assert await db_session.scalar(select(func.count()).select_from(Customer)) == 0

    @pytest.mark.asyncio
    async def test_linked_event_after_commit(self, store, session_factory):
        customer_id = (await store.create_customer("jane@example.com")).id
        await store.commit()
        events = OAuthEventDispatcher()
        seen = []

        async def on_linked(event):
            # visible to another session, so the link is already committed
            async with session_factory() as other:
                identity = await SqlAlchemyAccountStore(other).find_by_external_id(event.provider, event.provider_id)
            seen.append((event.customer.id, event.provider, identity.customer_id))

        events.add_listener(OAuthEventType.PROVIDER_LINKED, on_linked)
        resolver = UserResolver(store, events=events)

        await resolver.resolve(_user(provider="github", provider_id="583231"))
        await resolver.resolve(_user(provider="github", provider_id="583231"))

        assert seen == [(customer_id, "github", customer_id)]

    @pytest.mark.asyncio
    async def test_new_account_is_not_a_link(self, store):
        events = OAuthEventDispatcher()
        linked = []
        events.add_listener(OAuthEventType.PROVIDER_LINKED, linked.append)

        await UserResolver(store, events=events).resolve(_user())

        assert linked == []
