"""SQLAlchemy account store tests."""

import pytest
from sqlalchemy.exc import IntegrityError

from headless_oauth.repositories.account_store import SqlAlchemyAccountStore


@pytest.fixture
def store(db_session):
    return SqlAlchemyAccountStore(db_session)


class TestSqlAlchemyAccountStore:
    @pytest.mark.asyncio
    async def test_customer_lookup_is_case_insensitive(self, store):
        customer = await store.create_customer("Jane.Doe@Example.com", "Jane", None)
        await store.commit()

        found = await store.find_customer_by_email("  jane.doe@example.COM ")

        assert found is not None
        assert found.id == customer.id
        assert await store.find_customer_by_email("other@example.com") is None
        assert (await store.get_customer(customer.id)).first_name == "Jane"
        assert await store.get_customer("missing") is None

    @pytest.mark.asyncio
    async def test_email_is_stored_normalized_and_unique_by_case(self, store):
        customer = await store.create_customer("  Jane@Example.COM ")
        await store.commit()

        assert customer.email == "jane@example.com"
        with pytest.raises(IntegrityError):
            await store.create_customer("JANE@example.com")
        await store.rollback()

    @pytest.mark.asyncio
    async def test_case_variant_rows_are_rejected_by_the_database(self, store):
        await store.customers.create(email="Jane@Example.com")
        await store.commit()

        with pytest.raises(IntegrityError):
            await store.customers.create(email="jane@example.com")
        await store.rollback()

    @pytest.mark.asyncio
    async def test_external_identity(self, store):
        customer = await store.create_customer("jane@example.com")
        identity = await store.create_external_identity(customer, "google", "g-1")
        await store.commit()

        assert (await store.find_by_external_id("google", "g-1")).id == identity.id
        assert await store.find_by_external_id("google", "g-2") is None
        assert await store.find_by_external_id("github", "g-1") is None
        assert (await store.find_identity_for_customer(customer.id, "google")).provider_account_id == "g-1"
        assert identity.connected_at is not None

    @pytest.mark.asyncio
    async def test_provider_account_is_unique(self, store):
        first = await store.create_customer("a@example.com")
        second = await store.create_customer("b@example.com")
        await store.create_external_identity(first, "google", "g-1")
        await store.commit()

        with pytest.raises(IntegrityError):
            await store.create_external_identity(second, "google", "g-1")
        await store.rollback()

    @pytest.mark.asyncio
    async def test_one_identity_per_provider_per_customer(self, store):
        customer = await store.create_customer("a@example.com")
        await store.create_external_identity(customer, "google", "g-1")
        await store.commit()

        with pytest.raises(IntegrityError):
            await store.create_external_identity(customer, "google", "g-2")
        await store.rollback()

    @pytest.mark.asyncio
    async def test_email_is_unique(self, store):
        await store.create_customer("a@example.com")
        await store.commit()

        with pytest.raises(IntegrityError):
            await store.create_customer("a@example.com")
        await store.rollback()

    @pytest.mark.asyncio
    async def test_shop_user(self, store):
        customer = await store.create_customer("jane@example.com")
        assert await store.get_shop_user(customer) is None

        shop_user = await store.create_shop_user_for(customer, "hashed")
        await store.commit()

        found = await store.get_shop_user(customer)
        assert found.id == shop_user.id
        assert found.username == "jane@example.com"
        assert found.has_usable_password is False
        assert found.enabled is True

    @pytest.mark.asyncio
    async def test_list_and_delete_identities(self, store):
        customer = await store.create_customer("jane@example.com")
        google = await store.create_external_identity(customer, "google", "g-1")
        await store.create_external_identity(customer, "github", "gh-1")
        await store.commit()

        assert {i.provider for i in await store.list_identities(customer.id)} == {"google", "github"}

        await store.delete_identity(google)
        await store.commit()

        assert [i.provider for i in await store.list_identities(customer.id)] == ["github"]
        assert await store.list_identities("someone-else") == []
