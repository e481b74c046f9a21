"""
Account store

The persistence boundary the user resolver and the OAuth service work
against. Writes flush immediately so unique-constraint violations surface as
`sqlalchemy.exc.IntegrityError` at the call site; nothing is committed until
`commit()`.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from headless_oauth.models.account import Customer, ShopUser
from headless_oauth.models.oauth_identity import ExternalIdentity
from headless_oauth.repositories.base import BaseRepository


def normalize_email(email: str) -> str:
    """Stored and compared form of an email address."""
    return email.strip().lower()


class AccountStore(ABC):
    """Persistence operations needed to resolve OAuth identities to accounts."""

    @abstractmethod
    async def find_by_external_id(self, provider: str, provider_id: str) -> Optional[ExternalIdentity]: ...

    @abstractmethod
    async def find_identity_for_customer(self, customer_id: str, provider: str) -> Optional[ExternalIdentity]: ...

    @abstractmethod
    async def find_customer_by_email(self, email: str) -> Optional[Customer]: ...

    @abstractmethod
    async def get_customer(self, customer_id: str) -> Optional[Customer]: ...

    @abstractmethod
    async def create_customer(
        self, email: str, first_name: Optional[str] = None, last_name: Optional[str] = None
    ) -> Customer: ...

    @abstractmethod
    async def create_external_identity(
        self, customer: Customer, provider: str, provider_id: str
    ) -> ExternalIdentity: ...

    @abstractmethod
    async def get_shop_user(self, customer: Customer) -> Optional[ShopUser]: ...

    @abstractmethod
    async def create_shop_user_for(
        self,
        customer: Customer,
        hashed_password: str,
        *,
        has_usable_password: bool = False,
        verified_at: Optional[datetime] = None,
    ) -> ShopUser: ...

    @abstractmethod
    async def list_identities(self, customer_id: str) -> List[ExternalIdentity]: ...

    @abstractmethod
    async def delete_identity(self, identity: ExternalIdentity) -> None: ...

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...


class CustomerRepository(BaseRepository[Customer]):
    """Customer data access"""

    def __init__(self, db: AsyncSession):
        super().__init__(Customer, db)

    async def get_by_email(self, email: str) -> Optional[Customer]:
        """Case-insensitive email lookup (at most one row, see customer_email_lower_uq)"""
        result = await self.db.execute(select(Customer).where(func.lower(Customer.email) == normalize_email(email)))
        return result.scalar_one_or_none()


class ShopUserRepository(BaseRepository[ShopUser]):
    """ShopUser data access"""

    def __init__(self, db: AsyncSession):
        super().__init__(ShopUser, db)


class ExternalIdentityRepository(BaseRepository[ExternalIdentity]):
    """ExternalIdentity data access"""

    def __init__(self, db: AsyncSession):
        super().__init__(ExternalIdentity, db)


class SqlAlchemyAccountStore(AccountStore):
    """AccountStore over one AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.customers = CustomerRepository(db)
        self.shop_users = ShopUserRepository(db)
        self.identities = ExternalIdentityRepository(db)

    async def find_by_external_id(self, provider: str, provider_id: str) -> Optional[ExternalIdentity]:
        return await self.identities.get_by(provider=provider, provider_account_id=provider_id)

    async def find_identity_for_customer(self, customer_id: str, provider: str) -> Optional[ExternalIdentity]:
        return await self.identities.get_by(customer_id=customer_id, provider=provider)

    async def find_customer_by_email(self, email: str) -> Optional[Customer]:
        return await self.customers.get_by_email(email)

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        return await self.customers.get(customer_id)

    async def create_customer(
        self, email: str, first_name: Optional[str] = None, last_name: Optional[str] = None
    ) -> Customer:
        return await self.customers.create(email=normalize_email(email), first_name=first_name, last_name=last_name)

    async def create_external_identity(
        self, customer: Customer, provider: str, provider_id: str
    ) -> ExternalIdentity:
        return await self.identities.create(
            customer_id=customer.id,
            provider=provider,
            provider_account_id=provider_id,
        )

    async def get_shop_user(self, customer: Customer) -> Optional[ShopUser]:
        return await self.shop_users.get_by(customer_id=customer.id)

    async def create_shop_user_for(
        self,
        customer: Customer,
        hashed_password: str,
        *,
        has_usable_password: bool = False,
        verified_at: Optional[datetime] = None,
    ) -> ShopUser:
        return await self.shop_users.create(
            customer_id=customer.id,
            username=customer.email,
            hashed_password=hashed_password,
            has_usable_password=has_usable_password,
            enabled=True,
            verified_at=verified_at,
        )

    async def list_identities(self, customer_id: str) -> List[ExternalIdentity]:
        return await self.identities.find(order_by="connected_at", customer_id=customer_id)

    async def delete_identity(self, identity: ExternalIdentity) -> None:
        await self.identities.delete(identity)

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
