"""
Base Service
"""

from headless_oauth.repositories.account_store import AccountStore


class BaseService:
    """
    Base service class.

    Business services work against an `AccountStore` and own its
    transaction boundaries.
    """

    def __init__(self, store: AccountStore):
        self.store = store

    async def commit(self) -> None:
        """Commit the transaction"""
        await self.store.commit()

    async def rollback(self) -> None:
        """Roll back the transaction"""
        await self.store.rollback()
