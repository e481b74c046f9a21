"""
User resolver - maps a verified external identity to a local account.

Resolution order:
1. Existing identity link (provider, provider_id) -> its customer
2. Existing customer with the same email -> link the identity to it
3. Otherwise create customer + identity + shop user

Concurrent first logins race on the unique indexes of `customer.email`,
`oauth_identity(provider, provider_account_id)` and
`oauth_identity(customer_id, provider)`. The loser gets an IntegrityError,
rolls back and resolves again, converging on the winner's account.

Hooks: PRE_USER_CREATE runs before a customer is created (and again on a
retried attempt); PROVIDER_LINKED runs after the link is committed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from loguru import logger
from sqlalchemy.exc import IntegrityError

from headless_oauth.common.exceptions import AccountLinkConflictError, UnknownProviderError
from headless_oauth.core.oauth.audit import BaseSecurityLogger, NullSecurityLogger, mask_email
from headless_oauth.core.oauth.events import OAuthEventDispatcher, PreUserCreateEvent, ProviderLinkedEvent
from headless_oauth.core.oauth.models import OAuthUserData
from headless_oauth.core.security import generate_unusable_password, get_password_hash
from headless_oauth.models.account import Customer, ShopUser
from headless_oauth.models.base import utc_now
from headless_oauth.repositories.account_store import AccountStore
from headless_oauth.services.base import BaseService

LOG_PREFIX = "[UserResolver]"

MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class UserResolveResult:
    shop_user: ShopUser
    customer: Customer
    is_new_user: bool
    # set by PRE_USER_CREATE listeners for new accounts
    additional_data: Dict[str, Any] = field(default_factory=dict)


def backfill_names(customer: Customer, user_data: OAuthUserData) -> bool:
    """
    Copy provider names onto the customer where the customer has none.

    Existing values are never overwritten. Returns True when anything changed.
    """
    changed = False
    if customer.first_name is None and user_data.first_name:
        customer.first_name = user_data.first_name
        changed = True
    if customer.last_name is None and user_data.last_name:
        customer.last_name = user_data.last_name
        changed = True
    return changed


class UserResolver(BaseService):
    """Find-or-link-or-create for OAuth identities."""

    def __init__(
        self,
        store: AccountStore,
        audit_logger: Optional[BaseSecurityLogger] = None,
        clock: Callable[[], datetime] = utc_now,
        max_attempts: int = MAX_ATTEMPTS,
        events: Optional[OAuthEventDispatcher] = None,
    ):
        super().__init__(store)
        self.audit_logger = audit_logger or NullSecurityLogger()
        self._clock = clock
        self.max_attempts = max_attempts
        self.events = OAuthEventDispatcher() if events is None else events

    async def resolve(self, user_data: OAuthUserData) -> UserResolveResult:
        """
        Resolve `user_data` to a shop user, committing any changes.

        Raises:
            UnknownProviderError: user data carries no provider name
            AccountLinkConflictError: the email's account already holds a
                different identity for this provider, or conflicts persisted
                across every retry
        """
        if not user_data.provider or not user_data.provider_id:
            raise UnknownProviderError("OAuth user data carries no provider identity")

        for attempt in range(1, self.max_attempts + 1):
            try:
                result, linked = await self._resolve_once(user_data)
                await self.commit()
            except IntegrityError as e:
                await self.rollback()
                if attempt >= self.max_attempts:
                    logger.error(
                        f"{LOG_PREFIX} Giving up on {user_data.provider}:{user_data.provider_id} "
                        f"after {attempt} conflicting attempts"
                    )
                    raise AccountLinkConflictError(
                        f"Could not link {user_data.provider} account: concurrent account changes"
                    ) from e
                logger.warning(
                    f"{LOG_PREFIX} Conflict resolving {user_data.provider}:{user_data.provider_id}, "
                    f"retrying ({attempt}/{self.max_attempts})"
                )
            except Exception:
                await self.rollback()
                raise
            else:
                if linked:
                    await self.events.dispatch(
                        ProviderLinkedEvent(result.customer, user_data.provider, user_data.provider_id)
                    )
                return result

        # max_attempts < 1
        raise AccountLinkConflictError(f"Could not resolve {user_data.provider} account")

    async def _resolve_once(self, user_data: OAuthUserData) -> Tuple[UserResolveResult, bool]:
        """Returns the result and whether an identity was linked to an existing customer."""
        # 1. Existing identity link
        identity = await self.store.find_by_external_id(user_data.provider, user_data.provider_id)
        if identity is not None:
            customer = await self.store.get_customer(identity.customer_id)
            if customer is not None:
                shop_user = await self._get_or_create_shop_user(customer)
                logger.debug(f"{LOG_PREFIX} Found existing link for {user_data.provider}:{user_data.provider_id}")
                return UserResolveResult(shop_user=shop_user, customer=customer, is_new_user=False), False

            logger.warning(f"{LOG_PREFIX} Identity {identity.id} points to a missing customer, removing it")
            await self.store.delete_identity(identity)

        # 2. Existing customer with the same email
        customer = await self.store.find_customer_by_email(user_data.email)
        if customer is not None:
            await self._link(customer, user_data)
            shop_user = await self._get_or_create_shop_user(customer)
            return UserResolveResult(shop_user=shop_user, customer=customer, is_new_user=False), True

        # 3. New account
        event = await self.events.dispatch(PreUserCreateEvent.from_user_data(user_data))
        customer = await self.store.create_customer(user_data.email, event.first_name, event.last_name)
        await self.store.create_external_identity(customer, user_data.provider, user_data.provider_id)
        shop_user = await self._create_shop_user(customer)
        logger.info(f"{LOG_PREFIX} Created customer {customer.id} via {user_data.provider}")
        result = UserResolveResult(
            shop_user=shop_user,
            customer=customer,
            is_new_user=True,
            additional_data=event.additional_data,
        )
        return result, False

    async def _link(self, customer: Customer, user_data: OAuthUserData) -> None:
        existing = await self.store.find_identity_for_customer(customer.id, user_data.provider)
        if existing is not None and existing.provider_account_id != user_data.provider_id:
            self.audit_logger.log_suspicious_activity(
                "account_link_conflict",
                provider=user_data.provider,
                customer_id=customer.id,
                email=mask_email(user_data.email),
            )
            raise AccountLinkConflictError(
                f"This account is already linked to a different {user_data.provider} account"
            )

        await self.store.create_external_identity(customer, user_data.provider, user_data.provider_id)
        backfill_names(customer, user_data)
        self.audit_logger.log_provider_linked(user_data.provider, customer.id)
        logger.info(f"{LOG_PREFIX} Linked {user_data.provider} to existing customer {customer.id}")

    async def _get_or_create_shop_user(self, customer: Customer) -> ShopUser:
        shop_user = await self.store.get_shop_user(customer)
        if shop_user is not None:
            return shop_user
        return await self._create_shop_user(customer)

    async def _create_shop_user(self, customer: Customer) -> ShopUser:
        return await self.store.create_shop_user_for(
            customer,
            get_password_hash(generate_unusable_password()),
            has_usable_password=False,
            verified_at=self._clock(),
        )
