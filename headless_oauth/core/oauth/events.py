"""
Extension hooks of the login flow.

Hosts register async (or plain) listeners on an `OAuthEventDispatcher`:
- PRE_USER_CREATE: before a new customer is created; listeners may adjust
  the names and attach `additional_data` returned with the resolve result
- PROVIDER_LINKED: an identity was linked to an existing customer (after commit)
- POST_AUTHENTICATION: a code login succeeded, before the result is returned

Listener exceptions propagate to the caller.
"""

import inspect
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Union

from loguru import logger

from headless_oauth.core.oauth.models import OAuthUserData

if TYPE_CHECKING:
    from headless_oauth.models.account import Customer, ShopUser  # pragma: no cover

LOG_PREFIX = "[OAuthEvents]"


class OAuthEventType(str, Enum):
    """Names of the login-flow hooks."""

    PRE_USER_CREATE = "headless_oauth.pre_user_create"
    PROVIDER_LINKED = "headless_oauth.provider_linked"
    POST_AUTHENTICATION = "headless_oauth.post_authentication"


@dataclass
class PreUserCreateEvent:
    """A customer is about to be created from `user_data`."""

    user_data: OAuthUserData
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    additional_data: Dict[str, Any] = field(default_factory=dict)
    event_type: OAuthEventType = field(default=OAuthEventType.PRE_USER_CREATE, init=False)

    @classmethod
    def from_user_data(cls, user_data: OAuthUserData) -> "PreUserCreateEvent":
        return cls(user_data=user_data, first_name=user_data.first_name, last_name=user_data.last_name)


@dataclass
class ProviderLinkedEvent:
    """An external identity was attached to an existing customer."""

    customer: "Customer"
    provider: str
    provider_id: str
    event_type: OAuthEventType = field(default=OAuthEventType.PROVIDER_LINKED, init=False)


@dataclass
class PostAuthenticationEvent:
    """Code login finished and a session token was minted."""

    shop_user: "ShopUser"
    user_data: OAuthUserData
    is_new_user: bool
    event_type: OAuthEventType = field(default=OAuthEventType.POST_AUTHENTICATION, init=False)


OAuthEvent = Union[PreUserCreateEvent, ProviderLinkedEvent, PostAuthenticationEvent]
Listener = Callable[[Any], Union[None, Awaitable[None]]]


class OAuthEventDispatcher:
    """Listener registry keyed by event type; listeners run in registration order."""

    def __init__(self) -> None:
        self._listeners: Dict[OAuthEventType, List[Listener]] = defaultdict(list)

    def add_listener(self, event_type: OAuthEventType, listener: Listener) -> None:
        self._listeners[OAuthEventType(event_type)].append(listener)

    def remove_listener(self, event_type: OAuthEventType, listener: Listener) -> None:
        listeners = self._listeners.get(OAuthEventType(event_type), [])
        if listener in listeners:
            listeners.remove(listener)

    def has_listeners(self, event_type: OAuthEventType) -> bool:
        return bool(self._listeners.get(OAuthEventType(event_type)))

    async def dispatch(self, event: OAuthEvent) -> OAuthEvent:
        """Run every listener for `event.event_type` and return the (possibly mutated) event."""
        listeners = list(self._listeners.get(event.event_type, []))
        if listeners:
            logger.debug(f"{LOG_PREFIX} Dispatching {event.event_type.value} to {len(listeners)} listener(s)")
        for listener in listeners:
            result = listener(event)
            if inspect.isawaitable(result):
                await result
        return event
