"""Login-flow hook dispatcher tests."""

import pytest

from headless_oauth.core.oauth.events import (
    OAuthEventDispatcher,
    OAuthEventType,
    PreUserCreateEvent,
    ProviderLinkedEvent,
)
from headless_oauth.core.oauth.models import OAuthUserData


def _user_data() -> OAuthUserData:
    return OAuthUserData(provider="google", provider_id="g-1", email="jane@example.com", first_name="Jane")


def test_event_types():
    event = PreUserCreateEvent.from_user_data(_user_data())

    assert event.event_type is OAuthEventType.PRE_USER_CREATE
    assert (event.first_name, event.last_name) == ("Jane", None)
    assert event.additional_data == {}
    assert ProviderLinkedEvent(object(), "google", "g-1").event_type is OAuthEventType.PROVIDER_LINKED


class TestOAuthEventDispatcher:
    @pytest.mark.asyncio
    async def test_listeners_run_in_order(self):
        dispatcher = OAuthEventDispatcher()
        calls = []

        async def first(event):
            calls.append("first")
            event.additional_data["source"] = "storefront"

        def second(event):
            calls.append("second")

        dispatcher.add_listener(OAuthEventType.PRE_USER_CREATE, first)
        dispatcher.add_listener(OAuthEventType.PRE_USER_CREATE, second)

        event = await dispatcher.dispatch(PreUserCreateEvent.from_user_data(_user_data()))

        assert calls == ["first", "second"]
        assert event.additional_data == {"source": "storefront"}

    @pytest.mark.asyncio
    async def test_only_matching_type_runs(self):
        dispatcher = OAuthEventDispatcher()
        calls = []
        dispatcher.add_listener(OAuthEventType.POST_AUTHENTICATION, calls.append)

        await dispatcher.dispatch(PreUserCreateEvent.from_user_data(_user_data()))

        assert calls == []
        assert dispatcher.has_listeners(OAuthEventType.POST_AUTHENTICATION)
        assert not dispatcher.has_listeners(OAuthEventType.PRE_USER_CREATE)

    @pytest.mark.asyncio
    async def test_remove_listener(self):
        dispatcher = OAuthEventDispatcher()
        calls = []
        dispatcher.add_listener("headless_oauth.provider_linked", calls.append)
        dispatcher.remove_listener(OAuthEventType.PROVIDER_LINKED, calls.append)
        dispatcher.remove_listener(OAuthEventType.PROVIDER_LINKED, calls.append)

        await dispatcher.dispatch(ProviderLinkedEvent(object(), "google", "g-1"))

        assert calls == []

    @pytest.mark.asyncio
    async def test_listener_errors_propagate(self):
        dispatcher = OAuthEventDispatcher()

        async def broken(event):
            raise RuntimeError("listener failed")

        dispatcher.add_listener(OAuthEventType.PROVIDER_LINKED, broken)

        with pytest.raises(RuntimeError, match="listener failed"):
            await dispatcher.dispatch(ProviderLinkedEvent(object(), "google", "g-1"))
