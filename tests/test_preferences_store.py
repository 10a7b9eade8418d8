from __future__ import annotations

import pytest

from masquerade.errors import IntegrationFailure
from masquerade.services.preferences_store import PreferencesStore


@pytest.mark.asyncio
async def test_direct_messages_preference(preferences):
    assert await preferences.direct_messages_disabled(5) is False
    await preferences.set_direct_messages_disabled(5, True)
    assert await preferences.direct_messages_disabled(5) is True
    assert await preferences.direct_messages_disabled(6) is False
    await preferences.set_direct_messages_disabled(5, False)
    assert await preferences.direct_messages_disabled(5) is False


@pytest.mark.asyncio
async def test_unreachable_database_is_an_integration_failure(tmp_path):
    store = PreferencesStore(str(tmp_path / "missing" / "prefs.sqlite3"), salt="s")
    with pytest.raises(IntegrationFailure):
        await store.direct_messages_disabled(5)
    with pytest.raises(IntegrationFailure):
        await store.set_direct_messages_disabled(5, True)
