import pytest

from storefront.errors import UpstreamError
from storefront.settings.service import SettingsService


@pytest.mark.asyncio
async def test_deposit_from_upstream_is_remembered(state, store_api):
    store_api.on("GET", "settings/cod-upfront-amount", {"amount": 49})
    assert await SettingsService(state).get_cod_deposit_amount() == 49
    assert await state.last_known_deposit() == 49


@pytest.mark.asyncio
async def test_failure_uses_last_known_then_fallback(state, store_api):
    store_api.on("GET", "settings/cod-upfront-amount", {"message": "down"}, status=503)
    assert await SettingsService(state, fallback=39).get_cod_deposit_amount() == 39

    await state.remember_deposit(59)
    assert await SettingsService(state, fallback=39).get_cod_deposit_amount() == 59


@pytest.mark.asyncio
async def test_strict_policy_blocks_checkout(state, store_api):
    store_api.on("GET", "settings/cod-upfront-amount", {"message": "down"}, status=503)
    with pytest.raises(UpstreamError):
        await SettingsService(state, strict=True).get_cod_deposit_amount()
