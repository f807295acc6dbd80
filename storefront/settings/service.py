"""
Réglages boutique lus sur l'API amont.
Acompte COD: valeur amont, sinon dernière valeur connue, sinon COD_DEPOSIT_FALLBACK.
Avec COD_DEPOSIT_STRICT=true, un échec de lecture bloque le checkout (UpstreamError).
"""
import logging

from storefront.config import COD_DEPOSIT_FALLBACK, COD_DEPOSIT_STRICT
from storefront.errors import UpstreamError
from storefront.settings import repository
from storefront.state.store import PersistedCheckoutState

logger = logging.getLogger(__name__)


class SettingsService:
    def __init__(self, state: PersistedCheckoutState, *, fallback: float = COD_DEPOSIT_FALLBACK, strict: bool = COD_DEPOSIT_STRICT):
        self.state = state
        self.fallback = fallback
        self.strict = strict

    async def get_cod_deposit_amount(self) -> float:
        try:
            amount = await repository.fetch_cod_upfront_amount()
        except UpstreamError:
            if self.strict:
                raise
            amount = None
            logger.warning("settings.cod_deposit fetch failed, using last known value")

        if amount is not None and amount >= 0:
            await self.state.remember_deposit(amount)
            return round(amount, 2)

        if self.strict:
            raise UpstreamError("Montant d'acompte indisponible")
        last = await self.state.last_known_deposit()
        return round(last if last is not None else self.fallback, 2)
