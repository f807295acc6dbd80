"""
Adaptateur REST: endpoints payment/* de l'API boutique (initiate, status, verify).
"""
import logging
from typing import Any, Dict

from storefront.errors import UpstreamError
from storefront.infra.store_api import get_client, request_json
from storefront.payments.gateway import GatewayRequest, GatewaySession, GatewayStatus, PaymentGateway

logger = logging.getLogger(__name__)


def _data(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload if isinstance(payload, dict) else {}


class RestGateway(PaymentGateway):

    async def create_session(self, request: GatewayRequest, return_url: str) -> GatewaySession:
        body = {
            "amount": request.amount,
            "customer": {
                "name": request.customer.name,
                "email": request.customer.email,
                "phone": request.customer.phone,
            },
            "items": [
                {"productId": i.product_id, "title": i.title, "quantity": i.quantity, "price": i.unit_price}
                for i in request.items
            ],
            "redirectUrl": return_url,
            "metadata": request.metadata,
        }
        data = _data(await request_json(get_client(), "POST", "payment/initiate", json=body))
        reference = data.get("reference") or data.get("merchantOrderId") or data.get("orderId")
        if not reference:
            raise UpstreamError("Référence de paiement absente de la réponse")
        return GatewaySession(
            reference=str(reference),
            redirect_url=data.get("redirectUrl") or data.get("url"),
            redirect_token=data.get("redirectToken") or data.get("token"),
        )

    async def fetch_status(self, reference: str) -> GatewayStatus:
        data = _data(await request_json(get_client(), "GET", f"payment/status/{reference}"))
        return GatewayStatus.parse(data.get("state") or data.get("status"))

    async def confirm(self, reference: str) -> GatewayStatus:
        data = _data(await request_json(get_client(), "POST", "payment/verify", json={"reference": reference}))
        if data.get("success") is False:
            logger.warning("payment.verify refused reference=%s message=%s", reference, data.get("message"))
            return GatewayStatus.parse(data.get("state") or data.get("status") or "failed")
        return GatewayStatus.parse(data.get("state") or data.get("status") or "success")
