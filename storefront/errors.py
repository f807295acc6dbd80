"""
Taxonomie d'erreurs du pipeline panier → commande.

Chaque classe porte son code HTTP, un `kind` stable (sur lequel le front
branche, jamais sur le message) et les actions proposées à l'utilisateur.
Les handlers de storefront.app_setup.exceptions les sérialisent en JSON.
"""
from typing import Any, Dict, List, Optional


class StorefrontError(Exception):
    status_code = 400
    kind = "error"
    actions: List[str] = []

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"detail": self.detail, "kind": self.kind, "actions": list(self.actions)}
        payload.update({k: v for k, v in self.context.items() if v is not None})
        return payload


class ValidationError(StorefrontError):
    """Champs manquants/mal formés: local au formulaire, aucun appel réseau."""
    status_code = 422
    kind = "validation"
    actions = ["fix_fields"]

    def __init__(self, fields: Dict[str, str], detail: str = "Veuillez corriger les champs indiqués"):
        super().__init__(detail, fields=fields)
        self.fields = fields


class CouponError(StorefrontError):
    """Coupon refusé; le panier n'est pas modifié."""
    status_code = 400
    kind = "coupon"
    actions = ["edit_coupon"]

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    MINIMUM_NOT_MET = "minimum_not_met"
    ALREADY_USED = "already_used"
    REJECTED = "rejected"

    def __init__(self, reason: str, detail: Optional[str] = None):
        super().__init__(detail or "Coupon refusé", reason=reason)
        self.reason = reason


class UpstreamError(StorefrontError):
    """API amont (panier, coupons, commandes, réglages) injoignable ou en erreur."""
    status_code = 502
    kind = "upstream"
    actions = ["retry"]

    def __init__(self, detail: str, upstream_status: Optional[int] = None, body: Any = None):
        super().__init__(detail, upstream_status=upstream_status)
        self.upstream_status = upstream_status
        self.body = body


class GatewayInitiationError(StorefrontError):
    """Session de paiement non créée: le checkout reste ouvert."""
    status_code = 502
    kind = "gateway_initiation"
    actions = ["retry_checkout"]


class GatewayOutcomeFailed(StorefrontError):
    """Paiement explicitement refusé par la passerelle."""
    status_code = 402
    kind = "payment_failed"
    actions = ["retry_checkout"]

    def __init__(self, reference: str, detail: str = "Le paiement a échoué. Aucun montant n'a été débité."):
        super().__init__(detail, reference=reference, funds_captured=False)
        self.reference = reference


class GatewayOutcomeUnknown(StorefrontError):
    """Verdict ambigu (pending/unknown): relance bornée puis retour manuel."""
    status_code = 202
    kind = "payment_unconfirmed"

    def __init__(self, reference: str, status: str, retries_left: int, detail: Optional[str] = None):
        super().__init__(
            detail or "Paiement en cours de vérification. Réessayez dans quelques instants.",
            reference=reference,
            status=status,
            retries_left=retries_left,
        )
        self.reference = reference
        self.status = status
        self.retries_left = retries_left

    @property
    def actions(self) -> List[str]:  # type: ignore[override]
        return ["retry_status", "home"] if self.retries_left > 0 else ["home", "contact_support"]


class OrderSubmissionError(StorefrontError):
    """Paiement confirmé mais commande non enregistrée: le snapshot est conservé pour relance."""
    status_code = 502
    kind = "order_submission"
    actions = ["retry_order"]

    def __init__(self, detail: str, reference: Optional[str] = None):
        super().__init__(detail, reference=reference)
        self.reference = reference


class OrderPlacementInProgress(StorefrontError):
    """Un autre déclencheur place déjà la commande pour cette référence."""
    status_code = 409
    kind = "order_in_progress"
    actions = ["retry_status"]

    def __init__(self, reference: str):
        super().__init__("Commande en cours d'enregistrement", reference=reference)
        self.reference = reference
