from fastapi import APIRouter, Depends, HTTPException

from storefront.orders.service import OrderPlacer
from storefront.utils.dependencies import get_order_placer
from storefront.utils.security import require_identity

router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


@router.get("")
async def list_orders(identity: str = Depends(require_identity), placer: OrderPlacer = Depends(get_order_placer)):
    return {"orders": await placer.list_orders(identity)}


@router.get("/{order_id}")
async def get_order(order_id: str, identity: str = Depends(require_identity), placer: OrderPlacer = Depends(get_order_placer)):
    """Commande d'un autre compte: 404 (l'existence n'est pas révélée)."""
    order = await placer.get_order(order_id, identity)
    if order is None:
        raise HTTPException(status_code=404, detail="Commande introuvable")
    return {"order": order}
