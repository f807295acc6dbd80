"""ASGI: `uvicorn storefront.asgi:app`. Lancement local: `python -m storefront`."""
from storefront.app import app

__all__ = ["app"]
