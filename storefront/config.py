# storefront.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale du service boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les URLs de l'API amont (panier, coupons, commandes, paiement, réglages)
- Choix de la passerelle de paiement (rest | stripe) et secrets Stripe
- Politique d'acompte COD, plancher passerelle, bornes de relance et TTL du stockage durable
- Sécurité cookies, CORS/hosts
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _float_env(name: str, default: float) -> float:
    raw = _clean_env(os.getenv(name) or "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default

def _int_env(name: str, default: int) -> int:
    raw = _clean_env(os.getenv(name) or "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default

# API amont (panier, coupons, commandes, paiement, réglages)
# - peut être fournie sans schéma: on préfixe en https:// si nécessaire
STORE_API_URL = _clean_env(os.getenv("STORE_API_URL") or "http://localhost:5000/api")
if STORE_API_URL and not STORE_API_URL.startswith("http"):
    STORE_API_URL = "https://" + STORE_API_URL
STORE_API_URL = STORE_API_URL.rstrip("/")
STORE_API_TIMEOUT = _float_env("STORE_API_TIMEOUT", 10.0)

# Passerelle de paiement: "rest" (endpoints payment/* de l'API) ou "stripe" (Checkout Sessions)
PAYMENT_GATEWAY = _clean_env(os.getenv("PAYMENT_GATEWAY") or "rest").lower()
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_CURRENCY = _clean_env(os.getenv("STRIPE_CURRENCY") or "inr").lower()

# URL publique et page de retour de la passerelle (rechargement à froid)
BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000").rstrip("/")
PAYMENT_RETURN_PATH = os.getenv("PAYMENT_RETURN_PATH", "/api/v1/payments/return")

# Stockage durable (snapshots, marqueurs, paniers invités)
REDIS_URL = _clean_env(os.getenv("REDIS_URL") or "redis://127.0.0.1:6379/0")

# Politique de tarification / règlement
COD_DEPOSIT_FALLBACK = _float_env("COD_DEPOSIT_FALLBACK", 39.0)
COD_DEPOSIT_STRICT = (os.getenv("COD_DEPOSIT_STRICT", "false").lower() == "true")
GATEWAY_MIN_AMOUNT = _float_env("GATEWAY_MIN_AMOUNT", 1.0)
SHIPPING_FEE = 0.0
SETTLEMENT_MAX_RETRIES = _int_env("SETTLEMENT_MAX_RETRIES", 3)

# Durées de vie (secondes) des clés persistées
PENDING_CHECKOUT_TTL = _int_env("PENDING_CHECKOUT_TTL", 24 * 60 * 60)
GUEST_CART_TTL = _int_env("GUEST_CART_TTL", 30 * 24 * 60 * 60)
ORDER_LOCK_TTL = _int_env("ORDER_LOCK_TTL", 60)

# Cookies / session
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
SESSION_SECRET_KEY = _clean_env(os.getenv("SESSION_SECRET_KEY") or "replace_me_with_a_long_random_secret")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]
