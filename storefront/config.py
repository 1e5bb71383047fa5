# storefront.config
from decimal import Decimal
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du service de règlement.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Razorpay, Stripe)
- Fixe UNE politique de livraison et UNE devise de règlement pour tous les parcours
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _decimal_env(name: str, default: str) -> Decimal:
    raw = _clean_env(os.getenv(name) or "") or default
    return Decimal(raw)

# Supabase: URL et clés (anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Razorpay: passerelle à callback signé (paniers et cours)
RAZORPAY_KEY_ID = _clean_env(os.getenv("RAZORPAY_KEY_ID") or "")
RAZORPAY_KEY_SECRET = _clean_env(os.getenv("RAZORPAY_KEY_SECRET") or "")
RAZORPAY_WEBHOOK_SECRET = _clean_env(os.getenv("RAZORPAY_WEBHOOK_SECRET") or "")
RAZORPAY_API_URL = _clean_env(os.getenv("RAZORPAY_API_URL") or "https://api.razorpay.com/v1").rstrip("/")
RAZORPAY_TIMEOUT = float(os.getenv("RAZORPAY_TIMEOUT", "10"))

# Stripe: variante "redirection" pour l'achat de cours (PaymentSession)
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")

BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000").rstrip("/")
COURSE_SUCCESS_PATH = os.getenv("COURSE_SUCCESS_PATH", "/courses/success")
COURSE_CANCEL_PATH = os.getenv("COURSE_CANCEL_PATH", "/courses")

# Devise unique de règlement (toutes passerelles confondues)
SETTLEMENT_CURRENCY = _clean_env(os.getenv("SETTLEMENT_CURRENCY") or "INR").upper()

# Politique de livraison unique:
# - expedited: coût fixe quel que soit le sous-total
# - standard: gratuite si sous-total > seuil, sinon coût fixe
SHIPPING_EXPEDITED_COST = _decimal_env("SHIPPING_EXPEDITED_COST", "150")
SHIPPING_STANDARD_COST = _decimal_env("SHIPPING_STANDARD_COST", "70")
SHIPPING_FREE_THRESHOLD = _decimal_env("SHIPPING_FREE_THRESHOLD", "500")

# Cookies / HTTP
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]
