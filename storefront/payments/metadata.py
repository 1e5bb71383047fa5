"""
Lecture des métadonnées ("notes" Razorpay, "metadata" Stripe) posées à la création.
"""
import json
from typing import Any, Dict, List, Tuple

CART = "cart"
COURSE = "course"
KINDS = (CART, COURSE)

# module storefront.payments.metadata
def _decode_cart(raw: Any) -> List[Dict[str, Any]]:
    if isinstance(raw, list):
        return raw
    try:
        cart = json.loads(raw) if raw else []
    except (TypeError, ValueError):
        cart = []
    return cart if isinstance(cart, list) else []

def extract_razorpay_entities(event: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Retourne (payment, order) depuis un événement webhook Razorpay.
    - payload.payment.entity et payload.order.entity, chacun pouvant manquer ({}).
    """
    payload = (event or {}).get("payload") or {} if isinstance(event, dict) else {}
    payment = ((payload.get("payment") or {}).get("entity")) or {}
    order = ((payload.get("order") or {}).get("entity")) or {}
    return payment, order

def extract_notes(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Notes de la commande passerelle: l'entité order a priorité, puis l'entité payment
    (Razorpay recopie les notes de la commande sur le paiement).
    """
    payment, order = extract_razorpay_entities(event)
    notes = order.get("notes") or payment.get("notes") or {}
    # Razorpay renvoie [] (et non {}) quand aucune note n'a été posée
    return notes if isinstance(notes, dict) else {}

def extract_kind(notes: Dict[str, Any]) -> str | None:
    kind = str((notes or {}).get("kind") or "").strip().lower()
    return kind if kind in KINDS else None

def extract_metadata_from_session(session: Dict[str, Any]) -> Tuple[str | None, str | None]:
    """
    Extrait (user_id, course_id) depuis une session Stripe Checkout.
    - Attend session["metadata"] = {user_id, course_id}
    """
    meta = (session or {}).get("metadata", {}) if isinstance(session, dict) else {}
    meta = meta or {}
    user_id = meta.get("user_id")
    course_id = meta.get("course_id")
    return (str(user_id) if user_id else None), (str(course_id) if course_id else None)

def extract_cart(notes: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Panier sérialisé dans les notes; [] si absent ou tronqué."""
    return _decode_cart((notes or {}).get("cart"))
