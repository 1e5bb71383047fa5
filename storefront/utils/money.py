"""
Helpers montants: tous les calculs se font en Decimal, arrondis au centime.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

def to_decimal(value: Any) -> Decimal:
    """
    Convertit une valeur catalogue (str|int|float|Decimal|None) en Decimal.
    - None/"" -> 0
    - float passe par str() pour éviter les artefacts binaires (0.1 -> "0.1")
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Montant invalide: {value!r}")

def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)

def to_minor_units(amount: Decimal) -> int:
    # paise / centimes, entier attendu par les passerelles
    return int((quantize(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))

def as_str(amount: Decimal) -> str:
    """Sérialisation stable pour Supabase (numeric) et métadonnées passerelle."""
    return f"{quantize(amount):.2f}"
