"""
Taxonomie des erreurs du règlement.

Chaque erreur porte un message lisible, un code machine (raison) et le statut HTTP
associé; le handler enregistré dans app_setup.exceptions les convertit en JSON.
"""

class SettlementError(Exception):
    status_code = 400
    default_code = "settlement_error"

    def __init__(self, message: str, code: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        if status_code is not None:
            self.status_code = status_code

class ValidationError(SettlementError):
    """Requête invalide (panier vide, méthode de livraison inconnue...)."""
    default_code = "invalid_request"

class UnavailableError(SettlementError):
    """Article/cours inconnu, stock insuffisant ou déjà inscrit."""
    status_code = 404
    default_code = "unavailable"

class CouponError(SettlementError):
    default_code = "invalid"

class GatewayError(SettlementError):
    """Passerelle injoignable ou commande refusée: réessayable."""
    status_code = 502
    default_code = "gateway_error"

class SecurityError(SettlementError):
    # Jamais de détail interne côté appelant
    status_code = 400
    default_code = "invalid_signature"

class NotFoundError(SettlementError):
    status_code = 404
    default_code = "unknown_order"

class StorageError(SettlementError):
    status_code = 500
    default_code = "storage_error"
