"""Service de règlement de la boutique (paniers de kits et inscriptions aux cours)."""
