"""
Résolution des prix catalogue au moment du règlement.
Aucun prix fourni par le client n'est jamais lu: seul l'identifiant (et la variante)
sert à retrouver le prix unitaire et le stock faisant foi.
"""
from decimal import Decimal
from typing import List, Optional

from storefront.catalog import repository
from storefront.errors import UnavailableError
from storefront.utils.money import to_decimal

class LineItem:
    """Ligne de panier envoyée par le client: jamais de prix."""
    def __init__(self, item_id: str, quantity: int, variant_id: Optional[str] = None):
        self.item_id = str(item_id)
        self.variant_id = str(variant_id) if variant_id not in (None, "") else None
        self.quantity = int(quantity)

    @property
    def key(self):
        return (self.item_id, self.variant_id)

    def __repr__(self):
        return f"LineItem({self.item_id!r}, {self.quantity}, variant_id={self.variant_id!r})"

class ResolvedLineItem:
    def __init__(self, line: LineItem, name: str, unit_price: Decimal, stock: int):
        self.item_id = line.item_id
        self.variant_id = line.variant_id
        self.quantity = line.quantity
        self.name = name
        self.unit_price = unit_price
        self.stock = stock

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

class CoursePrice:
    def __init__(self, course_id: str, name: str, fee: Decimal, is_free: bool):
        self.course_id = str(course_id)
        self.name = name
        self.fee = fee
        self.is_free = is_free

def resolve_line_items(items: List[LineItem]) -> List[ResolvedLineItem]:
    """
    Retourne prix unitaire et stock faisant foi pour chaque ligne.
    - Variante: son prix remplace celui du produit s'il est renseigné; son stock est utilisé.
    - Une variante doit appartenir au produit demandé.
    - Identifiant inconnu -> UnavailableError(code="item_not_found").
    """
    products = {str(p.get("id")): p for p in repository.fetch_products({i.item_id for i in items})}
    variant_ids = {i.variant_id for i in items if i.variant_id}
    variants = {str(v.get("id")): v for v in repository.fetch_variants(variant_ids)}

    resolved: List[ResolvedLineItem] = []
    for line in items:
        product = products.get(line.item_id)
        if not product:
            raise UnavailableError(f"Article introuvable: {line.item_id}", code="item_not_found")
        unit_price = to_decimal(product.get("price"))
        stock = int(product.get("stock") or 0)
        name = product.get("name") or "Article"
        if line.variant_id:
            variant = variants.get(line.variant_id)
            if not variant or str(variant.get("product_id")) != line.item_id:
                raise UnavailableError(f"Variante introuvable: {line.variant_id}", code="item_not_found")
            if variant.get("price") is not None:
                unit_price = to_decimal(variant.get("price"))
            stock = int(variant.get("stock") or 0)
            if variant.get("sku"):
                name = f"{name} ({variant['sku']})"
        resolved.append(ResolvedLineItem(line, name=name, unit_price=unit_price, stock=stock))
    return resolved

def resolve_course(course_id: str) -> CoursePrice:
    """Frais actuels du cours; cours inconnu ou non publié -> UnavailableError."""
    course = repository.get_course(course_id)
    if not course or not course.get("is_published"):
        raise UnavailableError("Cours introuvable", code="course_not_found")
    is_free = bool(course.get("is_free"))
    fee = Decimal("0") if is_free else to_decimal(course.get("price"))
    return CoursePrice(course["id"], course.get("name") or "Cours", fee, is_free or fee == 0)
