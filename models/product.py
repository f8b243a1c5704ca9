"""Catalog product and match suggestion models."""

from typing import Optional

from pydantic import BaseModel, Field

from models.units import PackagingInfo


class Product(BaseModel):
    """Catalog product as returned by a CatalogLookup."""

    id: str
    name: str = Field(..., min_length=1)
    brand: Optional[str] = None
    category: Optional[str] = None
    barcode: Optional[str] = None
    quantity: Optional[str] = None  # packaging string, e.g. "6 x 1 l"
    packaging: Optional[PackagingInfo] = None  # read from quantity when the product is cataloged


class ProductSuggestion(BaseModel):
    """Candidate catalog product for a receipt item. Computed per request."""

    product_id: str
    name: str
    score: float = Field(..., ge=0.0, le=1.0)
    brand: Optional[str] = None
    category: Optional[str] = None
    source: str = 'fuzzy'

    @classmethod
    def from_product(cls, product: Product, score: float, source: str = 'fuzzy') -> 'ProductSuggestion':
        return cls(
            product_id=product.id,
            name=product.name,
            score=round(min(max(score, 0.0), 1.0), 4),
            brand=product.brand,
            category=product.category,
            source=source,
        )
