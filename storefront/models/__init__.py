from storefront.models.product import Product
from storefront.models.variation import ProductVariation, ProductVariationOption
from storefront.models.price_variant import PriceVariant, price_variant_options
from storefront.models.audit_log import AuditLog

__all__ = [
    "Product",
    "ProductVariation",
    "ProductVariationOption",
    "PriceVariant",
    "price_variant_options",
    "AuditLog",
]
