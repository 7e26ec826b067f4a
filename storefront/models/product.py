from datetime import datetime, timezone
from storefront.extensions import db


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, default="")
    featured_image_url = db.Column(db.String(1024))
    # Flat price/stock, only used when the product has no variations
    base_price = db.Column(db.Integer)  # whole Rupiah
    base_stock = db.Column(db.Integer)
    has_variations = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    variations = db.relationship(
        "ProductVariation",
        backref="product",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="ProductVariation.sort_order",
    )
    price_variants = db.relationship(
        "PriceVariant",
        backref="product",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="PriceVariant.id",
    )

    @property
    def price_range(self):
        """(min, max) price shown on catalog cards, or None if unpriced."""
        if not self.has_variations:
            if self.base_price is None:
                return None
            return self.base_price, self.base_price
        prices = [pv.price for pv in self.price_variants if pv.price is not None]
        if not prices:
            return None
        return min(prices), max(prices)

    @property
    def total_stock(self):
        if not self.has_variations:
            return self.base_stock or 0
        return sum(pv.stock or 0 for pv in self.price_variants)

    @property
    def is_in_stock(self):
        return self.total_stock > 0

    def option_image_urls(self):
        return [
            option.image_url
            for variation in self.variations
            for option in variation.options
            if option.image_url
        ]

    def __repr__(self):
        return f"<Product {self.slug}: {self.name}>"
