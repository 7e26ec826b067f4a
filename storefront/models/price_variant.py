from storefront.extensions import db


price_variant_options = db.Table(
    "price_variant_options",
    db.Column(
        "price_variant_id",
        db.Integer,
        db.ForeignKey("price_variants.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column(
        "option_id",
        db.Integer,
        db.ForeignKey("product_variation_options.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class PriceVariant(db.Model):
    __tablename__ = "price_variants"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Option ids joined with "|" in variation order
    combination_key = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Integer, nullable=False)  # whole Rupiah
    stock = db.Column(db.Integer, nullable=False, default=0)
    sku = db.Column(db.String(100))

    options = db.relationship(
        "ProductVariationOption",
        secondary=price_variant_options,
        lazy="select",
    )

    __table_args__ = (
        db.UniqueConstraint("product_id", "combination_key", name="uq_price_variant_combination"),
    )

    @property
    def option_ids(self):
        return [int(part) for part in self.combination_key.split("|")]

    def __repr__(self):
        return f"<PriceVariant {self.combination_key} @ {self.price}>"
