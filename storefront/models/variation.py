from storefront.extensions import db


class ProductVariation(db.Model):
    __tablename__ = "product_variations"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(100), nullable=False)  # "Warna", "Ukuran"
    sort_order = db.Column(db.Integer, default=0)

    options = db.relationship(
        "ProductVariationOption",
        backref="variation",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="ProductVariationOption.sort_order",
    )

    def __repr__(self):
        return f"<Variation {self.name} ({len(self.options)} options)>"


class ProductVariationOption(db.Model):
    __tablename__ = "product_variation_options"

    id = db.Column(db.Integer, primary_key=True)
    variation_id = db.Column(
        db.Integer,
        db.ForeignKey("product_variations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(100), nullable=False)  # "Hitam", "A5"
    image_url = db.Column(db.String(1024))  # first variation only
    sort_order = db.Column(db.Integer, default=0)

    @property
    def label(self):
        return f"{self.variation.name}: {self.name}"

    def __repr__(self):
        return f"<VariationOption {self.name}>"
