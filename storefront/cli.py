"""Flask CLI commands for admin operations."""
import click


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        from storefront.extensions import db

        db.create_all()
        click.echo("Database initialized.")

    @app.cli.command("seed-demo")
    def seed_demo():
        """Seed demo products with variations (idempotent)."""
        from storefront.models.product import Product
        from storefront.services import product_service

        # Only seed if no products exist yet
        if Product.query.first():
            click.echo("Products already exist; skipping demo seed.")
            return

        for data in DEMO_PRODUCTS:
            product, _ = product_service.create_product(data)
            click.echo(
                f"Seeded {product.slug} "
                f"({len(product.price_variants)} price variants)"
            )

    @app.cli.command("preview-matrix")
    @click.option(
        "--variation",
        "variations",
        multiple=True,
        required=True,
        help='Variation as "Name=opt1,opt2", repeat for a second variation',
    )
    @click.option("--price", type=int, default=None, help="Apply one price to all")
    @click.option("--stock", type=int, default=None, help="Apply one stock to all")
    def preview_matrix(variations, price, stock):
        """Print the price-variant matrix for a set of variations."""
        from storefront.services import variation_service

        matrix = variation_service.new_matrix()
        matrix.set_has_variations(True)
        for index, raw in enumerate(variations):
            name, _, raw_options = raw.partition("=")
            options = [o.strip() for o in raw_options.split(",") if o.strip()]
            if not name.strip() or not options:
                raise click.BadParameter(f"expected Name=opt1,opt2, got {raw!r}")
            if index > 0 and matrix.add_variation() is None:
                raise click.BadParameter(
                    f"at most {matrix.max_variations} variations are allowed"
                )
            matrix.update_variation(index, name=name.strip())
            for option_index, option_name in enumerate(options):
                if option_index > 0:
                    matrix.add_option(index)
                matrix.update_option(index, option_index, name=option_name)

        matrix.generate_price_variants()
        variation_service.apply_bulk(matrix, price=price, stock=stock)

        for item in matrix.price_variants:
            price_text = "-" if item.price is None else f"{item.price:,.0f}"
            stock_text = "-" if item.stock is None else str(item.stock)
            click.echo(f"{item.label:<40} price={price_text:<12} stock={stock_text}")
        click.echo(f"{len(matrix.price_variants)} combinations")

    @app.cli.command("stats")
    def stats():
        """Show product statistics."""
        from storefront.services.product_service import get_stats

        s = get_stats()
        click.echo(f"Total products: {s['products']}")
        click.echo(f"  with variations: {s['with_variations']}")
        click.echo(f"  price variants: {s['price_variants']}")


DEMO_PRODUCTS = [
    {
        "name": "Sampul Quran Kulit Premium",
        "description": "Sampul Al-Qur'an kulit sintetis dengan nama custom.",
        "hasVariations": True,
        "variations": [
            {
                "name": "Warna",
                "options": [
                    {"id": "draft-hitam", "name": "Hitam"},
                    {"id": "draft-coklat", "name": "Coklat"},
                    {"id": "draft-maroon", "name": "Maroon"},
                ],
            },
            {
                "name": "Ukuran",
                "options": [
                    {"id": "draft-a5", "name": "A5"},
                    {"id": "draft-a4", "name": "A4"},
                ],
            },
        ],
        "priceVariants": [
            {"combinationKey": f"draft-{color}|draft-{size}", "price": price, "stock": 10}
            for color in ("hitam", "coklat", "maroon")
            for size, price in (("a5", 85000), ("a4", 110000))
        ],
    },
    {
        "name": "Sajadah Travel Lipat",
        "description": "Sajadah tipis yang bisa dilipat untuk perjalanan.",
        "basePrice": 65000,
        "baseStock": 25,
        "hasVariations": False,
    },
    {
        "name": "Tasbih Kayu Kokka",
        "hasVariations": True,
        "variations": [
            {
                "name": "Jumlah Butir",
                "options": [
                    {"id": "draft-33", "name": "33"},
                    {"id": "draft-99", "name": "99"},
                ],
            }
        ],
        "priceVariants": [
            {"combinationKey": "draft-33", "price": 45000, "stock": 30},
            {"combinationKey": "draft-99", "price": 75000, "stock": 12},
        ],
    },
]
