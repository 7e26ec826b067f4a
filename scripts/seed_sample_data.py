#!/usr/bin/env python3
"""Seed sample products for local development."""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from storefront import create_app
from storefront.cli import DEMO_PRODUCTS
from storefront.extensions import db
from storefront.services import product_service

app = create_app()

EXTRA_PRODUCTS = [
    {
        "name": "Sampul Quran Bludru Bordir",
        "description": "Sampul bludru dengan bordir nama, tersedia dua ukuran.",
        "hasVariations": True,
        "variations": [
            {
                "name": "Warna",
                "options": [
                    {"id": "draft-navy", "name": "Navy"},
                    {"id": "draft-hijau", "name": "Hijau Botol"},
                ],
            },
            {
                "name": "Ukuran",
                "options": [
                    {"id": "draft-a6", "name": "A6"},
                    {"id": "draft-a5", "name": "A5"},
                ],
            },
        ],
        "priceVariants": [
            {"combinationKey": "draft-navy|draft-a6", "price": 60000, "stock": 8},
            {"combinationKey": "draft-navy|draft-a5", "price": 75000, "stock": 5},
            {"combinationKey": "draft-hijau|draft-a6", "price": 60000, "stock": 3},
        ],
    },
    {
        "name": "Peci Rajut Putih",
        "basePrice": 35000,
        "baseStock": 40,
        "hasVariations": False,
    },
]


def seed():
    with app.app_context():
        db.create_all()
        for data in DEMO_PRODUCTS + EXTRA_PRODUCTS:
            slug = product_service.slugify(data["name"])
            if product_service.get_product_by_slug(slug):
                print(f"  Skipping {slug} (exists)")
                continue
            product, _ = product_service.create_product(data)
            print(
                f"  Created {product.slug}: {len(product.variations)} variations, "
                f"{len(product.price_variants)} price variants"
            )
        print("Done!")


if __name__ == "__main__":
    seed()
