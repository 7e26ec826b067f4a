import logging
import re
from datetime import datetime, timezone
from storefront.extensions import db
from storefront.models.product import Product
from storefront.models.variation import ProductVariation, ProductVariationOption
from storefront.models.price_variant import PriceVariant
from storefront.models.audit_log import AuditLog
from storefront.services import variation_service
from storefront.services.variation_matrix import COMBINATION_SEPARATOR, PersistedOptionId

logger = logging.getLogger(__name__)


def slugify(text):
    slug = re.sub(r"[^\w\s-]", "", (text or "").lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug


def _unique_slug(slug, product_id=None):
    existing = Product.query.filter_by(slug=slug).first()
    return existing is None or existing.id == product_id


def create_product(data):
    """Create a product, with its variation matrix when it has one.

    ``data`` uses the editor's JSON field names (name, slug, description,
    featuredImageUrl, basePrice, baseStock, hasVariations, variations,
    priceVariants).

    Returns (product, orphaned_image_urls).

    Raises:
        ValueError on invalid input or a duplicate slug
    """
    name = str(data.get("name") or "").strip()
    if not name:
        raise ValueError("Product name is required")
    slug = slugify(data.get("slug") or name)
    if not slug:
        raise ValueError("Product slug is required")
    if not _unique_slug(slug):
        raise ValueError(f"Slug '{slug}' is already used by another product")

    matrix = variation_service.matrix_from_payload(data)

    product = Product(
        slug=slug,
        name=name,
        description=data.get("description") or "",
        featured_image_url=data.get("featuredImageUrl"),
        base_price=variation_service.parse_price(data.get("basePrice")),
        base_stock=variation_service.parse_stock(data.get("baseStock")),
        has_variations=False,
    )
    db.session.add(product)
    db.session.flush()  # get product.id

    db.session.add(
        AuditLog(
            action="CREATE_PRODUCT",
            product_id=product.id,
            payload={"slug": slug, "name": name},
        )
    )

    orphaned = []
    if matrix.has_variations:
        product, orphaned = save_variations(product, matrix, commit=False)

    db.session.commit()
    return product, orphaned


def update_product(product, data):
    """Update the flat fields of a product (not its variations)."""
    changes = {}
    if "name" in data:
        name = str(data["name"] or "").strip()
        if not name:
            raise ValueError("Product name is required")
        product.name = changes["name"] = name
    if "slug" in data:
        slug = slugify(data["slug"])
        if not slug:
            raise ValueError("Product slug is required")
        if not _unique_slug(slug, product.id):
            raise ValueError(f"Slug '{slug}' is already used by another product")
        product.slug = changes["slug"] = slug
    if "description" in data:
        product.description = data["description"] or ""
    if "featuredImageUrl" in data:
        product.featured_image_url = data["featuredImageUrl"] or None
    if not product.has_variations:
        if "basePrice" in data:
            product.base_price = variation_service.parse_price(data["basePrice"])
            changes["basePrice"] = product.base_price
        if "baseStock" in data:
            product.base_stock = variation_service.parse_stock(data["baseStock"])
            changes["baseStock"] = product.base_stock

    product.updated_at = datetime.now(timezone.utc)
    db.session.add(
        AuditLog(action="UPDATE_PRODUCT", product_id=product.id, payload=changes)
    )
    db.session.commit()
    return product


def save_variations(product, matrix, commit=True):
    """Persist the variations and price variants held by ``matrix``.

    Persisted variations/options are matched by id and updated in place,
    draft options are created, and anything the matrix no longer holds is
    deleted. Price variants are upserted by combination key after draft
    option ids have been translated to their new database ids; only
    combinations with both a price and a stock are stored.

    Returns (product, orphaned_image_urls): image URLs the product no longer
    references, to be deleted from the asset store after commit.
    """
    previous_urls = set(product.option_image_urls())
    payload = matrix.to_payload()

    if not payload["hasVariations"] or not payload["variations"]:
        for variation in list(product.variations):
            db.session.delete(variation)
        for pv in list(product.price_variants):
            db.session.delete(pv)
        product.variations = []
        product.price_variants = []
        product.has_variations = False
        product.updated_at = datetime.now(timezone.utc)
        db.session.add(AuditLog(action="CLEAR_VARIATIONS", product_id=product.id))
        if commit:
            db.session.commit()
        return product, sorted(previous_urls)

    existing_variations = {v.id: v for v in product.variations}
    existing_options = {
        option.id: option for v in product.variations for option in v.options
    }

    id_map = {}  # str(engine option id) -> database option
    kept_variations = []
    for index, variation in enumerate(matrix.variations):
        row = existing_variations.pop(variation.id, None)
        if row is None:
            row = ProductVariation(product_id=product.id)
            db.session.add(row)
        row.name = variation.name
        row.sort_order = index

        kept_options = []
        for option_index, option in enumerate(variation.options):
            option_row = None
            if isinstance(option.id, PersistedOptionId):
                option_row = existing_options.pop(option.id.value, None)
            if option_row is None:
                option_row = ProductVariationOption()
            option_row.name = option.name
            option_row.image_url = option.image_url if index == 0 else None
            option_row.sort_order = option_index
            kept_options.append(option_row)
            id_map[str(option.id)] = option_row
        row.options = kept_options
        kept_variations.append(row)

    for row in existing_variations.values():
        db.session.delete(row)
    product.variations = kept_variations
    db.session.flush()  # assign ids to new options

    existing_variants = {pv.combination_key: pv for pv in product.price_variants}
    kept_variants = []
    for entry in payload["priceVariants"]:
        try:
            parts = entry["combinationKey"].split(COMBINATION_SEPARATOR)
            option_rows = [id_map[part] for part in parts]
        except KeyError:
            logger.warning(
                "Skipping price variant %s for product %d: unknown option",
                entry["combinationKey"],
                product.id,
            )
            continue
        key = COMBINATION_SEPARATOR.join(str(option_row.id) for option_row in option_rows)
        pv = existing_variants.pop(key, None)
        if pv is None:
            pv = PriceVariant(product_id=product.id, combination_key=key)
            db.session.add(pv)
        pv.price = entry["price"]
        pv.stock = entry["stock"]
        pv.sku = entry["sku"] or None
        pv.options = option_rows
        kept_variants.append(pv)

    for pv in existing_variants.values():
        db.session.delete(pv)
    product.price_variants = kept_variants

    product.has_variations = True
    product.base_price = None
    product.base_stock = None
    product.updated_at = datetime.now(timezone.utc)

    db.session.add(
        AuditLog(
            action="SAVE_VARIATIONS",
            product_id=product.id,
            payload={
                "variations": [v.name for v in kept_variations],
                "price_variants": len(kept_variants),
            },
        )
    )
    if commit:
        db.session.commit()

    orphaned = previous_urls - set(product.option_image_urls())
    return product, sorted(orphaned)


def log_bulk_update(product, price=None, stock=None):
    if price is not None:
        db.session.add(
            AuditLog(action="BULK_PRICE", product_id=product.id, payload={"price": price})
        )
    if stock is not None:
        db.session.add(
            AuditLog(action="BULK_STOCK", product_id=product.id, payload={"stock": stock})
        )


def delete_product(product):
    """Delete a product and everything under it.

    Returns the image URLs to clean up from the asset store.
    """
    image_urls = product.option_image_urls()
    if product.featured_image_url:
        image_urls.append(product.featured_image_url)

    db.session.add(
        AuditLog(
            action="DELETE_PRODUCT",
            product_id=product.id,
            payload={"slug": product.slug},
        )
    )
    db.session.delete(product)  # cascades to variations + price variants
    db.session.commit()
    return image_urls


def get_product(product_id):
    return db.session.get(Product, product_id)


def get_product_by_slug(slug):
    return Product.query.filter_by(slug=slug.lower()).first()


def get_stats():
    """Product counts for the stats command."""
    total = db.session.query(db.func.count(Product.id)).scalar()
    with_variations = (
        db.session.query(db.func.count(Product.id))
        .filter(Product.has_variations.is_(True))
        .scalar()
    )
    price_variants = db.session.query(db.func.count(PriceVariant.id)).scalar()
    return {
        "products": total,
        "with_variations": with_variations,
        "price_variants": price_variants,
    }


def serialize_product(product):
    price_range = product.price_range
    return {
        "id": product.id,
        "slug": product.slug,
        "name": product.name,
        "description": product.description,
        "featuredImageUrl": product.featured_image_url,
        "basePrice": product.base_price,
        "baseStock": product.base_stock,
        "hasVariations": product.has_variations,
        "priceRange": list(price_range) if price_range else None,
        "totalStock": product.total_stock,
        "variations": [
            {
                "id": variation.id,
                "name": variation.name,
                "options": [
                    {"id": option.id, "name": option.name, "imageUrl": option.image_url}
                    for option in variation.options
                ],
            }
            for variation in product.variations
        ],
        "priceVariants": [
            {
                "id": pv.id,
                "combinationKey": pv.combination_key,
                "optionLabels": [option.label for option in _ordered_options(pv)],
                "price": pv.price,
                "stock": pv.stock,
                "sku": pv.sku,
            }
            for pv in product.price_variants
        ],
    }


def _ordered_options(pv):
    by_id = {option.id: option for option in pv.options}
    return [by_id[option_id] for option_id in pv.option_ids if option_id in by_id]
