"""Calling layer around VariationMatrix.

Builds matrices from stored products and editor payloads, applies removals
in the order image cleanup needs (collect URLs, mutate, then delete remote),
and serializes matrices back to JSON.
"""
import logging
import math
from flask import current_app

from storefront import extensions
from storefront.services.variation_matrix import (
    DraftOptionId,
    PersistedOptionId,
    PriceVariantItem,
    Variation,
    VariationMatrix,
    VariationOption,
    combination_key,
    parse_option_id,
    split_combination_key,
)
from storefront.workers.image_cleanup import delete_images

logger = logging.getLogger(__name__)

LAST_OPTION_MESSAGE = "A variation must keep at least one option."


class VariationValidationError(ValueError):
    """A user-facing rejection of a variation edit."""


def new_matrix():
    return VariationMatrix(max_variations=current_app.config["MAX_VARIATIONS"])


def load_matrix(product):
    """Rebuild the editing state of a stored product."""
    variations = [
        Variation(
            id=variation.id,
            name=variation.name,
            options=[
                VariationOption(
                    id=PersistedOptionId(option.id),
                    name=option.name,
                    image_url=option.image_url,
                )
                for option in variation.options
            ],
        )
        for variation in product.variations
    ]
    items = [
        PriceVariantItem(
            option_combination=split_combination_key(pv.combination_key),
            price=pv.price,
            stock=pv.stock,
            sku=pv.sku,
            id=pv.id,
        )
        for pv in product.price_variants
    ]
    matrix = new_matrix()
    matrix.import_variations(variations)
    matrix.import_price_variants(items)
    if not product.has_variations:
        matrix.set_has_variations(False)
    # Labels are not stored; regenerating fills them from current names.
    matrix.generate_price_variants()
    return matrix


def matrix_from_payload(data):
    """Build a matrix from the editor's JSON state.

    Expected shape::

        {
            "hasVariations": true,
            "variations": [{"id": 3, "name": "Warna",
                            "options": [{"id": 7, "name": "Hitam",
                                         "imageUrl": "..."}]}],
            "priceVariants": [{"combinationKey": "7|9", "price": 85000,
                               "stock": 4, "sku": "SQ-HTM-A5"}]
        }

    Raises ValueError on malformed input.
    """
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")

    max_variations = current_app.config["MAX_VARIATIONS"]
    raw_variations = data.get("variations") or []
    if not isinstance(raw_variations, list):
        raise ValueError("variations must be a list")
    if len(raw_variations) > max_variations:
        raise ValueError(f"At most {max_variations} variations are allowed")

    seen_ids = set()
    variations = []
    for index, raw in enumerate(raw_variations):
        if not isinstance(raw, dict):
            raise ValueError(f"Variation {index + 1} must be an object")
        raw_options = raw.get("options") or []
        if not isinstance(raw_options, list) or not raw_options:
            raise ValueError(f"Variation {index + 1} needs at least one option")

        options = []
        for raw_option in raw_options:
            if not isinstance(raw_option, dict):
                raise ValueError(f"Options of variation {index + 1} must be objects")
            option_id = parse_option_id(raw_option.get("id")) or DraftOptionId.new()
            if option_id in seen_ids:
                raise ValueError(f"Duplicate option id: {option_id}")
            seen_ids.add(option_id)
            image_url = raw_option.get("imageUrl") if index == 0 else None
            options.append(
                VariationOption(
                    id=option_id,
                    name=str(raw_option.get("name") or "").strip(),
                    image_url=image_url or None,
                )
            )
        variations.append(
            Variation(
                id=_optional_int(raw.get("id"), "variation id"),
                name=str(raw.get("name") or "").strip(),
                options=options,
            )
        )

    items = []
    for raw in data.get("priceVariants") or []:
        if not isinstance(raw, dict):
            raise ValueError("priceVariants entries must be objects")
        key = raw.get("combinationKey")
        if not key:
            key = combination_key(
                parse_option_id(part) for part in raw.get("optionCombination") or []
            )
        if not key:
            continue
        items.append(
            PriceVariantItem(
                option_combination=split_combination_key(key),
                price=parse_price(raw.get("price")),
                stock=parse_stock(raw.get("stock")),
                sku=(str(raw["sku"]).strip() or None) if raw.get("sku") else None,
                id=_optional_int(raw.get("id"), "price variant id"),
            )
        )

    has_variations = bool(data.get("hasVariations", True)) and bool(variations)
    matrix = VariationMatrix(
        variations=variations,
        price_variants=items,
        has_variations=has_variations,
        max_variations=max_variations,
    )
    matrix.generate_price_variants()
    return matrix


def parse_price(value):
    """Non-negative whole amount (Rupiah) or None."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("Price must be a number")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid price: {value!r}")
    if not math.isfinite(price):
        raise ValueError(f"Invalid price: {value!r}")
    if price < 0:
        raise ValueError("Price cannot be negative")
    if not price.is_integer():
        raise ValueError("Price must be a whole amount")
    return int(price)


def parse_stock(value):
    """Non-negative integer or None."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("Stock must be a whole number")
    try:
        stock = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid stock: {value!r}")
    if not stock.is_integer():
        raise ValueError("Stock must be a whole number")
    if stock < 0:
        raise ValueError("Stock cannot be negative")
    return int(stock)


def remove_option(matrix, variation_index, option_index, schedule_cleanup=True):
    """Remove an option and release its image.

    Raises VariationValidationError when it is the variation's last option.
    Returns the removed option, or None for out-of-range indices.
    """
    if matrix.option_at(variation_index, option_index) is None:
        return None
    if not matrix.can_remove_option(variation_index):
        raise VariationValidationError(LAST_OPTION_MESSAGE)

    previous_urls = matrix.image_urls()
    removed = matrix.remove_option(variation_index, option_index)
    matrix.refresh()
    released = _released_urls(previous_urls, matrix)
    if schedule_cleanup and released:
        schedule_image_cleanup(released)
    return removed


def remove_variation(matrix, index, schedule_cleanup=True):
    """Remove a variation with its option images.

    Removing the last variation switches the product back to flat pricing.
    """
    if matrix.variation_at(index) is None:
        return None

    previous_urls = matrix.image_urls()
    removed = matrix.remove_variation(index)
    if not matrix.variations:
        matrix.reset()
    else:
        matrix.refresh()
    if schedule_cleanup:
        schedule_image_cleanup(_released_urls(previous_urls, matrix))
    return removed


def _released_urls(previous_urls, matrix):
    """Image URLs the matrix held before an edit and no longer holds."""
    current = set(matrix.image_urls())
    return [url for url in previous_urls if url not in current]


def apply_bulk(matrix, price=None, stock=None):
    """Set the same price and/or stock on every combination."""
    if price is not None:
        matrix.apply_price_to_all(price)
    if stock is not None:
        matrix.apply_stock_to_all(stock)
    return matrix.price_variants


def schedule_image_cleanup(urls):
    """Queue deletion of orphaned images. Never raises.

    Returns True when a job was handed to the queue.
    """
    urls = [url for url in dict.fromkeys(urls) if url]
    if not urls:
        return False
    try:
        extensions.task_queue.enqueue(delete_images, urls)
    except Exception:
        logger.exception("Failed to schedule cleanup of %d image(s)", len(urls))
        return False
    return True


def serialize_matrix(matrix):
    return {
        "hasVariations": matrix.has_variations,
        "variations": [
            {
                "id": variation.id,
                "name": variation.name,
                "options": [
                    {
                        "id": str(option.id),
                        "name": option.name,
                        "imageUrl": option.image_url,
                    }
                    for option in variation.options
                ],
            }
            for variation in matrix.variations
        ],
        "priceVariants": [serialize_price_variant(item) for item in matrix.price_variants],
        "openVariationForms": sorted(matrix.open_variation_forms),
    }


def serialize_price_variant(item):
    return {
        "id": item.id,
        "combinationKey": item.combination_key,
        "optionCombination": [str(option_id) for option_id in item.option_combination],
        "optionLabels": list(item.option_labels),
        "label": item.label,
        "price": item.price,
        "stock": item.stock,
        "sku": item.sku,
    }


def _optional_int(value, what):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {what}: {value!r}")
