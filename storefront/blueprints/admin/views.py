"""Admin JSON API for products and their variation matrix."""
import hmac
import logging
from functools import wraps
from flask import abort, current_app, jsonify, request

from storefront.blueprints.admin import admin_bp
from storefront.services import image_service, product_service, variation_service
from storefront.services.variation_service import VariationValidationError

logger = logging.getLogger(__name__)


def admin_required(view):
    """Require X-Admin-Token to match ADMIN_API_TOKEN."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        expected = current_app.config["ADMIN_API_TOKEN"]
        token = request.headers.get("X-Admin-Token", "")
        if not expected or not hmac.compare_digest(token, expected):
            logger.warning("Rejected admin API call to %s", request.path)
            return jsonify(error="Forbidden"), 403
        return view(*args, **kwargs)

    return wrapper


@admin_bp.errorhandler(ValueError)
def handle_value_error(error):
    if isinstance(error, VariationValidationError):
        return jsonify(error=str(error)), 422
    return jsonify(error=str(error)), 400


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object body")
    return data


def _get_product_or_404(product_id):
    product = product_service.get_product(product_id)
    if not product:
        abort(404)
    return product


def _saved_response(product, orphaned, status=200):
    cleanup = variation_service.schedule_image_cleanup(orphaned)
    body = product_service.serialize_product(product)
    body["cleanup"] = "scheduled" if cleanup else "none"
    return jsonify(body), status


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

@admin_bp.route("/products/<slug>", methods=["GET"])
@admin_required
def get_product(slug):
    product = product_service.get_product_by_slug(slug)
    if not product:
        abort(404)
    return jsonify(product_service.serialize_product(product))


@admin_bp.route("/products", methods=["POST"])
@admin_required
def create_product():
    product, orphaned = product_service.create_product(_json_body())
    logger.info("Created product %s", product.slug)
    return _saved_response(product, orphaned, status=201)


@admin_bp.route("/products/<int:product_id>", methods=["PATCH"])
@admin_required
def update_product(product_id):
    product = _get_product_or_404(product_id)
    product = product_service.update_product(product, _json_body())
    return jsonify(product_service.serialize_product(product))


@admin_bp.route("/products/<int:product_id>", methods=["DELETE"])
@admin_required
def delete_product(product_id):
    product = _get_product_or_404(product_id)
    image_urls = product_service.delete_product(product)
    cleanup = variation_service.schedule_image_cleanup(image_urls)
    return jsonify(deleted=product_id, cleanup="scheduled" if cleanup else "none")


# ---------------------------------------------------------------------------
# Variation matrix
# ---------------------------------------------------------------------------

@admin_bp.route("/products/<int:product_id>/variations", methods=["GET"])
@admin_required
def get_variations(product_id):
    product = _get_product_or_404(product_id)
    matrix = variation_service.load_matrix(product)
    return jsonify(variation_service.serialize_matrix(matrix))


@admin_bp.route("/products/<int:product_id>/variations", methods=["PUT"])
@admin_required
def save_variations(product_id):
    """Replace the variations and matrix with the editor's state."""
    product = _get_product_or_404(product_id)
    matrix = variation_service.matrix_from_payload(_json_body())
    product, orphaned = product_service.save_variations(product, matrix)
    return _saved_response(product, orphaned)


@admin_bp.route(
    "/products/<int:product_id>/variations/<int:variation_index>", methods=["DELETE"]
)
@admin_required
def delete_variation(product_id, variation_index):
    product = _get_product_or_404(product_id)
    matrix = variation_service.load_matrix(product)
    removed = variation_service.remove_variation(
        matrix, variation_index, schedule_cleanup=False
    )
    if removed is None:
        abort(404)
    product, orphaned = product_service.save_variations(product, matrix)
    return _saved_response(product, orphaned)


@admin_bp.route(
    "/products/<int:product_id>/variations/<int:variation_index>"
    "/options/<int:option_index>",
    methods=["DELETE"],
)
@admin_required
def delete_option(product_id, variation_index, option_index):
    product = _get_product_or_404(product_id)
    matrix = variation_service.load_matrix(product)
    removed = variation_service.remove_option(
        matrix, variation_index, option_index, schedule_cleanup=False
    )
    if removed is None:
        abort(404)
    product, orphaned = product_service.save_variations(product, matrix)
    return _saved_response(product, orphaned)


@admin_bp.route("/products/<int:product_id>/price-variants", methods=["PATCH"])
@admin_required
def update_price_variants(product_id):
    """Bulk or per-combination price/stock/SKU edits.

    Body: {"price": 50000} and/or {"stock": 10} applies to every combination;
    {"updates": [{"combinationKey": "7|9", "price": 85000}]} edits one by one.
    """
    product = _get_product_or_404(product_id)
    if not product.has_variations:
        raise ValueError("Product has no variations")
    data = _json_body()
    matrix = variation_service.load_matrix(product)

    price = variation_service.parse_price(data.get("price"))
    stock = variation_service.parse_stock(data.get("stock"))
    variation_service.apply_bulk(matrix, price=price, stock=stock)

    updates = data.get("updates") or []
    if not isinstance(updates, list) or not all(isinstance(u, dict) for u in updates):
        raise ValueError("updates must be a list of objects")
    for update in updates:
        key = str(update.get("combinationKey") or "")
        fields = {}
        if "price" in update:
            fields["price"] = variation_service.parse_price(update["price"])
        if "stock" in update:
            fields["stock"] = variation_service.parse_stock(update["stock"])
        if "sku" in update:
            fields["sku"] = (str(update["sku"]).strip() or None) if update["sku"] else None
        if matrix.update_price_variant(key, **fields) is None:
            raise ValueError(f"Unknown combination: {key}")

    product_service.log_bulk_update(product, price=price, stock=stock)
    product, orphaned = product_service.save_variations(product, matrix)
    return _saved_response(product, orphaned)


@admin_bp.route("/variations/matrix", methods=["POST"])
@admin_required
def preview_matrix():
    """Regenerate a matrix for an unsaved editor state."""
    matrix = variation_service.matrix_from_payload(_json_body())
    return jsonify(variation_service.serialize_matrix(matrix))


# ---------------------------------------------------------------------------
# Option images
# ---------------------------------------------------------------------------

@admin_bp.route("/images", methods=["POST"])
@admin_required
def upload_image():
    upload = request.files.get("file")
    if upload is None:
        raise ValueError("Missing file")
    url = image_service.store_option_image(upload.read(), upload.mimetype)
    return jsonify(url=url), 201


@admin_bp.route("/images/delete", methods=["POST"])
@admin_required
def delete_image():
    url = _json_body().get("url")
    if not url:
        raise ValueError("Image URL is required")
    cleanup = variation_service.schedule_image_cleanup([url])
    return jsonify(url=url, cleanup="scheduled" if cleanup else "none")
