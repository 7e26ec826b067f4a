"""Tests for the admin JSON API."""
import copy
import io
from unittest.mock import patch

import pytest
from PIL import Image as PILImage

import storefront.extensions as ext


def _create(client, headers, payload, name):
    data = copy.deepcopy(payload)
    data["name"] = name
    resp = client.post("/admin/api/products", json=data, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def test_rejects_missing_token(client):
    resp = client.get("/admin/api/products/anything")
    assert resp.status_code == 403


def test_rejects_wrong_token(client):
    resp = client.get("/admin/api/products/anything", headers={"X-Admin-Token": "nope"})
    assert resp.status_code == 403


def test_product_404(client, admin_headers):
    resp = client.get("/admin/api/products/does-not-exist", headers=admin_headers)
    assert resp.status_code == 404


def test_create_and_get_product(client, admin_headers, covers_payload):
    created = _create(client, admin_headers, covers_payload, "Api Sampul Get")
    assert created["hasVariations"] is True
    assert created["priceRange"] == [85000, 110000]
    assert created["cleanup"] == "none"

    resp = client.get("/admin/api/products/api-sampul-get", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.get_json()
    assert [v["name"] for v in data["variations"]] == ["Warna", "Ukuran"]
    labels = sorted(tuple(pv["optionLabels"]) for pv in data["priceVariants"])
    assert labels == [
        ("Warna: Coklat", "Ukuran: A5"),
        ("Warna: Hitam", "Ukuran: A4"),
        ("Warna: Hitam", "Ukuran: A5"),
    ]


def test_create_rejects_bad_input(client, admin_headers, covers_payload):
    data = copy.deepcopy(covers_payload)
    data["name"] = "Api Bad Price"
    data["priceVariants"][0]["price"] = -5
    resp = client.post("/admin/api/products", json=data, headers=admin_headers)
    assert resp.status_code == 400
    assert "negative" in resp.get_json()["error"]


def test_create_rejects_non_json(client, admin_headers):
    resp = client.post("/admin/api/products", data="x", headers=admin_headers)
    assert resp.status_code == 400


def test_get_variations_matrix(client, admin_headers, covers_payload):
    created = _create(client, admin_headers, covers_payload, "Api Sampul Matrix")
    resp = client.get(
        f"/admin/api/products/{created['id']}/variations", headers=admin_headers
    )
    assert resp.status_code == 200
    data = resp.get_json()
    assert len(data["priceVariants"]) == 4
    assert [pv["price"] for pv in data["priceVariants"]] == [85000, 110000, 85000, None]


def test_put_variations_schedules_cleanup(client, admin_headers, covers_payload):
    created = _create(client, admin_headers, covers_payload, "Api Sampul Put")
    state = client.get(
        f"/admin/api/products/{created['id']}/variations", headers=admin_headers
    ).get_json()

    # Drop the second colour (and its image) in the editor
    del state["variations"][0]["options"][1]
    with patch("storefront.services.storage_service.delete") as delete:
        resp = client.put(
            f"/admin/api/products/{created['id']}/variations",
            json=state,
            headers=admin_headers,
        )

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["cleanup"] == "scheduled"
    delete.assert_called_once_with("options/coklat.jpg")
    assert len(data["priceVariants"]) == 2
    assert {pv["id"] for pv in data["priceVariants"]} <= {
        pv["id"] for pv in created["priceVariants"]
    }


def test_delete_last_option_is_422(client, admin_headers):
    created = _create(
        client,
        admin_headers,
        {
            "variations": [{"name": "Warna", "options": [{"name": "Hitam"}]}],
            "priceVariants": [],
        },
        "Api Single Option",
    )
    resp = client.delete(
        f"/admin/api/products/{created['id']}/variations/0/options/0",
        headers=admin_headers,
    )
    assert resp.status_code == 422
    assert resp.get_json()["error"] == "A variation must keep at least one option."

    again = client.get("/admin/api/products/api-single-option", headers=admin_headers)
    assert len(again.get_json()["variations"][0]["options"]) == 1


def test_delete_option(client, admin_headers, covers_payload):
    created = _create(client, admin_headers, covers_payload, "Api Sampul Del Option")
    with patch("storefront.services.storage_service.delete") as delete:
        resp = client.delete(
            f"/admin/api/products/{created['id']}/variations/0/options/1",
            headers=admin_headers,
        )
    assert resp.status_code == 200
    delete.assert_called_once_with("options/coklat.jpg")
    assert [o["name"] for o in resp.get_json()["variations"][0]["options"]] == ["Hitam"]


def test_delete_option_out_of_range(client, admin_headers, covers_payload):
    created = _create(client, admin_headers, covers_payload, "Api Sampul Bad Option")
    resp = client.delete(
        f"/admin/api/products/{created['id']}/variations/1/options/7",
        headers=admin_headers,
    )
    assert resp.status_code == 404


def test_delete_variation(client, admin_headers, covers_payload):
    created = _create(client, admin_headers, covers_payload, "Api Sampul Del Variation")
    resp = client.delete(
        f"/admin/api/products/{created['id']}/variations/1", headers=admin_headers
    )
    assert resp.status_code == 200
    data = resp.get_json()
    assert [v["name"] for v in data["variations"]] == ["Warna"]
    # Old keys no longer exist; the new single-axis combinations start unpriced
    assert data["priceVariants"] == []


def test_delete_only_variation_switches_to_flat_pricing(client, admin_headers):
    created = _create(
        client,
        admin_headers,
        {"variations": [{"name": "Warna", "options": [{"name": "Hitam"}]}]},
        "Api Only Variation",
    )
    resp = client.delete(
        f"/admin/api/products/{created['id']}/variations/0", headers=admin_headers
    )
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["hasVariations"] is False
    assert data["variations"] == []


def test_bulk_price(client, admin_headers, covers_payload):
    created = _create(client, admin_headers, covers_payload, "Api Sampul Bulk")
    resp = client.patch(
        f"/admin/api/products/{created['id']}/price-variants",
        json={"price": 50000, "stock": 3},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.get_json()
    assert len(data["priceVariants"]) == 4
    assert {pv["price"] for pv in data["priceVariants"]} == {50000}
    assert data["totalStock"] == 12


def test_single_price_update(client, admin_headers, covers_payload):
    created = _create(client, admin_headers, covers_payload, "Api Sampul Single")
    key = created["priceVariants"][0]["combinationKey"]
    resp = client.patch(
        f"/admin/api/products/{created['id']}/price-variants",
        json={"updates": [{"combinationKey": key, "price": 99000, "sku": "NEW"}]},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    updated = {pv["combinationKey"]: pv for pv in resp.get_json()["priceVariants"]}
    assert updated[key]["price"] == 99000
    assert updated[key]["sku"] == "NEW"
    assert updated[key]["stock"] == created["priceVariants"][0]["stock"]


def test_unknown_combination_is_400(client, admin_headers, covers_payload):
    created = _create(client, admin_headers, covers_payload, "Api Sampul Unknown")
    resp = client.patch(
        f"/admin/api/products/{created['id']}/price-variants",
        json={"updates": [{"combinationKey": "1|2|3", "price": 1}]},
        headers=admin_headers,
    )
    assert resp.status_code == 400


def test_preview_matrix(client, admin_headers, covers_payload):
    resp = client.post("/admin/api/variations/matrix", json=covers_payload, headers=admin_headers)
    assert resp.status_code == 200
    data = resp.get_json()
    assert [pv["combinationKey"] for pv in data["priceVariants"]] == [
        "draft-hitam|draft-a5",
        "draft-hitam|draft-a4",
        "draft-coklat|draft-a5",
        "draft-coklat|draft-a4",
    ]


def test_preview_rejects_third_variation(client, admin_headers, covers_payload):
    covers_payload["variations"].append({"name": "Bahan", "options": [{"name": "Kulit"}]})
    resp = client.post("/admin/api/variations/matrix", json=covers_payload, headers=admin_headers)
    assert resp.status_code == 400


def test_delete_product(client, admin_headers, covers_payload):
    created = _create(client, admin_headers, covers_payload, "Api Sampul Delete")
    with patch("storefront.services.storage_service.delete") as delete:
        resp = client.delete(f"/admin/api/products/{created['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["cleanup"] == "scheduled"
    assert delete.call_count == 2
    assert client.get("/admin/api/products/api-sampul-delete", headers=admin_headers).status_code == 404


def test_upload_image(client, admin_headers):
    buffer = io.BytesIO()
    PILImage.new("RGBA", (8, 8), (200, 10, 10, 255)).save(buffer, format="PNG")
    buffer.seek(0)

    with patch("storefront.services.storage_service.upload") as upload:
        resp = client.post(
            "/admin/api/images",
            data={"file": (buffer, "hitam.png", "image/png")},
            headers=admin_headers,
            content_type="multipart/form-data",
        )

    assert resp.status_code == 201
    url = resp.get_json()["url"]
    assert url.startswith("https://cdn.example.test/options/")
    key, body = upload.call_args[0]
    assert url.endswith(key)
    assert body[:2] == b"\xff\xd8"  # re-encoded as JPEG


def test_upload_rejects_non_image(client, admin_headers):
    resp = client.post(
        "/admin/api/images",
        data={"file": (io.BytesIO(b"not an image"), "x.jpg", "image/jpeg")},
        headers=admin_headers,
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400


def test_delete_image(client, admin_headers):
    with patch("storefront.services.storage_service.delete") as delete:
        resp = client.post(
            "/admin/api/images/delete",
            json={"url": "https://cdn.example.test/options/old.jpg"},
            headers=admin_headers,
        )
    assert resp.status_code == 200
    delete.assert_called_once_with("options/old.jpg")


def test_delete_image_failure_is_not_an_error(client, admin_headers):
    with patch(
        "storefront.services.storage_service.delete", side_effect=RuntimeError("s3 down")
    ):
        resp = client.post(
            "/admin/api/images/delete",
            json={"url": "https://cdn.example.test/options/old.jpg"},
            headers=admin_headers,
        )
    assert resp.status_code == 200


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data == {"status": "ok", "db": "ok", "redis": "not configured"}


def test_health_does_not_leak_internal_errors(client, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("database password leaked")

    monkeypatch.setattr(ext.db.session, "execute", boom)

    resp = client.get("/health")
    assert resp.status_code == 503
    data = resp.get_json()
    assert data["db"] == "error"
    assert "password" not in str(data).lower()


def test_fractional_price_is_rejected(client, admin_headers, covers_payload):
    data = copy.deepcopy(covers_payload)
    data["name"] = "Api Fractional Price"
    data["priceVariants"][0]["price"] = 12.5
    resp = client.post("/admin/api/products", json=data, headers=admin_headers)
    assert resp.status_code == 400
    assert client.get(
        "/admin/api/products/api-fractional-price", headers=admin_headers
    ).status_code == 404


def test_whole_price_is_stored_as_given(client, admin_headers, covers_payload):
    data = copy.deepcopy(covers_payload)
    data["priceVariants"][0]["price"] = "85001"
    created = _create(client, admin_headers, data, "Api Whole Price")
    resp = client.get("/admin/api/products/api-whole-price", headers=admin_headers)
    prices = sorted(pv["price"] for pv in resp.get_json()["priceVariants"])
    assert prices == [85000, 85001, 110000]
    assert created["priceRange"] == [85000, 110000]


@pytest.mark.parametrize(
    "suffix, updates",
    [("list", ["x"]), ("string", "x"), ("object", {"combinationKey": "1|2"}), ("none", [None])],
)
def test_malformed_updates_are_400(client, admin_headers, covers_payload, suffix, updates):
    created = _create(client, admin_headers, covers_payload, f"Api Bad Updates {suffix}")
    resp = client.patch(
        f"/admin/api/products/{created['id']}/price-variants",
        json={"updates": updates},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "updates must be a list of objects"


def test_option_id_with_separator_is_400(client, admin_headers, covers_payload):
    covers_payload["variations"][1]["options"][0]["id"] = "a5|draft-a4"
    resp = client.post("/admin/api/variations/matrix", json=covers_payload, headers=admin_headers)
    assert resp.status_code == 400
