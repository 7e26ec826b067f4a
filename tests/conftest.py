import pytest
from storefront import create_app
from storefront.extensions import db as _db


@pytest.fixture(scope="session")
def app():
    """Create application for testing."""
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    """Per-test database session with rollback."""
    with app.app_context():
        _db.session.begin_nested()
        yield _db
        _db.session.rollback()


@pytest.fixture
def admin_headers(app):
    return {"X-Admin-Token": app.config["ADMIN_API_TOKEN"]}


@pytest.fixture
def covers_payload():
    """Editor state for a cover with 2 colours x 2 sizes, three of them priced."""
    return {
        "hasVariations": True,
        "variations": [
            {
                "name": "Warna",
                "options": [
                    {
                        "id": "draft-hitam",
                        "name": "Hitam",
                        "imageUrl": "https://cdn.example.test/options/hitam.jpg",
                    },
                    {
                        "id": "draft-coklat",
                        "name": "Coklat",
                        "imageUrl": "https://cdn.example.test/options/coklat.jpg",
                    },
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
            {"combinationKey": "draft-hitam|draft-a5", "price": 85000, "stock": 4, "sku": "SQ-H-A5"},
            {"combinationKey": "draft-hitam|draft-a4", "price": 110000, "stock": 2},
            {"combinationKey": "draft-coklat|draft-a5", "price": 85000, "stock": 0},
        ],
    }
