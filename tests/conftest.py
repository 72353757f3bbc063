"""Pytest configuration and fixtures."""

from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from feed_service.config import Settings, get_settings
from feed_service.infrastructure.storage import reset_memory_storage
from feed_service.main import create_app
from feed_service.models import CatalogProduct


@pytest.fixture(autouse=True)
def clean_memory_storage() -> Generator[None, None, None]:
    """Every test starts with empty in-process profile storage."""
    reset_memory_storage()
    yield
    reset_memory_storage()


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        storage_backend="memory",
        catalog_api_base_url="http://catalog.test",
        catalog_page_size=4,
        explore_epsilon=0.0,
        rank_jitter=0.0,
    )


@pytest.fixture
def app(test_settings: Settings) -> Any:
    """Create test application."""
    def get_test_settings() -> Settings:
        return test_settings

    app = create_app()
    app.dependency_overrides[get_settings] = get_test_settings
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)


@pytest.fixture
def sample_profile_id() -> str:
    """Sample browser profile ID for tests."""
    return "test-profile-123"


@pytest.fixture
def sample_rows() -> list[dict[str, Any]]:
    """Raw catalog rows; ids 1 and 2 are the same item sold by two stores."""
    return [
        {
            "id": 1,
            "name": "Vestido Midi Linho",
            "store_name": "Loja Centro",
            "store_id": 10,
            "price_tag": 199.9,
            "categories": "vestidos,verao",
            "gender": "female",
            "sizes": "p,m,g",
            "brand": "Aurora",
            "color": "Azul",
            "eta_text": "Entrega em 45 min",
            "view_count": 12,
        },
        {
            "id": 2,
            "name": "Vestido Midi Linho",
            "store_name": "Loja Shopping",
            "store_id": 11,
            "price_tag": 179.9,
            "categories": "vestidos",
            "gender": "female",
            "sizes": "m",
            "brand": "Aurora",
            "color": "Azul",
            "eta_text": "Entrega em 2 horas",
        },
        {
            "id": 3,
            "name": "Camisa Oxford",
            "store_name": "Loja Norte",
            "store_id": 12,
            "price_tag": 89.0,
            "category": "camisas",
            "gender": "male",
            "sizes": ["M", "GG"],
            "brand": "Porto",
            "eta_text": "Chega amanhã",
        },
        {
            "id": 4,
            "name": "Tênis Corrida",
            "store_name": "Loja Centro",
            "store_id": 10,
            "price_tag": 349.0,
            "categories": ["calcados"],
            "gender": "unisex",
            "size": "42",
            "brand": "Veloz",
            "master_sku": "VLZ-42",
        },
    ]


@pytest.fixture
def sample_products(sample_rows: list[dict[str, Any]]) -> list[CatalogProduct]:
    """Validated catalog products."""
    return [CatalogProduct.model_validate(row) for row in sample_rows]
