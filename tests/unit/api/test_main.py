"""
Unit tests for the FastAPI application: lifespan mounting, health and
registry endpoints.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from dynacrud.api.main import create_app
from dynacrud.api.mount import mount_models
from dynacrud.registry import ModelRegistry
from dynacrud.schema import build_schema
from dynacrud.services.config_loader import ConfigLoader
from dynacrud.settings import settings


class StaticConfigLoader(ConfigLoader):
    """ConfigLoader that reads an in-memory document instead of the remote URL."""

    def __init__(self, document, **kwargs):
        super().__init__(**kwargs)
        self.document = document

    async def load(self, config=None, http_client=None):
        return await super().load(config=config or self.document)


@pytest.fixture
def document(materials_config):
    return {
        "materials": materials_config,
        "suppliers": {"schema": {"name": "string"}, "frontend": {"icon": "truck"}},
        "metadata": {"version": 1},
    }


@pytest.fixture
def loader(document, stub_db):
    return StaticConfigLoader(document, db=stub_db, registry=ModelRegistry(), fail_fast=False)


@pytest.fixture
def client(loader, memory_repositories):
    app = create_app(loader=loader, repository_factory=memory_repositories)
    with TestClient(app) as test_client:
        yield test_client


class TestApp:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["entities"] == ["materials", "suppliers"]

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": "0.1.0", "database": "connected"}

    def test_entities_mounted_on_startup(self, client, memory_repositories):
        response = client.post("/api/materials", json={"name": "Steel"})
        assert response.status_code == 201
        assert len(memory_repositories.repositories["materials"].rows) == 1

        assert client.get("/api/suppliers").json() == []
        assert client.get("/api/metadata").status_code == 404

    def test_openapi_lists_generated_routes(self, client):
        paths = client.get("/openapi.json").json()["paths"]
        assert "/api/materials" in paths
        assert "/api/materials/export" in paths
        assert "/api/materials/{record_id}" in paths

    def test_shutdown_disconnects(self, loader, memory_repositories):
        app = create_app(loader=loader, repository_factory=memory_repositories)
        with TestClient(app):
            assert loader.db.is_connected
        assert not loader.db.is_connected

    def test_load_on_startup_disabled(self, loader, memory_repositories, monkeypatch):
        monkeypatch.setattr(settings.remote_config, "load_on_startup", False)
        app = create_app(loader=loader, repository_factory=memory_repositories)
        with TestClient(app) as client:
            assert client.get("/").json()["entities"] == []
            assert client.get("/api/materials").status_code == 404


class TestModelsRouter:
    def test_list(self, client):
        body = client.get("/api/models").json()
        assert body["object"] == "list"
        assert body["total"] == 2
        by_name = {entry["name"]: entry for entry in body["data"]}
        assert by_name["suppliers"]["frontend"] == {"icon": "truck"}
        assert by_name["materials"]["options"] == {"timestamps": True, "strict": False}
        assert by_name["materials"]["table"] == "materials"

    def test_get(self, client):
        body = client.get("/api/models/materials").json()
        assert body["schema"]["name"] == {"type": "string", "required": True, "trim": True}
        assert body["schema"]["tags"] == [{"type": "string"}]

    def test_get_unknown(self, client):
        assert client.get("/api/models/unknown").status_code == 404

    def test_reload_mounts_new_entities(self, client, loader):
        loader.document = dict(loader.document, orders={"schema": {"qty": {"type": "number", "required": True}}})

        response = client.post("/api/models/reload")

        assert response.status_code == 200
        assert response.json() == {"loaded": ["materials", "orders", "suppliers"], "mounted": ["orders"]}
        assert client.post("/api/orders", json={"qty": 2}).status_code == 201
        assert client.post("/api/orders", json={}).status_code == 400

    def test_reload_keeps_live_schema(self, client, loader):
        loader.document = dict(loader.document, materials={"schema": {"title": "string"}})
        client.post("/api/models/reload")

        schema = client.get("/api/models/materials").json()["schema"]
        assert "name" in schema
        assert "title" not in schema


class TestMountModels:
    @pytest.fixture
    def app(self, memory_repositories):
        app = FastAPI()
        app.state.mounted_entities = set()
        app.state.repository_factory = memory_repositories
        return app

    def test_idempotent(self, app):
        registry = ModelRegistry()
        models = {"materials": registry.register_or_get("materials", build_schema({"name": "string"}))}

        assert mount_models(app, models) == ["materials"]
        assert mount_models(app, models) == []
        paths = [route.path for route in app.routes]
        assert paths.count("/api/materials") == 2  # POST and GET

    def test_reserved_name_skipped(self, app):
        registry = ModelRegistry()
        models = {"models": registry.register_or_get("models", build_schema({"name": "string"}))}

        assert mount_models(app, models) == []
        assert "models" not in app.state.mounted_entities
