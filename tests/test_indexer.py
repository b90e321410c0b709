"""Tests for opscribe.indexer -- project discovery and endpoint indexing."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx
import pytest

from opscribe.exceptions import ProjectIndexError
from opscribe.indexer import (
    discover_projects,
    index_local_project,
    index_remote_project,
    list_endpoints,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write(base: Path, files: dict[str, str]) -> None:
    for relative, text in files.items():
        path = base / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


def _document_service(directory: Path, root: str):
    """Handler serving the files under *directory* like a remote document service."""
    files = {
        p.relative_to(directory).as_posix(): p.read_text(encoding="utf-8")
        for p in sorted(directory.rglob("*"))
        if p.is_file()
    }

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/files":
            assert request.url.params["root"] == root
            return httpx.Response(200, json=list(files))
        if request.url.path == "/api/file":
            key = request.url.params["path"]
            relative = key[len(root) + 1 :]
            if relative in files:
                return httpx.Response(200, text=files[relative])
        return httpx.Response(404)

    return handler


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class TestDiscoverProjects:
    def test_fixture_projects(self, apis_dir: Path) -> None:
        projects = discover_projects(apis_dir)
        assert [(p.name, p.root_path) for p in projects] == [
            ("Legacy", "Legacy/openapi.yml"),
            ("main@v1", "Main/openapi.yaml"),
        ]

    def test_file_counts(self, apis_dir: Path) -> None:
        counts = {p.name: p.file_count for p in discover_projects(apis_dir)}
        assert counts == {"Legacy": 2, "main@v1": 14}

    def test_serialised_with_camel_case(self, apis_dir: Path) -> None:
        data = discover_projects(apis_dir)[0].model_dump(by_alias=True)
        assert set(data) == {"name", "rootPath", "fileCount"}

    def test_root_document_at_base(self, tmp_path: Path) -> None:
        base = tmp_path / "shop"
        _write(base, {"openapi.yaml": "openapi: 3.0.0\n", "notes.txt": "x"})
        [project] = discover_projects(base)
        assert project.name == "shop"
        assert project.root_path == "openapi.yaml"
        assert project.file_count == 1

    def test_redocly_root_outside_base_skipped(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        base = tmp_path / "base"
        _write(base, {"redocly.yaml": "apis:\n  far:\n    root: ../elsewhere/openapi.yaml\n"})
        _write(tmp_path, {"elsewhere/openapi.yaml": "openapi: 3.0.0\n"})
        with caplog.at_level(logging.WARNING, logger="opscribe"):
            assert discover_projects(base) == []
        assert "lies outside" in caplog.text

    def test_not_a_directory(self, tmp_path: Path) -> None:
        with pytest.raises(ProjectIndexError, match="Not a directory"):
            discover_projects(tmp_path / "missing")


# ---------------------------------------------------------------------------
# Local indexing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestIndexLocalProject:
    async def test_registry_paths(self, main_index) -> None:
        assert main_index.root == "Main"
        assert "Main/openapi.yaml" in main_index.registry
        assert "Main/components/schemas/User.yaml" in main_index.registry
        assert "Main/paths/users_post_read.md" in main_index.registry

    async def test_flat_endpoint(self, main_index) -> None:
        users = main_index.endpoints["users"]
        assert users.flat is True
        assert users.api_path == "/users"
        assert users.file_path == "Main/paths/users.yaml"
        assert users.methods == ["get", "post"]

    async def test_split_endpoint_from_method_refs(self, main_index) -> None:
        orders = main_index.endpoints["orders"]
        assert orders.flat is False
        assert orders.methods == ["get", "post"]
        assert orders.method_files == {
            "get": "Main/paths/orders/get.yaml",
            "post": "Main/paths/orders/post.yaml",
        }

    async def test_endpoint_order_follows_root_document(self, main_index) -> None:
        assert list(main_index.endpoints) == ["users", "orders"]

    async def test_find_endpoint_by_api_path(self, main_index) -> None:
        assert main_index.find_endpoint("/orders").name == "orders"
        assert main_index.find_endpoint("/nope") is None

    async def test_missing_endpoint_file_skipped(
        self, apis_dir: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="opscribe"):
            index = await index_local_project(apis_dir, "Legacy/openapi.yml")
        assert list(index.endpoints) == ["ping"]
        assert "Endpoint file not found for /missing" in caplog.text

    async def test_split_endpoint_from_directory(self, tmp_path: Path) -> None:
        _write(
            tmp_path,
            {
                "P/openapi.yaml": (
                    "paths:\n"
                    "  /pets:\n    $ref: ./paths/pets\n"
                    "  /owners:\n    $ref: ./paths/owners.yaml\n"
                ),
                "P/paths/pets/delete.yaml": "summary: d\n",
                "P/paths/pets/get.yaml": "summary: g\n",
                "P/paths/owners/post.yml": "summary: p\n",
            },
        )
        index = await index_local_project(tmp_path, "P/openapi.yaml")
        pets = index.endpoints["pets"]
        assert pets.flat is False
        assert pets.file_path == "P/paths/pets"
        assert pets.methods == ["get", "delete"]
        owners = index.endpoints["owners"]
        assert owners.method_files == {"post": "P/paths/owners/post.yml"}

    async def test_duplicate_names_keyed_by_path(self, tmp_path: Path) -> None:
        _write(
            tmp_path,
            {
                "P/openapi.yaml": (
                    "paths:\n"
                    "  /v1/users:\n    $ref: ./v1/users.yaml\n"
                    "  /v2/users:\n    $ref: ./v2/users.yaml\n"
                ),
                "P/v1/users.yaml": "get:\n  summary: one\n",
                "P/v2/users.yaml": "get:\n  summary: two\n",
            },
        )
        index = await index_local_project(tmp_path, "P/openapi.yaml")
        assert list(index.endpoints) == ["users", "/v2/users"]

    async def test_project_at_base_has_empty_root(self, tmp_path: Path) -> None:
        _write(
            tmp_path,
            {
                "openapi.yaml": "paths:\n  /a:\n    $ref: a.yaml\n",
                "a.yaml": "get:\n  summary: a\n",
            },
        )
        index = await index_local_project(tmp_path, "openapi.yaml")
        assert index.root == ""
        assert index.endpoints["a"].file_path == "a.yaml"

    async def test_missing_root_document(self, tmp_path: Path) -> None:
        with pytest.raises(ProjectIndexError, match="Root document not found"):
            await index_local_project(tmp_path, "P/openapi.yaml")


class TestListEndpoints:
    @pytest.mark.asyncio
    async def test_summaries(self, main_index) -> None:
        summaries = list_endpoints(main_index)
        assert [s.model_dump(by_alias=True) for s in summaries] == [
            {"apiPath": "/users", "filePath": "Main/paths/users.yaml", "methods": ["get", "post"]},
            {"apiPath": "/orders", "filePath": "Main/paths/orders.yaml", "methods": ["get", "post"]},
        ]


# ---------------------------------------------------------------------------
# Remote indexing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestIndexRemoteProject:
    async def test_matches_local_index(self, apis_dir: Path, main_index) -> None:
        transport = httpx.MockTransport(_document_service(apis_dir / "Main", "Main"))
        async with httpx.AsyncClient(transport=transport) as client:
            index = await index_remote_project("http://docs.test/api/", "Main/openapi.yaml", client)
        assert index.root == "Main"
        assert set(index.registry) == set(main_index.registry)
        assert index.endpoints == main_index.endpoints

    async def test_listing_http_error(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(ProjectIndexError, match="HTTP 503"):
                await index_remote_project("http://docs.test/api", "Main/openapi.yaml", client)

    async def test_listing_not_a_list(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"files": []}))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(ProjectIndexError, match="expected a list"):
                await index_remote_project("http://docs.test/api", "Main/openapi.yaml", client)

    async def test_unreachable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(ProjectIndexError, match="Cannot reach"):
                await index_remote_project("http://docs.test/api", "Main/openapi.yaml", client)
