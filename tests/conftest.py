"""Test configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from depot.config import Settings
from depot.main import create_app
from depot.services import DirectoryLister, MutationService, TransferService
from depot.validators.path import PathResolver


@pytest.fixture
def sandbox_root(tmp_path: Path) -> Path:
    """An empty sandbox root with a sibling directory outside of it."""
    root = tmp_path / "root"
    root.mkdir()
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("top secret")
    return root


@pytest.fixture
def resolver(sandbox_root: Path) -> PathResolver:
    return PathResolver(sandbox_root)


@pytest.fixture
def lister(resolver: PathResolver) -> DirectoryLister:
    return DirectoryLister(resolver)


@pytest.fixture
def transfer(resolver: PathResolver) -> TransferService:
    return TransferService(resolver, chunk_size=4)


@pytest.fixture
def mutation(resolver: PathResolver) -> MutationService:
    return MutationService(resolver)


@pytest.fixture
def test_settings(sandbox_root: Path) -> Settings:
    return Settings(sandbox={"root_path": str(sandbox_root), "chunk_size": 8})


@pytest.fixture
async def client(test_settings: Settings):
    app = create_app(test_settings)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://depot.test") as c:
        yield c
