"""
Pytest configuration and fixtures.

Every test gets its own fake home directory: all default source, target and
settings paths start with "~", which Settings expands against `home`.
"""

import json
import os
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from switchyard.lib.processes import ProcessResult

# Set test environment
os.environ["SWITCHYARD_LOG_LEVEL"] = "WARNING"


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path


def read_json(path: Path) -> Any:
    return json.loads(path.read_text())


def make_bundle(root: Path, name: str, manifest: str | None = None) -> Path:
    bundle = root / name
    bundle.mkdir(parents=True)
    if manifest is not None:
        (bundle / "SKILL.md").write_text(manifest)
    return bundle


class FakeRunner:
    """Stands in for ProcessRunner; answers from a table of canned results."""

    def __init__(self, results: dict[str, ProcessResult] | None = None, default: int = 0):
        self.results = results or {}
        self.default = default
        self.calls: list[tuple[str, ...]] = []

    async def run(self, *args: str, cwd=None, env=None) -> ProcessResult:
        self.calls.append(tuple(str(a) for a in args))
        for prefix, result in self.results.items():
            if " ".join(args).startswith(prefix):
                return result
        return ProcessResult([str(a) for a in args], self.default, "", "")

    def terminate_all(self) -> int:
        return 0


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """A fresh fake home directory for each test."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def test_settings(home: Path):
    """Settings rooted at the fake home."""
    from switchyard.config import Settings

    return Settings(
        home=home,
        config_dir=home / ".switchyard",
        log_level="WARNING",
        watch_debounce=0.05,
    )


@pytest.fixture
def claude_json(home: Path) -> Path:
    return home / ".claude.json"


@pytest.fixture
def bundle_root(home: Path) -> Path:
    root = home / ".claude" / "skills"
    root.mkdir(parents=True)
    return root


@pytest_asyncio.fixture
async def engine(test_settings):
    """A started engine, stopped again after the test."""
    from switchyard.core.engine import Engine

    engine = Engine(test_settings)
    await engine.start()

    yield engine

    await engine.stop()


@pytest.fixture
def test_client(test_settings) -> TestClient:
    """Create a FastAPI test client."""
    from switchyard.server import create_app

    app = create_app(test_settings, watch=False)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def sample_skill_md() -> str:
    """Sample SKILL.md with a multi-line description."""
    return """---
name: PDF Tools
description: |
  Extract text from PDFs,
  and fill in forms.
---

# PDF Tools

Use pdftotext for extraction.
"""
