"""
Tests for the HTTP side of the voice server.

Uses Flask's test client against a fresh SessionRegistry and a temporary
generation root.
"""

import io
import sys
import zipfile
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import voice_server
from voice_creation.schemas.project import FileTreeNode, GenerationResult, RunStatus
from voice_creation.sessions import SessionRegistry


SESSION_ID = "session-1700000000000-abc123def"


class FakePreview:
    def __init__(self):
        self.alive = True
        self.stopped = False

    def stop(self):
        self.stopped = True
        self.alive = False


@pytest.fixture
def registry(monkeypatch):
    registry = SessionRegistry(ttl_seconds=3600)
    monkeypatch.setattr(voice_server, "registry", registry)
    return registry


@pytest.fixture
def generation_root(monkeypatch, tmp_path):
    monkeypatch.setattr(voice_server.config, "generation_root", tmp_path)
    return tmp_path


@pytest.fixture
def client(registry, generation_root):
    voice_server.app.config["TESTING"] = True
    with voice_server.app.test_client() as client:
        yield client


def finished_run(registry, status=RunStatus.COMPLETED, preview=None, tree=None):
    registry.begin(SESSION_ID, "Todo App")
    registry.finish(
        GenerationResult(
            session_id=SESSION_ID,
            status=status,
            preview_url="http://localhost:4000" if status is RunStatus.COMPLETED else None,
            repo_path="/tmp/generated/repo",
            file_tree=tree,
        ),
        preview=preview,
    )


class TestIndexAndHealth:
    def test_index(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.get_json()["websocket"] == "/ws"

    def test_health(self, client, monkeypatch):
        model = SimpleNamespace(get_status=lambda: {"current_provider": "anthropic", "providers": {}})
        monkeypatch.setattr(voice_server, "_orchestrator", SimpleNamespace(model=model))

        data = client.get("/api/health").get_json()

        assert data["status"] == "ok"
        assert data["codegen"]["current_provider"] == "anthropic"
        assert data["sessions"] == 0


class TestSessions:
    def test_list(self, client, registry):
        finished_run(registry)

        data = client.get("/api/sessions").get_json()

        assert [s["session_id"] for s in data["sessions"]] == [SESSION_ID]
        assert data["sessions"][0]["status"] == "completed"

    def test_get(self, client, registry):
        finished_run(registry, status=RunStatus.FAILED)

        data = client.get(f"/api/sessions/{SESSION_ID}").get_json()

        assert data["project_name"] == "Todo App"
        assert data["status"] == "failed"
        assert data["preview_url"] is None

    def test_unknown_and_invalid_ids(self, client):
        assert client.get(f"/api/sessions/{SESSION_ID}").status_code == 404
        assert client.get("/api/sessions/not-a-session").status_code == 404

    def test_tree(self, client, registry):
        tree = FileTreeNode("repo", "/r", [FileTreeNode("index.txt", "/r/index.txt")])
        finished_run(registry, tree=tree)

        data = client.get(f"/api/sessions/{SESSION_ID}/tree").get_json()

        assert data == {
            "name": "repo",
            "path": "/r",
            "children": [{"name": "index.txt", "path": "/r/index.txt"}],
        }

    def test_tree_missing(self, client, registry):
        finished_run(registry, status=RunStatus.FAILED)

        assert client.get(f"/api/sessions/{SESSION_ID}/tree").status_code == 404

    def test_stop_preview(self, client, registry):
        preview = FakePreview()
        finished_run(registry, preview=preview)

        response = client.post(f"/api/sessions/{SESSION_ID}/stop")

        assert response.get_json() == {"stopped": True}
        assert preview.stopped
        assert registry.get(SESSION_ID).to_dict()["preview_alive"] is False

    def test_stop_running_generation(self, client, registry):
        cancelled = []
        registry.begin(SESSION_ID, "Todo App", cancel=lambda: cancelled.append(True))

        response = client.post(f"/api/sessions/{SESSION_ID}/stop")

        assert response.status_code == 200
        assert cancelled == [True]

    def test_stop_unknown(self, client):
        assert client.post(f"/api/sessions/{SESSION_ID}/stop").status_code == 404


class TestDownload:
    def test_zip_of_the_repo(self, client, generation_root):
        repo = generation_root / SESSION_ID / "repo"
        (repo / "src").mkdir(parents=True)
        (repo / "package.json").write_text("{}")
        (repo / "src" / "app.ts").write_text("export {}")

        response = client.get(f"/download/{SESSION_ID}")

        assert response.status_code == 200
        assert response.mimetype == "application/zip"
        archive = zipfile.ZipFile(io.BytesIO(response.data))
        assert sorted(archive.namelist()) == ["package.json", "src/app.ts"]
        assert archive.read("src/app.ts") == b"export {}"

    def test_missing_project(self, client):
        assert client.get(f"/download/{SESSION_ID}").status_code == 404

    def test_invalid_id(self, client, generation_root):
        (generation_root / "repo").mkdir()

        assert client.get("/download/bad..id").status_code == 404
        assert client.get("/download/anything").status_code == 404
