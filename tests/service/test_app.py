"""Tests for the FastAPI service mode."""

from __future__ import annotations

import http.client
import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from deepcode.assistant import Assistant
from deepcode.config import DeepCodeConfig
from deepcode.file_tree import FileTreeScanner
from deepcode.learning.orchestrator import LearningOrchestrator
from deepcode.llm import gateway as gateway_module
from deepcode.llm.gateway import ModelError, ModelGateway
from deepcode.models import ApiKeys, CodebaseAnalysis, CodeExplanation, ProjectState
from deepcode.service import ServiceContext, create_app
from deepcode.stores.project_store import ProjectStore

ANALYSIS_REPLY = json.dumps(
    {
        "summary": "A note-taking app.",
        "keyComponents": [{"name": "Editor", "path": "src/editor.ts", "description": "Edits notes"}],
        "coreFunctionality": [],
    }
)

ENV_KEYS = (
    "DEEPCODE_OPENAI_API_KEY",
    "OPENAI_API_KEY",
    "DEEPCODE_GEMINI_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
)


class _ScriptedRunner:
    def __init__(self) -> None:
        self.replies: list[str] = []
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if not self.replies:
            raise ModelError("openai request failed with status 429: Rate limit reached")
        return self.replies.pop(0)


@pytest.fixture
def runner() -> _ScriptedRunner:
    return _ScriptedRunner()


@pytest.fixture
def service(tmp_path: Path, runner: _ScriptedRunner, inline_executor, monkeypatch) -> ServiceContext:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    config = DeepCodeConfig(home=tmp_path / "home")
    store = ProjectStore(config.state_path)
    gateway = ModelGateway(config.llm, runner=runner)
    return ServiceContext(
        config=config,
        store=store,
        orchestrator=LearningOrchestrator(
            store, gateway=gateway, config=config.learning, executor=inline_executor
        ),
        assistant=Assistant(gateway),
        scanner=FileTreeScanner(config.learning.ignore_names),
    )


@pytest.fixture
def client(service: ServiceContext) -> TestClient:
    return TestClient(create_app(service))


def _select_project(client: TestClient, repo_builder) -> Path:
    repo_builder.write(
        {
            "src/editor.ts": "export function edit() {}",
            "node_modules/lib/index.js": "module.exports = {};",
        }
    )
    response = client.post("/api/folder", json={"path": str(repo_builder.path())})
    assert response.status_code == 200
    return repo_builder.path().resolve()


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_open_folder_returns_tree_and_persists_path(client, service, repo_builder) -> None:
    repo_builder.write({"src/editor.ts": "export {};", "node_modules/x.js": ""})

    response = client.post("/api/folder", json={"path": str(repo_builder.path())})

    data = response.json()
    assert data["path"] == str(repo_builder.path().resolve())
    assert [child["name"] for child in data["fileTree"]["children"]] == ["src"]
    assert data["fileTree"]["isDirectory"] is True
    assert service.store.load_state().project_path == data["path"]

    tree = client.get("/api/folder/tree").json()
    assert tree["children"][0]["children"][0]["name"] == "editor.ts"


def test_open_missing_folder_is_404(client, tmp_path) -> None:
    response = client.post("/api/folder", json={"path": str(tmp_path / "missing")})
    assert response.status_code == 404


def test_tree_without_project_is_400(client) -> None:
    response = client.get("/api/folder/tree")
    assert response.status_code == 400
    assert response.json() == {"detail": "No project folder selected"}


def test_read_file(client, repo_builder) -> None:
    repo_builder.write({"app.py": "print('hi')\n"})
    target = repo_builder.path() / "app.py"

    response = client.get("/api/file", params={"path": str(target)})

    assert response.json() == {"path": str(target), "content": "print('hi')\n", "language": "python"}
    assert client.get("/api/file").status_code == 400
    assert client.get("/api/file", params={"path": str(target) + ".gone"}).status_code == 404


def test_save_keys_merges_with_existing(client, service) -> None:
    client.post("/api/keys", json={"openai": "sk-first"})
    response = client.post("/api/keys", json={"gemini": "g-second"})

    assert response.json() == {"success": True}
    assert service.store.load_state().api_keys == ApiKeys(openai="sk-first", gemini="g-second")
    assert client.get("/api/project").json()["apiKeys"] == {"openai": "sk-first", "gemini": "g-second"}


def test_learn_without_project_is_400(client) -> None:
    response = client.post("/api/codebase/learn")
    assert response.status_code == 400


def test_learn_without_keys_is_400_and_status_idle(client, repo_builder) -> None:
    _select_project(client, repo_builder)

    response = client.post("/api/codebase/learn")

    assert response.status_code == 400
    assert response.json() == {"detail": "No API keys configured"}
    assert client.get("/api/codebase/status").json() == {"status": "idle"}


def test_learn_success_updates_status_and_project(client, runner, repo_builder) -> None:
    _select_project(client, repo_builder)
    client.post("/api/keys", json={"openai": "sk-test"})
    runner.replies.append(f"```json\n{ANALYSIS_REPLY}\n```")

    response = client.post("/api/codebase/learn")

    assert response.json() == {"success": True}
    assert client.get("/api/codebase/status").json() == {
        "status": "complete",
        "message": "Codebase analysis complete",
        "progress": 100,
    }
    project = client.get("/api/project").json()
    assert project["codebaseIndex"] == json.loads(ANALYSIS_REPLY)
    assert "node_modules" not in runner.requests[0].prompt


def test_learn_model_failure_reports_error_status(client, service, repo_builder) -> None:
    _select_project(client, repo_builder)
    client.post("/api/keys", json={"openai": "sk-test"})

    client.post("/api/codebase/learn")

    status = client.get("/api/codebase/status").json()
    assert status["status"] == "error"
    assert "Rate limit reached" in status["message"]
    assert service.store.load_state().codebase_index is None


def test_learn_while_busy_is_409(client, service, repo_builder) -> None:
    _select_project(client, repo_builder)
    client.post("/api/keys", json={"openai": "sk-test"})
    service.orchestrator.status_board.try_begin("Starting codebase analysis")

    response = client.post("/api/codebase/learn")

    assert response.status_code == 409


def test_chat_returns_assistant_message(client, runner) -> None:
    client.post("/api/keys", json={"gemini": "g-test"})
    runner.replies.append("Start with src/editor.ts.")

    response = client.post(
        "/api/chat",
        json={
            "message": "Where do I start?",
            "conversation": [{"role": "user", "content": "Hi"}],
        },
    )

    data = response.json()
    assert data["role"] == "assistant"
    assert data["content"] == "Start with src/editor.ts."
    assert runner.requests[0].provider == "gemini"
    assert runner.requests[0].history[0].content == "Hi"


def test_chat_model_failure_is_502(client) -> None:
    client.post("/api/keys", json={"openai": "sk-test"})

    response = client.post("/api/chat", json={"message": "Hello"})

    assert response.status_code == 502
    assert "Rate limit reached" in response.json()["detail"]


def test_code_action_route(client, runner) -> None:
    client.post("/api/keys", json={"openai": "sk-test"})
    runner.replies.append("This adds two numbers.")

    response = client.post(
        "/api/ai/explain-code",
        json={"filePath": "calc.py", "content": "def add(a, b): return a + b", "language": "python"},
    )

    assert response.json() == {
        "action": "explain-code",
        "filePath": "calc.py",
        "result": "This adds two numbers.",
        "metadata": {"provider": "openai", "language": "python"},
    }


def test_code_action_errors(client) -> None:
    client.post("/api/keys", json={"openai": "sk-test"})

    assert client.post("/api/ai/translate-code", json={}).status_code == 404
    assert client.post("/api/ai/comment-code", json={"filePath": "a.py"}).status_code == 400


def test_dependency_analysis_is_stored(client, service, repo_builder) -> None:
    repo_builder.write({"requirements.txt": "flask==3.0\n"})
    client.post("/api/folder", json={"path": str(repo_builder.path())})

    response = client.post("/api/ai/analyze-dependencies")

    assert response.json()["frameworks"] == ["Flask"]
    stored = client.get("/api/codebase/dependencies").json()
    assert stored["dependencies"]["python"] == ["flask"]
    assert "codebaseIndex" not in client.get("/api/project").json()


def test_dependencies_before_analysis(client, service) -> None:
    service.store.save_state(ProjectState(project_path="/work/app"))

    assert client.get("/api/codebase/dependencies").json() == {"dependencies": None}


def test_explanations_empty_before_any_are_stored(client) -> None:
    assert client.get("/api/codebase/explanations").json() == {"explanations": []}


def test_explanations_are_read_from_the_index(client, service) -> None:
    service.store.update_analysis(
        CodebaseAnalysis(
            summary="A note-taking app.",
            code_explanations=[CodeExplanation(file_path="src/editor.ts", explanation="Edits notes")],
        )
    )

    response = client.get("/api/codebase/explanations")

    assert response.json() == {
        "explanations": [{"filePath": "src/editor.ts", "explanation": "Edits notes"}]
    }


def test_chat_dropped_connection_is_502(client, service, monkeypatch) -> None:
    def fake_urlopen(request, timeout=None):
        raise http.client.RemoteDisconnected("Remote end closed connection without response")

    monkeypatch.setattr(gateway_module, "urlopen", fake_urlopen)
    service.assistant = Assistant(ModelGateway(service.config.llm))
    client.post("/api/keys", json={"openai": "sk-test"})

    response = client.post("/api/chat", json={"message": "Hello"})

    assert response.status_code == 502
    assert "Remote end closed connection" in response.json()["detail"]
