"""Integration tests for the HTTP API (repo_qa.interface)."""

import json

import pytest
from fastapi.testclient import TestClient

from fakes import FakeLlm, GitHubApiStub
from repo_qa.infrastructure.config import Settings
from repo_qa.infrastructure.github_rest_adapter import GitHubRestClient
from repo_qa.interface import routes
from repo_qa.interface.app import create_app
from repo_qa.interface.dependencies import get_github_client, get_pipeline
from repo_qa.services.query_pipeline import QueryPipeline

AUTH = {"Authorization": "Bearer ghp_test"}


def query_body(**overrides):
    body = {
        "repository_url": "https://github.com/acme/widget",
        "query": "How does authentication work?",
        "llm": {"provider": "openai", "api_key": "sk-test", "model": "gpt-4o"},
    }
    body.update(overrides)
    return body


@pytest.fixture
def stub():
    return GitHubApiStub(
        files={"src/auth.ts": "export function login() {}\n"},
        hits=[("src/auth.ts", 5.2)],
        readme="# Widget",
    )


@pytest.fixture
def llm():
    return FakeLlm("Login is handled in src/auth.ts.")


@pytest.fixture
def app(stub, llm):
    application = create_app()
    settings = Settings(_env_file=None)
    application.dependency_overrides[get_pipeline] = lambda: QueryPipeline(
        stub.client(), settings, gateway_factory=lambda _: llm
    )
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


# ── Health endpoint ──────────────────────────────────────────────────────────


class TestHealthEndpoint:
    def test_status_ok(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ── /query ───────────────────────────────────────────────────────────────────


class TestQueryEndpoint:
    def test_success(self, client):
        resp = client.post("/query", json=query_body(), headers=AUTH)
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["answerText"] == "Login is handled in src/auth.ts."
        assert data["sources"][0] == "https://github.com/acme/widget"
        assert data["codeReferences"][0]["file"] == "src/auth.ts"
        assert data["codeReferences"][0]["startLine"] == 1
        assert data["errorKind"] is None

    def test_missing_token(self, client, stub):
        resp = client.post("/query", json=query_body())
        assert resp.status_code == 401
        data = resp.json()
        assert data["success"] is False
        assert data["errorKind"] == "AuthRequired"
        assert stub.requests == []

    def test_non_bearer_header_is_ignored(self, client):
        resp = client.post("/query", json=query_body(), headers={"Authorization": "Basic abc"})
        assert resp.json()["errorKind"] == "AuthRequired"

    def test_repository_not_found(self, client, stub):
        stub.overrides["/repos/acme/widget"] = (404, {"message": "Not Found"})
        resp = client.post("/query", json=query_body(), headers=AUTH)
        assert resp.status_code == 404
        assert resp.json()["errorKind"] == "RepositoryNotFound"

    def test_rate_limited(self, client, stub):
        stub.overrides["/repos/acme/widget"] = (429, {"message": "slow down"})
        resp = client.post("/query", json=query_body(), headers=AUTH)
        assert resp.status_code == 429
        assert resp.json()["errorKind"] == "RateLimited"

    def test_invalid_repository(self, client):
        resp = client.post("/query", json=query_body(repository_url="not a repo"), headers=AUTH)
        assert resp.status_code == 400
        assert resp.json()["status"] == "error"

    def test_blank_query_rejected(self, client):
        resp = client.post("/query", json=query_body(query="   "), headers=AUTH)
        assert resp.status_code == 422
        assert "query" in resp.json()["message"]

    def test_api_key_not_echoed(self, client):
        resp = client.post("/query", json=query_body(), headers=AUTH)
        assert "sk-test" not in resp.text


# ── /query/stream ────────────────────────────────────────────────────────────


def parse_sse(text):
    events = []
    for block in text.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


class TestStreamEndpoint:
    def test_tokens_then_result(self, client):
        resp = client.post("/query/stream", json=query_body(), headers=AUTH)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")

        events = parse_sse(resp.text)
        tokens = [data["text"] for name, data in events if name == "token"]
        assert " ".join(tokens) == "Login is handled in src/auth.ts."
        name, result = events[-1]
        assert name == "result"
        assert result["success"] is True
        assert result["codeReferences"][0]["file"] == "src/auth.ts"

    def test_failure_arrives_as_result(self, client):
        resp = client.post("/query/stream", json=query_body())
        [(name, result)] = parse_sse(resp.text)
        assert name == "result"
        assert result["errorKind"] == "AuthRequired"


# ── /repositories ────────────────────────────────────────────────────────────


class TestRepositoriesEndpoint:
    def test_metadata(self, app, stub):
        app.dependency_overrides[get_github_client] = lambda: GitHubRestClient(stub.client(), "ghp")
        resp = TestClient(app).get("/repositories", params={"url": "acme/widget"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["full_name"] == "acme/widget"
        assert data["default_branch"] == "main"
        assert data["stargazers_count"] == 42

    def test_missing_token(self, app, stub):
        app.dependency_overrides[get_github_client] = lambda: GitHubRestClient(stub.client(), None)
        resp = TestClient(app).get("/repositories", params={"url": "acme/widget"})
        assert resp.status_code == 401
        assert resp.json()["status"] == "error"


# ── /llm/models ──────────────────────────────────────────────────────────────


class TestModelsEndpoint:
    def test_lists_models(self, client, monkeypatch):
        class ModelLister(FakeLlm):
            async def list_models(self):
                return ["gpt-4o", "gpt-4o-mini"]

        lister = ModelLister()
        monkeypatch.setattr(routes, "create_llm_gateway", lambda *args, **kwargs: lister)
        resp = client.post("/llm/models", json={"provider": "openai", "api_key": "sk-test"})
        assert resp.status_code == 200
        assert resp.json() == {"provider": "openai", "models": ["gpt-4o", "gpt-4o-mini"]}
        assert lister.closed

    def test_unsupported_provider(self, client):
        resp = client.post("/llm/models", json={"provider": "cohere", "api_key": "k"})
        assert resp.status_code == 400
        assert "cohere" in resp.json()["message"]

    def test_malformed_key_rejected_locally(self, client):
        resp = client.post("/llm/models", json={"provider": "openrouter", "api_key": "sk-test"})
        assert resp.status_code == 401
        assert resp.json()["status"] == "error"
        assert "sk-or-" in resp.json()["message"]


# ── OpenAPI ──────────────────────────────────────────────────────────────────


class TestOpenApi:
    def test_error_envelope_is_documented(self, client):
        paths = client.get("/openapi.json").json()["paths"]
        error_ref = "#/components/schemas/ErrorResponse"
        query_400 = paths["/query"]["post"]["responses"]["400"]
        assert query_400["content"]["application/json"]["schema"]["$ref"] == error_ref
        models_401 = paths["/llm/models"]["post"]["responses"]["401"]
        assert models_401["content"]["application/json"]["schema"]["$ref"] == error_ref
        repos_404 = paths["/repositories"]["get"]["responses"]["404"]
        assert repos_404["content"]["application/json"]["schema"]["$ref"] == error_ref
