"""In-memory stand-ins for GitHub and the LLM providers."""

import asyncio
import base64
from urllib.parse import unquote

import httpx

from repo_qa.domain.entities import CodeSearchHit, FileContent, TreeEntry
from repo_qa.domain.exceptions import GitHubApiError, LlmError, NotFoundError

OWNER = "acme"
REPO = "widget"


# ── Evidence source ──────────────────────────────────────────────────────────


class FakeSource:
    """EvidenceSource over a dict of ``path -> content``.

    ``failing`` maps a path to the exception its fetch raises; ``delays``
    maps a path to seconds slept before answering.
    """

    def __init__(
        self,
        files=None,
        hits=None,
        tree=None,
        readme=None,
        search_error=None,
        tree_error=None,
        failing=None,
        delays=None,
    ):
        self.files = dict(files or {})
        self.hits = list(hits or [])
        self.tree = tree
        self.readme = readme
        self.search_error = search_error
        self.tree_error = tree_error
        self.failing = dict(failing or {})
        self.delays = dict(delays or {})
        self.fetched: list[str] = []
        self.searches: list[str] = []
        self.commits = []
        self.commit_details = {}
        self.related = []
        self.pull_files = {}

    async def get_repository(self, owner, repo):
        raise NotImplementedError

    async def get_file_contents(self, owner, repo, path, ref=None):
        self.fetched.append(path)
        if path in self.delays:
            await asyncio.sleep(self.delays[path])
        if path in self.failing:
            raise self.failing[path]
        if path not in self.files:
            raise NotFoundError(f"Not found: {path}", code=404)
        return FileContent(path=path, content=self.files[path], sha="abc")

    async def get_readme(self, owner, repo, ref=None):
        if "README" in self.delays:
            await asyncio.sleep(self.delays["README"])
        if self.readme is None:
            raise NotFoundError("Not found: readme", code=404)
        if isinstance(self.readme, Exception):
            raise self.readme
        return FileContent(path="README.md", content=self.readme, sha="r1")

    async def get_tree(self, owner, repo, ref="main"):
        if self.tree_error is not None:
            raise self.tree_error
        if self.tree is not None:
            return list(self.tree)
        return [TreeEntry(path=p, kind="file", size=len(c)) for p, c in self.files.items()]

    async def search_code(self, query, owner=None, repo=None):
        self.searches.append(query)
        if self.search_error is not None:
            raise self.search_error
        return [
            CodeSearchHit(path=path, score=score, url=f"https://github.com/{OWNER}/{REPO}/blob/x/{path}")
            for path, score in self.hits
        ]

    async def search_repositories(self, query):
        self.searches.append(query)
        return list(self.related)

    async def list_commits(self, owner, repo, *, sha=None, path=None, per_page=None):
        return list(self.commits)

    async def get_commit(self, owner, repo, ref):
        if ref not in self.commit_details:
            raise NotFoundError(f"Not found: commit {ref}", code=404)
        return self.commit_details[ref]

    async def get_pull_request_files(self, owner, repo, pull_number):
        if pull_number not in self.pull_files:
            raise GitHubApiError("boom", code=500)
        return list(self.pull_files[pull_number])


# ── LLM gateway ──────────────────────────────────────────────────────────────


class FakeLlm:
    """LlmGateway returning canned answers in order (the last one repeats)."""

    def __init__(self, *answers, error=None):
        self.answers = list(answers) or ["The answer."]
        self.error = error
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def complete(self, system_prompt, user_prompt, *, on_token=None):
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if on_token is not None:
            for word in answer.split(" "):
                on_token(word)
        return answer

    async def close(self):
        self.closed = True


class FailingLlm(FakeLlm):
    def __init__(self, message="model exploded"):
        super().__init__(error=LlmError(message))


# ── GitHub REST stub (for httpx.MockTransport) ───────────────────────────────


def contents_json(path, text):
    return {
        "type": "file",
        "path": path,
        "sha": "deadbeef",
        "encoding": "base64",
        "content": base64.b64encode(text.encode()).decode(),
        "html_url": f"https://github.com/{OWNER}/{REPO}/blob/main/{path}",
    }


class GitHubApiStub:
    """Routes GitHub REST requests for ``acme/widget`` to canned responses.

    ``overrides`` maps a URL path to ``(status, json_body)`` or
    ``(status, json_body, headers)`` and wins over the defaults.
    """

    def __init__(
        self,
        files=None,
        hits=None,
        readme=None,
        default_branch="main",
        overrides=None,
    ):
        self.files = dict(files or {})
        self.hits = list(hits or [])
        self.readme = readme
        self.default_branch = default_branch
        self.overrides = dict(overrides or {})
        self.requests: list[httpx.Request] = []

    @property
    def paths(self):
        return [unquote(r.url.path) for r in self.requests]

    def content_fetches(self):
        prefix = f"/repos/{OWNER}/{REPO}/contents/"
        return [p[len(prefix):] for p in self.paths if p.startswith(prefix)]

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def __call__(self, request):
        self.requests.append(request)
        path = unquote(request.url.path)

        if path in self.overrides:
            status, body, *rest = self.overrides[path]
            headers = rest[0] if rest else {}
            return httpx.Response(status, json=body, headers=headers)

        base = f"/repos/{OWNER}/{REPO}"
        if path == base:
            return httpx.Response(
                200,
                json={
                    "full_name": f"{OWNER}/{REPO}",
                    "html_url": f"https://github.com/{OWNER}/{REPO}",
                    "default_branch": self.default_branch,
                    "description": "Widgets for everyone",
                    "language": "TypeScript",
                    "stargazers_count": 42,
                },
            )
        if path == f"{base}/readme":
            if self.readme is None:
                return _not_found()
            return httpx.Response(200, json=contents_json("README.md", self.readme))
        if path.startswith(f"{base}/contents/"):
            file_path = path[len(f"{base}/contents/"):]
            if file_path not in self.files:
                return _not_found()
            return httpx.Response(200, json=contents_json(file_path, self.files[file_path]))
        if path.startswith(f"{base}/git/trees/"):
            tree = [{"path": p, "type": "blob", "size": len(c)} for p, c in self.files.items()]
            return httpx.Response(200, json={"tree": tree, "truncated": False})
        if path == "/search/code":
            items = [
                {"path": p, "score": s, "html_url": f"https://github.com/{OWNER}/{REPO}/blob/x/{p}"}
                for p, s in self.hits
            ]
            return httpx.Response(200, json={"total_count": len(items), "items": items})
        return _not_found()


def _not_found():
    return httpx.Response(404, json={"message": "Not Found"})
