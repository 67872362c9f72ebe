"""Value objects — self-validating domain primitives."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import quote

from repo_qa.domain.exceptions import InvalidRepositoryError

_FULL_URL_RE = re.compile(r"^https?://(?:www\.)?github\.com/(?P<owner>[^/\s]+)/(?P<name>[^/\s]+)")
_BARE_HOST_RE = re.compile(r"^(?:www\.)?github\.com/(?P<owner>[^/\s]+)/(?P<name>[^/\s]+)")
_SHORT_RE = re.compile(r"^(?P<owner>[^/\s:]+)/(?P<name>[^/\s]+)$")

# Alphanumeric runs joined by single hyphens.
_GITHUB_NAME_RE = re.compile(r"^[A-Za-z0-9](?:-?[A-Za-z0-9])*$")
_GITHUB_NAME_MAX = 39

GITHUB_WEB = "https://github.com"


def _follows_naming_rules(part: str) -> bool:
    return len(part) <= _GITHUB_NAME_MAX and _GITHUB_NAME_RE.match(part) is not None


@dataclass(frozen=True, slots=True)
class RepositoryIdentity:
    """Owner and name of a GitHub repository.

    Built once from user input with :meth:`from_string` and then used as
    the lookup key for every downstream call.  Accepted forms::

        https://github.com/psf/requests
        https://github.com/psf/requests.git
        github.com/psf/requests/
        psf/requests
    """

    owner: str
    name: str

    def __post_init__(self) -> None:
        if not self.owner or not self.name:
            raise InvalidRepositoryError("Repository owner and name must not be empty.")

    @classmethod
    def from_string(cls, raw: str, *, strict: bool = False) -> RepositoryIdentity:
        """Parse a URL or ``owner/name`` string.

        With *strict* both parts must also satisfy GitHub's naming rules.
        """
        cleaned = (raw or "").strip().rstrip("/")
        if cleaned.endswith(".git"):
            cleaned = cleaned[: -len(".git")]

        match = (
            _FULL_URL_RE.match(cleaned)
            or _BARE_HOST_RE.match(cleaned)
            or _SHORT_RE.match(cleaned)
        )
        if not match:
            raise InvalidRepositoryError(
                f"Invalid GitHub repository: '{raw}'. "
                "Expected https://github.com/<owner>/<repo> or <owner>/<repo>."
            )

        owner, name = match["owner"], match["name"]
        if strict and not (_follows_naming_rules(owner) and _follows_naming_rules(name)):
            raise InvalidRepositoryError(
                f"'{owner}/{name}' does not follow GitHub naming rules."
            )
        return cls(owner=owner, name=name)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def html_url(self) -> str:
        return f"{GITHUB_WEB}/{self.owner}/{self.name}"

    def blob_url(self, path: str, ref: str = "main") -> str:
        """Browser URL of *path* at *ref*."""
        return f"{self.html_url}/blob/{ref}/{quote(path, safe='/')}"
