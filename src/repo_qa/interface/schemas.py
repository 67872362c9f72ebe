"""Pydantic request / response DTOs for the API boundary."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic.alias_generators import to_camel

from repo_qa.domain.entities import LLMInvocationConfig, QueryOutcome


class LlmConfigBody(BaseModel):
    """Decrypted LLM settings forwarded by the session layer."""

    provider: str
    api_key: SecretStr
    model: str = ""
    base_url: str | None = None

    def to_config(self) -> LLMInvocationConfig:
        return LLMInvocationConfig(
            provider=self.provider,
            api_key=self.api_key.get_secret_value(),
            model=self.model,
            base_url=self.base_url,
        )


class QueryRequest(BaseModel):
    """Request body for ``POST /query`` and ``POST /query/stream``."""

    repository_url: str
    query: str
    llm: LlmConfigBody

    @field_validator("repository_url", "query")
    @classmethod
    def _must_not_be_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            msg = "must not be empty."
            raise ValueError(msg)
        return stripped


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CodeReferenceModel(_CamelModel):
    file: str
    start_line: int
    end_line: int
    content: str
    url: str


class QueryResponse(_CamelModel):
    """Body of every ``/query`` response, success or failure."""

    success: bool
    answer_text: str | None = None
    sources: list[str] = Field(default_factory=list)
    code_references: list[CodeReferenceModel] = Field(default_factory=list)
    error_kind: str | None = None
    error_message: str | None = None

    @classmethod
    def from_outcome(cls, outcome: QueryOutcome) -> QueryResponse:
        return cls.model_validate(outcome.to_dict())


class RepositoryResponse(BaseModel):
    """Body of ``GET /repositories``."""

    full_name: str
    html_url: str
    default_branch: str
    description: str | None = None
    private: bool = False
    language: str | None = None
    stargazers_count: int = 0
    forks_count: int = 0
    open_issues_count: int = 0
    updated_at: str | None = None
    topics: list[str] = Field(default_factory=list)


class ModelsRequest(BaseModel):
    """Request body for ``POST /llm/models``."""

    provider: str
    api_key: SecretStr
    base_url: str | None = None


class ModelsResponse(BaseModel):
    provider: str
    models: list[str]


class ErrorResponse(BaseModel):
    """Standard error envelope returned on non-query failure paths."""

    status: str = "error"
    message: str
