"""Tests for repo_qa.services.answer_synthesizer — prompts, sources and code references."""

import pytest

from fakes import OWNER, REPO, FakeLlm
from repo_qa.domain.entities import (
    CommitSummary,
    EvidenceFile,
    RepositoryContext,
    TreeEntry,
)
from repo_qa.domain.value_objects import RepositoryIdentity
from repo_qa.services.answer_synthesizer import (
    LIMITED_DATA_INSTRUCTIONS,
    TRUNCATION_MARKER,
    AnswerSynthesizer,
    build_code_references,
    build_sources,
    build_system_prompt,
    build_user_prompt,
)

IDENTITY = RepositoryIdentity(OWNER, REPO)


def evidence(path, content, tag="search match, score 1"):
    return EvidenceFile(path=path, content=content, relevance_tag=tag)


# ── System prompt ────────────────────────────────────────────────────────────


class TestSystemPrompt:
    def test_limited_data_branch(self):
        prompt = build_system_prompt(IDENTITY, RepositoryContext())
        assert '"acme/widget"' in prompt
        assert LIMITED_DATA_INSTRUCTIONS in prompt
        assert "Available repository data" not in prompt

    def test_evidence_sections(self):
        context = RepositoryContext(
            readme="# Widget",
            readme_path="README.md",
            files=[evidence("src/auth.ts", "login()")],
            tree=[TreeEntry(path="src/auth.ts", kind="file", size=7)],
        )
        prompt = build_system_prompt(IDENTITY, context)
        assert "## README\n\n# Widget" in prompt
        assert "### src/auth.ts (search match, score 1)\n\nlogin()" in prompt
        assert '{"path": "src/auth.ts", "type": "file", "size": 7}' in prompt
        assert LIMITED_DATA_INSTRUCTIONS not in prompt

    def test_file_excerpts_are_truncated(self):
        context = RepositoryContext(files=[evidence("big.py", "x" * 50)])
        prompt = build_system_prompt(IDENTITY, context, excerpt_chars=10)
        assert "x" * 10 + TRUNCATION_MARKER in prompt
        assert "x" * 11 not in prompt

    def test_tree_is_capped(self):
        tree = [TreeEntry(path=f"f{i}.txt", kind="file", size=1) for i in range(12)]
        prompt = build_system_prompt(IDENTITY, RepositoryContext(tree=tree), max_tree_entries=10)
        assert '"f9.txt"' in prompt
        assert '"f10.txt"' not in prompt
        assert "... and 2 more entries" in prompt

    def test_commits_count_as_evidence(self):
        context = RepositoryContext(commits=[CommitSummary(sha="abcdef1234", message="Fix login\n\nbody")])
        prompt = build_system_prompt(IDENTITY, context)
        assert "- abcdef1 Fix login (unknown, unknown date)" in prompt
        assert LIMITED_DATA_INSTRUCTIONS not in prompt


def test_user_prompt():
    assert build_user_prompt(IDENTITY, "What is this?") == "Question about acme/widget: What is this?"


# ── Sources ──────────────────────────────────────────────────────────────────


class TestSources:
    def test_repository_url_always_first(self):
        assert build_sources(IDENTITY, RepositoryContext()) == ["https://github.com/acme/widget"]

    def test_readme_then_files_without_duplicates(self):
        context = RepositoryContext(
            readme="# Widget",
            readme_path="README.md",
            files=[evidence("README.md", "# Widget"), evidence("src/a.ts", "a")],
        )
        assert build_sources(IDENTITY, context, "dev") == [
            "https://github.com/acme/widget",
            "https://github.com/acme/widget/blob/dev/README.md",
            "https://github.com/acme/widget/blob/dev/src/a.ts",
        ]


# ── Code references ──────────────────────────────────────────────────────────


class TestCodeReferences:
    def test_short_file(self):
        context = RepositoryContext(files=[evidence("src/auth.ts", "a\nb\nc\n")])
        [ref] = build_code_references(IDENTITY, context)
        assert (ref.start_line, ref.end_line) == (1, 3)
        assert ref.content == "a\nb\nc"
        assert ref.url == "https://github.com/acme/widget/blob/main/src/auth.ts"

    def test_long_file_is_capped(self):
        body = "\n".join(f"line {i}" for i in range(1, 251))
        [ref] = build_code_references(IDENTITY, RepositoryContext(files=[evidence("a.py", body)]))
        assert ref.end_line == 100
        assert ref.content.splitlines()[-1] == "line 100"

    def test_empty_files_skipped(self):
        context = RepositoryContext(files=[evidence("empty.py", ""), evidence("b.py", "x")])
        assert [r.file for r in build_code_references(IDENTITY, context)] == ["b.py"]

    def test_invalid_cap(self):
        with pytest.raises(ValueError):
            build_code_references(IDENTITY, RepositoryContext(), max_lines=0)


# ── Synthesizer ──────────────────────────────────────────────────────────────


class TestSynthesize:
    @pytest.mark.asyncio
    async def test_outcome_shape(self):
        llm = FakeLlm("It uses JWT.")
        context = RepositoryContext(files=[evidence("src/auth.ts", "jwt.sign()")])
        outcome = await AnswerSynthesizer(llm).synthesize(IDENTITY, "How does auth work?", context)

        assert outcome.success
        assert outcome.answer_text == "It uses JWT."
        assert outcome.sources[0] == "https://github.com/acme/widget"
        assert outcome.code_references[0].file == "src/auth.ts"
        assert outcome.error_kind is None
        assert llm.calls[0][1] == "Question about acme/widget: How does auth work?"

    @pytest.mark.asyncio
    async def test_tokens_forwarded(self):
        tokens = []
        outcome = await AnswerSynthesizer(FakeLlm("a b c")).synthesize(
            IDENTITY, "q", RepositoryContext(), on_token=tokens.append
        )
        assert tokens == ["a", "b", "c"]
        assert outcome.code_references == []
