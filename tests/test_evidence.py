"""Tests for evidence selection, context formatting and follow-up parsing."""

from evidence_search.application.synthesis import (
    format_evidence_context,
    parse_follow_up_questions,
    select_evidence,
    split_follow_ups,
)
from evidence_search.application.synthesis.evidence import (
    ABSTRACT_PREVIEW_CHARS,
    MAX_EVIDENCE_ARTICLES,
    format_article_block,
)


# ============================================================
# select_evidence
# ============================================================

class TestSelectEvidence:
    def test_bounded(self, article_factory):
        articles = [article_factory(str(i)) for i in range(20)]
        selected = select_evidence(articles)
        assert len(selected) == MAX_EVIDENCE_ARTICLES
        assert selected[0].source_id == "0"

    def test_citation_sort(self, article_factory):
        articles = [
            article_factory("a", citation_count=1),
            article_factory("b", citation_count=9),
            article_factory("c", citation_count=1),
        ]
        assert [a.source_id for a in select_evidence(articles, 3, sort_by_citations=True)] == ["b", "a", "c"]

    def test_input_not_mutated(self, article_factory):
        articles = [article_factory("a", citation_count=1), article_factory("b", citation_count=9)]
        select_evidence(articles, sort_by_citations=True)
        assert [a.source_id for a in articles] == ["a", "b"]


# ============================================================
# Context formatting
# ============================================================

class TestFormatArticleBlock:
    def test_full_block(self, sample_article):
        block = format_article_block(1, sample_article)
        assert block.splitlines() == [
            "[1] Aspirin for Primary Prevention of Stroke in Older Adults",
            "   Authors: Smith J, Doe J, Johnson A",
            "   Journal: Journal of Test Medicine, 2023 Jan 15",
            "   ID: 12345678",
            "   Study Type: RCT",
            f"   Abstract: {sample_article.abstract}",
        ]

    def test_minimal_block(self, article_factory):
        block = format_article_block(4, article_factory(None, title="Untitled trial", authors=[]))
        assert block.splitlines() == [
            "[4] Untitled trial",
            "   Authors: Unknown authors",
            "   Journal: Journal of Test Medicine, 2023 Jan 15",
            "   ID: N/A",
        ]

    def test_abstract_truncated(self, article_factory):
        block = format_article_block(1, article_factory(abstract="x" * 800))
        abstract_line = block.splitlines()[-1]
        assert abstract_line == "   Abstract: " + "x" * ABSTRACT_PREVIEW_CHARS + "..."

    def test_abstract_at_limit_not_truncated(self, article_factory):
        block = format_article_block(1, article_factory(abstract="y" * ABSTRACT_PREVIEW_CHARS))
        assert not block.endswith("...")


class TestFormatEvidenceContext:
    def test_numbered_and_separated(self, article_factory):
        context = format_evidence_context([article_factory("1"), article_factory("2")])
        blocks = context.split("\n\n")
        assert len(blocks) == 2
        assert blocks[0].startswith("[1] Article 1")
        assert blocks[1].startswith("[2] Article 2")

    def test_empty(self):
        assert format_evidence_context([]) == ""


# ============================================================
# Follow-up parsing
# ============================================================

ANSWER_TEXT = """Aspirin did not reduce stroke in healthy older adults [1].

Bleeding risk increased [2].

FOLLOW-UP QUESTIONS:
1. What about secondary prevention?
2.  Is there a benefit in diabetics?
Not a question line
3. Which dose was used?
"""


class TestSplitFollowUps:
    def test_split(self):
        answer, questions = split_follow_ups(ANSWER_TEXT)
        assert answer.endswith("Bleeding risk increased [2].")
        assert "FOLLOW-UP" not in answer
        assert questions == [
            "What about secondary prevention?",
            "Is there a benefit in diabetics?",
            "Which dose was used?",
        ]

    def test_marker_case_insensitive(self):
        _, questions = split_follow_ups("Answer.\nfollow-up questions:\n1. One?")
        assert questions == ["One?"]

    def test_no_marker(self):
        assert split_follow_ups("  Just an answer.  ") == ("Just an answer.", [])

    def test_long_questions_dropped(self):
        text = f"A.\nFOLLOW-UP QUESTIONS:\n1. {'q' * 300}\n2. Short?"
        assert parse_follow_up_questions(text) == ["Short?"]

    def test_parse_without_marker(self):
        assert parse_follow_up_questions("1. Not after a marker") == []
