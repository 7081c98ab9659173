"""Tests for analysis validation and the model-backed analyzer."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage

from mergegate.analysis import CodeReviewAnalysis, parse_analysis
from mergegate.errors import ReviewValidationError, UpstreamAnalysisError, UpstreamError
from mergegate.orm.pull_request import PrFile
from mergegate.services import ReviewAnalysisService

from conftest import make_analysis


class TestParseAnalysis:
    """Test validation of raw analysis payloads."""

    def test_camel_case_payload(self):
        """Test parsing the model's camelCase format."""
        analysis = parse_analysis(make_analysis("high"))

        assert analysis.overall_rating == "changes_requested"
        assert analysis.code_quality_score == 72
        assert analysis.comments[0].line_number == 10
        assert analysis.comments[0].comment_type == "bug"

    def test_snake_case_payload(self):
        """Test that field names are accepted as well as aliases."""
        analysis = parse_analysis(
            {"overall_rating": "approved", "code_quality_score": 90, "test_coverage": 80}
        )

        assert analysis.overall_rating == "approved"
        assert analysis.comments == []

    def test_scores_are_clamped_and_rounded(self):
        """Test clamping of out-of-range numbers."""
        analysis = parse_analysis(
            make_analysis(
                codeQualityScore=140.7,
                testCoverage=-3,
                securityIssues=-1,
                performanceIssues=2.4,
            )
        )

        assert analysis.code_quality_score == 100
        assert analysis.test_coverage == 0.0
        assert analysis.security_issues == 0
        assert analysis.performance_issues == 2

    def test_missing_summary_and_null_lists(self):
        """Test defaults for a sparse payload."""
        analysis = parse_analysis(
            make_analysis(summary=None, comments=None, contextAnalysis=None, learningPatterns=None)
        )

        assert analysis.summary == "Code review completed."
        assert analysis.comments == []
        assert analysis.context_analysis == []
        assert analysis.learning_patterns == []

    def test_non_list_collections_become_empty(self):
        """Test that a malformed comment collection is read as no comments."""
        analysis = parse_analysis(
            make_analysis(comments="none", contextAnalysis={"filename": "a.py"}, learningPatterns=3)
        )

        assert analysis.comments == []
        assert analysis.context_analysis == []
        assert analysis.learning_patterns == []

    def test_non_positive_line_dropped(self):
        """Test that a line number below one is treated as absent."""
        payload = make_analysis("low")
        payload["comments"][0]["lineNumber"] = 0

        assert parse_analysis(payload).comments[0].line_number is None

    def test_pattern_confidence_clamped(self):
        """Test that pattern confidence stays within 0..1."""
        analysis = parse_analysis(
            make_analysis(learningPatterns=[{"patternType": "naming", "pattern": "x", "confidence": 3}])
        )

        assert analysis.learning_patterns[0].confidence == 1.0

    def test_unknown_severity_rejected(self):
        """Test that an unknown severity is a malformed analysis."""
        with pytest.raises(UpstreamAnalysisError, match="severity"):
            parse_analysis(make_analysis("blocker"))

    def test_unknown_rating_rejected(self):
        """Test that an unknown overall rating is a malformed analysis."""
        with pytest.raises(UpstreamAnalysisError):
            parse_analysis(make_analysis(rating="lgtm"))

    def test_non_object_rejected(self):
        """Test that anything but an object is rejected."""
        with pytest.raises(UpstreamAnalysisError, match="list"):
            parse_analysis([])

    def test_error_is_validation_kind(self):
        """Test that malformed analyses surface as validation errors."""
        with pytest.raises(ReviewValidationError) as exc_info:
            parse_analysis("not json")

        assert exc_info.value.to_dict()["kind"] == "validation_error"

    def test_validated_analysis_passes_through(self):
        """Test that an already validated analysis is returned as is."""
        analysis = parse_analysis(make_analysis())

        assert parse_analysis(analysis) is analysis


class TestReviewAnalysisService:
    """Test the chat model wrapper."""

    def setup_method(self):
        """Set up test fixtures."""
        self.files = [
            PrFile(
                filename="src/app.py",
                status="modified",
                additions=3,
                deletions=1,
                patch="+cache = {}",
            )
        ]

    async def test_plain_json_answer(self):
        """Test a bare JSON answer."""
        llm = FakeListChatModel(responses=[json.dumps(make_analysis("medium"))])
        service = ReviewAnalysisService(llm)

        analysis = await service.analyze("Add cache", "Caches lookups", self.files)

        assert isinstance(analysis, CodeReviewAnalysis)
        assert analysis.comments[0].severity == "medium"

    async def test_fenced_json_answer(self):
        """Test an answer wrapped in a markdown code block."""
        answer = "```json\n" + json.dumps(make_analysis()) + "\n```"
        service = ReviewAnalysisService(FakeListChatModel(responses=[answer]))

        analysis = await service.analyze("Add cache", "", self.files)

        assert analysis.overall_rating == "changes_requested"

    async def test_content_blocks_answer(self):
        """Test a provider answering with a list of content blocks."""
        llm = MagicMock()
        llm.ainvoke = AsyncMock(
            return_value=AIMessage(
                content=[{"type": "text", "text": json.dumps(make_analysis("low"))}]
            )
        )
        service = ReviewAnalysisService(llm)

        analysis = await service.analyze("Add cache", "", self.files)

        assert len(analysis.comments) == 1

    async def test_prompt_includes_diffs(self):
        """Test that the request carries the title and each file's patch."""
        llm = MagicMock()
        llm.ainvoke = AsyncMock(return_value=AIMessage(content=json.dumps(make_analysis())))
        service = ReviewAnalysisService(llm)

        await service.analyze("Add cache", "Caches lookups", self.files)

        messages = llm.ainvoke.await_args.args[0]
        assert "Title: Add cache" in messages[1].content
        assert "File: src/app.py (modified)" in messages[1].content
        assert "+cache = {}" in messages[1].content

    async def test_invalid_json_answer(self):
        """Test that prose instead of JSON is a malformed analysis."""
        service = ReviewAnalysisService(FakeListChatModel(responses=["Looks good to me!"]))

        with pytest.raises(UpstreamAnalysisError, match="Invalid JSON"):
            await service.analyze("Add cache", "", self.files)

    async def test_model_failure(self):
        """Test that a failing model call is an upstream error."""
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=RuntimeError("rate limited"))
        service = ReviewAnalysisService(llm)

        with pytest.raises(UpstreamError, match="rate limited"):
            await service.analyze("Add cache", "", self.files)
