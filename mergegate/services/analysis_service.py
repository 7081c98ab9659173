"""Pull request analysis using a chat model."""

import json
import logging
from typing import Any, Iterable

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from ..analysis import CodeReviewAnalysis, parse_analysis
from ..errors import UpstreamAnalysisError, UpstreamError
from ..orm.pull_request import PrFile

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert code reviewer. Analyze the provided pull request and respond "
    "with JSON only. Be thorough but constructive in your feedback."
)

RESPONSE_FORMAT = """{
  "overallRating": "approved" | "changes_requested" | "commented",
  "codeQualityScore": number (1-100),
  "testCoverage": number (0-100, estimate percentage),
  "securityIssues": number (count of security issues found),
  "performanceIssues": number (count of performance issues found),
  "summary": "string (2-3 sentences summarizing the review)",
  "comments": [
    {
      "filename": "string",
      "lineNumber": number (if applicable),
      "commentType": "security" | "enhancement" | "bug" | "style",
      "severity": "low" | "medium" | "high" | "critical",
      "message": "string (detailed explanation)",
      "suggestion": "string (optional improvement suggestion)"
    }
  ],
  "insights": {
    "category": "string (feature, bugfix, refactor, docs, ...)",
    "riskLevel": "low" | "medium" | "high",
    "changeType": "string",
    "impactScore": number (1-10),
    "reviewTime": number (estimated minutes for a human review),
    "educationalValue": "string"
  },
  "contextAnalysis": [
    {
      "filename": "string",
      "dependencies": ["string"],
      "complexity": number,
      "maintainabilityIndex": number (0-100),
      "techDebtScore": number
    }
  ],
  "learningPatterns": [
    {"patternType": "string", "pattern": "string", "confidence": number (0-1)}
  ]
}"""


class ReviewAnalysisService:
    """Ask a chat model to review a pull request's diffs."""

    def __init__(self, llm: BaseChatModel):
        """
        Initialize analysis service.

        Args:
            llm: LangChain chat model instance.
        """
        self.llm = llm

    async def analyze(
        self, title: str, description: str, files: Iterable[PrFile]
    ) -> CodeReviewAnalysis:
        """
        Review a pull request.

        Args:
            title: Pull request title.
            description: Pull request description.
            files: Changed files with their patches.

        Returns:
            Validated analysis.

        Raises:
            UpstreamError: If the model call fails.
            UpstreamAnalysisError: If the model answers with malformed JSON.
        """
        files = list(files)
        logger.info("Requesting analysis of '%s' (%d files)", title, len(files))

        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=self._build_user_message(title, description, files)),
        ]

        try:
            response = await self.llm.ainvoke(messages)
        except Exception as e:
            logger.error("Analysis request failed: %s", e, exc_info=True)
            raise UpstreamError(f"Failed to analyze code review: {e}") from e

        analysis = parse_analysis(self._parse_response(self._response_text(response.content)))
        logger.info(
            "Analysis complete: rating=%s score=%d comments=%d",
            analysis.overall_rating,
            analysis.code_quality_score,
            len(analysis.comments),
        )
        return analysis

    def _build_user_message(self, title: str, description: str, files: list[PrFile]) -> str:
        """Build user message describing the pull request."""
        file_sections = "\n".join(
            f"""
File: {f.filename} ({f.status})
Additions: +{f.additions or 0}, Deletions: -{f.deletions or 0}
Changes:
{f.patch or ""}
"""
            for f in files
        )

        return f"""You are an expert code reviewer analyzing a pull request. Please provide a comprehensive review in JSON format.

Pull Request Details:
Title: {title}
Description: {description}

Files Changed:
{file_sections}

Please analyze this pull request and respond with JSON in this exact format:
{RESPONSE_FORMAT}

Focus on:
- Security vulnerabilities
- Performance issues
- Code quality and maintainability
- Best practices
- Potential bugs
- Testing coverage
- Documentation

Remember: Respond with ONLY the JSON object, no markdown code blocks or additional text."""

    @staticmethod
    def _response_text(content: Any) -> str:
        # Some providers return a list of content blocks instead of a string
        if isinstance(content, list):
            return "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )
        return str(content)

    def _parse_response(self, response_text: str) -> Any:
        """
        Decode the model's JSON response.

        Raises:
            UpstreamAnalysisError: If JSON parsing fails.
        """
        # Remove markdown code blocks if present
        cleaned = response_text.strip()
        if cleaned.startswith("```json"):
            cleaned = cleaned[7:]
        if cleaned.startswith("```"):
            cleaned = cleaned[3:]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()

        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.error("Failed to parse JSON response: %s", e)
            logger.debug("Response text: %s", response_text)
            raise UpstreamAnalysisError(f"Invalid JSON response: {e}") from e
