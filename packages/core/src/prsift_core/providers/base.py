"""Base reviewer implementing the Template Method pattern.

All providers share the same review algorithm:
    review() → _build_system_prompt() + _build_user_prompt()
             → _call_api()   ← only this differs per provider
             → normalize_findings()

Subclasses set up their SDK client in __init__ and implement _call_api,
which makes one raw API call and returns the text response.

The call is made exactly once. A failed or malformed generation is fatal for
the invocation; asking a non-deterministic model again on the same input is
not guaranteed to fix malformed output and would hide a real outage.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from prsift_core.errors import GenerationError
from prsift_core.models import Finding
from prsift_core.normalize import normalize_findings

logger = logging.getLogger(__name__)

_MAX_TOKENS = 8192

SYSTEM_PROMPT = """You are an expert code reviewer. You analyze pull request diffs against project \
coding guidelines and report issues with confidence-based scoring and severity classification.

You MUST return a valid JSON array of findings. Each finding MUST have these fields:
- "id": sequential integer starting from 1
- "severity": one of "critical", "warning", or "suggestion"
- "confidence": integer 0-100
- "title": short descriptive title (1 line)
- "file": file path relative to the repository root
- "line": line number in the new version of the file (must be a changed or context line of the diff)
- "why": one sentence explaining the impact
- "body": the full comment text with description and suggestion

Severity classification:
- "critical" (confidence 90-100): must fix -- runtime errors, security vulnerabilities, resource leaks
- "warning" (confidence 80-89): should fix -- guideline violations, missing error handling
- "suggestion" (confidence 60-79): nice to have -- refactoring opportunities, minor performance concerns

Rules:
- Only report findings with confidence >= 60
- Do NOT report pre-existing issues not introduced in this PR
- Do NOT report pedantic nitpicks or issues linters catch automatically
- Keep the "body" concise but include a **Suggestion** block showing how to fix
- Do NOT include severity badges in the body -- they are added automatically

Return ONLY a JSON array. If there are no issues to report, return an empty array: []"""


class BaseReviewer(ABC):
    name: str = "base"
    MAX_TOKENS: int = _MAX_TOKENS

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def review(self, guidelines: str, diff: str, changed_files: str) -> list[Finding]:
        """Review a whole PR diff and return normalized findings.

        Raises GenerationError when the API call fails and NormalizationError
        when the response breaks the output contract.
        """
        system = self._build_system_prompt()
        user = self._build_user_prompt(guidelines, diff, changed_files)
        try:
            raw = self._call_api(system, user)
        except Exception as e:
            logger.error("%s API call failed: %s", self.__class__.__name__, e)
            raise GenerationError(f"AI review failed: {e}") from e
        if not raw:
            raise GenerationError("No text response from the AI provider")
        return normalize_findings(raw)

    # ------------------------------------------------------------------ #
    # Provider hook                                                        #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        This is the only method subclasses must implement. It should raise
        on failure; review() converts that into a GenerationError.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _build_system_prompt(self) -> str:
        return SYSTEM_PROMPT

    def _build_user_prompt(self, guidelines: str, diff: str, changed_files: str) -> str:
        return f"""Review the following pull request diff against the project coding guidelines.

<guidelines>
{guidelines}
</guidelines>

<changed_files>
{changed_files}
</changed_files>

<diff>
{diff}
</diff>

Return your findings as a JSON array. Remember: only report issues with confidence >= 60, \
focus on real bugs and guideline violations, not nitpicks."""
