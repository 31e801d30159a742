"""
Structured-output calls to Claude.

The scanner treats the language model as an opaque ``analyze(prompt, schema)``
function. ``ClaudeAnalyzer`` implements it by forcing a single tool call whose
input schema is the requested JSON schema, so the response is always a JSON
object rather than free text.
"""

import logging
import os
from typing import Any, Dict, Optional, Protocol

from ..config import config

logger = logging.getLogger(__name__)

TOOL_NAME = "record_result"


class AnalysisError(Exception):
    """The model call failed or returned no structured result."""


class Analyzer(Protocol):
    def analyze(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]: ...


class ClaudeAnalyzer:
    """Analyzer backed by the Anthropic Messages API."""

    def __init__(self, model: Optional[str] = None, max_tokens: Optional[int] = None):
        """
        Initialize the analyzer.

        Args:
            model: Claude model to use (default from config).
            max_tokens: Response token limit (default from config).
        """
        self.model = model or config.get("llm.model", "claude-3-5-haiku-latest")
        self.max_tokens = max_tokens or config.get("llm.max_tokens", 8000)
        self._client = None

    def _get_client(self):
        """Get or create the Anthropic client."""
        if self._client is None:
            import anthropic

            api_key = os.environ.get("ANTHROPIC_API_KEY")
            if not api_key:
                raise AnalysisError(
                    "ANTHROPIC_API_KEY environment variable not set. "
                    "Add it to your environment or .env file"
                )
            self._client = anthropic.Anthropic(api_key=api_key)
        return self._client

    def analyze(self, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run the prompt and return the structured result.

        Args:
            prompt: Full prompt text.
            schema: JSON schema the result must follow.

        Returns:
            The tool input produced by the model.

        Raises:
            AnalysisError: If the call fails or no tool result comes back.
        """
        client = self._get_client()
        logger.debug("Calling %s with a %d character prompt", self.model, len(prompt))

        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                tools=[
                    {
                        "name": TOOL_NAME,
                        "description": "Record the analysis result in the required structure.",
                        "input_schema": schema,
                    }
                ],
                tool_choice={"type": "tool", "name": TOOL_NAME},
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            raise AnalysisError(f"Model call failed: {e}") from e

        for block in response.content:
            if getattr(block, "type", None) == "tool_use":
                return dict(block.input)

        raise AnalysisError(f"No structured result in response (stop_reason={response.stop_reason})")
