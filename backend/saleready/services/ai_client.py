"""
Anthropic client for the analysis workers
"""

import json
import logging
from typing import Any, Dict, List, Optional

from anthropic import AsyncAnthropic

from saleready.core.config import settings
from saleready.core.exceptions import ExternalAPIError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a financial analyst. Respond with a single JSON object."


def extract_json_object(text: str) -> Dict[str, Any]:
    """Parse the outermost JSON object in text, ignoring prose or code fences around it."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object found in model response")
    parsed = json.loads(text[start:end + 1])
    if not isinstance(parsed, dict):
        raise ValueError("Model response is not a JSON object")
    return parsed


class AnalysisModelClient:
    """Calls the Messages API and returns parsed JSON"""

    def __init__(self, client: Optional[AsyncAnthropic] = None, model: Optional[str] = None):
        self._client = client
        self.model = model or settings.ANALYSIS_MODEL
        self.max_tokens = settings.ANALYSIS_MAX_TOKENS

    @property
    def client(self) -> AsyncAnthropic:
        if self._client is None:
            if not settings.ANTHROPIC_API_KEY:
                raise ExternalAPIError("anthropic", "ANTHROPIC_API_KEY is not configured")
            self._client = AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)
        return self._client

    async def complete_json(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: float = 0.2,
        documents: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """documents are base64 PDFs sent as document blocks ahead of the prompt"""
        content: Any = prompt
        if documents:
            content = [
                {"type": "document", "source": {"type": "base64", "media_type": "application/pdf", "data": data}}
                for data in documents
            ]
            content.append({"type": "text", "text": prompt})
        messages = [
            {"role": "user", "content": content},
            # prefill forces the reply to start inside a JSON object
            {"role": "assistant", "content": "{"},
        ]
        logger.info(f"Calling {self.model} (max_tokens={self.max_tokens})")
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=temperature,
                system=system or DEFAULT_SYSTEM_PROMPT,
                messages=messages,
            )
        except ExternalAPIError:
            raise
        except Exception as e:
            status = getattr(e, "status_code", None)
            logger.error(f"Anthropic call failed (status={status}): {e}")
            raise ExternalAPIError("anthropic", str(e), upstream_status=status)

        if not response.content:
            raise ExternalAPIError("anthropic", "Empty response content")

        block = response.content[0]
        text = getattr(block, "text", None) or ""
        if not text.lstrip().startswith("{"):
            text = "{" + text

        usage = getattr(response, "usage", None)
        if usage:
            logger.info(
                f"Anthropic call done: tokens_in={getattr(usage, 'input_tokens', 0)} "
                f"tokens_out={getattr(usage, 'output_tokens', 0)}"
            )

        try:
            return extract_json_object(text)
        except ValueError as e:
            logger.error(f"Could not parse model JSON: {e}; head={text[:200]!r}")
            raise ExternalAPIError("anthropic", f"Invalid JSON in model response: {e}")


analysis_model_client = AnalysisModelClient()
