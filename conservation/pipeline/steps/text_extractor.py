"""
Step 1: Text Extractor
Extracts structured fields from unstructured carrier notices.
"""

import logging
from typing import Any

from conservation.core.fireworks_client import FireworksClient
from conservation.prompts import EXTRACTION_SYSTEM, EXTRACTION_PROMPT
from conservation.pipeline.models import (
    UNKNOWN,
    ConservationReason,
    ExtractedConservationData,
    ExtractionConfidence,
)
from conservation.utils.json_utils import extract_json_object


logger = logging.getLogger(__name__)


class TextExtractorStep:
    """
    Parses a carrier email or portal page into client name, policy number,
    carrier and reason. Unparseable replies fall back to placeholders.
    """

    def __init__(self, llm_client: FireworksClient):
        """Initialize with LLM client."""
        self.llm_client = llm_client

    def execute(self, raw_text: str) -> ExtractedConservationData:
        """
        Extract conservation data from raw text.

        Args:
            raw_text: Carrier notice text

        Returns:
            ExtractedConservationData; placeholders if the reply can't be parsed

        Raises:
            Exception: Non-transient provider errors, or transient ones after retries
        """
        prompt = EXTRACTION_PROMPT.format(raw_text=raw_text)

        response_text = self.llm_client.generate(
            prompt=prompt,
            system_prompt=EXTRACTION_SYSTEM,
            temperature=0.0,
            max_tokens=500,
        )

        result = extract_json_object(response_text)
        if result is None:
            logger.error(f"Failed to parse extraction response: {response_text[:200]!r}")
            return ExtractedConservationData.placeholder()

        return ExtractedConservationData(
            client_name=self._parse_text(result.get("client_name")),
            policy_number=self._parse_text(result.get("policy_number")),
            carrier=self._parse_text(result.get("carrier")),
            reason=self._parse_reason(result.get("reason")),
            confidence=self._parse_confidence(result.get("confidence")),
        )

    def _parse_text(self, value: Any) -> str:
        """Non-empty string or the Unknown placeholder."""
        if value is None:
            return UNKNOWN
        text = str(value).strip()
        return text or UNKNOWN

    def _parse_reason(self, value: Any) -> ConservationReason:
        try:
            return ConservationReason(str(value).strip().lower())
        except ValueError:
            return ConservationReason.OTHER

    def _parse_confidence(self, value: Any) -> ExtractionConfidence:
        try:
            return ExtractionConfidence(str(value).strip().lower())
        except ValueError:
            return ExtractionConfidence.LOW
