"""Length-based context summarizer: one provider call, truncated to max length."""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from dialectic.models import SummarizationConfig, SummaryMetadata
from dialectic.providers.base import AIProvider, CompletionRequest

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_TEMPERATURE = 0.3


@dataclass
class SummarizationResult:
    summary: str
    metadata: SummaryMetadata


class LengthBasedSummarizer:
    """Summarizes text with the agent's own provider and model."""

    def __init__(self, provider: AIProvider, model: str, temperature: float = DEFAULT_SUMMARY_TEMPERATURE) -> None:
        self._provider = provider
        self._model = model
        self._temperature = temperature

    async def summarize(
        self,
        content: str,
        config: SummarizationConfig,
        system_prompt: str,
        summary_prompt: str,
        before_chars: int | None = None,
    ) -> SummarizationResult:
        """Run the summary prompt and cut the answer to ``config.max_length``.

        ``before_chars`` defaults to ``len(content)``; callers that wrap the
        source text in headings pass the raw length instead.
        """
        start = time.monotonic()
        response = await self._provider.complete(
            CompletionRequest(
                model=self._model,
                system_prompt=system_prompt,
                user_prompt=summary_prompt,
                temperature=self._temperature,
            )
        )
        latency_ms = int((time.monotonic() - start) * 1000)

        summary = response.text.strip()
        if len(summary) > config.max_length:
            logger.debug("Summary truncated from %d to %d chars", len(summary), config.max_length)
            summary = summary[: config.max_length]

        metadata = SummaryMetadata(
            before_chars=before_chars if before_chars is not None else len(content),
            after_chars=len(summary),
            method=config.method,
            timestamp=datetime.now(timezone.utc).isoformat(),
            latency_ms=latency_ms,
            model=self._model,
        )
        if response.usage and response.usage.total_tokens is not None:
            metadata.tokens_used = response.usage.total_tokens
        return SummarizationResult(summary=summary, metadata=metadata)
