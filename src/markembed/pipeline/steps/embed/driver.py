"""
Embedding driver: turns a file's sections into embedding records.

Chunks are embedded one at a time. Each provider call is wrapped in the
retry combinator; a chunk that still fails after the last attempt is
recorded as an error and the remaining chunks are processed normally.
"""

from __future__ import annotations

import threading
from typing import Callable, Iterable, Optional

from ....core.logging import log
from ....core.models import EmbeddingRecord, EmbedOutcome, IngestionError
from ....core.retry import RetryCancelled, RetryPolicy, retry_call
from ..chunk.budget import bound_all, token_budget
from .provider import EmbeddingProvider

SNIPPET_LENGTH = 20


class EmbeddingDriver:
    def __init__(
        self,
        provider: EmbeddingProvider,
        policy: Optional[RetryPolicy] = None,
        *,
        budget: Optional[float] = None,
        min_content_length: Optional[int] = None,
        sleep: Optional[Callable[[float], object]] = None,
    ):
        if min_content_length is None:
            from ....core.config import SETTINGS

            min_content_length = SETTINGS.MIN_CONTENT_LENGTH
        self.provider = provider
        self.policy = policy or RetryPolicy.from_settings()
        self.budget = budget if budget is not None else token_budget()
        self.min_content_length = min_content_length
        self.sleep = sleep

    def prepare_inputs(self, sections: Iterable[str]) -> list[str]:
        """Bound sections to the budget and flatten newlines.

        Inputs shorter than the minimum content length (a lone heading, a
        stray link) are dropped.
        """
        inputs = []
        for chunk in bound_all(sections, self.budget):
            text = chunk.replace("\n", " ")
            if len(text) < self.min_content_length:
                continue
            inputs.append(text)
        return inputs

    def embed_all(
        self,
        file_id: int,
        path: str,
        sections: Iterable[str],
        api_key: Optional[str] = None,
        cancel: Optional[threading.Event] = None,
    ) -> EmbedOutcome:
        inputs = self.prepare_inputs(sections)
        outcome = EmbedOutcome(chunks=len(inputs))

        for index, text in enumerate(inputs):
            if cancel is not None and cancel.is_set():
                self._record_cancel(outcome, path, len(inputs) - index)
                break
            try:
                result = retry_call(
                    lambda: self.provider.embed(text, api_key),
                    self.policy,
                    cancel=cancel,
                    sleep=self.sleep,
                    label="embed",
                )
            except RetryCancelled:
                self._record_cancel(outcome, path, len(inputs) - index)
                break
            except Exception as e:
                snippet = text[:SNIPPET_LENGTH]
                log.error("embed.chunk_failed", path=path, snippet=snippet, error=str(e))
                outcome.errors.append(
                    IngestionError(
                        path=path,
                        message=f"Unable to generate embeddings for section starting with '{snippet}...': {e}",
                    )
                )
                continue

            outcome.total_tokens += result.total_tokens
            outcome.records.append(
                EmbeddingRecord(
                    file_id=file_id,
                    content=text,
                    embedding=result.embedding,
                    token_count=result.total_tokens,
                )
            )

        log.info(
            "embed.file_done",
            path=path,
            chunks=len(inputs),
            embedded=len(outcome.records),
            failed=len(outcome.errors),
            total_tokens=outcome.total_tokens,
        )
        return outcome

    @staticmethod
    def _record_cancel(outcome: EmbedOutcome, path: str, remaining: int) -> None:
        log.warning("embed.cancelled", path=path, remaining=remaining)
        outcome.errors.append(
            IngestionError(
                path=path,
                message=f"Embedding cancelled with {remaining} section(s) not embedded.",
            )
        )
