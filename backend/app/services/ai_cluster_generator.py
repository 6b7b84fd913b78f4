"""AI cluster generation.

Pipeline per generation call:
1. Fetch up to cluster_max_queries candidates (impressions desc, date desc)
2. Split them into batches of cluster_batch_size
3. For each batch, in order: prompt the completion service with a strict
   JSON-schema response contract, parse the envelope, and resolve the
   proposed clusters against the batch
4. Concatenate surviving clusters, attach metrics and a stable id
5. Write a best-effort cluster_generated audit record

Failure policy:
- Completion errors abort the generation as ClusterUpstreamError, keeping
  the retryable flag from the client
- A malformed envelope aborts the generation as ClusterResponseFormatError
- Bad or unknown query ids and undersized clusters are dropped and logged
- No input queries gives an empty result without calling the model

ERROR LOGGING REQUIREMENTS:
- Log batch start/complete/error with batch index and timing
- Log dropped ids and dropped clusters with counts
- Never fail generation on an audit write
"""

import time
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.logging import clustering_logger, completion_logger, get_logger
from app.integrations.openrouter import CompletionResult, OpenRouterClient
from app.models.user_action import UserActionType
from app.repositories.query import QueryRepository
from app.schemas.ai_cluster import QueryRecord, SuggestionViewModel
from app.services.audit import record_user_action
from app.services.cluster_batching import create_batches
from app.services.cluster_prompts import (
    CLUSTER_RESPONSE_FORMAT,
    ClusteringConstraints,
    build_system_prompt,
    build_user_prompt,
)
from app.services.cluster_validation import (
    ClusterResolution,
    index_batch,
    parse_cluster_response,
    resolve_cluster,
)
from app.services.query_metrics import calculate_group_metrics
from app.utils.cluster_identity import generate_cluster_id

logger = get_logger(__name__)


class ClusterGenerationError(Exception):
    """Base exception for cluster generation errors."""

    pass


class ClusterUpstreamError(ClusterGenerationError):
    """Raised when the completion service call for a batch fails."""

    def __init__(
        self,
        batch_index: int,
        message: str,
        retryable: bool,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.batch_index = batch_index
        self.retryable = retryable
        self.status_code = status_code
        self.retry_after = retry_after
        self.message = message
        super().__init__(f"AI clustering failed for batch {batch_index + 1}: {message}")

    @classmethod
    def from_result(cls, batch_index: int, result: CompletionResult) -> "ClusterUpstreamError":
        return cls(
            batch_index=batch_index,
            message=result.error or "Unknown completion error",
            retryable=result.retryable,
            status_code=result.status_code,
            retry_after=result.retry_after,
        )


class ClusterResponseFormatError(ClusterGenerationError):
    """Raised when a batch response is not the declared {clusters: [...]} shape."""

    def __init__(self, batch_index: int, message: str) -> None:
        self.batch_index = batch_index
        self.message = message
        super().__init__(f"AI clustering failed for batch {batch_index + 1}: {message}")


class ClusterGeneratorService:
    """Turns candidate queries into cluster suggestions.

    The completion client is injected; the session is only needed for
    generate_for_user (candidate fetch) and for the audit record.
    """

    def __init__(
        self,
        openrouter: OpenRouterClient,
        session: AsyncSession | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._openrouter = openrouter
        self._session = session
        self._settings = settings or get_settings()
        self._constraints = ClusteringConstraints(
            min_cluster_size=self._settings.cluster_min_size,
            min_clusters=self._settings.cluster_min_count,
            max_clusters=self._settings.cluster_max_count,
            query_text_max_length=self._settings.cluster_query_text_max_length,
        )

    @property
    def constraints(self) -> ClusteringConstraints:
        return self._constraints

    async def fetch_candidates(self) -> list[QueryRecord]:
        """Highest-impression queries, capped at cluster_max_queries."""
        if self._session is None:
            raise RuntimeError("ClusterGeneratorService needs a session to fetch queries")
        rows = await QueryRepository(self._session).fetch_candidates(
            limit=self._settings.cluster_max_queries,
            chunk_size=self._settings.cluster_fetch_chunk_size,
        )
        return [QueryRecord.model_validate(row) for row in rows]

    async def generate_for_user(self, user_id: str) -> list[SuggestionViewModel]:
        """Fetch candidates, generate suggestions and audit the run."""
        queries = await self.fetch_candidates()
        return await self.generate(queries, user_id=user_id)

    async def generate(
        self,
        queries: Sequence[QueryRecord],
        user_id: str | None = None,
    ) -> list[SuggestionViewModel]:
        """Generate suggestions for the given queries.

        Batches are processed sequentially; the result preserves batch order
        and, within a batch, the order the model returned clusters in.

        Raises:
            ClusterUpstreamError: If a completion call fails
            ClusterResponseFormatError: If a response has the wrong shape
        """
        if not queries:
            logger.info("No queries to cluster, skipping generation")
            return []

        start_time = time.monotonic()
        batches = create_batches(queries, self._settings.cluster_batch_size)
        clustering_logger.generation_start(len(queries), len(batches))

        system_prompt = build_system_prompt(self._constraints)
        suggestions: list[SuggestionViewModel] = []
        for batch_index, batch in enumerate(batches):
            suggestions.extend(
                await self._generate_batch(
                    batch, batch_index, len(batches), system_prompt
                )
            )

        total_in_clusters = sum(s.query_count for s in suggestions)
        clustering_logger.generation_complete(
            cluster_count=len(suggestions),
            query_count=len(queries),
            total_queries_in_clusters=total_in_clusters,
            batch_count=len(batches),
            duration_ms=(time.monotonic() - start_time) * 1000,
        )

        if self._session is not None and user_id is not None:
            await record_user_action(
                self._session,
                user_id=user_id,
                action_type=UserActionType.CLUSTER_GENERATED,
                metadata={
                    "clusterCount": len(suggestions),
                    "queryCount": len(queries),
                    "totalQueriesInClusters": total_in_clusters,
                    "batchCount": len(batches),
                },
            )

        return suggestions

    async def _generate_batch(
        self,
        batch: Sequence[QueryRecord],
        batch_index: int,
        total_batches: int,
        system_prompt: str,
    ) -> list[SuggestionViewModel]:
        start_time = time.monotonic()
        completion_logger.batch_start(batch_index, len(batch), total_batches)

        result = await self._openrouter.complete(
            user_prompt=build_user_prompt(batch, self._constraints),
            system_prompt=system_prompt,
            response_format=CLUSTER_RESPONSE_FORMAT,
            temperature=self._settings.openrouter_temperature,
        )

        if not result.success:
            error = ClusterUpstreamError.from_result(batch_index, result)
            completion_logger.batch_error(
                batch_index,
                total_batches,
                error.message,
                "retryable" if error.retryable else "fatal",
                (time.monotonic() - start_time) * 1000,
            )
            raise error

        try:
            raw_clusters = parse_cluster_response(result.text)
        except ValueError as e:
            completion_logger.batch_error(
                batch_index,
                total_batches,
                str(e),
                "malformed_response",
                (time.monotonic() - start_time) * 1000,
            )
            raise ClusterResponseFormatError(batch_index, str(e)) from e

        lookup = index_batch(batch)
        suggestions: list[SuggestionViewModel] = []
        for raw in raw_clusters:
            resolution = resolve_cluster(raw, lookup, self._constraints.min_cluster_size)
            self._log_resolution(batch_index, resolution, raw.name)
            if resolution.accepted:
                suggestions.append(self._to_suggestion(resolution))

        completion_logger.batch_complete(
            batch_index,
            total_batches,
            len(suggestions),
            (time.monotonic() - start_time) * 1000,
            result.input_tokens,
            result.output_tokens,
        )
        return suggestions

    @staticmethod
    def _log_resolution(
        batch_index: int, resolution: ClusterResolution, raw_name: object
    ) -> None:
        name = resolution.name or str(raw_name)
        if resolution.invalid_id_count or resolution.unresolved_id_count:
            clustering_logger.ids_dropped(
                batch_index,
                name,
                resolution.invalid_id_count,
                resolution.unresolved_id_count,
            )
        if not resolution.accepted:
            clustering_logger.cluster_dropped(
                batch_index,
                name,
                resolution.rejected_reason or "rejected",
                len(resolution.queries),
            )

    @staticmethod
    def _to_suggestion(resolution: ClusterResolution) -> SuggestionViewModel:
        metrics, count = calculate_group_metrics(resolution.queries)
        query_ids = [q.id for q in resolution.queries]
        return SuggestionViewModel(
            id=generate_cluster_id(resolution.name, query_ids),
            name=resolution.name,
            queries=tuple(resolution.queries),
            query_count=count,
            metrics=metrics,
            is_dirty=False,
        )
