"""Suggestion store: reducer over an immutable state value.

All edits to generated suggestions happen here, before anything is
persisted. reduce() is pure: it never mutates its inputs, never touches
QueryRecord values and never performs I/O. SuggestionSession sits one layer
above and is the only place that calls the generator or the acceptance
orchestrator.

Actions:
- SetAll: replace the list wholesale and clear the selection
- ToggleSelect / SelectAll / ClearSelection: selection changes
- Rename: new name, marks dirty, keeps the id
- UpdateMembership / AddQueries / RemoveQuery: membership edits, mark dirty
- Discard: remove from the list and from the selection
- SetGenerating / SetAccepting / SetLiveMessage: status flags

Membership edits recompute metrics from the new member list unless the
caller passes metrics explicitly.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace

from app.core.logging import get_logger
from app.schemas.ai_cluster import AggregatedMetrics, QueryRecord, SuggestionViewModel
from app.services.ai_cluster_acceptor import AcceptanceError, AcceptanceResult
from app.services.query_metrics import calculate_group_metrics

logger = get_logger(__name__)


@dataclass(frozen=True)
class SuggestionState:
    suggestions: tuple[SuggestionViewModel, ...] = ()
    selected_ids: frozenset[str] = frozenset()
    is_generating: bool = False
    is_accepting: bool = False
    live_message: str = ""

    @property
    def selected(self) -> list[SuggestionViewModel]:
        """Selected suggestions in list order."""
        return [s for s in self.suggestions if s.id in self.selected_ids]

    def get(self, suggestion_id: str) -> SuggestionViewModel | None:
        for suggestion in self.suggestions:
            if suggestion.id == suggestion_id:
                return suggestion
        return None


@dataclass(frozen=True)
class SetAll:
    suggestions: tuple[SuggestionViewModel, ...]


@dataclass(frozen=True)
class ToggleSelect:
    suggestion_id: str


@dataclass(frozen=True)
class SelectAll:
    pass


@dataclass(frozen=True)
class ClearSelection:
    pass


@dataclass(frozen=True)
class Rename:
    suggestion_id: str
    name: str


@dataclass(frozen=True)
class UpdateMembership:
    suggestion_id: str
    queries: tuple[QueryRecord, ...]
    metrics: AggregatedMetrics | None = None


@dataclass(frozen=True)
class AddQueries:
    suggestion_id: str
    queries: tuple[QueryRecord, ...]


@dataclass(frozen=True)
class RemoveQuery:
    suggestion_id: str
    query_id: str


@dataclass(frozen=True)
class Discard:
    suggestion_id: str


@dataclass(frozen=True)
class SetGenerating:
    value: bool


@dataclass(frozen=True)
class SetAccepting:
    value: bool


@dataclass(frozen=True)
class SetLiveMessage:
    message: str


SuggestionAction = (
    SetAll
    | ToggleSelect
    | SelectAll
    | ClearSelection
    | Rename
    | UpdateMembership
    | AddQueries
    | RemoveQuery
    | Discard
    | SetGenerating
    | SetAccepting
    | SetLiveMessage
)


def _unique_by_id(queries: Sequence[QueryRecord]) -> list[QueryRecord]:
    seen: set[str] = set()
    members = []
    for query in queries:
        if query.id not in seen:
            seen.add(query.id)
            members.append(query)
    return members


def _with_members(
    suggestion: SuggestionViewModel,
    queries: Sequence[QueryRecord],
    metrics: AggregatedMetrics | None = None,
) -> SuggestionViewModel:
    members = _unique_by_id(queries)
    if metrics is None:
        metrics, _ = calculate_group_metrics(members)
    return suggestion.model_copy(
        update={
            "queries": tuple(members),
            "query_count": len(members),
            "metrics": metrics,
            "is_dirty": True,
        }
    )


def _map_one(
    state: SuggestionState,
    suggestion_id: str,
    edit: Callable[[SuggestionViewModel], SuggestionViewModel],
) -> SuggestionState:
    if state.get(suggestion_id) is None:
        return state
    return replace(
        state,
        suggestions=tuple(
            edit(s) if s.id == suggestion_id else s for s in state.suggestions
        ),
    )


def _add_queries(
    suggestion: SuggestionViewModel, queries: Sequence[QueryRecord]
) -> SuggestionViewModel:
    return _with_members(suggestion, [*suggestion.queries, *queries])


def reduce(state: SuggestionState, action: SuggestionAction) -> SuggestionState:
    """Apply one action and return the next state."""
    if isinstance(action, SetAll):
        return replace(
            state, suggestions=tuple(action.suggestions), selected_ids=frozenset()
        )

    if isinstance(action, ToggleSelect):
        if state.get(action.suggestion_id) is None:
            return state
        return replace(
            state, selected_ids=state.selected_ids ^ {action.suggestion_id}
        )

    if isinstance(action, SelectAll):
        return replace(
            state, selected_ids=frozenset(s.id for s in state.suggestions)
        )

    if isinstance(action, ClearSelection):
        return replace(state, selected_ids=frozenset())

    if isinstance(action, Rename):
        return _map_one(
            state,
            action.suggestion_id,
            lambda s: s.model_copy(update={"name": action.name, "is_dirty": True}),
        )

    if isinstance(action, UpdateMembership):
        return _map_one(
            state,
            action.suggestion_id,
            lambda s: _with_members(s, action.queries, action.metrics),
        )

    if isinstance(action, AddQueries):
        return _map_one(
            state, action.suggestion_id, lambda s: _add_queries(s, action.queries)
        )

    if isinstance(action, RemoveQuery):
        return _map_one(
            state,
            action.suggestion_id,
            lambda s: _with_members(
                s, [q for q in s.queries if q.id != action.query_id]
            ),
        )

    if isinstance(action, Discard):
        return replace(
            state,
            suggestions=tuple(
                s for s in state.suggestions if s.id != action.suggestion_id
            ),
            selected_ids=state.selected_ids - {action.suggestion_id},
        )

    if isinstance(action, SetGenerating):
        return replace(state, is_generating=action.value)

    if isinstance(action, SetAccepting):
        return replace(state, is_accepting=action.value)

    if isinstance(action, SetLiveMessage):
        return replace(state, live_message=action.message)

    raise TypeError(f"Unknown suggestion action: {type(action).__name__}")


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


GenerateFn = Callable[[], Awaitable[list[SuggestionViewModel]]]
AcceptFn = Callable[[list[SuggestionViewModel]], Awaitable[AcceptanceResult]]


class SuggestionSession:
    """Holds the store for one user and runs generate/accept through it.

    generate_fn and accept_fn are the network-facing operations; they are
    typically bound to ClusterGeneratorService.generate_for_user and
    AcceptanceOrchestrator.accept for a given user.
    """

    def __init__(
        self,
        generate_fn: GenerateFn,
        accept_fn: AcceptFn,
        state: SuggestionState | None = None,
    ) -> None:
        self._generate = generate_fn
        self._accept = accept_fn
        self._state = state or SuggestionState()

    @property
    def state(self) -> SuggestionState:
        return self._state

    def dispatch(self, action: SuggestionAction) -> SuggestionState:
        self._state = reduce(self._state, action)
        return self._state

    async def generate(self) -> list[SuggestionViewModel]:
        """Replace the suggestion list with a fresh generation.

        On failure the existing list is kept and the error is re-raised.
        """
        self.dispatch(SetGenerating(True))
        self.dispatch(SetLiveMessage("Generating AI clusters..."))
        try:
            suggestions = await self._generate()
        except Exception as e:
            self.dispatch(SetLiveMessage(f"Failed to generate clusters: {e}"))
            raise
        finally:
            self.dispatch(SetGenerating(False))

        self.dispatch(SetAll(tuple(suggestions)))
        self.dispatch(
            SetLiveMessage(f"Generated {_plural(len(suggestions), 'cluster suggestion')}")
        )
        return suggestions

    async def accept_selected(self) -> AcceptanceResult:
        """Accept the selected suggestions in list order.

        Accepted suggestions are discarded from the store; failed ones stay
        so the user can rename and retry.
        """
        selected = self._state.selected
        self.dispatch(SetAccepting(True))
        self.dispatch(SetLiveMessage("Accepting selected clusters..."))
        try:
            result = await self._accept(selected)
        except AcceptanceError as e:
            partial = getattr(e, "result", None)
            if partial is not None:
                self._discard_accepted(selected, partial)
            self.dispatch(SetLiveMessage(f"Failed to accept clusters: {e}"))
            raise
        finally:
            self.dispatch(SetAccepting(False))

        self._discard_accepted(selected, result)
        message = f"Created {_plural(result.accepted_count, 'group')}"
        if result.failures:
            message += f", {_plural(len(result.failures), 'cluster')} not accepted"
        self.dispatch(SetLiveMessage(message))
        return result

    def _discard_accepted(
        self, selected: list[SuggestionViewModel], result: AcceptanceResult
    ) -> None:
        for index in result.accepted_indices:
            self.dispatch(Discard(selected[index].id))
        logger.debug(
            "Discarded accepted suggestions",
            extra={
                "accepted_count": len(result.accepted_indices),
                "remaining_count": len(self._state.suggestions),
            },
        )
