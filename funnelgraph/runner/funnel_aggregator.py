"""
Funnel Aggregator

Replays respondent session traces against a resolved graph to compute
per-stage visits, per-branch transition counts and drop-off.

Traces record stage ids only, not which option was picked. A transition
(s, t) is attributed to the branch points of s that resolve to t; when k
branch points match, each receives 1/k. The split is an approximation of
respondent intent, so edge counts are floats.

A completed trace's final stage is attributed the same way against the
branch points of that stage that end the funnel.

Transitions the graph cannot explain (unknown stage, no matching branch
point, or a completed trace ending on a stage that cannot terminate) are
counted in `unexplained_transitions` and excluded from drop-off. This
happens when the funnel was edited after the sessions were recorded.

Reports from disjoint trace partitions merge by addition; ratios are
recomputed from the merged counts.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .graph_resolver import ResolvedGraph, branches_to
from .types import SessionTrace

logger = logging.getLogger(__name__)

EdgeCountKey = Tuple[str, str, Optional[str]]  # (stage_id, branch_id, target)


@dataclass
class FunnelReport:
    """
    Aggregated funnel counts.

    Counts are additive across partitions; `drop_off_by_stage`,
    `completion_rate` and `conversion_from_previous` are derived from them.
    """
    stage_order: List[str] = field(default_factory=list)
    per_stage_visits: Dict[str, int] = field(default_factory=dict)
    per_stage_sessions: Dict[str, int] = field(default_factory=dict)
    per_edge_counts: Dict[EdgeCountKey, float] = field(default_factory=dict)
    per_stage_entries: Dict[str, int] = field(default_factory=dict)
    per_stage_continuations: Dict[str, int] = field(default_factory=dict)
    unexplained_transitions: int = 0
    total_sessions: int = 0
    completed_sessions: int = 0

    # Derived
    drop_off_by_stage: Dict[str, Optional[float]] = field(default_factory=dict)
    completion_rate: Optional[float] = None
    conversion_from_previous: Dict[str, Optional[float]] = field(default_factory=dict)

    def merge(self, other: 'FunnelReport') -> 'FunnelReport':
        """Combine two partial reports over the same graph."""
        order = list(self.stage_order)
        for stage_id in other.stage_order:
            if stage_id not in order:
                order.append(stage_id)

        merged = FunnelReport(
            stage_order=order,
            per_stage_visits=_add_maps(self.per_stage_visits, other.per_stage_visits),
            per_stage_sessions=_add_maps(self.per_stage_sessions, other.per_stage_sessions),
            per_edge_counts=_add_maps(self.per_edge_counts, other.per_edge_counts),
            per_stage_entries=_add_maps(self.per_stage_entries, other.per_stage_entries),
            per_stage_continuations=_add_maps(self.per_stage_continuations, other.per_stage_continuations),
            unexplained_transitions=self.unexplained_transitions + other.unexplained_transitions,
            total_sessions=self.total_sessions + other.total_sessions,
            completed_sessions=self.completed_sessions + other.completed_sessions,
        )
        _finalise(merged)
        return merged

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form; edge keys become rows."""
        return {
            'stage_order': list(self.stage_order),
            'per_stage_visits': dict(self.per_stage_visits),
            'per_stage_sessions': dict(self.per_stage_sessions),
            'per_edge_counts': [
                {
                    'stage_id': stage_id,
                    'branch_id': branch_id,
                    'target_stage_id': target,
                    'count': count,
                }
                for (stage_id, branch_id, target), count in self.per_edge_counts.items()
            ],
            'drop_off_by_stage': dict(self.drop_off_by_stage),
            'conversion_from_previous': dict(self.conversion_from_previous),
            'unexplained_transitions': self.unexplained_transitions,
            'total_sessions': self.total_sessions,
            'completed_sessions': self.completed_sessions,
            'completion_rate': self.completion_rate,
        }


def aggregate(
    graph: ResolvedGraph,
    traces: Iterable[Union[SessionTrace, Dict[str, Any]]],
) -> FunnelReport:
    """
    Aggregate session traces against a resolved graph.

    Args:
        graph: Output of resolve() for the funnel the sessions ran against
        traces: SessionTrace models or raw {sessionId, visitedStageIds, completed} dicts

    Returns:
        FunnelReport. With no traces every count is zero and every drop-off
        is None.
    """
    report = _empty_report(graph)
    visits = report.per_stage_visits
    sessions = report.per_stage_sessions
    edge_counts = report.per_edge_counts
    entries = report.per_stage_entries
    continuations = report.per_stage_continuations

    for trace in traces:
        if not isinstance(trace, SessionTrace):
            trace = SessionTrace.model_validate(trace)

        report.total_sessions += 1
        if trace.completed:
            report.completed_sessions += 1

        path = trace.visited_stage_ids
        for stage_id in path:
            if graph.is_known(stage_id):
                visits[stage_id] += 1
        for stage_id in set(path):
            if graph.is_known(stage_id):
                sessions[stage_id] += 1

        for i, stage_id in enumerate(path):
            is_last = i == len(path) - 1
            if is_last and not trace.completed:
                # Respondent stopped here
                if graph.is_known(stage_id):
                    entries[stage_id] += 1
                continue

            target = None if is_last else path[i + 1]
            if _attribute(graph, edge_counts, stage_id, target):
                entries[stage_id] += 1
                continuations[stage_id] += 1
            else:
                report.unexplained_transitions += 1

    _finalise(report)
    logger.debug(
        "Aggregated %d sessions (%d unexplained transitions)",
        report.total_sessions, report.unexplained_transitions,
    )
    return report


def aggregate_partitions(
    graph: ResolvedGraph,
    partitions: Iterable[Iterable[Union[SessionTrace, Dict[str, Any]]]],
) -> FunnelReport:
    """
    Aggregate each partition of traces independently and merge the results.

    Equivalent to aggregate() over the concatenated traces.
    """
    report = _empty_report(graph)
    _finalise(report)
    for partition in partitions:
        report = report.merge(aggregate(graph, partition))
    return report


# ============================================================================
# Internals
# ============================================================================

def _empty_report(graph: ResolvedGraph) -> FunnelReport:
    report = FunnelReport(stage_order=list(graph.order))
    for stage_id in graph.order:
        report.per_stage_visits[stage_id] = 0
        report.per_stage_sessions[stage_id] = 0
        report.per_stage_entries[stage_id] = 0
        report.per_stage_continuations[stage_id] = 0
    for (stage_id, branch_id), target in graph.edges.items():
        report.per_edge_counts[(stage_id, branch_id, target)] = 0.0
    return report


def _attribute(
    graph: ResolvedGraph,
    edge_counts: Dict[EdgeCountKey, float],
    stage_id: str,
    target: Optional[str],
) -> bool:
    """
    Split one transition across the matching branch points.

    Returns False when the graph cannot explain the transition.
    """
    if not graph.is_known(stage_id):
        return False
    if target is not None and not graph.is_known(target):
        return False

    matching = branches_to(graph, stage_id, target)
    if not matching:
        return False

    share = 1.0 / len(matching)
    for branch_id in matching:
        edge_counts[(stage_id, branch_id, target)] += share
    return True


def _finalise(report: FunnelReport) -> None:
    """Recompute derived ratios from the additive counts."""
    report.drop_off_by_stage = {}
    for stage_id in report.stage_order:
        entered = report.per_stage_entries.get(stage_id, 0)
        continued = report.per_stage_continuations.get(stage_id, 0)
        report.drop_off_by_stage[stage_id] = 1.0 - continued / entered if entered else None

    report.completion_rate = (
        report.completed_sessions / report.total_sessions if report.total_sessions else None
    )

    report.conversion_from_previous = {}
    previous = None
    for stage_id in report.stage_order:
        if previous is None:
            report.conversion_from_previous[stage_id] = None
        else:
            prev_sessions = report.per_stage_sessions.get(previous, 0)
            report.conversion_from_previous[stage_id] = (
                report.per_stage_sessions.get(stage_id, 0) / prev_sessions if prev_sessions else None
            )
        previous = stage_id


def _add_maps(a: Dict[Any, Any], b: Dict[Any, Any]) -> Dict[Any, Any]:
    combined: Dict[Any, Any] = defaultdict(int)
    for source in (a, b):
        for key, value in source.items():
            combined[key] += value
    return dict(combined)
