"""
Graph Validator

Checks a stage list and its resolved graph for problems an author should
see before publishing:

- DanglingReference (error): a goto branch targets a stage id that does not exist
- DuplicateStageId (error): the snapshot repeats a stage id
- UnreachableStage (warning): a non-entry stage cannot be reached from the entry
- PrematureTermination (warning): an interior stage ends the funnel without
  an explicit submit
- ConnectionMismatch (warning): an explicit canvas connection disagrees with
  the resolved branch target
- EmptyFunnel (warning): no stages at all

validate() never raises. Each check runs on its own; an unexpected failure
inside one check is logged and reported as a ValidationFailure error while
the remaining checks still run. Cycles are legal and only matter when they
leave a stage unreachable from the entry.
"""

import logging
from collections import Counter
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from ..stage_types import Stage, coerce_stages
from .graph_resolver import ResolvedGraph, reachable_from_entry, resolve
from .types import ValidationIssue, ValidationReport

logger = logging.getLogger(__name__)


def validate(
    stages: Iterable[Union[Stage, Dict[str, Any]]],
    graph: Optional[ResolvedGraph] = None,
    kinds: Optional[Dict[str, str]] = None,
) -> ValidationReport:
    """
    Validate a stage list.

    Args:
        stages: Ordered stages (models or raw snapshot dicts)
        graph: Already resolved graph for `stages`; resolved here if omitted
        kinds: Optional component kind mapping used when resolving

    Returns:
        ValidationReport with errors and warnings
    """
    report = ValidationReport()

    try:
        stages = coerce_stages(stages)
        if graph is None:
            graph = resolve(stages, kinds)
    except Exception as e:
        logger.exception("Could not resolve stages for validation")
        report.add(ValidationIssue(
            code='ValidationFailure',
            severity='error',
            message=f"Could not resolve stages: {type(e).__name__}: {e}",
        ))
        return report

    for check in _CHECKS:
        try:
            for issue in check(stages, graph):
                report.add(issue)
        except Exception as e:
            logger.exception("Validation check %s failed", check.__name__)
            report.add(ValidationIssue(
                code='ValidationFailure',
                severity='error',
                message=f"{check.__name__} failed: {type(e).__name__}: {e}",
            ))

    logger.debug(
        "Validated %d stages: %d errors, %d warnings",
        len(stages), len(report.errors), len(report.warnings),
    )
    return report


# ============================================================================
# Checks
# ============================================================================

def check_empty(stages: List[Stage], graph: ResolvedGraph) -> Iterator[ValidationIssue]:
    if not stages:
        yield ValidationIssue(
            code='EmptyFunnel',
            severity='warning',
            message="Funnel has no stages",
        )


def check_duplicate_ids(stages: List[Stage], graph: ResolvedGraph) -> Iterator[ValidationIssue]:
    counts = Counter(s.id for s in stages)
    for stage_id, count in counts.items():
        if count > 1:
            yield ValidationIssue(
                code='DuplicateStageId',
                severity='error',
                stage_id=stage_id,
                message=f"Stage id {stage_id} appears {count} times",
            )


def check_dangling_references(stages: List[Stage], graph: ResolvedGraph) -> Iterator[ValidationIssue]:
    for (stage_id, branch_id), target in graph.edges.items():
        if target is not None and not graph.is_known(target):
            yield ValidationIssue(
                code='DanglingReference',
                severity='error',
                stage_id=stage_id,
                branch_id=branch_id,
                target_stage_id=target,
                message=f"Branch {branch_id} on stage {stage_id} targets missing stage {target}",
            )


def check_unreachable(stages: List[Stage], graph: ResolvedGraph) -> Iterator[ValidationIssue]:
    reachable = reachable_from_entry(graph)
    for stage_id in graph.order[1:]:
        if stage_id not in reachable:
            inbound = len(graph.reverse.get(stage_id, ()))
            reason = "no inbound branches" if inbound == 0 else "not reachable from the entry stage"
            yield ValidationIssue(
                code='UnreachableStage',
                severity='warning',
                stage_id=stage_id,
                message=f"Stage {stage_id} is unreachable ({reason})",
            )


def check_premature_termination(stages: List[Stage], graph: ResolvedGraph) -> Iterator[ValidationIssue]:
    last_stage_id = graph.order[-1] if graph.order else None
    for stage_id in graph.order:
        if stage_id == last_stage_id:
            continue
        branch_points = graph.branch_points[stage_id]
        if not branch_points:
            continue
        ends_everywhere = all(graph.edges[(stage_id, bp.branch_id)] is None for bp in branch_points)
        has_submit = any(bp.action.kind == 'submit' for bp in branch_points)
        if ends_everywhere and not has_submit:
            yield ValidationIssue(
                code='PrematureTermination',
                severity='warning',
                stage_id=stage_id,
                message=f"Interior stage {stage_id} ends the funnel without a submit",
            )


def check_connection_mismatch(stages: List[Stage], graph: ResolvedGraph) -> Iterator[ValidationIssue]:
    seen = set()
    for stage in stages:
        # Duplicates resolve as their first occurrence only
        if stage.id in seen:
            continue
        seen.add(stage.id)

        for conn in stage.connections:
            if conn.source_branch_id is None:
                targets = {target for _, target in graph.branches_of(stage.id)}
                if conn.to_stage_id not in targets:
                    yield _mismatch(stage.id, None, conn.to_stage_id, "no branch point resolves there")
                continue

            branch_ids = _matching_branch_ids(graph, stage.id, conn.source_branch_id)
            if not branch_ids:
                yield _mismatch(stage.id, conn.source_branch_id, conn.to_stage_id, "source branch does not exist")
                continue
            for branch_id in branch_ids:
                resolved = graph.edges[(stage.id, branch_id)]
                if resolved != conn.to_stage_id:
                    yield _mismatch(
                        stage.id, branch_id, conn.to_stage_id,
                        f"branch resolves to {resolved if resolved is not None else 'end of funnel'}",
                    )


def _matching_branch_ids(graph: ResolvedGraph, stage_id: str, source_branch_id: str) -> List[str]:
    """
    Branch ids a connection handle refers to.

    Per-option handles are '<component>:<option>'. Component handles (the
    canvas's 'comp-<component>' with the prefix already stripped) name a bare
    component id, which covers all of that component's branches.
    """
    branch_ids = [bp.branch_id for bp in graph.branch_points.get(stage_id, ())]
    if source_branch_id in branch_ids:
        return [source_branch_id]
    return [
        bp.branch_id
        for bp in graph.branch_points.get(stage_id, ())
        if bp.component_id == source_branch_id
    ]


def _mismatch(stage_id: str, branch_id: Optional[str], target: str, reason: str) -> ValidationIssue:
    return ValidationIssue(
        code='ConnectionMismatch',
        severity='warning',
        stage_id=stage_id,
        branch_id=branch_id,
        target_stage_id=target,
        message=f"Connection {stage_id} -> {target} disagrees with resolved graph: {reason}",
    )


_CHECKS: List[Callable[[List[Stage], ResolvedGraph], Iterator[ValidationIssue]]] = [
    check_empty,
    check_duplicate_ids,
    check_dangling_references,
    check_unreachable,
    check_premature_termination,
    check_connection_mismatch,
]
