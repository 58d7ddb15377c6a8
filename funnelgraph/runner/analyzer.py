"""
Main Analyzer

Orchestrates analysis flow:
1. Coerce the stage snapshot
2. Resolve the stage graph
3. Validate it
4. Pick the analysis type (graph overview without sessions, stage funnel with)
5. Aggregate sessions when present
6. Return results in the declarative schema
"""

import logging
from typing import Any, Optional

from ..stage_types import coerce_stages
from .funnel_aggregator import FunnelReport, aggregate
from .graph_resolver import ResolvedGraph, get_graph_stats, resolve, successors
from .graph_validator import validate
from .types import AnalysisError, AnalysisRequest, AnalysisResponse, AnalysisResult

logger = logging.getLogger(__name__)


ANALYSIS_TYPES = {
    'graph_overview': {
        'name': 'Graph Overview',
        'description': 'Stage graph structure: branches, terminal stages and validation findings',
    },
    'stage_funnel': {
        'name': 'Stage Funnel',
        'description': 'Per-stage visits, sessions and drop-off from recorded session traces',
    },
}


def analyze(request: AnalysisRequest) -> AnalysisResponse:
    """
    Main analysis entry point.

    Args:
        request: AnalysisRequest with stage snapshot and optional sessions

    Returns:
        AnalysisResponse with single result
    """
    try:
        result = analyze_funnel(
            stages=request.stages,
            sessions=request.sessions,
            analysis_type_override=request.analysis_type,
        )
        return AnalysisResponse(success=True, result=result)

    except Exception as e:
        logger.warning("Analysis failed: %s: %s", type(e).__name__, e)
        return AnalysisResponse(
            success=False,
            error=AnalysisError(
                error_type=type(e).__name__,
                message=str(e),
            ).model_dump(),
        )


def analyze_funnel(
    stages: list[Any],
    sessions: Optional[list[Any]] = None,
    analysis_type_override: Optional[str] = None,
) -> AnalysisResult:
    """
    Run analysis.

    Args:
        stages: Ordered stage snapshot (models or dicts)
        sessions: Session traces; empty selects the graph overview
        analysis_type_override: Optional override for analysis type

    Returns:
        AnalysisResult with analysis data
    """
    stages = coerce_stages(stages)
    graph = resolve(stages)
    report = validate(stages, graph)

    analysis_type = match_analysis_type(bool(sessions))
    if analysis_type_override:
        if analysis_type_override not in ANALYSIS_TYPES:
            raise ValueError(f"Unknown analysis type: {analysis_type_override}")
        if analysis_type_override == 'stage_funnel' and not sessions:
            raise ValueError("stage_funnel analysis requires sessions")
        analysis_type = analysis_type_override

    names = {s.id: s.name or s.id for s in stages}

    if analysis_type == 'stage_funnel':
        funnel = aggregate(graph, sessions or [])
        runner_result = run_stage_funnel(graph, funnel, names)
    else:
        runner_result = run_graph_overview(graph, names)

    runner_result['metadata']['validation'] = report.to_dict()
    definition = ANALYSIS_TYPES[analysis_type]
    return AnalysisResult(
        analysis_type=analysis_type,
        analysis_name=definition['name'],
        analysis_description=definition['description'],
        metadata=runner_result['metadata'],
        semantics=runner_result['semantics'],
        dimension_values=runner_result['dimension_values'],
        data=runner_result['data'],
    )


def match_analysis_type(has_sessions: bool) -> str:
    return 'stage_funnel' if has_sessions else 'graph_overview'


# ============================================================================
# Runners
# ============================================================================

def _stage_dimension_values(graph: ResolvedGraph, names: dict[str, str]) -> dict[str, dict]:
    return {
        stage_id: {'name': names.get(stage_id, stage_id), 'order': i}
        for i, stage_id in enumerate(graph.order)
    }


def run_graph_overview(graph: ResolvedGraph, names: dict[str, str]) -> dict[str, Any]:
    """
    Structural overview: one row per stage with its branch counts.
    """
    data_rows = []
    for stage_id in graph.order:
        branches = graph.branches_of(stage_id)
        data_rows.append({
            'stage_id': stage_id,
            'branch_count': len(branches),
            'terminal_branch_count': sum(1 for _, target in branches if target is None),
            'successor_count': len(successors(graph, stage_id)),
            'inbound_count': len(graph.reverse.get(stage_id, ())),
        })

    return {
        'metadata': {
            'graph': get_graph_stats(graph),
        },
        'semantics': {
            'dimensions': [
                {'id': 'stage_id', 'name': 'Stage', 'type': 'stage', 'role': 'primary'},
            ],
            'metrics': [
                {'id': 'branch_count', 'name': 'Branches', 'type': 'count', 'format': 'number', 'role': 'primary'},
                {'id': 'terminal_branch_count', 'name': 'Terminal branches', 'type': 'count', 'format': 'number'},
                {'id': 'successor_count', 'name': 'Next stages', 'type': 'count', 'format': 'number'},
                {'id': 'inbound_count', 'name': 'Inbound branches', 'type': 'count', 'format': 'number'},
            ],
            'chart': {
                'recommended': 'table',
                'alternatives': ['bar'],
            },
        },
        'dimension_values': {
            'stage_id': _stage_dimension_values(graph, names),
        },
        'data': data_rows,
    }


def run_stage_funnel(graph: ResolvedGraph, funnel: FunnelReport, names: dict[str, str]) -> dict[str, Any]:
    """
    Stage funnel: one row per stage in traversal order.
    """
    data_rows = [
        {
            'stage_id': stage_id,
            'visits': funnel.per_stage_visits.get(stage_id, 0),
            'sessions': funnel.per_stage_sessions.get(stage_id, 0),
            'drop_off': funnel.drop_off_by_stage.get(stage_id),
            'conversion_from_previous': funnel.conversion_from_previous.get(stage_id),
        }
        for stage_id in graph.order
    ]

    return {
        'metadata': {
            'graph': get_graph_stats(graph),
            'total_sessions': funnel.total_sessions,
            'completed_sessions': funnel.completed_sessions,
            'completion_rate': funnel.completion_rate,
            'unexplained_transitions': funnel.unexplained_transitions,
            'edges': funnel.to_dict()['per_edge_counts'],
        },
        'semantics': {
            'dimensions': [
                {'id': 'stage_id', 'name': 'Stage', 'type': 'stage', 'role': 'primary'},
            ],
            'metrics': [
                {'id': 'sessions', 'name': 'Sessions', 'type': 'count', 'format': 'number', 'role': 'primary'},
                {'id': 'visits', 'name': 'Visits', 'type': 'count', 'format': 'number'},
                {'id': 'drop_off', 'name': 'Drop-off', 'type': 'ratio', 'format': 'percent', 'role': 'secondary'},
                {'id': 'conversion_from_previous', 'name': 'Step conversion', 'type': 'ratio', 'format': 'percent'},
            ],
            'chart': {
                'recommended': 'funnel',
                'alternatives': ['bar', 'table'],
                'hints': {'order_by': 'stage_id'},
            },
        },
        'dimension_values': {
            'stage_id': _stage_dimension_values(graph, names),
        },
        'data': data_rows,
    }


def get_available_analyses(has_sessions: bool = False) -> list[dict]:
    """
    Get all analysis types available for the given input.

    Returns:
        List of available analysis type dicts
    """
    primary = match_analysis_type(has_sessions)
    available = ['graph_overview', 'stage_funnel'] if has_sessions else ['graph_overview']
    available.sort(key=lambda a: a != primary)
    return [
        {
            'id': analysis_id,
            'name': ANALYSIS_TYPES[analysis_id]['name'],
            'description': ANALYSIS_TYPES[analysis_id]['description'],
            'is_primary': analysis_id == primary,
        }
        for analysis_id in available
    ]
