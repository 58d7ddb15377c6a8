"""
Funnel Runner Package

Branch extraction, graph resolution, validation and funnel aggregation
over the stage list.
"""

from .types import (
    SessionTrace,
    ValidationIssue,
    ValidationReport,
    AnalysisRequest,
    AnalysisResult,
    AnalysisResponse,
    AnalysisError,
)

from .branch_extractor import extract_branch_points, make_branch_id, AUTO_BRANCH_ID
from .graph_resolver import (
    ResolvedGraph,
    resolve,
    successors,
    branches_to,
    terminal_branches,
    to_networkx,
    get_graph_stats,
)
from .graph_validator import validate
from .funnel_aggregator import FunnelReport, aggregate, aggregate_partitions
from .analyzer import analyze, analyze_funnel, get_available_analyses

__all__ = [
    # Types
    'SessionTrace',
    'ValidationIssue',
    'ValidationReport',
    'AnalysisRequest',
    'AnalysisResult',
    'AnalysisResponse',
    'AnalysisError',
    'ResolvedGraph',
    'FunnelReport',
    # Functions
    'extract_branch_points',
    'make_branch_id',
    'AUTO_BRANCH_ID',
    'resolve',
    'successors',
    'branches_to',
    'terminal_branches',
    'to_networkx',
    'get_graph_stats',
    'validate',
    'aggregate',
    'aggregate_partitions',
    'analyze',
    'analyze_funnel',
    'get_available_analyses',
]
