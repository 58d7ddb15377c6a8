"""
Graph Resolver

Builds the resolved stage graph: for every (stage, branch point) pair, the
concrete next stage id, or None when the funnel ends there.

The graph is derived data. It is rebuilt from the stage list on every call;
reordering or deleting a stage changes "next" resolution for stages that
were never edited themselves, so a cached graph would go stale.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

import networkx as nx

from ..stage_types import BranchAction, BranchPoint, Stage, coerce_stages
from .branch_extractor import auto_branch_point, extract_branch_points

logger = logging.getLogger(__name__)

EdgeKey = Tuple[str, str]  # (stage_id, branch_id)


@dataclass
class ResolvedGraph:
    """
    Resolved (stage, branch) -> next stage mapping.

    Attributes:
        order: Stage ids in traversal order (index 0 is the entry stage)
        edges: (stage_id, branch_id) -> target stage id, None = terminal
        reverse: target stage id -> set of (stage_id, branch_id) sources.
            Every known stage has an entry (possibly empty); dangling
            targets appear as extra keys.
        branch_points: stage id -> branch points, including the implicit
            auto-advance branch for content-only stages
    """
    order: Tuple[str, ...] = ()
    edges: Dict[EdgeKey, Optional[str]] = field(default_factory=dict)
    reverse: Dict[str, Set[EdgeKey]] = field(default_factory=dict)
    branch_points: Dict[str, Tuple[BranchPoint, ...]] = field(default_factory=dict)

    @property
    def entry_stage_id(self) -> Optional[str]:
        return self.order[0] if self.order else None

    def is_known(self, stage_id: Optional[str]) -> bool:
        return stage_id in self.branch_points

    def branches_of(self, stage_id: str) -> List[Tuple[str, Optional[str]]]:
        """(branch_id, target) pairs for a stage, in branch order."""
        return [
            (bp.branch_id, self.edges[(stage_id, bp.branch_id)])
            for bp in self.branch_points.get(stage_id, ())
        ]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form for the flow canvas."""
        return {
            'order': list(self.order),
            'entry_stage_id': self.entry_stage_id,
            'edges': [
                {
                    'stage_id': bp.stage_id,
                    'branch_id': bp.branch_id,
                    'component_id': bp.component_id,
                    'option_id': bp.option_id,
                    'label': bp.label,
                    'action': bp.action.kind,
                    'target_stage_id': self.edges[(bp.stage_id, bp.branch_id)],
                    'implicit': bp.action.kind == 'next',
                }
                for stage_id in self.order
                for bp in self.branch_points[stage_id]
            ],
            'reverse': {
                target: sorted([list(src) for src in sources])
                for target, sources in self.reverse.items()
            },
        }


def resolve(
    stages: Iterable[Union[Stage, Dict[str, Any]]],
    kinds: Optional[Dict[str, str]] = None,
) -> ResolvedGraph:
    """
    Resolve every branch point of every stage to its next stage.

    Args:
        stages: Ordered stages (models or raw snapshot dicts)
        kinds: Optional component kind mapping passed to the extractor

    Returns:
        ResolvedGraph. Duplicate stage ids keep their first occurrence; the
        validator reports the duplicates.
    """
    stages = coerce_stages(stages)

    # Build stage position lookup (id -> index)
    unique: List[Stage] = []
    position: Dict[str, int] = {}
    for stage in stages:
        if stage.id in position:
            logger.warning("Duplicate stage id %s ignored during resolution", stage.id)
            continue
        position[stage.id] = len(unique)
        unique.append(stage)

    order = tuple(s.id for s in unique)
    edges: Dict[EdgeKey, Optional[str]] = {}
    reverse: Dict[str, Set[EdgeKey]] = {stage_id: set() for stage_id in order}
    branch_points: Dict[str, Tuple[BranchPoint, ...]] = {}

    for stage in unique:
        extracted = extract_branch_points(stage, kinds) or [auto_branch_point(stage.id)]

        kept = []
        for bp in extracted:
            key = (stage.id, bp.branch_id)
            if key in edges:
                logger.warning("Duplicate branch id %s on stage %s ignored", bp.branch_id, stage.id)
                continue
            target = _resolve_action(bp.action, position[stage.id], order)
            edges[key] = target
            if target is not None:
                reverse.setdefault(target, set()).add(key)
            kept.append(bp)
        branch_points[stage.id] = tuple(kept)

    logger.debug("Resolved %d stages into %d branch edges", len(order), len(edges))
    return ResolvedGraph(order=order, edges=edges, reverse=reverse, branch_points=branch_points)


def _resolve_action(action: BranchAction, index: int, order: Tuple[str, ...]) -> Optional[str]:
    """
    Concrete target for an action taken on the stage at `index`.

    goto is unconditional (even to unknown ids); submit and link end the
    funnel; next advances positionally and ends the funnel on the last stage.
    """
    if action.kind == 'goto':
        return action.target_stage_id
    if action.is_terminal:
        return None
    if index + 1 < len(order):
        return order[index + 1]
    return None


# ============================================================================
# Queries over a resolved graph
# ============================================================================

def successors(graph: ResolvedGraph, stage_id: str) -> List[str]:
    """Distinct non-terminal targets of a stage, in branch order."""
    seen = []
    for _, target in graph.branches_of(stage_id):
        if target is not None and target not in seen:
            seen.append(target)
    return seen


def branches_to(graph: ResolvedGraph, from_stage_id: str, to_stage_id: Optional[str]) -> List[str]:
    """Branch ids of `from_stage_id` that resolve to `to_stage_id` (None = terminal)."""
    return [
        branch_id
        for branch_id, target in graph.branches_of(from_stage_id)
        if target == to_stage_id
    ]


def terminal_branches(graph: ResolvedGraph, stage_id: str) -> List[str]:
    """Branch ids of a stage that end the funnel."""
    return branches_to(graph, stage_id, None)


def to_networkx(graph: ResolvedGraph) -> nx.DiGraph:
    """
    Build NetworkX DiGraph from a resolved graph.

    Node attributes:
        - index: position in traversal order
        - is_entry: True for the entry stage
        - terminal_branches: branch ids that end the funnel here

    Edge attributes:
        - branches: branch ids producing the edge (several options may
          lead to the same stage)

    Targets that are not known stages are skipped.
    """
    G = nx.DiGraph()

    for index, stage_id in enumerate(graph.order):
        G.add_node(
            stage_id,
            index=index,
            is_entry=index == 0,
            terminal_branches=terminal_branches(graph, stage_id),
        )

    for (stage_id, branch_id), target in graph.edges.items():
        if target is None or target not in G.nodes:
            continue
        if G.has_edge(stage_id, target):
            G.edges[stage_id, target]['branches'].append(branch_id)
        else:
            G.add_edge(stage_id, target, branches=[branch_id])

    return G


def reachable_from_entry(graph: ResolvedGraph) -> Set[str]:
    """Known stages reachable from the entry stage (entry included)."""
    entry = graph.entry_stage_id
    if entry is None:
        return set()
    G = to_networkx(graph)
    return nx.descendants(G, entry) | {entry}


def get_graph_stats(graph: ResolvedGraph) -> dict:
    """
    Get basic statistics about the resolved graph.

    Returns:
        Dict with stage_count, branch_count, edge_count, entry_stage,
        terminal_stages, is_dag
    """
    G = to_networkx(graph)
    return {
        'stage_count': len(graph.order),
        'branch_count': len(graph.edges),
        'edge_count': G.number_of_edges(),
        'entry_stage': graph.entry_stage_id,
        'terminal_stages': [n for n, d in G.nodes(data=True) if d.get('terminal_branches')],
        'is_dag': nx.is_directed_acyclic_graph(G),
    }
