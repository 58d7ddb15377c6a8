"""
Tests for funnel aggregation.

Visit counts, split edge attribution, unexplained transitions, drop-off and
partition merging.
"""

import pytest

from funnelgraph.runner.branch_extractor import AUTO_BRANCH_ID
from funnelgraph.runner.funnel_aggregator import aggregate, aggregate_partitions
from funnelgraph.runner.graph_resolver import resolve
from funnelgraph.runner.types import SessionTrace
from fixtures.stages import (
    linear_stages,
    looping_stages,
    scenario_a_stages,
)


def trace(session_id, *stage_ids, completed=False):
    return {'sessionId': session_id, 'visitedStageIds': list(stage_ids), 'completed': completed}


class TestScenarioD:
    """Two sessions, one completed and one abandoned."""

    def setup_method(self):
        self.graph = resolve(linear_stages('A', 'B', 'C'))
        self.report = aggregate(self.graph, [
            trace('s1', 'A', 'B', 'C', completed=True),
            trace('s2', 'A', 'B'),
        ])

    def test_visits(self):
        assert self.report.per_stage_visits == {'A': 2, 'B': 2, 'C': 1}

    def test_drop_off(self):
        assert self.report.drop_off_by_stage['A'] == 0.0
        assert self.report.drop_off_by_stage['B'] == 0.5
        assert self.report.drop_off_by_stage['C'] == 0.0

    def test_edge_counts(self):
        counts = self.report.per_edge_counts
        assert counts[('A', AUTO_BRANCH_ID, 'B')] == 2.0
        assert counts[('B', AUTO_BRANCH_ID, 'C')] == 1.0
        assert counts[('C', AUTO_BRANCH_ID, None)] == 1.0

    def test_session_totals(self):
        assert self.report.total_sessions == 2
        assert self.report.completed_sessions == 1
        assert self.report.completion_rate == 0.5
        assert self.report.conversion_from_previous == {'A': None, 'B': 1.0, 'C': 0.5}
        assert self.report.unexplained_transitions == 0


class TestAttribution:
    """Edge attribution when trace steps are ambiguous."""

    def test_even_split_between_matching_branches(self):
        """Both Choice options land on Result, so each gets half."""
        graph = resolve(scenario_a_stages())
        report = aggregate(graph, [trace('s1', 'intro', 'choice', 'result', completed=True)])

        assert report.per_edge_counts[('choice', 'q1:opt1', 'result')] == pytest.approx(0.5)
        assert report.per_edge_counts[('choice', 'q1:opt2', 'result')] == pytest.approx(0.5)
        assert report.per_edge_counts[('result', 'finish', None)] == 1.0

    def test_edges_pre_initialised(self):
        graph = resolve(scenario_a_stages())
        report = aggregate(graph, [])

        assert set(report.per_edge_counts) == {
            ('intro', AUTO_BRANCH_ID, 'choice'),
            ('choice', 'q1:opt1', 'result'),
            ('choice', 'q1:opt2', 'result'),
            ('result', 'finish', None),
        }
        assert all(count == 0 for count in report.per_edge_counts.values())

    def test_revisits_count_every_occurrence(self):
        graph = resolve(looping_stages())
        report = aggregate(graph, [trace('s1', 'entry', 'a', 'b', 'a', 'b', 'done', completed=True)])

        assert report.per_stage_visits['a'] == 2
        assert report.per_stage_visits['b'] == 2
        assert report.per_stage_sessions['a'] == 1
        assert report.per_edge_counts[('b', 'q:again', 'a')] == 1.0
        assert report.per_edge_counts[('b', 'q:finish', 'done')] == 1.0
        assert report.drop_off_by_stage['b'] == 0.0


class TestUnexplained:
    """Transitions the graph cannot explain."""

    def test_transition_without_branch(self):
        """A jump no branch point produces is counted separately."""
        graph = resolve(linear_stages('A', 'B', 'C'))
        report = aggregate(graph, [trace('s1', 'A', 'C')])

        assert report.unexplained_transitions == 1
        assert report.per_edge_counts[('A', AUTO_BRANCH_ID, 'B')] == 0
        # A's onward step is excluded, so A was never "entered" for drop-off
        assert report.drop_off_by_stage['A'] is None
        assert report.drop_off_by_stage['C'] == 1.0

    def test_unknown_stage_not_counted_as_visit(self):
        graph = resolve(linear_stages('A', 'B'))
        report = aggregate(graph, [trace('s1', 'A', 'deleted', 'B')])

        assert 'deleted' not in report.per_stage_visits
        assert report.per_stage_visits == {'A': 1, 'B': 1}
        assert report.unexplained_transitions == 2

    def test_completed_on_stage_without_terminal_branch(self):
        graph = resolve(linear_stages('A', 'B'))
        report = aggregate(graph, [trace('s1', 'A', completed=True)])

        assert report.unexplained_transitions == 1
        assert report.drop_off_by_stage['A'] is None


class TestEmpty:
    """No sessions at all."""

    def test_zero_counts_and_undefined_drop_off(self):
        graph = resolve(scenario_a_stages())
        report = aggregate(graph, [])

        assert report.per_stage_visits == {'intro': 0, 'choice': 0, 'result': 0}
        assert report.drop_off_by_stage == {'intro': None, 'choice': None, 'result': None}
        assert report.unexplained_transitions == 0
        assert report.completion_rate is None

    def test_empty_graph(self):
        report = aggregate(resolve([]), [])

        assert report.per_stage_visits == {}
        assert report.per_edge_counts == {}


class TestPartitions:
    """Map-reduce over session partitions."""

    def test_partitions_match_single_pass(self):
        graph = resolve(scenario_a_stages())
        traces = [
            trace('s1', 'intro', 'choice', 'result', completed=True),
            trace('s2', 'intro', 'choice'),
            trace('s3', 'intro'),
            trace('s4', 'intro', 'result'),
        ]

        whole = aggregate(graph, traces)
        merged = aggregate_partitions(graph, [traces[:1], traces[1:3], traces[3:]])

        assert merged.per_stage_visits == whole.per_stage_visits
        assert merged.per_edge_counts == whole.per_edge_counts
        assert merged.drop_off_by_stage == whole.drop_off_by_stage
        assert merged.unexplained_transitions == whole.unexplained_transitions == 1
        assert merged.completion_rate == whole.completion_rate == 0.25

    def test_accepts_models(self):
        graph = resolve(linear_stages('A', 'B'))
        report = aggregate(graph, [SessionTrace(session_id='s1', visited_stage_ids=['A', 'B'], completed=True)])

        assert report.per_stage_visits == {'A': 1, 'B': 1}

    def test_to_dict(self):
        graph = resolve(linear_stages('A', 'B'))
        data = aggregate(graph, [trace('s1', 'A', 'B')]).to_dict()

        assert data['per_stage_visits'] == {'A': 1, 'B': 1}
        assert data['drop_off_by_stage'] == {'A': 0.0, 'B': 1.0}
        assert {'stage_id': 'A', 'branch_id': AUTO_BRANCH_ID, 'target_stage_id': 'B', 'count': 1.0} in data['per_edge_counts']
