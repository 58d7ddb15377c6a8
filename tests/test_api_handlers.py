"""
Tests for the shared API handlers.

Handlers are plain functions over request dicts; the servers only map
their exceptions to status codes.
"""

import pytest

from funnelgraph.api_handlers import (
    handle_funnel_report,
    handle_resolve_graph,
    handle_runner_analyze,
    handle_runner_available_analyses,
    handle_stage_operation,
    handle_validate_graph,
)
from funnelgraph.stage_store import InvalidReorderError, StageNotFoundError
from fixtures.stages import linear_stages, scenario_a_stages, scenario_b_stages


class TestGraphHandlers:
    """resolve / validate / funnel report."""

    def test_resolve_graph(self):
        response = handle_resolve_graph({'stages': scenario_a_stages()})

        assert response['success'] is True
        assert response['graph']['entry_stage_id'] == 'intro'

    def test_missing_stages(self):
        with pytest.raises(ValueError, match="Missing 'stages'"):
            handle_resolve_graph({})

    def test_stages_must_be_list(self):
        with pytest.raises(ValueError):
            handle_validate_graph({'stages': {'id': 'a'}})

    def test_validate_graph(self):
        response = handle_validate_graph({'stages': scenario_b_stages()})

        assert response['report']['is_valid'] is False

    def test_empty_funnel_is_allowed(self):
        response = handle_validate_graph({'stages': []})

        assert response['report']['warnings'][0]['code'] == 'EmptyFunnel'

    def test_funnel_report(self):
        response = handle_funnel_report({
            'stages': linear_stages('a', 'b'),
            'sessions': [{'sessionId': 's1', 'visitedStageIds': ['a', 'b'], 'completed': True}],
        })

        assert response['report']['per_stage_visits'] == {'a': 1, 'b': 1}
        assert response['report']['completion_rate'] == 1.0

    def test_funnel_report_requires_sessions(self):
        with pytest.raises(ValueError, match="Missing 'sessions'"):
            handle_funnel_report({'stages': linear_stages('a')})

    def test_runner_analyze(self):
        response = handle_runner_analyze({'stages': scenario_a_stages()})

        assert response['success'] is True
        assert response['result']['analysis_type'] == 'graph_overview'

    def test_available_analyses(self):
        response = handle_runner_available_analyses({'has_sessions': True})

        assert response['analyses'][0]['id'] == 'stage_funnel'


class TestStageOperations:
    """stages/<op> handlers."""

    def test_create(self):
        response = handle_stage_operation('create', {'stages': linear_stages('a'), 'name': 'New'})

        assert len(response['stages']) == 2
        assert response['stage']['name'] == 'New'
        assert response['stages'][1]['id'] == response['stage']['id']

    def test_rename(self):
        response = handle_stage_operation('rename', {'stages': linear_stages('a'), 'stageId': 'a', 'name': 'Start'})

        assert response['stages'][0]['name'] == 'Start'

    def test_remove_missing(self):
        with pytest.raises(StageNotFoundError):
            handle_stage_operation('remove', {'stages': linear_stages('a'), 'stageId': 'b'})

    def test_reorder(self):
        response = handle_stage_operation('reorder', {'stages': linear_stages('a', 'b'), 'order': ['b', 'a']})

        assert [s['id'] for s in response['stages']] == ['b', 'a']

    def test_reorder_invalid(self):
        with pytest.raises(InvalidReorderError):
            handle_stage_operation('reorder', {'stages': linear_stages('a', 'b'), 'order': ['a']})

    def test_move(self):
        response = handle_stage_operation('move', {'stages': linear_stages('a'), 'stageId': 'a', 'x': 5, 'y': 6})

        assert response['stages'][0]['position'] == {'x': 5.0, 'y': 6.0}

    def test_connect_and_disconnect(self):
        connected = handle_stage_operation('connect', {
            'stages': linear_stages('a', 'b'),
            'fromStageId': 'a',
            'toStageId': 'b',
        })
        assert connected['connection'] == {'fromStageId': 'a', 'toStageId': 'b'}

        response = handle_stage_operation('disconnect', {
            'stages': connected['stages'],
            'fromStageId': 'a',
            'toStageId': 'b',
        })
        assert response['removed'] == 1
        assert response['stages'][0]['connections'] == []

    def test_unknown_operation(self):
        with pytest.raises(ValueError):
            handle_stage_operation('explode', {'stages': []})

    def test_missing_argument(self):
        with pytest.raises(ValueError, match="Missing 'stageId'"):
            handle_stage_operation('remove', {'stages': linear_stages('a')})
