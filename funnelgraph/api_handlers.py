"""
Shared API handlers for Python endpoints.

Used by both:
- dev-server.py (FastAPI)
- api/python-api.py (serverless)

This ensures dev and prod use identical handler logic.

Handlers raise ValueError for malformed requests (mapped to 400) and let
StageNotFoundError (404) and other FunnelGraphError subclasses (400)
propagate to the server layer.
"""
from typing import Dict, Any, List

from .stage_store import StageStore


STAGE_OPERATIONS = ('create', 'rename', 'remove', 'reorder', 'move', 'connect', 'disconnect')


def _require(data: Dict[str, Any], *fields: str) -> None:
    for name in fields:
        if name not in data or data[name] is None:
            raise ValueError(f"Missing '{name}' field")


def _require_list(data: Dict[str, Any], name: str) -> List[Any]:
    _require(data, name)
    if not isinstance(data[name], list):
        raise ValueError(f"'{name}' must be a list")
    return data[name]


def handle_resolve_graph(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle resolve-graph endpoint.

    Args:
        data: Request body containing:
            - stages: Ordered stage snapshot (required)

    Returns:
        Resolved graph in dict form
    """
    from .runner import resolve

    stages = _require_list(data, 'stages')
    graph = resolve(stages)

    return {
        "graph": graph.to_dict(),
        "success": True
    }


def handle_validate_graph(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle validate-graph endpoint.

    Args:
        data: Request body containing:
            - stages: Ordered stage snapshot (required)

    Returns:
        Validation report (errors, warnings, is_valid)
    """
    from .runner import validate

    stages = _require_list(data, 'stages')
    report = validate(stages)

    return {
        "report": report.to_dict(),
        "success": True
    }


def handle_funnel_report(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle funnel-report endpoint.

    Args:
        data: Request body containing:
            - stages: Stage snapshot the sessions ran against (required)
            - sessions: Session traces (required, may be empty)

    Returns:
        Funnel report (visits, edge counts, drop-off)
    """
    from .runner import aggregate, resolve

    stages = _require_list(data, 'stages')
    sessions = _require_list(data, 'sessions')

    report = aggregate(resolve(stages), sessions)

    return {
        "report": report.to_dict(),
        "success": True
    }


def handle_runner_analyze(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle runner/analyze endpoint.

    Args:
        data: Request body containing:
            - stages: Ordered stage snapshot (required)
            - sessions: Session traces (optional)
            - analysis_type: Override analysis type (optional)

    Returns:
        Analysis results
    """
    from .runner import analyze
    from .runner.types import AnalysisRequest

    stages = _require_list(data, 'stages')

    request_obj = AnalysisRequest(
        stages=stages,
        sessions=data.get('sessions') or [],
        analysis_type=data.get('analysis_type'),
    )

    # Run analysis
    response = analyze(request_obj)

    # Return JSON-serializable response
    return response.model_dump()


def handle_runner_available_analyses(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle runner/available-analyses endpoint.

    Args:
        data: Request body containing:
            - sessions: Session traces, or
            - has_sessions: bool (optional, default False)

    Returns:
        List of available analyses
    """
    from .runner import get_available_analyses

    has_sessions = bool(data.get('sessions')) or bool(data.get('has_sessions', False))

    return {"analyses": get_available_analyses(has_sessions=has_sessions)}


def handle_stage_operation(operation: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle stages/<operation> endpoints.

    Applies one store mutation to the posted snapshot and returns the
    updated snapshot. The server keeps no state between requests.

    Args:
        operation: One of STAGE_OPERATIONS
        data: Request body containing:
            - stages: Current stage snapshot (required)
            - plus the operation's arguments:
                create:     name
                rename:     stageId, name
                remove:     stageId
                reorder:    order (list of stage ids)
                move:       stageId, x, y
                connect:    fromStageId, toStageId, sourceBranchId (optional)
                disconnect: fromStageId, toStageId

    Returns:
        {"stages": [...], "success": True} plus operation-specific fields
    """
    if operation not in STAGE_OPERATIONS:
        raise ValueError(f"Unknown stage operation: {operation}")

    store = StageStore.from_snapshot(_require_list(data, 'stages'))
    extra: Dict[str, Any] = {}

    if operation == 'create':
        _require(data, 'name')
        stage = store.create(data['name'])
        extra["stage"] = stage.model_dump(by_alias=True, exclude_none=True)
    elif operation == 'rename':
        _require(data, 'stageId', 'name')
        store.rename(data['stageId'], data['name'])
    elif operation == 'remove':
        _require(data, 'stageId')
        store.remove(data['stageId'])
    elif operation == 'reorder':
        store.reorder(_require_list(data, 'order'))
    elif operation == 'move':
        _require(data, 'stageId', 'x', 'y')
        store.move(data['stageId'], float(data['x']), float(data['y']))
    elif operation == 'connect':
        _require(data, 'fromStageId', 'toStageId')
        conn = store.connect(data['fromStageId'], data['toStageId'], data.get('sourceBranchId'))
        extra["connection"] = conn.model_dump(by_alias=True, exclude_none=True)
    elif operation == 'disconnect':
        _require(data, 'fromStageId', 'toStageId')
        extra["removed"] = store.disconnect(data['fromStageId'], data['toStageId'])

    return {
        "stages": store.to_snapshot(),
        **extra,
        "success": True
    }
