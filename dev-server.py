#!/usr/bin/env python3
"""
dev-server.py - Local development server for the funnel graph functions.

This simulates the serverless Python function (api/python-api.py) for local
development.
Run: python dev-server.py
"""
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import sys
import os

# Make the funnelgraph package importable without installing it
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from funnelgraph.api_handlers import (
    handle_resolve_graph,
    handle_validate_graph,
    handle_funnel_report,
    handle_runner_analyze,
    handle_runner_available_analyses,
    handle_stage_operation,
)
from funnelgraph.stage_store import FunnelGraphError, StageNotFoundError

# Read configuration from environment
FRONTEND_PORT = os.environ.get("VITE_PORT", "5173")
ALLOWED_ORIGINS = os.environ.get(
    "ALLOWED_ORIGINS",
    f"http://localhost:{FRONTEND_PORT},http://127.0.0.1:{FRONTEND_PORT}"
).split(",")

app = FastAPI(
    title="Funnel Graph Compute (Local Dev)",
    version="1.0.0",
    description="Local development server for funnel graph functions"
)

# CORS configuration from environment
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _call(handler_func, *args):
    """Run a shared handler, mapping its errors to HTTP status codes."""
    try:
        return handler_func(*args)
    except StageNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (FunnelGraphError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        print(f"[{handler_func.__name__}] Error: {e}")
        import traceback
        traceback.print_exc()
        raise HTTPException(status_code=500, detail=str(e))


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return body


# Health check
@app.get("/")
@app.get("/api")
def health():
    return {
        "status": "ok",
        "service": "funnelgraph-compute",
        "env": "local"
    }


@app.post("/api/resolve-graph")
async def resolve_graph_endpoint(request: Request):
    """
    Resolve every stage's branch points to their next stage.

    Request: { "stages": [...] }
    Response: { "graph": {order, entry_stage_id, edges, reverse}, "success": true }
    """
    body = await _json_body(request)
    return _call(handle_resolve_graph, body)


@app.post("/api/validate-graph")
async def validate_graph_endpoint(request: Request):
    """
    Validate a stage snapshot before publishing.

    Request: { "stages": [...] }
    Response: { "report": {is_valid, errors, warnings}, "success": true }
    """
    body = await _json_body(request)
    return _call(handle_validate_graph, body)


@app.post("/api/funnel-report")
async def funnel_report_endpoint(request: Request):
    """
    Aggregate session traces against the resolved graph.

    Request: { "stages": [...], "sessions": [{sessionId, visitedStageIds, completed}] }
    Response: { "report": {...}, "success": true }
    """
    body = await _json_body(request)
    return _call(handle_funnel_report, body)


# Analytics runner endpoint
@app.post("/api/runner/analyze")
async def runner_analyze_endpoint(request: Request):
    """
    Run analytics on a funnel.

    Request:
    {
        "stages": [...],
        "sessions": [...],          // optional; selects the stage funnel
        "analysis_type": "stage_funnel"  // optional override
    }

    Response: AnalysisResponse ({success, result, error})
    """
    body = await _json_body(request)
    return _call(handle_runner_analyze, body)


@app.post("/api/runner/available-analyses")
async def runner_available_analyses_endpoint(request: Request):
    """
    Get available analysis types.

    Request: { "has_sessions": true }
    Response: { "analyses": [...] }
    """
    body = await _json_body(request)
    return _call(handle_runner_available_analyses, body)


# Stage store operations (stateless: snapshot in, snapshot out)
@app.post("/api/stages/create")
@app.post("/api/stages/rename")
@app.post("/api/stages/remove")
@app.post("/api/stages/reorder")
@app.post("/api/stages/move")
@app.post("/api/stages/connect")
@app.post("/api/stages/disconnect")
async def stage_operation_endpoint(request: Request):
    """
    Apply one stage store operation to the posted snapshot.

    Routes to handle_stage_operation with the last path segment as the
    operation name.
    """
    body = await _json_body(request)
    operation = request.url.path.split('?')[0].rstrip('/').rsplit('/', 1)[-1]
    return _call(handle_stage_operation, operation, body)


if __name__ == "__main__":
    import uvicorn

    # Read port from environment variable, default to 9000
    port = int(os.environ.get("PYTHON_API_PORT", "9000"))

    print("")
    print("🚀 Funnel Graph Compute Server")
    print("━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━")
    print(f"📍 Server:     http://localhost:{port}")
    print(f"📖 API Docs:   http://localhost:{port}/docs")
    print("🔄 Auto-reload enabled")
    print("")
    print("Available endpoints:")
    print("  GET  /                                - Health check")
    print("  POST /api/resolve-graph               - Resolve branch points to next stages")
    print("  POST /api/validate-graph              - Validate stage snapshot")
    print("  POST /api/funnel-report               - Aggregate session traces")
    print("  POST /api/runner/analyze              - Run funnel analytics")
    print("  POST /api/runner/available-analyses   - Get available analyses")
    print("  POST /api/stages/<op>                 - create, rename, remove, reorder,")
    print("                                          move, connect, disconnect")
    print("━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━")
    print(f"💡 Port: {port} (set via PYTHON_API_PORT env var)")
    print("━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━")
    print("")

    uvicorn.run(
        "dev-server:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        log_level="info"
    )
