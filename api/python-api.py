"""
Unified serverless Python API handler - routes to different endpoints based on path.

This consolidates all Python endpoints into a single function to avoid
repeated dependency installation per function.

Routes:
- /api/resolve-graph -> resolve branch points to next stages
- /api/validate-graph -> validate stage snapshot
- /api/funnel-report -> aggregate session traces
- /api/runner/analyze -> run funnel analytics
- /api/runner/available-analyses -> get available analysis types
- /api/stages/<op> -> stage store operations
"""
from http.server import BaseHTTPRequestHandler
import json
import sys
import os

# Add the repository root (one level up from api/) to Python path
current_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.dirname(current_dir))

from funnelgraph.stage_store import FunnelGraphError, StageNotFoundError


# Endpoint query param (for rewrites to /api/python-api) -> route
ENDPOINT_ROUTES = {
    'resolve-graph': '/api/resolve-graph',
    'validate-graph': '/api/validate-graph',
    'funnel-report': '/api/funnel-report',
    'runner-analyze': '/api/runner/analyze',
    'runner-available-analyses': '/api/runner/available-analyses',
    'stages-create': '/api/stages/create',
    'stages-rename': '/api/stages/rename',
    'stages-remove': '/api/stages/remove',
    'stages-reorder': '/api/stages/reorder',
    'stages-move': '/api/stages/move',
    'stages-connect': '/api/stages/connect',
    'stages-disconnect': '/api/stages/disconnect',
}


class handler(BaseHTTPRequestHandler):
    def do_GET(self):
        """Health check."""
        path = self.path.split('?')[0].rstrip('/') or '/'
        if path in ('/', '/api', '/api/python-api'):
            self.send_success_response({
                "status": "ok",
                "service": "funnelgraph-compute",
                "env": "serverless"
            })
        else:
            self.send_error_response(404, f"Unknown endpoint: {path}")

    def do_POST(self):
        """Route POST requests based on path."""
        try:
            # Read request body
            content_length = int(self.headers.get('Content-Length', 0))
            body = self.rfile.read(content_length)
            try:
                data = json.loads(body.decode('utf-8') or '{}')
            except ValueError:
                self.send_error_response(400, "Request body must be JSON")
                return
            if not isinstance(data, dict):
                self.send_error_response(400, "Request body must be a JSON object")
                return

            path = self.path.split('?')[0]

            # Rewrites may hide the original path; prefer the header when set
            original_path = self.headers.get('x-original-path')
            if original_path:
                path = original_path.split('?')[0]

            # If we're at /api/python-api, check query params for endpoint
            if path == '/api/python-api':
                from urllib.parse import urlparse, parse_qs
                parsed = urlparse(self.path)
                query_params = parse_qs(parsed.query)
                endpoint = query_params.get('endpoint', [None])[0]
                if endpoint in ENDPOINT_ROUTES:
                    path = ENDPOINT_ROUTES[endpoint]
                else:
                    self.send_error_response(400, f"Missing endpoint. Supported: {', '.join(ENDPOINT_ROUTES)}")
                    return

            path = path.rstrip('/')

            if path == '/api/resolve-graph':
                from funnelgraph.api_handlers import handle_resolve_graph
                self.dispatch(handle_resolve_graph, data)
            elif path == '/api/validate-graph':
                from funnelgraph.api_handlers import handle_validate_graph
                self.dispatch(handle_validate_graph, data)
            elif path == '/api/funnel-report':
                from funnelgraph.api_handlers import handle_funnel_report
                self.dispatch(handle_funnel_report, data)
            elif path == '/api/runner/analyze':
                from funnelgraph.api_handlers import handle_runner_analyze
                self.dispatch(handle_runner_analyze, data)
            elif path == '/api/runner/available-analyses':
                from funnelgraph.api_handlers import handle_runner_available_analyses
                self.dispatch(handle_runner_available_analyses, data)
            elif path in (
                '/api/stages/create',
                '/api/stages/rename',
                '/api/stages/remove',
                '/api/stages/reorder',
                '/api/stages/move',
                '/api/stages/connect',
                '/api/stages/disconnect',
            ):
                from funnelgraph.api_handlers import handle_stage_operation
                self.dispatch(handle_stage_operation, path.rsplit('/', 1)[-1], data)
            else:
                self.send_error_response(404, f"Unknown endpoint: {path}")

        except Exception as e:
            self.send_error_response(500, str(e))

    def dispatch(self, handler_func, *args):
        """Run a shared handler and send its result or mapped error."""
        try:
            response = handler_func(*args)
            self.send_success_response(response)
        except StageNotFoundError as e:
            self.send_error_response(404, str(e))
        except (FunnelGraphError, ValueError) as e:
            self.send_error_response(400, str(e))
        except Exception as e:
            self.send_error_response(500, str(e))

    def send_success_response(self, data):
        """Send successful JSON response."""
        response_json = json.dumps(data)
        self.send_response(200)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Access-Control-Allow-Origin', '*')
        self.end_headers()
        self.wfile.write(response_json.encode('utf-8'))

    def send_error_response(self, status_code, message):
        """Send error JSON response."""
        error_response = {
            "error": message,
            "detail": message,
            "success": False
        }
        response_json = json.dumps(error_response)
        self.send_response(status_code)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Access-Control-Allow-Origin', '*')
        self.end_headers()
        self.wfile.write(response_json.encode('utf-8'))

    def do_OPTIONS(self):
        """Handle CORS preflight requests."""
        self.send_response(200)
        self.send_header('Access-Control-Allow-Origin', '*')
        self.send_header('Access-Control-Allow-Methods', 'GET, POST, OPTIONS')
        self.send_header('Access-Control-Allow-Headers', 'Content-Type')
        self.end_headers()
