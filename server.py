"""Itinerary planner web server - serves the planner page and its JSON API."""

import json
import logging
from http.server import HTTPServer, SimpleHTTPRequestHandler
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from planner import config
from planner.edit import handler as edit_handler
from planner.itinerary.templates import STATIC_DIR
from planner.itinerary.web_view import PlannerWebView

logger = logging.getLogger(__name__)


class PlannerHandler(SimpleHTTPRequestHandler):
    """HTTP request handler for the planner page and /api/trip endpoints."""

    # Set by run_server(); shared by every request
    session: edit_handler.PlannerSession = None

    def __init__(self, *args, **kwargs):
        # Serve static assets (css/js) from the package
        super().__init__(*args, directory=str(STATIC_DIR), **kwargs)

    def log_message(self, format, *args):
        logger.debug("[HTTP] %s - %s", self.address_string(), format % args)

    def do_GET(self):
        """Handle GET requests."""
        parsed = urlparse(self.path)
        path = parsed.path

        if path == "/" or path == "/index.html":
            self.serve_planner_page()
            return

        if path == "/api/trip":
            self.send_handler_result(edit_handler.get_trip_handler(self.session, {}))
            return

        if path == "/api/catalog":
            query = parse_qs(parsed.query)
            data = {
                "day": query.get("day", [""])[0],
                "q": query.get("q", [""])[0],
            }
            self.send_handler_result(edit_handler.catalog_handler(self.session, data))
            return

        # Static files under /static/
        if path.startswith("/static/"):
            self.path = path[len("/static"):]
            super().do_GET()
            return

        self.send_error(404, "Not Found")

    def do_POST(self):
        """Handle POST /api/trip/<action> requests."""
        path = urlparse(self.path).path
        if not path.startswith("/api/trip/"):
            self.send_error(404, "Not Found")
            return

        action = path[len("/api/trip/"):].rstrip("/")
        action_handler = edit_handler.ACTIONS.get(action)
        if action_handler is None:
            self.send_json_error(f"Unknown action: {action}", status=404)
            return

        try:
            data = self.read_json_body()
        except ValueError:
            self.send_json_error("Invalid JSON body")
            return

        self.send_handler_result(action_handler(self.session, data))

    def serve_planner_page(self):
        """Render the planner page for the current itinerary."""
        session = self.session
        status = "Showing cached copy" if session.error and session.fetched_at else None
        html = PlannerWebView(session.synchronizer).render_page(
            fetched_at=session.fetched_at,
            status=status,
            error=session.error if not status else None,
        )
        body = html.encode()
        self.send_response(200)
        self.send_header('Content-Type', 'text/html; charset=utf-8')
        self.send_header('Content-Length', len(body))
        self.end_headers()
        self.wfile.write(body)

    def read_json_body(self) -> dict:
        content_length = int(self.headers.get('Content-Length', 0))
        if not content_length:
            return {}
        data = json.loads(self.rfile.read(content_length).decode('utf-8'))
        if not isinstance(data, dict):
            raise ValueError("Request body must be a JSON object")
        return data

    def send_handler_result(self, result):
        payload, status = result
        self.send_json_response(payload, status)

    def send_json_response(self, data: dict, status: int = 200):
        """Send JSON response."""
        body = json.dumps(data).encode()
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', len(body))
        self.end_headers()
        self.wfile.write(body)

    def send_json_error(self, message: str, status: int = 400):
        """Send JSON error response."""
        self.send_json_response({"success": False, "error": message}, status)


def run_server(port: int = 8000, feed_url: str = None, data_dir: Path = None):
    """Run the planner web server."""
    PlannerHandler.session = edit_handler.build_session(feed_url=feed_url, data_dir=data_dir)

    # Bind to 0.0.0.0 for cloud deployment
    server = HTTPServer(('0.0.0.0', port), PlannerHandler)

    source = feed_url or config.get_feed_url() or "built-in data"
    print(f"""
╔═══════════════════════════════════════════════════════════╗
║                                                           ║
║   TRIP PLANNER                                            ║
║                                                           ║
║   Server running at: http://localhost:{port:<5}              ║
║                                                           ║
║   Press Ctrl+C to stop                                    ║
║                                                           ║
╚═══════════════════════════════════════════════════════════╝
""")
    logger.info("[SERVER] Serving trip from %s", source)

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nServer stopped.")
        server.shutdown()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Run the itinerary planner web server")
    parser.add_argument("-p", "--port", type=int, default=None, help="Port to run on (default: 8000)")
    parser.add_argument("--feed", default=None, help="Published spreadsheet feed URL (default: FEED_URL)")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory with trip.json and catalog.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # --port arg, then PORT env var, then default 8000
    port = args.port or config.get_port()
    run_server(port, feed_url=args.feed, data_dir=args.data_dir)
