import argparse
import logging
import time
from typing import Optional

from flask import Blueprint, Flask, Response, jsonify, request
from flask_cors import CORS

from .errors import ConfigError
from .imaging import decode_data_url
from .models import LiveTabView
from .service import TabSnapService

api_logger = logging.getLogger("TabSnap.API")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5556

# Create API Blueprint for the TabSnap coordinator
tabsnap_api = Blueprint("tabsnap_api", __name__)

# Service instance (initialized in setup_api function)
service: Optional[TabSnapService] = None


def _require_service() -> TabSnapService:
    if service is None:
        raise RuntimeError("TabSnap service is not initialized")
    return service


def _int_or_none(value):
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def setup_api(app=None, config_path=None, **service_kwargs):
    """Set up the TabSnap API.

    Args:
        app (Flask, optional): Flask application to attach routes to.
            If None, returns a Blueprint.
        config_path (str, optional): Path to config file.
            If None, uses default location.
        **service_kwargs: Passed through to TabSnapService (backend,
            capture_source, tab_manager, resizer).

    Returns:
        Flask or Blueprint: The Flask app or Blueprint with API routes
    """
    global service

    api_logger.info("=== Initializing TabSnap API ===")

    service = TabSnapService(config_path, **service_kwargs)
    api_logger.info("TabSnap service initialized")

    if app:
        app.register_blueprint(tabsnap_api, url_prefix="/tabsnap")
        return app

    return tabsnap_api


def create_app(config_path=None, **service_kwargs) -> Flask:
    """Create a Flask app with CORS and the TabSnap routes mounted."""
    app = Flask(__name__)

    # The extension calls in from a chrome-extension:// origin
    CORS(app, resources={r"/*": {"origins": "*"}})

    setup_api(app, config_path=config_path, **service_kwargs)
    return app


@tabsnap_api.errorhandler(RuntimeError)
def _service_unavailable(error):
    return jsonify({"error": str(error)}), 503


@tabsnap_api.route("/health", methods=["GET"])
def health():
    """Basic health check for the extension and overlay host."""
    _require_service()
    return jsonify({"ok": True})


@tabsnap_api.route("/status", methods=["GET"])
def get_status():
    """Get the current status of the coordinator."""
    return jsonify(_require_service().get_status())


# ============================================================================
# SETTINGS ENDPOINTS
# ============================================================================


@tabsnap_api.route("/settings", methods=["GET"])
def get_settings():
    """Get coordinator settings."""
    svc = _require_service()
    return jsonify(svc.config_manager.get_settings())


@tabsnap_api.route("/settings", methods=["PUT", "PATCH"])
def update_settings():
    """Update coordinator settings.

    Request body (partial updates allowed):
        {"recency_cap": 10, "max_candidates": 8, ...}

    Response:
        {"success": true, "settings": {...}}
    """
    svc = _require_service()
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "No data provided"}), 400

    try:
        settings = svc.update_settings(data)
    except ConfigError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "settings": settings})


# ============================================================================
# BROWSER TAB ENDPOINTS
# ============================================================================


@tabsnap_api.route("/browser-tabs", methods=["POST"])
def receive_browser_tabs():
    """Receive the full live tab list from the extension.

    Request body:
        {
            "tabs": [{id, windowId, title, url, favIconUrl, active, status}],
            "focusedWindowId": 1,
            "shortcuts": {"open_switcher": "Alt+Q"},
            "timestamp": 1706000000000
        }

    Response:
        {"success": true, "tab_count": 5}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "No data provided"}), 400

    tabs = data.get("tabs", [])
    if not isinstance(tabs, list):
        return jsonify({"error": "tabs must be a list"}), 400

    shortcuts = data.get("shortcuts")
    svc = _require_service()
    count = svc.tab_manager.update_tabs(
        tabs,
        timestamp=data.get("timestamp", int(time.time() * 1000)),
        focused_window_id=_int_or_none(data.get("focusedWindowId")),
        shortcuts=shortcuts if isinstance(shortcuts, dict) else None,
    )
    return jsonify({"success": True, "tab_count": count})


@tabsnap_api.route("/tab-events", methods=["POST"])
def receive_tab_event():
    """Receive one tab lifecycle event from the extension.

    Request body, one of:
        {"event": "activated", "tab": {...}}
        {"event": "updated", "tab": {...}, "changeInfo": {"status": "complete"}}
        {"event": "removed", "tabId": 42}
        {"event": "installed"}
        {"event": "command", "command": "open_switcher"}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "event" not in data:
        return jsonify({"error": "event required"}), 400

    svc = _require_service()
    event = data["event"]

    if event in ("activated", "updated"):
        tab = LiveTabView.from_dict(data.get("tab"))
        if tab is None:
            return jsonify({"error": "tab with numeric id required"}), 400
        if event == "activated":
            scheduled = svc.on_tab_activated(tab)
        else:
            change_info = data.get("changeInfo")
            scheduled = svc.on_tab_updated(
                tab, change_info if isinstance(change_info, dict) else {}
            )
        return jsonify({"success": True, "capture_scheduled": scheduled})

    if event == "removed":
        tab_id = _int_or_none(data.get("tabId"))
        if tab_id is None:
            return jsonify({"error": "tabId required"}), 400
        svc.on_tab_removed(tab_id)
        return jsonify({"success": True})

    if event == "installed":
        svc.on_installed()
        return jsonify({"success": True})

    if event == "command":
        action = svc.on_command(str(data.get("command", "")))
        return jsonify({"success": True, "action": action})

    return jsonify({"error": f"Unknown event: {event}"}), 400


# ============================================================================
# MESSAGE ENDPOINTS
# ============================================================================


@tabsnap_api.route("/message", methods=["POST"])
def route_message():
    """Route a request message (request_tab_data, activate_tab).

    Response:
        The handler's response, or {} for fire-and-forget messages.
    """
    svc = _require_service()
    response = svc.handle_message(request.get_json(silent=True))
    return jsonify(response or {})


@tabsnap_api.route("/tab-data", methods=["GET"])
def get_tab_data():
    """Candidate list and switcher shortcut for a new overlay."""
    return jsonify(_require_service().get_tab_data())


@tabsnap_api.route("/activate-tab", methods=["POST"])
def activate_tab():
    """Queue a tab activation command for the extension.

    Request body:
        {"id": 123}

    Response:
        {"success": true, "queued": true}
    """
    data = request.get_json(silent=True) or {}
    tab_id = _int_or_none(data.get("id"))
    if tab_id is None:
        return jsonify({"error": "id required"}), 400

    if not _require_service().activate_tab(tab_id):
        return jsonify({"error": "Tab not found"}), 404
    return jsonify({"success": True, "queued": True})


# ============================================================================
# EXTENSION COMMAND QUEUE
# ============================================================================


@tabsnap_api.route("/extension-commands", methods=["GET"])
def get_extension_commands():
    """Get pending commands for the extension (polled every 250ms).

    Response:
        {"commands": [{id, action, tabId?, windowId?, quality?, timestamp}]}
    """
    return jsonify({"commands": _require_service().bridge.pending_commands()})


@tabsnap_api.route("/extension-commands/<int:cmd_id>", methods=["DELETE"])
def acknowledge_extension_command(cmd_id):
    """Extension acknowledges command execution."""
    _require_service().bridge.acknowledge(cmd_id)
    return jsonify({"success": True})


@tabsnap_api.route("/capture-result", methods=["POST"])
def receive_capture_result():
    """Extension reports the outcome of a captureVisibleTab command.

    Request body:
        {"id": 7, "dataUrl": "data:image/jpeg;base64,..."}
        {"id": 7, "error": "Tabs cannot be edited right now ..."}
    """
    data = request.get_json(silent=True) or {}
    request_id = _int_or_none(data.get("id"))
    if request_id is None:
        return jsonify({"error": "id required"}), 400

    data_url = data.get("dataUrl")
    error = data.get("error")
    if data_url is None and error is None:
        return jsonify({"error": "dataUrl or error required"}), 400

    delivered = _require_service().bridge.resolve_capture(
        request_id,
        data_url=data_url if isinstance(data_url, str) else None,
        error=str(error) if error is not None else None,
    )
    if not delivered:
        return jsonify({"error": "No pending capture with that id"}), 404
    return jsonify({"success": True})


# ============================================================================
# OVERLAY CHANNEL
# ============================================================================


@tabsnap_api.route("/overlay/connect", methods=["POST"])
def overlay_connect():
    """Overlay host reports that an overlay is open."""
    _require_service().overlay_channel.connect()
    return jsonify({"success": True})


@tabsnap_api.route("/overlay/disconnect", methods=["POST"])
def overlay_disconnect():
    """Overlay host reports that its overlay closed."""
    _require_service().overlay_channel.disconnect()
    return jsonify({"success": True})


@tabsnap_api.route("/overlay/messages", methods=["GET"])
def get_overlay_messages():
    """Pending coordinator -> overlay messages. Polling marks the host alive."""
    return jsonify({"messages": _require_service().overlay_channel.poll()})


@tabsnap_api.route("/overlay/messages/<int:message_id>", methods=["DELETE"])
def acknowledge_overlay_message(message_id):
    _require_service().overlay_channel.acknowledge(message_id)
    return jsonify({"success": True})


# ============================================================================
# SNAPSHOTS
# ============================================================================


@tabsnap_api.route("/snapshots", methods=["GET"])
def list_snapshots():
    """Stored snapshot records, newest first, without image payloads."""
    records = _require_service().store.records()
    return jsonify(
        {
            "snapshots": [
                {
                    "id": r.tab_id,
                    "lastActive": r.last_active,
                    "title": r.title,
                    "favIconUrl": r.favicon_url,
                    "hasScreenshot": bool(r.screenshot),
                }
                for r in records
            ],
            "count": len(records),
        }
    )


@tabsnap_api.route("/snapshots/<int:tab_id>/thumbnail", methods=["GET"])
def get_snapshot_thumbnail(tab_id):
    """Raw thumbnail bytes for one tab."""
    record = _require_service().store.get(tab_id)
    if record is None or not record.screenshot:
        return jsonify({"error": "No thumbnail for tab"}), 404

    try:
        mime_type, data = decode_data_url(record.screenshot)
    except ValueError as e:
        api_logger.warning(f"Stored thumbnail for tab {tab_id} is unreadable: {e}")
        return jsonify({"error": "Stored thumbnail is unreadable"}), 500
    return Response(data, mimetype=mime_type)


def main(argv=None):
    """Run the coordinator as a local HTTP server."""
    from . import setup_logging

    parser = argparse.ArgumentParser(description="TabSnap coordinator service")
    parser.add_argument("--config", default=None, help="Path to the settings file")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--log-file", default=None)
    args = parser.parse_args(argv)

    setup_logging(
        args.log_file,
        level=logging.DEBUG if args.debug else logging.INFO,
        component="coordinator",
    )

    app = create_app(args.config)
    _require_service().start()

    api_logger.info(f"Starting TabSnap API server at http://{args.host}:{args.port}")
    # The reloader would spawn a second service; tabsnap.dev_reload handles restarts
    app.run(host=args.host, port=args.port, debug=args.debug, use_reloader=False)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
