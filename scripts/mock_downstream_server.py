#!/usr/bin/env python3
"""
Mock Downstream HTTP Server

A Flask-based mock of the downstream automation endpoint for local development.
Records every relayed webhook and can be told to fail so retry behaviour can be
observed end to end.

Usage:
    python scripts/mock_downstream_server.py

    # Or with custom port / failure mode
    MOCK_DOWNSTREAM_PORT=5001 MOCK_DOWNSTREAM_MODE=flaky python scripts/mock_downstream_server.py

Modes:
    ok       always 202
    error    always 500
    reject   always 404
    flaky    500 for the first two deliveries of each request id, then 202

Set DOWNSTREAM_URL=http://localhost:5001/webhook and BEARER_TOKEN=local-token
to use with the relay.
"""

import os
import threading
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List

from flask import Flask, jsonify, request

app = Flask(__name__)

EXPECTED_TOKEN = os.environ.get("MOCK_DOWNSTREAM_TOKEN", "local-token")

_lock = threading.Lock()
RECEIVED: List[Dict[str, Any]] = []
DELIVERY_COUNTS: Dict[str, int] = defaultdict(int)
STATE = {"mode": os.environ.get("MOCK_DOWNSTREAM_MODE", "ok")}


@app.route("/webhook", methods=["POST"])
def receive_webhook():
    """Accept a relayed webhook."""
    auth = request.headers.get("Authorization", "")
    if auth != f"Bearer {EXPECTED_TOKEN}":
        return jsonify({"error": "Unauthorized"}), 401

    request_id = request.headers.get("X-Request-Id", "anonymous")
    with _lock:
        DELIVERY_COUNTS[request_id] += 1
        delivery = DELIVERY_COUNTS[request_id]
        RECEIVED.append(
            {
                "received_at": datetime.utcnow().isoformat(),
                "request_id": request_id,
                "delivery": delivery,
                "content_type": request.content_type,
                "original_source": request.headers.get("X-Original-Source"),
                "body": request.get_data(as_text=True),
            }
        )

    mode = STATE["mode"]
    if mode == "error" or (mode == "flaky" and delivery <= 2):
        return jsonify({"error": "Simulated downstream failure"}), 500
    if mode == "reject":
        return jsonify({"error": "Not found"}), 404

    return jsonify({"accepted": True, "delivery": delivery}), 202


@app.route("/webhook", methods=["HEAD"])
def probe():
    return "", 200


@app.route("/_mock/received", methods=["GET"])
def list_received():
    with _lock:
        return jsonify({"count": len(RECEIVED), "items": RECEIVED[-50:]})


@app.route("/_mock/mode", methods=["PUT"])
def set_mode():
    mode = (request.get_json(silent=True) or {}).get("mode")
    if mode not in ("ok", "error", "reject", "flaky"):
        return jsonify({"error": f"Unknown mode: {mode}"}), 400
    STATE["mode"] = mode
    return jsonify({"mode": mode})


@app.route("/_mock/reset", methods=["POST"])
def reset():
    with _lock:
        RECEIVED.clear()
        DELIVERY_COUNTS.clear()
    return jsonify({"reset": True})


if __name__ == "__main__":
    port = int(os.environ.get("MOCK_DOWNSTREAM_PORT", 5001))
    print(f"Mock downstream listening on http://localhost:{port}/webhook (mode: {STATE['mode']})")
    app.run(host="0.0.0.0", port=port, debug=False, threaded=True)
