#!/usr/bin/env python3
"""
Local Development Runner

Serves the webhook relay Lambda handler over plain HTTP so providers (or curl)
can post webhooks to it without deploying to AWS.

Usage:
    python scripts/local_runner.py
    python scripts/local_runner.py --port 8080 --env-file .env.local

Then point the provider (or curl) at http://localhost:8080/.
"""

import argparse
import base64
import logging
import os
import sys
import uuid
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from socketserver import ThreadingMixIn
from typing import Any, Dict
from urllib.parse import parse_qsl, urlparse

# Lambda code root
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("local_runner")

# Suppress noisy loggers
logging.getLogger("urllib3").setLevel(logging.WARNING)


@dataclass
class LocalContext:
    """Minimal stand-in for the Lambda context object."""

    function_name: str = "webhook-relay-local"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = "arn:aws:lambda:local:000000000000:function:webhook-relay-local"
    aws_request_id: str = ""


def load_env_file(filepath: str):
    """Load environment variables from a file."""
    if not os.path.exists(filepath):
        logger.warning(f"Env file not found: {filepath}")
        return

    logger.info(f"Loading environment from: {filepath}")
    with open(filepath) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                # Remove quotes if present
                value = value.strip().strip("\"'")
                os.environ[key.strip()] = value
                if any(word in key.upper() for word in ("TOKEN", "SECRET", "KEY")):
                    logger.debug(f"  {key}=***")
                else:
                    logger.debug(f"  {key}={value}")


def build_event(method: str, path: str, headers: Dict[str, str], body: bytes, source_ip: str) -> Dict[str, Any]:
    """Convert a raw HTTP request into an API Gateway proxy event."""
    parsed = urlparse(path)
    return {
        "httpMethod": method,
        "path": parsed.path or "/",
        "headers": headers,
        "queryStringParameters": dict(parse_qsl(parsed.query)) or None,
        "body": base64.b64encode(body).decode("ascii") if body else None,
        "isBase64Encoded": bool(body),
        "requestContext": {"identity": {"sourceIp": source_ip}},
    }


class ThreadingHTTPServer(ThreadingMixIn, HTTPServer):
    """HTTP server that handles each request in a separate thread."""
    daemon_threads = True


class RelayRequestHandler(BaseHTTPRequestHandler):
    """Translates HTTP requests into handler invocations."""

    def log_message(self, format, *args):
        logger.info(f"{self.address_string()} - {format % args}")

    def _invoke(self):
        from handlers.webhook_relay import lambda_handler

        content_length = int(self.headers.get("Content-Length", 0) or 0)
        body = self.rfile.read(content_length) if content_length > 0 else b""

        event = build_event(
            self.command, self.path, dict(self.headers.items()), body, self.client_address[0]
        )
        response = lambda_handler(event, LocalContext(aws_request_id=str(uuid.uuid4())))

        try:
            payload = (response.get("body") or "").encode("utf-8")
            self.send_response(response["statusCode"])
            for name, value in response.get("headers", {}).items():
                self.send_header(name, value)
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)
        except BrokenPipeError:
            pass  # Client disconnected

    def do_GET(self):
        self._invoke()

    def do_POST(self):
        self._invoke()

    def do_OPTIONS(self):
        self._invoke()


def main():
    parser = argparse.ArgumentParser(description="Local HTTP runner for the webhook relay")
    parser.add_argument("--port", type=int, default=8080, help="Port to run on (default: 8080)")
    parser.add_argument("--env-file", default=".env.local", help="Environment file (default: .env.local)")

    args = parser.parse_args()

    load_env_file(args.env_file)
    os.environ.setdefault("LOCAL_DEV", "true")
    os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "webhook-relay")
    os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "true")

    if not os.environ.get("DOWNSTREAM_URL"):
        logger.error("DOWNSTREAM_URL not set")
        sys.exit(1)

    server = ThreadingHTTPServer(("", args.port), RelayRequestHandler)

    print(f"\n{'=' * 60}")
    print(f"  Webhook Relay - Local Development Runner")
    print(f"{'=' * 60}")
    print(f"  Webhook:    POST http://localhost:{args.port}/")
    print(f"  Health:     GET  http://localhost:{args.port}/?action=health")
    print(f"  Downstream: {os.environ.get('DOWNSTREAM_URL')}")
    print(f"{'=' * 60}")
    print(f"  Press Ctrl+C to stop")
    print(f"{'=' * 60}\n")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down...")
        server.shutdown()


if __name__ == "__main__":
    main()
