"""
Webhook Relay Handler

Receives webhook notifications from the payment provider and relays them,
authenticated, to the downstream automation endpoint.
This handler is the entry point for the API Gateway integration.
"""

import time
from typing import Any, Dict, Optional

from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from adapters.forwarder import ForwardingEngine
from config.settings import APP_NAME, APP_VERSION, Settings, get_settings
from handlers.health_check import build_health_status, is_connection_test
from models.relay import IncomingRequest
from utils.exceptions import ConfigurationError, ValidationError
from utils.request_gate import RequestGate
from utils.response_builder import (
    build_error_response,
    build_response,
    forward_result_response,
    internal_error_response,
    unavailable_response,
    validation_failure_response,
)

logger = Logger()
tracer = Tracer()
metrics = Metrics(namespace="WebhookRelay")


class WebhookRelay:
    """
    Request gate, forwarding engine and response mapping wired together.

    One instance is built per process from validated settings; it holds no
    per-request state.
    """

    def __init__(
        self,
        settings: Settings,
        gate: Optional[RequestGate] = None,
        forwarder: Optional[ForwardingEngine] = None,
    ):
        self.settings = settings
        self.gate = gate or RequestGate(settings)
        self.forwarder = forwarder or ForwardingEngine(settings)

    @tracer.capture_method
    def process(self, request: IncomingRequest) -> Dict[str, Any]:
        """
        Validate, forward and map a webhook request.

        Args:
            request: Captured inbound request

        Returns:
            API Gateway response
        """
        started = time.monotonic()

        try:
            logger.info(
                "Webhook processing started",
                extra={"remote_ip": request.client_ip, "user_agent": request.user_agent},
            )
            metrics.add_metric(name="WebhookReceived", unit=MetricUnit.Count, value=1)

            outcome = self.gate.validate(request)
            if not outcome.accepted:
                metrics.add_metric(
                    name="WebhookValidationError", unit=MetricUnit.Count, value=1
                )
                return validation_failure_response(outcome)

            payload = self.gate.read_payload(request)

            logger.debug(
                "Incoming webhook received",
                extra={
                    "payload_size": len(payload),
                    "content_type": request.content_type or "unknown",
                    "headers_count": len(request.headers),
                },
            )

            result = self.forwarder.forward(payload, request.headers, client_ip=request.client_ip)

            metrics.add_metric(
                name="ForwardAttempts", unit=MetricUnit.Count, value=result.attempts
            )
            metrics.add_metric(
                name="WebhookForwarded" if result.succeeded else "WebhookForwardFailed",
                unit=MetricUnit.Count,
                value=1,
            )

            logger.info(
                "Webhook processing completed",
                extra={
                    "duration_ms": round((time.monotonic() - started) * 1000, 2),
                    "downstream_status_code": result.status_code,
                    "attempts": result.attempts,
                    "success": result.succeeded,
                },
            )

            return forward_result_response(result)

        except ValidationError as e:
            logger.error("Validation error", extra={"error": str(e), "reasons": e.reasons})
            metrics.add_metric(
                name="WebhookValidationError", unit=MetricUnit.Count, value=1
            )
            return build_error_response(400, "Invalid request")

        except Exception as e:
            logger.exception(
                "Webhook processing failed",
                extra={
                    "duration_ms": round((time.monotonic() - started) * 1000, 2),
                    "error_message": str(e),
                },
            )
            metrics.add_metric(
                name="WebhookUnexpectedError", unit=MetricUnit.Count, value=1
            )
            return internal_error_response()

    def health(self, request: IncomingRequest) -> Dict[str, Any]:
        """Health status for ``?action=health``."""
        try:
            health_status = build_health_status(
                self.settings, self.forwarder, test_connection=is_connection_test(request.query)
            )
        except Exception:
            logger.exception("Health check failed")
            return build_response(
                status_code=500, body={"status": "unhealthy", "error": "Internal error"}
            )

        logger.debug("Health check requested", extra={"health": health_status})
        return build_response(status_code=200, body=health_status)


def service_info() -> Dict[str, Any]:
    """Short description returned for plain GET requests."""
    return build_response(
        status_code=200,
        body={
            "service": APP_NAME,
            "version": APP_VERSION,
            "status": "running",
            "endpoints": {
                "webhook": "POST /",
                "health": "GET /?action=health",
            },
        },
    )


_relay: Optional[WebhookRelay] = None


def get_relay() -> WebhookRelay:
    """
    Build the relay on first use and reuse it for the life of the process.

    Raises:
        ConfigurationError: If the settings are missing or invalid
    """
    global _relay
    if _relay is None:
        settings = get_settings()
        logger.setLevel(settings.log_level)
        _relay = WebhookRelay(settings)
        logger.info(
            "Webhook relay initialized",
            extra={"environment": settings.environment, "version": APP_VERSION},
        )
    return _relay


@logger.inject_lambda_context
@tracer.capture_lambda_handler
@metrics.log_metrics
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda handler for inbound webhook requests.

    Args:
        event: API Gateway event containing the webhook
        context: Lambda context object

    Returns:
        API Gateway response with status code and body
    """
    try:
        request = IncomingRequest.from_api_gateway_event(event)

        if request.method == "OPTIONS":
            return build_response(status_code=200, body=None)

        relay = get_relay()

    except ConfigurationError as e:
        logger.exception("Application bootstrap failed", extra={"details": e.details})
        return unavailable_response()

    except Exception:
        logger.exception("Application bootstrap failed")
        return unavailable_response()

    action = request.query.get("action", "webhook")

    if action == "health":
        return relay.health(request)

    if request.method != "POST":
        return service_info()

    return relay.process(request)
