"""
Health Check Handler

Provides health status for monitoring and load balancing.
Reports configuration state and optionally probes downstream connectivity.
"""

from typing import Any, Dict, Optional

from aws_lambda_powertools import Logger, Tracer
from aws_lambda_powertools.utilities.typing import LambdaContext

from adapters.forwarder import ForwardingEngine
from config.settings import APP_VERSION, Settings, get_settings
from utils.exceptions import ConfigurationError
from utils.response_builder import build_response, utc_timestamp

logger = Logger()
tracer = Tracer()


@tracer.capture_method
def build_health_status(
    settings: Settings,
    forwarder: Optional[ForwardingEngine] = None,
    test_connection: bool = False,
) -> Dict[str, Any]:
    """
    Build the health status document.

    Args:
        settings: Loaded relay settings
        forwarder: Engine used for the optional connectivity probe
        test_connection: Probe the downstream endpoint with a HEAD request

    Returns:
        Health status dictionary (no credential values)
    """
    config = settings.masked()
    health_status = {
        "status": "healthy",
        "timestamp": utc_timestamp(),
        "version": APP_VERSION,
        "environment": config["environment"],
        "configuration": {
            "downstream_configured": bool(config["downstream_url"]),
            "bearer_token_configured": bool(config["bearer_token"]),
            "signature_verification": settings.signature_verification_active,
            "ip_allow_list_entries": len(settings.allowed_ips),
            "log_level": config["log_level"],
            "max_payload_size": config["max_payload_size"],
            "retry_attempts": config["retry_attempts"],
        },
    }

    if test_connection:
        forwarder = forwarder or ForwardingEngine(settings)
        connectivity = forwarder.check_connectivity()
        health_status["connectivity"] = connectivity
        if connectivity.get("status") != "ok":
            health_status["status"] = "degraded"

    return health_status


def is_connection_test(query: Dict[str, str]) -> bool:
    return (query or {}).get("test_connection") == "1"


@logger.inject_lambda_context
@tracer.capture_lambda_handler
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda handler for health check endpoint.

    Args:
        event: API Gateway event
        context: Lambda context object

    Returns:
        API Gateway response with health status
    """
    try:
        logger.info("Processing health check request")

        settings = get_settings()
        health_status = build_health_status(
            settings, test_connection=is_connection_test(event.get("queryStringParameters"))
        )

        logger.debug("Health check requested", extra={"health": health_status})
        return build_response(status_code=200, body=health_status)

    except ConfigurationError as e:
        logger.exception("Health check failed", extra={"details": e.details})
        return build_response(
            status_code=500,
            body={"status": "unhealthy", "timestamp": utc_timestamp(), "error": "Configuration error"},
        )

    except Exception:
        logger.exception("Health check failed")
        return build_response(
            status_code=500,
            body={"status": "unhealthy", "timestamp": utc_timestamp(), "error": "Internal error"},
        )
