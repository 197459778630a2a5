"""
Downstream Forwarding Engine

Adapter for relaying validated webhook payloads to the downstream automation
endpoint. Handles authentication, outcome classification and the bounded
linear backoff between attempts.
"""

import time
from typing import Callable, Dict, Mapping, Optional

import requests
from aws_lambda_powertools import Logger
from requests.adapters import HTTPAdapter

from config.settings import Settings
from models.relay import AttemptOutcome, ForwardAttempt, ForwardResult, ForwardState
from utils.exceptions import (
    DownstreamClientError,
    DownstreamServerError,
    TransportError,
)
from utils.log_sanitizer import sanitize_headers, truncate_body

logger = Logger(child=True)

RELAY_NAME = "Webhook-Relay"
USER_AGENT = f"{RELAY_NAME}/1.0"
DEFAULT_CONTENT_TYPE = "application/json"

# Inbound headers preserved on the outbound request.
PASSTHROUGH_HEADERS = (
    "x-forwarded-for",
    "x-real-ip",
    "x-request-id",
    "x-correlation-id",
)


def outbound_header_name(name: str) -> str:
    """Capitalize a lower-case header name (x-request-id -> X-Request-Id)."""
    return "-".join(part.capitalize() for part in name.split("-"))


class ForwardingEngine:
    """
    Delivers payloads to the downstream endpoint.

    Transport failures and 5xx responses are retried up to the configured
    attempt count; any response below 500 ends the run immediately.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: Optional[Callable[[], requests.Session]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the forwarding engine.

        Args:
            settings: Relay settings (downstream URL, token, timeouts, retries)
            session_factory: Creates the HTTP session used for one forward run
            sleep: Blocks between attempts; replaced in tests
            clock: Monotonic clock used to time attempts
        """
        if not settings.bearer_token:
            raise ValueError("Bearer token is not configured")

        self.settings = settings
        self.url = settings.downstream_url
        self._session_factory = session_factory or self._create_session
        self._sleep = sleep
        self._clock = clock

    def _create_session(self) -> requests.Session:
        """
        Create requests session with default headers.

        Retries are driven by ``forward`` itself, so the adapter never retries.

        Returns:
            Configured requests.Session
        """
        session = requests.Session()

        adapter = HTTPAdapter(max_retries=0)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        # Authorization is added per POST by build_headers, never to the session.
        session.headers.update({"User-Agent": USER_AGENT})

        return session

    def build_headers(
        self, payload: bytes, headers: Mapping[str, str], client_ip: Optional[str] = None
    ) -> Dict[str, str]:
        """
        Build the outbound request headers.

        Args:
            payload: Raw payload to be sent
            headers: Inbound request headers (lower-cased names)
            client_ip: Resolved original client IP

        Returns:
            Header dictionary for the downstream request
        """
        lowered = {name.lower(): value for name, value in headers.items()}

        outbound = {
            "Authorization": f"Bearer {self.settings.bearer_token}",
            "Content-Type": lowered.get("content-type") or DEFAULT_CONTENT_TYPE,
            "Content-Length": str(len(payload)),
            "User-Agent": USER_AGENT,
        }

        for name in PASSTHROUGH_HEADERS:
            if lowered.get(name):
                outbound[outbound_header_name(name)] = lowered[name]

        outbound["X-Forwarded-By"] = RELAY_NAME
        outbound["X-Original-Source"] = client_ip or "unknown"

        return outbound

    def forward(
        self, payload: bytes, headers: Mapping[str, str], client_ip: Optional[str] = None
    ) -> ForwardResult:
        """
        Forward a payload with bounded retries.

        Args:
            payload: Raw payload bytes, sent unchanged
            headers: Inbound request headers
            client_ip: Resolved original client IP, sent as provenance

        Returns:
            ForwardResult describing the terminal outcome
        """
        max_attempts = self.settings.retry_attempts
        outbound_headers = self.build_headers(payload, headers, client_ip)
        history = []
        state = ForwardState.PENDING

        session = self._session_factory()
        try:
            for index in range(1, max_attempts + 1):
                state = ForwardState.ATTEMPTING
                logger.debug(
                    "Attempting to forward webhook",
                    extra={
                        "attempt": index,
                        "max_attempts": max_attempts,
                        "url": self.url,
                        "state": state.value,
                    },
                )

                attempt = self._attempt(session, index, payload, outbound_headers)
                history.append(attempt)

                if not attempt.retryable:
                    if attempt.error:
                        logger.warning(
                            "Downstream rejected webhook, not retrying",
                            extra={"attempt": index, "status_code": attempt.error.status_code},
                        )
                    state = (
                        ForwardState.SUCCESS
                        if attempt.outcome == AttemptOutcome.SUCCESS
                        else ForwardState.FAILED
                    )
                    return ForwardResult(
                        status_code=attempt.status_code,
                        body=attempt.body,
                        attempts=index,
                        state=state,
                        last_error=str(attempt.error) if attempt.error else None,
                        history=history,
                    )

                if index < max_attempts:
                    state = ForwardState.RETRYING
                    delay = self.settings.retry_base_delay * index
                    logger.debug(
                        "Retrying after delay",
                        extra={
                            "delay_seconds": delay,
                            "next_attempt": index + 1,
                            "state": state.value,
                        },
                    )
                    self._sleep(delay)
        finally:
            session.close()

        final_error = history[-1].error if history else None
        last_error = str(final_error) if final_error else None
        logger.error(
            "All forwarding attempts failed",
            extra={
                "attempts": max_attempts,
                "last_status_code": final_error.status_code if final_error else None,
                "last_error": last_error,
            },
        )

        return ForwardResult(
            status_code=502,
            body=f"Failed to forward after {max_attempts} attempts: {last_error}",
            attempts=max_attempts,
            state=ForwardState.FAILED,
            last_error=last_error,
            history=history,
        )

    def _attempt(
        self,
        session: requests.Session,
        index: int,
        payload: bytes,
        headers: Dict[str, str],
    ) -> ForwardAttempt:
        """
        Issue one outbound request and classify the outcome.

        Returns:
            ForwardAttempt; never raises for network or HTTP failures
        """
        logger.debug(
            "HTTP Request",
            extra={
                "method": "POST",
                "url": self.url,
                "headers": sanitize_headers(headers),
                "body_length": len(payload),
                "body": truncate_body(payload),
            },
        )

        started = self._clock()
        try:
            response = session.post(
                self.url,
                data=payload,
                headers=headers,
                timeout=(self.settings.connect_timeout, self.settings.request_timeout),
                verify=self.settings.tls_verify,
                allow_redirects=False,
            )
        except requests.RequestException as e:
            elapsed = self._clock() - started
            logger.error(
                "HTTP request failed",
                extra={"attempt": index, "duration_ms": round(elapsed * 1000, 2), "error": str(e)},
            )
            return ForwardAttempt(
                index=index,
                outcome=AttemptOutcome.TRANSPORT_ERROR,
                elapsed=elapsed,
                error=TransportError(f"Request failed: {str(e)}"),
            )

        elapsed = self._clock() - started
        status_code = response.status_code
        body = response.text

        response_details = {
            "attempt": index,
            "status_code": status_code,
            "duration_ms": round(elapsed * 1000, 2),
            "body_length": len(body),
        }
        if status_code >= 400:
            logger.error("HTTP Response", extra=response_details)
        logger.debug("HTTP Response body", extra={**response_details, "body": truncate_body(body)})

        if status_code >= 500:
            outcome = AttemptOutcome.SERVER_ERROR
            error = DownstreamServerError(f"HTTP {status_code}: {truncate_body(body)}", status_code)
        elif status_code >= 400:
            outcome = AttemptOutcome.CLIENT_ERROR
            error = DownstreamClientError(f"HTTP {status_code}: {truncate_body(body)}", status_code)
        else:
            outcome = AttemptOutcome.SUCCESS
            error = None

        return ForwardAttempt(
            index=index,
            outcome=outcome,
            status_code=status_code,
            body=body,
            elapsed=elapsed,
            error=error,
        )

    def check_connectivity(self) -> Dict[str, object]:
        """
        Probe the downstream endpoint with a HEAD request, sending no data.

        Returns:
            {"status": "ok", "http_code": ...} or {"status": "error", "message": ...}
        """
        session = self._session_factory()
        try:
            response = session.head(
                self.url,
                timeout=(5, 10),
                verify=self.settings.tls_verify,
                allow_redirects=False,
            )
            return {"status": "ok", "http_code": response.status_code}
        except requests.RequestException as e:
            logger.error(f"Downstream connectivity check failed: {str(e)}")
            return {"status": "error", "message": str(e)}
        finally:
            session.close()
