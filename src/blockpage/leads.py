"""
Lead-capture egress.

Posts visitor-submitted lead data as JSON:

    {"formType": "lead", "route": "/quote", "domain": "example.com",
     "email": "a@b.c", "data": {...}}

Submission is best-effort with a bounded timeout. submit_lead() and
submit_lead_async() never raise; every outcome is reported through a
SubmissionResult.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class SubmissionResult:
    """
    Outcome of one lead submission.

    Properties:
        ok: True when the endpoint answered with a 2xx status
        status_code: HTTP status, None when no response was received
        error: Failure description, None on success
    """

    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


def build_payload(form_type: str, route: str, domain: str, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Build the collect payload; email is lifted from data when present."""
    payload: Dict[str, Any] = {
        "formType": form_type,
        "route": route,
        "domain": domain,
        "data": dict(data),
    }
    email = data.get("email")
    if email:
        payload["email"] = email
    return payload


def _result_from_response(url: str, response: httpx.Response) -> SubmissionResult:
    if response.is_success:
        logger.info("Lead submitted to %s (%s)", url, response.status_code)
        return SubmissionResult(ok=True, status_code=response.status_code)
    logger.warning("Lead endpoint %s answered %s", url, response.status_code)
    return SubmissionResult(
        ok=False,
        status_code=response.status_code,
        error=f"Endpoint answered HTTP {response.status_code}",
    )


def submit_lead(
    url: Optional[str],
    payload: Mapping[str, Any],
    timeout: float = DEFAULT_TIMEOUT,
    client: Optional[httpx.Client] = None,
) -> SubmissionResult:
    """
    POST a lead payload synchronously.

    Args:
        url: Collect endpoint; a missing URL fails without a request
        payload: JSON-serializable body (see build_payload)
        timeout: Seconds for connect, read and write
        client: Optional pre-configured client (not closed here)
    """
    if not url:
        return SubmissionResult(ok=False, error="No collect URL configured")

    try:
        if client is not None:
            response = client.post(url, json=dict(payload), timeout=httpx.Timeout(timeout))
        else:
            with httpx.Client(timeout=httpx.Timeout(timeout)) as own_client:
                response = own_client.post(url, json=dict(payload))
    except (httpx.HTTPError, httpx.InvalidURL, TypeError, ValueError) as e:
        logger.warning("Lead submission to %s failed: %s", url, e)
        return SubmissionResult(ok=False, error=str(e) or type(e).__name__)

    return _result_from_response(url, response)


async def submit_lead_async(
    url: Optional[str],
    payload: Mapping[str, Any],
    timeout: float = DEFAULT_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
) -> SubmissionResult:
    """Asynchronous counterpart of submit_lead(); never raises."""
    if not url:
        return SubmissionResult(ok=False, error="No collect URL configured")

    try:
        if client is not None:
            response = await client.post(url, json=dict(payload), timeout=httpx.Timeout(timeout))
        else:
            async with httpx.AsyncClient(timeout=httpx.Timeout(timeout)) as own_client:
                response = await own_client.post(url, json=dict(payload))
    except (httpx.HTTPError, httpx.InvalidURL, TypeError, ValueError) as e:
        logger.warning("Lead submission to %s failed: %s", url, e)
        return SubmissionResult(ok=False, error=str(e) or type(e).__name__)

    return _result_from_response(url, response)


__all__ = [
    "DEFAULT_TIMEOUT",
    "SubmissionResult",
    "build_payload",
    "submit_lead",
    "submit_lead_async",
]
