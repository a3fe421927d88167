"""Response decoding shared by the Backlog and Notion clients."""

from typing import Any

import requests

from ..errors import NotFoundError, TransportError

# (connect, read) seconds
DEFAULT_TIMEOUT = (10, 60)


def _error_detail(body: Any) -> str:
    """Pull a readable message out of a Backlog or Notion error body."""
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict) and first.get("message"):
                return str(first["message"])
        if body.get("message"):
            return str(body["message"])
    return ""


def decode_response(response: requests.Response, service: str) -> Any:
    """Return the JSON body of *response* or raise a typed error.

    Args:
        response: Response from ``requests``.
        service: Service name used in error messages.

    Raises:
        NotFoundError: HTTP 404, or a Notion ``object_not_found`` code.
        TransportError: Any other non-2xx status, or a body that is not JSON.
    """
    status = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = None
        if 200 <= status < 300:
            raise TransportError(
                f"{service} returned a non-JSON body (HTTP {status})",
                status=status,
            ) from None

    if 200 <= status < 300:
        return body

    detail = _error_detail(body)
    code = body.get("code") if isinstance(body, dict) else None
    if status == 404 or code == "object_not_found":
        raise NotFoundError(
            f"{service} object not found (HTTP {status})"
            + (f": {detail}" if detail else "")
        )
    raise TransportError(
        f"{service} request failed with HTTP {status}"
        + (f": {detail}" if detail else ""),
        status=status,
    )


def send(
    session: requests.Session,
    method: str,
    url: str,
    service: str,
    **kwargs: Any,
) -> Any:
    """Issue one request and decode it; network failures become
    ``TransportError``."""
    kwargs.setdefault("timeout", DEFAULT_TIMEOUT)
    try:
        response = session.request(method, url, **kwargs)
    except requests.RequestException as exc:
        raise TransportError(f"{service} request failed: {exc}") from exc
    return decode_response(response, service)
