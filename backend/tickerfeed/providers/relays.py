"""Request building and response unwrapping for CORS relays.

Relays forward a request to a target URL and return the upstream body, but
each one wraps it differently: some pass the body through untouched, some
serve it as ``text/plain`` with extra prose around it, and ``wrapped`` relays
return a JSON envelope whose ``contents`` string holds the upstream body.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote

from tickerfeed.errors import ParseError
from tickerfeed.schemas.relay import RelayDescriptor


def build_request_url(relay: RelayDescriptor, target_url: str) -> str:
    if relay.kind == "path":
        return relay.base_url + target_url
    if relay.kind in ("raw", "wrapped") or "?" in relay.base_url or "url=" in relay.base_url:
        return relay.base_url + quote(target_url, safe="")
    return relay.base_url + target_url


def extract_json_object(text: str) -> Any:
    """Parse the span from the first ``{`` to the last ``}`` of ``text``.

    Braces outside the payload (for example inside surrounding prose) shift
    the span and make the parse fail; that is reported, never repaired.
    """

    if not text:
        raise ParseError("empty response body")
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last <= first:
        raise ParseError("no JSON object found in response")
    try:
        return json.loads(text[first : last + 1])
    except json.JSONDecodeError as exc:
        raise ParseError(f"malformed JSON object: {exc}") from exc


def unwrap_response(relay: RelayDescriptor, body: str) -> Any:
    if relay.kind == "wrapped":
        try:
            envelope = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ParseError(f"unexpected {relay.name} envelope: {exc}") from exc
        if not isinstance(envelope, dict) or not isinstance(envelope.get("contents"), str):
            raise ParseError(f"unexpected {relay.name} envelope")
        return extract_json_object(envelope["contents"])

    try:
        return json.loads(body)
    except json.JSONDecodeError:
        return extract_json_object(body)
