"""Request authentication for the hook endpoint.

Two modes are supported, chosen at startup:

* bearer token: ``Authorization: Bearer <token>`` must match the configured
  token exactly.
* GitHub delivery: ``X-Hub-Signature-256`` must be the HMAC-SHA256 of the raw
  body keyed with the configured webhook secret.

Configuring neither disables authentication. That is a deliberate operator
choice for hooks reachable only from a trusted network, not a fallback.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from collections.abc import Mapping, Sequence

from autoupdate_hook.errors import AuthenticationFailure, MalformedDelivery

SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"

_BEARER_SCHEME = "bearer"


def parse_bearer(header: str | None) -> str | None:
    """Return the credential of a ``Bearer`` Authorization header, else None."""
    if not header:
        return None
    scheme, _, credential = header.strip().partition(" ")
    if scheme.lower() != _BEARER_SCHEME:
        return None
    credential = credential.strip()
    return credential or None


def authorize_bearer(token: str | None, header: str | None) -> bool:
    """Decide whether a request carrying ``header`` may trigger an update.

    With no ``token`` configured every request is authorised.
    """
    if token is None:
        return True
    credential = parse_bearer(header)
    if credential is None:
        return False
    # aiohttp hands undecodable header bytes over as lone surrogates
    presented = credential.encode("utf-8", "surrogateescape")
    return secrets.compare_digest(presented, token.encode())


def github_signature(secret: str, body: bytes) -> str:
    """Compute the ``sha256=<hex>`` signature GitHub sends for ``body``."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_github_delivery(
    secret: str,
    events: Sequence[str],
    headers: Mapping[str, str],
    body: bytes,
) -> bool:
    """Verify a GitHub webhook delivery.

    Returns True if the delivery should trigger an update and False if it is
    authentic but for an event the operator did not subscribe to.

    Raises:
        MalformedDelivery: signature or event header missing or malformed.
        AuthenticationFailure: the signature does not match.
    """
    signature = headers.get(SIGNATURE_HEADER)
    if not signature:
        raise MalformedDelivery(f"missing {SIGNATURE_HEADER} header")

    algorithm, sep, digest = signature.partition("=")
    if not sep or not digest:
        raise MalformedDelivery(f"malformed {SIGNATURE_HEADER} header")
    if algorithm.lower() != "sha256":
        raise AuthenticationFailure("unsupported signature algorithm")

    expected = github_signature(secret, body)
    presented = f"sha256={digest.lower()}".encode("utf-8", "surrogateescape")
    if not hmac.compare_digest(presented, expected.encode()):
        raise AuthenticationFailure("signature mismatch")

    if not events:
        return True
    event = headers.get(EVENT_HEADER)
    if not event:
        raise MalformedDelivery(f"missing {EVENT_HEADER} header")
    return event in events
