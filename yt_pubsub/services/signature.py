"""HMAC verification of hub-signed notification bodies."""

from __future__ import annotations

import hmac
import logging

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-hub-signature"


def parse_signature_header(header: str | None) -> tuple[str, str]:
    """Split an ``algorithm=hexdigest`` header into its lowercased parts.

    Missing pieces come back as empty strings; this never raises.
    """

    parts = (header or "").split("=")
    algorithm = parts.pop(0).strip().lower() if parts else ""
    digest = parts.pop().strip().lower() if parts else ""
    return algorithm, digest


def _hexdigest(secret: str, algorithm: str, payload: bytes) -> str | None:
    if not algorithm:
        return None
    try:
        return hmac.new(secret.encode(), payload, algorithm).hexdigest().lower()
    except (TypeError, ValueError):
        logger.debug("Unsupported signature algorithm", extra={"algorithm": algorithm})
        return None


def supports_algorithm(algorithm: str) -> bool:
    """Return True when a keyed hash can be built for ``algorithm``."""

    return _hexdigest("", algorithm, b"") is not None


def verify_signature(secret: str, algorithm: str, signature: str, payload: bytes) -> bool:
    """Check ``signature`` against the HMAC of the raw ``payload`` bytes."""

    expected = _hexdigest(secret, algorithm, payload)
    if expected is None:
        return False
    return hmac.compare_digest(expected.encode(), (signature or "").lower().encode())
