"""Webhook verification: IP provenance, HMAC signature and replay window.

The checks run in a fixed order (IP, then signature, then timestamp) and the
first failure short-circuits the rest, so a request from an unknown address
never gets a signature computed for it and exactly one reason is reported.

Expected bad input never raises. Every rejection comes back as a
``VerificationVerdict``; only unexpected faults escape, wrapped in
``InternalFaultError``.
"""

import ipaddress
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from yaya_webhook.webhooks.payload import TransactionPayload
from yaya_webhook.webhooks.signature import compute_signature, signatures_match

logger = logging.getLogger(__name__)


class VerificationError(str, Enum):
    """Rejection reasons."""

    UNTRUSTED_IP = "UntrustedIp"
    INVALID_SIGNATURE = "InvalidSignature"
    TIMESTAMP_OUT_OF_RANGE = "TimestampOutOfRange"
    MALFORMED_PAYLOAD = "MalformedPayload"
    INTERNAL_FAULT = "InternalFault"


ERROR_MESSAGES = {
    VerificationError.UNTRUSTED_IP: "Untrusted IP address",
    VerificationError.INVALID_SIGNATURE: "Invalid signature",
    VerificationError.TIMESTAMP_OUT_OF_RANGE: "Timestamp outside the allowed window",
    VerificationError.MALFORMED_PAYLOAD: "Invalid request body",
    VerificationError.INTERNAL_FAULT: "Verification failed",
}


class InternalFaultError(Exception):
    """Raised when verification fails for reasons unrelated to the request."""


@dataclass(frozen=True)
class VerificationConfig:
    """Immutable verification settings shared by all requests."""

    secret: str
    timestamp_tolerance_ms: int = 300_000
    trusted_ips: frozenset[str] = frozenset()
    allow_loopback: bool = False

    @property
    def tolerance_seconds(self) -> float:
        return self.timestamp_tolerance_ms / 1000


@dataclass(frozen=True)
class VerificationVerdict:
    """Outcome of verifying one request."""

    is_valid: bool
    error: Optional[VerificationError] = None
    timestamp: Optional[int] = None
    # Diagnostics for logs only, never returned to the caller.
    delta_seconds: Optional[int] = None
    tolerance_seconds: Optional[float] = None

    @property
    def message(self) -> Optional[str]:
        return ERROR_MESSAGES[self.error] if self.error else None

    @classmethod
    def accepted(cls, timestamp: int) -> "VerificationVerdict":
        return cls(is_valid=True, timestamp=timestamp)

    @classmethod
    def rejected(cls, error: VerificationError, **diagnostics) -> "VerificationVerdict":
        return cls(is_valid=False, error=error, **diagnostics)


def normalize_ip(address: str) -> str:
    """Collapse IPv4-mapped IPv6 (``::ffff:1.2.3.4``) to plain IPv4."""
    try:
        ip = ipaddress.ip_address(address.strip())
    except ValueError:
        return address.strip()
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped:
        return str(ip.ipv4_mapped)
    return str(ip)


class WebhookVerifier:
    """Verify inbound YaYa webhook requests against a fixed configuration."""

    def __init__(self, config: VerificationConfig, clock: Callable[[], float] = time.time):
        """Initialize verifier with an immutable config and a wall clock."""
        self.config = config
        self._clock = clock
        self._trusted_exact = set()
        self._trusted_networks = []
        for entry in config.trusted_ips:
            if "/" in entry:
                try:
                    self._trusted_networks.append(ipaddress.ip_network(entry, strict=False))
                    continue
                except ValueError:
                    logger.warning(f"Ignoring malformed trusted network: {entry}")
                    continue
            self._trusted_exact.add(normalize_ip(entry))

    def verify(
        self,
        payload: TransactionPayload,
        signature: Optional[str],
        client_ip: str,
    ) -> VerificationVerdict:
        """Run IP, signature and timestamp checks in order."""
        try:
            return self._verify(payload, signature or "", client_ip or "")
        except Exception as e:
            logger.error(
                f"Webhook verification error: {e}",
                exc_info=True,
                extra={"transaction_id": payload.id, "client_ip": client_ip},
            )
            raise InternalFaultError("Webhook verification failed unexpectedly") from e

    def _verify(
        self, payload: TransactionPayload, signature: str, client_ip: str
    ) -> VerificationVerdict:
        if not self.is_trusted_ip(client_ip):
            logger.warning(f"Untrusted IP address: {client_ip}")
            return VerificationVerdict.rejected(VerificationError.UNTRUSTED_IP)

        expected = compute_signature(payload, self.config.secret)
        if not signatures_match(expected, signature):
            logger.warning(
                "Invalid signature received",
                extra={"transaction_id": payload.id, "received": signature},
            )
            logger.debug(f"Expected signature {expected} for transaction {payload.id}")
            return VerificationVerdict.rejected(VerificationError.INVALID_SIGNATURE)

        delta = self.timestamp_delta(payload.timestamp)
        tolerance = self.config.tolerance_seconds
        if delta > tolerance:
            logger.warning(
                f"Timestamp verification failed. Difference: {delta}s, Tolerance: {tolerance}s",
                extra={"transaction_id": payload.id, "received": payload.timestamp},
            )
            return VerificationVerdict.rejected(
                VerificationError.TIMESTAMP_OUT_OF_RANGE,
                delta_seconds=delta,
                tolerance_seconds=tolerance,
            )

        logger.info(
            "Webhook verification successful",
            extra={
                "transaction_id": payload.id,
                "amount": payload.amount,
                "currency": payload.currency,
            },
        )
        return VerificationVerdict.accepted(payload.timestamp)

    def timestamp_delta(self, timestamp: int) -> int:
        """Absolute distance in whole seconds between now and ``timestamp``.

        Past and future drift are treated the same.
        """
        now = int(self._clock())
        return abs(now - timestamp)

    def is_trusted_ip(self, client_ip: str) -> bool:
        """Check the resolved client address against the trusted set."""
        if not client_ip:
            return False
        normalized = normalize_ip(client_ip)
        if normalized in self._trusted_exact:
            return True

        try:
            ip = ipaddress.ip_address(normalized)
        except ValueError:
            return False

        if self.config.allow_loopback and ip.is_loopback:
            return True
        return any(ip in network for network in self._trusted_networks)
