"""TLS certificate expiry check.

The earliest ``notAfter`` across the certificate chain the server presents
counts. Interpreters without ``SSLSocket.get_unverified_chain`` (before
3.13) expose only the leaf certificate, which is then used alone.

Arguments: ``notify_after`` (default 720h), ``error_after`` (default 168h),
``port`` (default 443).
"""

from __future__ import annotations

import socket
import ssl
from collections.abc import Iterable, Mapping
from datetime import datetime

from cryptography import x509

from ..health.engine import CheckDescriptor
from .expiry import ExpiryCheck, ExpiryLookupError, validate_expiry_args

DEFAULT_PORT = 443
CONNECT_TIMEOUT = 10.0


def peer_chain(sock: ssl.SSLSocket) -> list[bytes]:
    """DER certificates presented by the peer, leaf first."""
    get_chain = getattr(sock, "get_unverified_chain", None)
    if get_chain is not None:
        chain = get_chain()
        if chain:
            return list(chain)
    leaf = sock.getpeercert(binary_form=True)
    return [leaf] if leaf else []


def earliest_not_after(chain: Iterable[bytes]) -> datetime:
    """Earliest expiry of a DER-encoded certificate chain."""
    expiries = [x509.load_der_x509_certificate(der).not_valid_after_utc for der in chain]
    if not expiries:
        raise ExpiryLookupError("No certificates found")
    return min(expiries)


class SslCheck(ExpiryCheck):
    subject = "Certificate"

    def fetch_expiry(self, hostname: str, args: Mapping[str, str]) -> datetime:
        port = int(args.get("port") or DEFAULT_PORT)
        try:
            ctx = ssl.create_default_context()
            with socket.create_connection((hostname, port), timeout=CONNECT_TIMEOUT) as sock:
                with ctx.wrap_socket(sock, server_hostname=hostname) as ssock:
                    chain = peer_chain(ssock)
        except (OSError, ssl.SSLError) as e:
            raise ExpiryLookupError(f"TLS error: {type(e).__name__}: {e}") from e

        try:
            return earliest_not_after(chain)
        except ValueError as e:
            raise ExpiryLookupError(f"Unreadable certificate: {e}") from e


def validate_ssl_args(args: Mapping[str, str]) -> None:
    validate_expiry_args(args)
    port = args.get("port")
    if port is not None:
        try:
            num = int(port)
        except ValueError as e:
            raise ValueError("port must be a number") from e
        if not 1 <= num <= 65535:
            raise ValueError("port must be between 1 and 65535")


def ssl_check() -> CheckDescriptor:
    checker = SslCheck()
    return CheckDescriptor(
        key="ssl",
        name="Ssl Check",
        run=checker.check,
        validate_args=validate_ssl_args,
        factory=ssl_check,
    )
