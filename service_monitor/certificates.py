from __future__ import annotations

import asyncio
import ssl
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from urllib.parse import urlsplit


@dataclass(frozen=True)
class CertificateCheckResult:
    hostname: str
    ok: bool
    not_after_iso: str | None = None
    error: str | None = None


CertificateChecker = Callable[[str, float], Awaitable[CertificateCheckResult]]


def _host_port(target: str) -> tuple[str, int] | None:
    s = str(target or "").strip()
    if not s:
        return None
    if "://" not in s:
        s = f"https://{s}"
    try:
        parts = urlsplit(s)
        port = int(parts.port or 443)
    except ValueError:
        return None
    host = (parts.hostname or "").strip()
    if not host:
        return None
    return host, port


def _parse_cert_not_after(cert: dict[str, Any]) -> datetime | None:
    # ssl.getpeercert() returns e.g. "Feb  6 12:00:00 2026 GMT"
    s = cert.get("notAfter")
    if not isinstance(s, str) or not s.strip():
        return None
    try:
        dt = datetime.strptime(s.strip(), "%b %d %H:%M:%S %Y %Z")
    except ValueError:
        return None
    return dt.replace(tzinfo=timezone.utc)


async def check_certificate(hostname: str, timeout_seconds: float = 5.0) -> CertificateCheckResult:
    """Handshake with ``hostname`` and verify its certificate chain and expiry.

    Every failure mode (unreachable, untrusted, expired, unparsable) comes
    back as ``ok=False`` with a short error string; nothing is raised.
    """
    target = _host_port(hostname)
    if target is None:
        return CertificateCheckResult(hostname=hostname, ok=False, error="invalid_hostname")
    host, port = target

    ctx = ssl.create_default_context()
    ctx.check_hostname = True
    ctx.verify_mode = ssl.CERT_REQUIRED

    writer = None
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host=host, port=port, ssl=ctx, server_hostname=host),
            timeout=max(1.0, float(timeout_seconds)),
        )
        sslobj = writer.get_extra_info("ssl_object")
        cert = sslobj.getpeercert() if sslobj else None
        not_after = _parse_cert_not_after(cert) if isinstance(cert, dict) else None
        if not_after is None:
            return CertificateCheckResult(hostname=hostname, ok=False, error="missing_notAfter")
        if not_after <= datetime.now(timezone.utc):
            return CertificateCheckResult(
                hostname=hostname, ok=False, not_after_iso=not_after.isoformat(), error="expired"
            )
        return CertificateCheckResult(hostname=hostname, ok=True, not_after_iso=not_after.isoformat())
    except Exception as exc:
        return CertificateCheckResult(hostname=hostname, ok=False, error=f"{type(exc).__name__}: {exc}")
    finally:
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
