"""Endpoint and certificate probes for the configured websites."""

from __future__ import annotations

from typing import Optional, Sequence

import httpx
import structlog

from service_monitor.certificates import CertificateChecker, check_certificate
from service_monitor.config import Config, GetRouteTest, PostRouteTest, RouteTest
from service_monitor.retry import RetryError, retry_request

logger = structlog.get_logger(__name__)


def _method(test: RouteTest) -> str:
    return "POST" if isinstance(test, PostRouteTest) else "GET"


def format_probe_failure(test: RouteTest, exc: RetryError) -> str:
    resp = exc.response
    if resp is not None:
        status = f"{resp.status_code} {resp.reason_phrase}".strip()
        return f"❌ The url {_method(test)} [{test.url}] failed with status {status}."
    return f"❌ The url {_method(test)} [{test.url}] is unreachable: {exc.describe()}."


def format_invalid_probe(test: RouteTest, exc: Exception) -> str:
    return f"❌ The url {_method(test)} [{test.url}] is invalid: {type(exc).__name__}: {exc}."


def format_certificate_failure(hostname: str) -> str:
    return f"❌ Error with cert, url: {hostname}."


class Website:
    """Runs the configured probes and returns failure reports.

    A report is a list of human-readable failure lines in configuration
    order; an empty list means every probe passed. A single failing probe
    never raises.
    """

    def __init__(
        self,
        config: Config,
        client: Optional[httpx.AsyncClient] = None,
        cert_checker: CertificateChecker = check_certificate,
    ):
        self.config = config
        self._client = client or httpx.AsyncClient()
        self._owns_client = client is None
        self._cert_checker = cert_checker

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, test: RouteTest) -> httpx.Response:
        timeout = self.config.probe_timeout_seconds
        if isinstance(test, PostRouteTest):
            return await self._client.post(
                test.url,
                content=test.body.encode("utf-8"),
                headers={"Content-Type": test.content_type},
                timeout=timeout,
            )
        if isinstance(test, GetRouteTest):
            return await self._client.get(test.url, timeout=timeout)
        raise TypeError(f"Unsupported route test: {type(test).__name__}")

    async def _run_tests(self, tests: Sequence[RouteTest]) -> list[str]:
        errors: list[str] = []
        for test in tests:
            try:
                await retry_request(
                    lambda: self._send(test),
                    times=self.config.times_to_retry,
                    backoff_seconds=self.config.retry_backoff_seconds,
                )
            except RetryError as e:
                msg = format_probe_failure(test, e)
                logger.warning("Probe failed", method=_method(test), url=test.url, error=e.describe())
                errors.append(msg)
            except (httpx.InvalidURL, ValueError) as e:
                # Raised before any request is sent, so retrying cannot help.
                logger.warning("Probe url invalid", method=_method(test), url=test.url, error=str(e))
                errors.append(format_invalid_probe(test, e))
            else:
                logger.debug("Probe ok", method=_method(test), url=test.url)
        return errors

    async def check_api(self) -> list[str]:
        return await self._run_tests(self.config.api_tests)

    async def check_frontend(self) -> list[str]:
        return await self._run_tests(self.config.frontend_tests)

    async def check_certificates(self) -> list[str]:
        errors: list[str] = []
        for hostname in self.config.ssl_tests:
            result = await self._cert_checker(hostname, self.config.probe_timeout_seconds)
            if result.ok:
                logger.debug("Certificate ok", hostname=hostname, not_after=result.not_after_iso)
                continue
            logger.warning("Certificate check failed", hostname=hostname, error=result.error)
            errors.append(format_certificate_failure(hostname))
        return errors

    async def summary(self) -> list[str]:
        errors = await self.check_api()
        errors.extend(await self.check_frontend())
        errors.extend(await self.check_certificates())
        return errors
