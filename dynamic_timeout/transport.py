"""
HTTPX Integration
=================
Transport wrapper that routes outbound requests through an AdmissionController.

Usage:
    controller = AdmissionController.from_config(config)
    client = httpx.AsyncClient(transport=DynamicTimeoutTransport(controller))
"""

from typing import Optional

import httpx

from .controller import AdmissionController

TIMEOUT_PHASES = ("connect", "read", "write", "pool")


def apply_timeout(request: httpx.Request, timeout: float) -> None:
    """Replace every per-phase timeout on the request with the tier timeout."""
    request.extensions["timeout"] = {phase: timeout for phase in TIMEOUT_PHASES}


class DynamicTimeoutTransport(httpx.AsyncBaseTransport):
    """
    Async transport that picks each request's timeout from quota tiers.

    Requests that bypass admission keep the client's own timeouts.
    """

    def __init__(
        self,
        controller: AdmissionController,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.controller = controller
        self.transport = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        # The body is read while the tier slot is still held
        async def send(timeout):
            response = await self.transport.handle_async_request(request)
            try:
                await response.aread()
            except BaseException:
                await response.aclose()
                raise
            return response

        return await self.controller.execute(request, send, apply_timeout=apply_timeout)

    async def aclose(self) -> None:
        await self.transport.aclose()
