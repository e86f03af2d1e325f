"""Transport port used by the JSON-RPC client.

The client only needs to POST a JSON payload and read back a status and a
decoded body; tests substitute this port with an AsyncMock.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    body: Any  # decoded JSON, or the raw text when the body is not JSON
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def ok(self) -> bool:
        return self.status_code == 200


class IHttpClient(Protocol):
    """POST-only HTTP transport.

    Implementations turn connection failures and timeouts into
    TransportError. Status codes are returned untouched; mapping them to
    errors is the JSON-RPC adapter's job.
    """

    async def post(
        self,
        url: str,
        data: Any | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> HttpResponse: ...

    async def close(self) -> None: ...
