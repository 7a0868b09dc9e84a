"""
Transport Module

Best-effort delivery of opaque payloads between named endpoints.

The contract is weak: ``send`` hands a payload to the network
and returns; payloads may be lost and may arrive out of order. There is no
acknowledgment and no retry.

- InMemoryTransport: simulated network on top of a Scheduler
- HttpTransport: POSTs payloads to ``<url>/messages`` with requests
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

import requests
from requests.exceptions import RequestException

from .behavior import LinkBehavior
from .exceptions import UnresolvedEndpoint
from .scheduler import Scheduler
from .utils.logger import get_logger, log_event


COORDINATOR_ENDPOINT = "coordinator"

PayloadHandler = Callable[[bytes], None]

logger = get_logger("transport", __name__)


def client_endpoint(client_id: int) -> str:
    """Endpoint name of a client."""
    return f"client[{client_id}]"


class Transport(ABC):
    """Interface every transport provides to the protocol roles."""

    def __init__(self):
        self._handlers: Dict[str, PayloadHandler] = {}
        self.sent = 0
        self.delivered = 0

    def register(self, endpoint: str, handler: PayloadHandler) -> None:
        """
        Register the receive handler of a local endpoint.

        Args:
            endpoint: Endpoint name
            handler: Called with each payload delivered to the endpoint
        """
        self._handlers[endpoint] = handler

    def unregister(self, endpoint: str) -> None:
        """Remove the receive handler of a local endpoint."""
        self._handlers.pop(endpoint, None)

    def dispatch(self, endpoint: str, payload: bytes) -> bool:
        """
        Hand an inbound payload to the handler registered for ``endpoint``.

        Returns:
            True if a handler received the payload
        """
        handler = self._handlers.get(endpoint)
        if handler is None:
            log_event(
                logger, "payload_undeliverable", level="WARNING",
                component="transport", endpoint=endpoint
            )
            return False

        self.delivered += 1
        handler(payload)
        return True

    @abstractmethod
    def resolve(self, endpoint: str) -> str:
        """
        Resolve an endpoint name to a transport address.

        Raises:
            UnresolvedEndpoint: If the endpoint is unknown
        """

    @abstractmethod
    def send(self, endpoint: str, payload: bytes) -> None:
        """
        Send a payload to an endpoint, best effort.

        Raises:
            UnresolvedEndpoint: If the endpoint is unknown
        """


class InMemoryTransport(Transport):
    """
    Simulated network delivering payloads through a scheduler.

    An endpoint resolves once a handler is registered for it. Loss and
    latency are decided per payload by a LinkBehavior.
    """

    def __init__(self, scheduler: Scheduler, behavior: Optional[LinkBehavior] = None):
        """
        Initialize the in-memory transport.

        Args:
            scheduler: Scheduler used to deliver payloads after their latency
            behavior: Link behavior (lossless, 10 ms latency if None)
        """
        super().__init__()
        self.scheduler = scheduler
        self.behavior = behavior or LinkBehavior()
        self.dropped = 0

    def resolve(self, endpoint):
        if endpoint not in self._handlers:
            raise UnresolvedEndpoint(endpoint)
        return endpoint

    def send(self, endpoint, payload):
        self.resolve(endpoint)
        self.sent += 1

        if self.behavior.should_drop():
            self.dropped += 1
            log_event(
                logger, "payload_dropped", level="DEBUG",
                component="transport", endpoint=endpoint, size=len(payload)
            )
            return

        self.scheduler.schedule(
            self.behavior.delivery_delay(),
            self.dispatch,
            endpoint,
            bytes(payload),
            name=f"deliver->{endpoint}",
        )

    def stats(self) -> Dict[str, int]:
        """Get delivery statistics."""
        return {
            "sent": self.sent,
            "delivered": self.delivered,
            "dropped": self.dropped,
        }


class HttpTransport(Transport):
    """
    Transport for service deployments.

    Outbound payloads are POSTed to ``<url>/messages``; inbound payloads arrive
    through a FastAPI receiver app, which calls ``dispatch``.
    """

    def __init__(
        self,
        endpoint_urls: Dict[str, str],
        timeout: float = 5.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the HTTP transport.

        Args:
            endpoint_urls: Base URL of every reachable endpoint
            timeout: Request timeout in seconds
            session: Optional requests session (a new one if None)
        """
        super().__init__()
        self.endpoint_urls = dict(endpoint_urls)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.failed = 0

    def resolve(self, endpoint):
        url = self.endpoint_urls.get(endpoint)
        if not url:
            raise UnresolvedEndpoint(endpoint)
        return url.rstrip("/")

    def send(self, endpoint, payload):
        url = f"{self.resolve(endpoint)}/messages"
        self.sent += 1

        try:
            response = self.session.post(
                url,
                data=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except RequestException as e:
            self.failed += 1
            log_event(
                logger, "send_failed", level="WARNING",
                component="transport", endpoint=endpoint, error=str(e)
            )
            return

        if response.status_code >= 400:
            self.failed += 1
            log_event(
                logger, "send_rejected", level="WARNING",
                component="transport", endpoint=endpoint, status_code=response.status_code
            )
