from unittest.mock import MagicMock

import pytest
from requests.exceptions import ConnectionError

from fedavg.behavior import LinkBehavior
from fedavg.exceptions import UnresolvedEndpoint
from fedavg.scheduler import EventScheduler
from fedavg.transport import (
    COORDINATOR_ENDPOINT,
    HttpTransport,
    InMemoryTransport,
    client_endpoint,
)


def test_client_endpoint_name():
    assert client_endpoint(3) == "client[3]"


class TestInMemoryTransport:
    """Tests for the simulated network."""

    def test_resolve_requires_registered_handler(self):
        transport = InMemoryTransport(EventScheduler())

        with pytest.raises(UnresolvedEndpoint):
            transport.resolve(COORDINATOR_ENDPOINT)

        transport.register(COORDINATOR_ENDPOINT, lambda payload: None)
        assert transport.resolve(COORDINATOR_ENDPOINT) == COORDINATOR_ENDPOINT

    def test_delivery_after_latency(self):
        scheduler = EventScheduler()
        transport = InMemoryTransport(scheduler, LinkBehavior(latency=0.5))
        received = []
        transport.register("a", lambda payload: received.append((payload, scheduler.now())))

        transport.send("a", b"hello")
        assert received == []

        scheduler.run()
        assert received == [(b"hello", 0.5)]
        assert transport.stats() == {"sent": 1, "delivered": 1, "dropped": 0}

    def test_send_to_unknown_endpoint(self):
        transport = InMemoryTransport(EventScheduler())

        with pytest.raises(UnresolvedEndpoint):
            transport.send("nowhere", b"x")
        assert transport.sent == 0

    def test_lossy_link_drops(self):
        scheduler = EventScheduler()
        transport = InMemoryTransport(scheduler, LinkBehavior(loss_probability=1.0))
        received = []
        transport.register("a", received.append)

        transport.send("a", b"lost")
        scheduler.run()

        assert received == []
        assert transport.dropped == 1

    def test_unregister_makes_payload_undeliverable(self):
        scheduler = EventScheduler()
        transport = InMemoryTransport(scheduler)
        received = []
        transport.register("a", received.append)

        transport.send("a", b"late")
        transport.unregister("a")
        scheduler.run()

        assert received == []
        assert transport.delivered == 0


class TestHttpTransport:
    """Tests for the HTTP transport with a mocked requests session."""

    def _transport(self, session):
        return HttpTransport(
            {COORDINATOR_ENDPOINT: "http://localhost:9000/"},
            timeout=2.0,
            session=session
        )

    def test_resolve(self):
        transport = self._transport(MagicMock())

        assert transport.resolve(COORDINATOR_ENDPOINT) == "http://localhost:9000"
        with pytest.raises(UnresolvedEndpoint):
            transport.resolve(client_endpoint(0))

    def test_send_posts_payload(self):
        session = MagicMock()
        session.post.return_value.status_code = 200
        transport = self._transport(session)

        transport.send(COORDINATOR_ENDPOINT, b'{"type": "LOCAL_UPDATE"}')

        session.post.assert_called_once_with(
            "http://localhost:9000/messages",
            data=b'{"type": "LOCAL_UPDATE"}',
            headers={"Content-Type": "application/json"},
            timeout=2.0,
        )
        assert transport.sent == 1
        assert transport.failed == 0

    def test_connection_error_is_not_retried(self):
        session = MagicMock()
        session.post.side_effect = ConnectionError("refused")
        transport = self._transport(session)

        transport.send(COORDINATOR_ENDPOINT, b"{}")

        assert session.post.call_count == 1
        assert transport.failed == 1

    def test_error_status_counts_as_failure(self):
        session = MagicMock()
        session.post.return_value.status_code = 400
        transport = self._transport(session)

        transport.send(COORDINATOR_ENDPOINT, b"{}")

        assert transport.failed == 1

    def test_dispatch_to_registered_handler(self):
        transport = self._transport(MagicMock())
        handler = MagicMock()
        transport.register(COORDINATOR_ENDPOINT, handler)

        assert transport.dispatch(COORDINATOR_ENDPOINT, b"payload")
        assert not transport.dispatch(client_endpoint(1), b"payload")
        handler.assert_called_once_with(b"payload")
