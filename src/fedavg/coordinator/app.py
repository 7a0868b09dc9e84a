"""
FastAPI Server for the Federated Averaging Coordinator

Service entry point: receives LocalUpdate payloads over HTTP and exposes the
coordinator's status, global model and metrics.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from pydantic import BaseModel

from ..config import FederationConfig
from ..exceptions import MessageDecodeError
from ..messages import decode_message
from ..scheduler import ThreadingScheduler
from ..transport import HttpTransport, Transport
from ..utils.logger import configure_logging
from .metrics import MetricsCollector
from .service import Coordinator


# Pydantic models for responses
class MessageResponse(BaseModel):
    """Response model for payload delivery."""
    accepted: bool
    message_type: str
    round_id: int


class StatusResponse(BaseModel):
    """Response model for coordinator status."""
    state: str
    running: bool
    current_round: int
    max_rounds: int
    num_clients: int
    reachable_clients: List[int]
    updates_this_round: int
    global_weights: List[float]
    num_received: int
    packets_per_client: Dict[str, int]
    unknown_sender_packets: int


class ModelResponse(BaseModel):
    """Response model for global model download."""
    round_id: int
    weights: List[float]
    serialized: str


def create_app(
    coordinator: Coordinator,
    transport: Transport,
    metrics: Optional[MetricsCollector] = None,
    manage_lifecycle: bool = True
) -> FastAPI:
    """
    Build the coordinator API around a coordinator instance.

    Args:
        coordinator: Coordinator served by the app
        transport: Transport the coordinator's receive handler is registered on
        metrics: Metrics collector exposed at /metrics (endpoint 404s if None)
        manage_lifecycle: Start the coordinator on app startup and stop it
            on shutdown

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            coordinator.start()
        yield
        if manage_lifecycle:
            coordinator.stop()
            if isinstance(coordinator.scheduler, ThreadingScheduler):
                coordinator.scheduler.shutdown()

    app = FastAPI(
        title="Federated Averaging Coordinator",
        description="Coordinator API for round-synchronized federated averaging",
        version="1.0.0",
        lifespan=lifespan
    )

    @app.post("/messages", response_model=MessageResponse)
    async def receive_message(
        request: Request, background_tasks: BackgroundTasks
    ) -> MessageResponse:
        """
        Deliver a protocol payload to the coordinator.

        Args:
            request: Raw JSON-encoded message body
            background_tasks: Runs the coordinator handler in the threadpool
                once the response is sent

        Returns:
            Acknowledgment of the HTTP delivery (not of the update itself)
        """
        payload = await request.body()

        try:
            message = decode_message(payload)
        except MessageDecodeError as e:
            raise HTTPException(status_code=400, detail=str(e))

        background_tasks.add_task(transport.dispatch, coordinator.endpoint, payload)

        return MessageResponse(
            accepted=True,
            message_type=message.type,
            round_id=message.round_id
        )

    @app.get("/status", response_model=StatusResponse)
    async def get_status() -> StatusResponse:
        """Get the coordinator status."""
        return StatusResponse(**coordinator.status())

    @app.get("/model", response_model=ModelResponse)
    async def get_model() -> ModelResponse:
        """Get the current global model."""
        return ModelResponse(
            round_id=coordinator.current_round,
            weights=coordinator.global_model.weights.tolist(),
            serialized=coordinator.global_model.serialize()
        )

    @app.get("/metrics")
    async def get_metrics() -> Dict[str, Any]:
        """Get per-round and global metrics."""
        if metrics is None:
            raise HTTPException(status_code=404, detail="Metrics are not collected")
        return metrics.get_all_metrics()

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "message": "Federated Averaging Coordinator API",
            "version": "1.0.0",
            "endpoints": {
                "deliver_message": "POST /messages",
                "get_status": "GET /status",
                "get_model": "GET /model",
                "get_metrics": "GET /metrics"
            }
        }

    return app


def build_app(config: FederationConfig) -> FastAPI:
    """
    Wire a coordinator service from configuration.

    Args:
        config: Federation configuration

    Returns:
        FastAPI application that starts the coordinator on startup
    """
    scheduler = ThreadingScheduler()
    transport = HttpTransport(config.endpoint_urls(), timeout=config.request_timeout)
    metrics = MetricsCollector(config.metrics_dir)
    coordinator = Coordinator(config, transport, scheduler, observer=metrics)
    return create_app(coordinator, transport, metrics)


def main() -> None:
    """Main entry point for the coordinator service."""
    import uvicorn

    config = FederationConfig.from_env()
    config.validate()
    configure_logging(config.log_dir, config.log_level, ("coordinator", "transport"))

    uvicorn.run(build_app(config), host="0.0.0.0", port=config.coordinator_port)


if __name__ == "__main__":
    main()
