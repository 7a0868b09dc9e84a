"""
FastAPI Receiver for a Federated Averaging Client

Service entry point for one client: receives GlobalUpdate payloads over HTTP
and exposes the client's status.
"""

import os
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from pydantic import BaseModel

from ..config import FederationConfig
from ..exceptions import ConfigurationError, MessageDecodeError
from ..messages import decode_message
from ..scheduler import ThreadingScheduler
from ..transport import HttpTransport, Transport
from ..utils.logger import configure_logging
from .agent import ClientAgent


class MessageResponse(BaseModel):
    """Response model for payload delivery."""
    accepted: bool
    message_type: str
    round_id: int


def create_app(
    agent: ClientAgent,
    transport: Transport,
    manage_lifecycle: bool = True
) -> FastAPI:
    """
    Build the receiver API around a client agent.

    Args:
        agent: Client agent served by the app
        transport: Transport the agent's receive handler is registered on
        manage_lifecycle: Start the agent on app startup and stop it on shutdown

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            agent.start()
        yield
        if manage_lifecycle:
            agent.stop()
            if isinstance(agent.scheduler, ThreadingScheduler):
                agent.scheduler.shutdown()

    app = FastAPI(
        title=f"Federated Averaging Client {agent.client_id}",
        description="Receiver API of one federated averaging client",
        version="1.0.0",
        lifespan=lifespan
    )

    @app.post("/messages", response_model=MessageResponse)
    async def receive_message(
        request: Request, background_tasks: BackgroundTasks
    ) -> MessageResponse:
        """Deliver a protocol payload to the client once the response is sent."""
        payload = await request.body()

        try:
            message = decode_message(payload)
        except MessageDecodeError as e:
            raise HTTPException(status_code=400, detail=str(e))

        background_tasks.add_task(transport.dispatch, agent.endpoint, payload)

        return MessageResponse(
            accepted=True,
            message_type=message.type,
            round_id=message.round_id
        )

    @app.get("/status")
    async def get_status():
        """Get the client status."""
        return agent.status()

    @app.get("/")
    async def root():
        return {
            "message": f"Federated Averaging Client {agent.client_id}",
            "version": "1.0.0",
            "endpoints": {
                "deliver_message": "POST /messages",
                "get_status": "GET /status"
            }
        }

    return app


def build_app(config: FederationConfig, client_id: int) -> FastAPI:
    """
    Wire a client service from configuration.

    Args:
        config: Federation configuration
        client_id: Identifier of this client

    Returns:
        FastAPI application that starts the client on startup
    """
    if not 0 <= client_id < config.num_clients:
        raise ConfigurationError(
            f"client_id must be within [0, {config.num_clients}), got {client_id}"
        )

    scheduler = ThreadingScheduler()
    transport = HttpTransport(config.endpoint_urls(), timeout=config.request_timeout)
    agent = ClientAgent.from_config(client_id, config, transport, scheduler)
    return create_app(agent, transport)


def main() -> None:
    """Main entry point for a client service (FEDAVG_CLIENT_ID selects the client)."""
    import uvicorn

    config = FederationConfig.from_env()
    config.validate()
    client_id = int(os.getenv("FEDAVG_CLIENT_ID", "0"))
    configure_logging(config.log_dir, config.log_level, ("client", "transport"))

    uvicorn.run(
        build_app(config, client_id),
        host="0.0.0.0",
        port=config.client_base_port + client_id
    )


if __name__ == "__main__":
    main()
