import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Response
from prometheus_client import CONTENT_TYPE_LATEST

from config.config import Config
from config.logging_config import setup_logging
from contracts.backend import (
    BackendState,
    BackendStatus,
    RegistrationRequest,
    RegistrationResponse,
)
from core.backend import redact_credentials
from core.backend_pool import BackendPool
from core.errors import ConfigurationError
from core.pool_factory import PoolFactory

setup_logging()
logger = logging.getLogger(__name__)


def create_app(pool: Optional[BackendPool] = None, seed: Optional[List[str]] = None) -> FastAPI:
    """
    Build the admin API around a backend pool.

    Args:
        pool (Optional[BackendPool]): Pool to expose; built from Config when omitted.
        seed (Optional[List[str]]): Addresses registered at startup; Config.BACKENDS when omitted.
    """
    if pool is None:
        pool = PoolFactory.create_pool()
    seed = Config.BACKENDS if seed is None else seed

    @asynccontextmanager
    async def lifespan(app):
        for address in seed:
            await pool.add(address)
        logger.info(f"Admin API started with {len(pool)} backends")
        yield
        await pool.close()

    app = FastAPI(lifespan=lifespan)
    app.state.pool = pool

    @app.get("/backends", response_model=List[BackendStatus])
    async def list_backends(state: Optional[BackendState] = None):
        backends = pool.get_by_state(state) if state else pool.all
        return [backend.snapshot() for backend in backends]

    @app.get("/backends/healthy")
    async def healthy_backends():
        return {"addresses": pool.get_healthy_addresses()}

    @app.post("/backends", response_model=RegistrationResponse, status_code=201)
    async def register_backend(data: RegistrationRequest):
        logger.info(f"Registering backend: {redact_credentials(data.address)}")
        try:
            backend = await pool.add(data.to_spec())
        except ConfigurationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if backend is None:
            raise HTTPException(
                status_code=409, detail=f"Backend {data.address} already registered"
            )
        return RegistrationResponse(status="registered", backend=backend.snapshot())

    @app.delete("/backends/{address:path}", response_model=RegistrationResponse)
    async def unregister_backend(address: str):
        logger.info(f"Unregistering backend: {redact_credentials(address)}")
        backend = await pool.remove(address)
        if backend is False:
            raise HTTPException(status_code=404, detail=f"Backend {address} not registered")
        return RegistrationResponse(status="unregistered", backend=backend.snapshot())

    @app.get("/metrics")
    def metrics():
        return Response(pool.metrics.latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
