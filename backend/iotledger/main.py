import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Depends, Request, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import create_token, require_identity
from .config import Settings, load_settings, configure_logging
from .errors import LedgerError
from .events import EventSink, LoggingEventSink
from .mqtt_pub import MqttEventSink
from .schemas import (
    TokenIn, TokenOut, DeviceRegisterIn, DataSubmitIn, DeviceOut, DataPointOut,
    ToggleOut, VerifyOut, OwnerDevicesOut, StatsOut,
)
from .service import LedgerService, open_service
from . import ingestor

logger = logging.getLogger(__name__)


def get_service(request: Request) -> LedgerService:
    return request.app.state.service


def create_app(settings: Settings | None = None, sink: EventSink | None = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        event_sink = sink
        mqtt_sink = None
        if event_sink is None:
            if settings.mqtt_enabled:
                mqtt_sink = MqttEventSink(settings.mqtt_host, settings.mqtt_port, settings.mqtt_tenant)
                mqtt_sink.start()
                event_sink = mqtt_sink
            else:
                event_sink = LoggingEventSink()
        service = await open_service(settings.database_url, sink=event_sink)
        app.state.service = service
        task = None
        if settings.mqtt_enabled:
            task = asyncio.create_task(ingestor.run(service, settings))
            logger.info("mqtt ingestion enabled on %s", settings.mqtt_data_topic)
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            if mqtt_sink is not None:
                await mqtt_sink.close()
            await service.close()

    app = FastAPI(title="IoT Device Registry & Data Ledger", lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # DEV ONLY
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LedgerError)
    async def ledger_error(request: Request, exc: LedgerError):
        return JSONResponse(status_code=exc.status_code,
                            content={"error": exc.kind, "detail": exc.precondition})

    @app.post("/auth/token", response_model=TokenOut)
    async def issue_token(body: TokenIn):
        # DEMO: any identity gets a token; real deployments authenticate upstream
        return TokenOut(access_token=create_token(body.identity, settings.jwt_secret, settings.jwt_minutes))

    @app.post("/devices", response_model=DeviceOut, status_code=201)
    async def register_device(body: DeviceRegisterIn, caller: str = Depends(require_identity),
                              service: LedgerService = Depends(get_service)):
        return await service.register_device(body.device_id, body.device_type, body.location, caller)

    @app.get("/devices", response_model=List[DeviceOut])
    async def list_devices(service: LedgerService = Depends(get_service)):
        return await service.list_devices()

    @app.get("/devices/{device_id}", response_model=DeviceOut)
    async def get_device(device_id: str, service: LedgerService = Depends(get_service)):
        return await service.get_device(device_id)

    @app.post("/devices/{device_id}/toggle", response_model=ToggleOut)
    async def toggle_device(device_id: str, caller: str = Depends(require_identity),
                            service: LedgerService = Depends(get_service)):
        state = await service.toggle_device_status(device_id, caller)
        return ToggleOut(device_id=device_id, is_active=state)

    @app.get("/devices/{device_id}/data", response_model=List[DataPointOut])
    async def device_data(device_id: str, limit: int = Query(100, ge=1, le=1000),
                          service: LedgerService = Depends(get_service)):
        return await service.list_device_data(device_id, limit)

    @app.get("/owners/{owner}/devices", response_model=OwnerDevicesOut)
    async def owner_devices(owner: str, service: LedgerService = Depends(get_service)):
        return OwnerDevicesOut(owner=owner, device_ids=await service.get_owner_devices(owner))

    @app.post("/data", response_model=DataPointOut, status_code=201)
    async def submit_data(body: DataSubmitIn, caller: str = Depends(require_identity),
                          service: LedgerService = Depends(get_service)):
        return await service.submit_data(body.device_id, body.data_type, body.data_value, caller)

    @app.get("/data/{data_hash}", response_model=DataPointOut)
    async def get_data_point(data_hash: str, service: LedgerService = Depends(get_service)):
        return await service.get_data_point(data_hash)

    @app.post("/data/{data_hash}/verify", response_model=VerifyOut)
    async def verify_data(data_hash: str, caller: str = Depends(require_identity),
                          service: LedgerService = Depends(get_service)):
        await service.verify_data(data_hash, caller)
        return VerifyOut(data_hash=data_hash)

    @app.get("/stats", response_model=StatsOut)
    async def stats(service: LedgerService = Depends(get_service)):
        return StatsOut(total_devices=await service.get_total_devices(),
                        total_data_points=await service.get_total_data_points())

    return app


# uvicorn iotledger.main:app
app = create_app()
