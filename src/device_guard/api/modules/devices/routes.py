from dishka import FromDishka
from dishka.integrations.fastapi import DishkaRoute
from fastapi import APIRouter, Query, Response
from fastapi.responses import JSONResponse

from device_guard.api.modules.devices.schema import (
    DecisionResponse,
    DenialResponse,
    DeviceFingerprint,
    DeviceRecordListResponse,
    DeviceRecordPaginationParams,
    DeviceStatsResponse,
    LoginCheckRequest,
    ProbeReport,
    SignupCheckRequest,
)
from device_guard.api.modules.devices.service import DeviceGuardFacadeService
from device_guard.api.modules.devices.services.public.collector import (
    build_collector_script,
)
from device_guard.settings import Config

router = APIRouter(route_class=DishkaRoute)

_DENIAL_RESPONSES = {403: {"model": DenialResponse}}


@router.get("/collector.js", status_code=200)
async def get_collector_script(config: FromDishka[Config]) -> Response:
    script = build_collector_script(
        audio_timeout_ms=config.devices.audio_timeout_ms,
    )
    return Response(content=script, media_type="application/javascript")


@router.post("/fingerprint", response_model=DeviceFingerprint, status_code=200)
async def create_fingerprint(
    report: ProbeReport,
    facade: FromDishka[DeviceGuardFacadeService],
) -> DeviceFingerprint:
    return await facade.fingerprint(report)


@router.post(
    "/signup-check",
    response_model=DecisionResponse,
    status_code=200,
    responses=_DENIAL_RESPONSES,
)
async def signup_check(
    payload: SignupCheckRequest,
    facade: FromDishka[DeviceGuardFacadeService],
) -> DecisionResponse | JSONResponse:
    return await facade.signup_check(payload)


@router.post(
    "/login-check",
    response_model=DecisionResponse,
    status_code=200,
    responses=_DENIAL_RESPONSES,
)
async def login_check(
    payload: LoginCheckRequest,
    facade: FromDishka[DeviceGuardFacadeService],
) -> DecisionResponse | JSONResponse:
    return await facade.login_check(payload)


@router.get("/records", response_model=DeviceRecordListResponse, status_code=200)
async def get_device_records(
    facade: FromDishka[DeviceGuardFacadeService],
    params: DeviceRecordPaginationParams = Query(),
) -> DeviceRecordListResponse:
    return await facade.records(params)


@router.get("/stats", response_model=DeviceStatsResponse, status_code=200)
async def get_device_stats(
    facade: FromDishka[DeviceGuardFacadeService],
) -> DeviceStatsResponse:
    return await facade.stats()
