from fastapi import APIRouter


def register_routers(router: APIRouter) -> None:
    from device_guard.api.modules.devices.routes import router as devices_router

    router.include_router(devices_router, prefix="/devices", tags=["Devices"])
