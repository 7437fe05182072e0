from sqlalchemy.ext.asyncio import AsyncSession

from device_guard.api.modules.devices.gateway import DeviceRecordGateway


class UnitOfWork:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.devices = DeviceRecordGateway(session)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
