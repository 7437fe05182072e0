from collections.abc import AsyncIterator

from dishka import (
    AsyncContainer,
    Provider,
    Scope,
    from_context,
    make_async_container,
    provide,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from device_guard.api.modules.devices.service import DeviceGuardFacadeService
from device_guard.api.modules.devices.services.fingerprint import FingerprintComposer
from device_guard.api.modules.devices.services.limits import (
    DeviceRecordStore,
    InMemoryDeviceRecordStore,
    LimitEnforcer,
    SessionGuard,
    SqlDeviceRecordStore,
)
from device_guard.database import build_engine, build_session_factory
from device_guard.settings import Config, get_config


class AppProvider(Provider):
    """Application provider for dependency injection."""

    config = from_context(provides=Config, scope=Scope.APP)


class ServicesProvider(Provider):
    """Services provider for dependency injection."""

    @provide(scope=Scope.APP)
    def get_fingerprint_composer(self) -> FingerprintComposer:
        return FingerprintComposer()

    @provide(scope=Scope.APP)
    def get_limit_enforcer(
        self,
        config: Config,
        store: DeviceRecordStore,
    ) -> LimitEnforcer:
        return LimitEnforcer(store, account_limit=config.devices.account_limit)

    @provide(scope=Scope.APP)
    def get_session_guard(self, config: Config) -> SessionGuard:
        return SessionGuard(account_limit=config.devices.account_limit)

    @provide(scope=Scope.REQUEST)
    def get_device_guard_facade_service(
        self,
        config: Config,
        composer: FingerprintComposer,
        enforcer: LimitEnforcer,
        session_guard: SessionGuard,
        store: DeviceRecordStore,
    ) -> DeviceGuardFacadeService:
        return DeviceGuardFacadeService(
            config=config,
            composer=composer,
            enforcer=enforcer,
            session_guard=session_guard,
            store=store,
        )


class MemoryStoreProvider(Provider):
    """Keeps device records in process memory."""

    @provide(scope=Scope.APP)
    def get_device_record_store(self) -> DeviceRecordStore:
        return InMemoryDeviceRecordStore()


class DatabaseProvider(Provider):
    """Engine, session factory and the SQL-backed device record store."""

    @provide(scope=Scope.APP)
    async def get_engine(self, config: Config) -> AsyncIterator[AsyncEngine]:
        engine = build_engine(config)
        yield engine
        await engine.dispose()

    @provide(scope=Scope.APP)
    def get_session_factory(
        self, engine: AsyncEngine
    ) -> async_sessionmaker[AsyncSession]:
        return build_session_factory(engine)

    @provide(scope=Scope.APP)
    def get_device_record_store(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> DeviceRecordStore:
        return SqlDeviceRecordStore(session_factory)


def get_async_container(config: Config | None = None) -> AsyncContainer:
    config = config or get_config()
    store_provider = (
        DatabaseProvider()
        if config.devices.storage_backend == "database"
        else MemoryStoreProvider()
    )
    return make_async_container(
        AppProvider(),
        ServicesProvider(),
        store_provider,
        context={Config: config},
    )
