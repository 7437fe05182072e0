from device_guard.settings import Config, PostgresConfig


def test_sqlite_is_the_default_database():
    assert Config().database_url.startswith("sqlite+aiosqlite://")


def test_explicit_dsn_wins():
    config = Config(database_dsn="sqlite+aiosqlite:///:memory:")

    assert config.database_url == "sqlite+aiosqlite:///:memory:"


def test_postgres_url_is_built():
    config = Config(
        env="prod",
        postgres=PostgresConfig(user="guard", password="pw", host="db", db="devices"),
    )

    assert config.database_url == "postgresql+asyncpg://guard:pw@db:5432/devices"


def test_nested_env_overrides(monkeypatch):
    monkeypatch.setenv("APP__DEVICES__ACCOUNT_LIMIT", "5")
    monkeypatch.setenv("APP__DEVICES__STORAGE_BACKEND", "memory")

    config = Config()

    assert config.devices.account_limit == 5
    assert config.devices.storage_backend == "memory"
