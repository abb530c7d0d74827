from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import make_url

# Integration tests TRUNCATE the ledger tables, so only throwaway local databases qualify.
TEST_DB_SUFFIX = "_test"
TEST_DB_PREFIX = "test_"
LOCAL_TEST_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "postgres"})


@dataclass(frozen=True, slots=True)
class IntegrationDbSafetyResult:
    database_name: str
    host: str
    rejection: str | None = None

    @property
    def is_safe(self) -> bool:
        return self.rejection is None


def _is_test_database_name(name: str) -> bool:
    lowered = name.lower()
    return lowered.endswith(TEST_DB_SUFFIX) or lowered.startswith(TEST_DB_PREFIX)


def assess_integration_db_safety(database_url: str) -> IntegrationDbSafetyResult:
    url = make_url(database_url)
    database_name = (url.database or "").strip()
    host = (url.host or "").strip().lower()

    rejection: str | None = None
    if url.get_backend_name() != "postgresql":
        rejection = f"backend {url.get_backend_name()!r} is not PostgreSQL"
    elif not _is_test_database_name(database_name):
        rejection = f"database {database_name!r} is not named like a test database"
    elif host not in LOCAL_TEST_HOSTS:
        rejection = f"host {host!r} is not a local test host"
    return IntegrationDbSafetyResult(database_name=database_name, host=host, rejection=rejection)


def assert_safe_integration_db(database_url: str) -> None:
    result = assess_integration_db_safety(database_url)
    if result.is_safe:
        return
    raise RuntimeError(
        f"Refusing to run integration tests: {result.rejection}. "
        "Point DATABASE_URL at a local database such as 'referral_engine_test'."
    )
