"""Tests for settings."""

from observer.config import Settings


class TestSettings:
    """Test derived settings."""

    def test_database_url_from_parts(self) -> None:
        settings = Settings(
            database_url=None,
            db_hostname="db",
            db_username="u",
            db_password="p",
            db_name="docs",
        )

        assert settings.resolved_database_url == "postgresql+asyncpg://u:p@db:5432/docs"

    def test_explicit_database_url_wins(self) -> None:
        settings = Settings(database_url="postgresql+asyncpg://x@y/z")

        assert settings.resolved_database_url == "postgresql+asyncpg://x@y/z"

    def test_peer_urls_include_self_first(self) -> None:
        settings = Settings(
            cache_self="http://p2:8080/",
            cache_peers="http://p1:8080, http://p3:8080/",
        )

        assert settings.peer_urls == ["http://p2:8080", "http://p1:8080", "http://p3:8080"]

    def test_peer_urls_keep_listed_order(self) -> None:
        settings = Settings(
            cache_self="http://p2:8080",
            cache_peers="http://p1:8080,http://p2:8080,http://p1:8080",
        )

        assert settings.peer_urls == ["http://p1:8080", "http://p2:8080"]

    def test_env_aliases(self, monkeypatch) -> None:
        monkeypatch.setenv("CACHE_SELF", "http://10.0.0.1:8080")
        monkeypatch.setenv("CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("ENABLE_FAULT_INJECTION", "false")

        settings = Settings()

        assert settings.cache_self == "http://10.0.0.1:8080"
        assert settings.cache_ttl_seconds == 60
        assert settings.enable_fault_injection is False
