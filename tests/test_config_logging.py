import logging

import pytest
from pydantic import ValidationError

from platform_metrics.core.config import Settings
from platform_metrics.core.logging import StructuredFormatter, configure_logging, get_logger

DB_URL = "postgresql+psycopg2://u:p@localhost/db"


@pytest.mark.unit
class TestSettings:
    def test_defaults(self):
        cfg = Settings(DATABASE_URL=DB_URL)
        assert cfg.TENANT_BATCH_SIZE == 25
        assert cfg.TENANT_QUERY_TIMEOUT_SECONDS == 5.0
        assert cfg.CACHE_TTL_KPI_SECONDS == 60
        assert cfg.CACHE_TTL_ANALYTICS_SECONDS == 300

    def test_cors_origins_from_csv(self):
        cfg = Settings(DATABASE_URL=DB_URL, CORS_ORIGINS="http://a.test, http://b.test,")
        assert cfg.CORS_ORIGINS_LIST == ["http://a.test", "http://b.test"]

    @pytest.mark.parametrize(
        "overrides",
        [{"TENANT_BATCH_SIZE": 0}, {"TENANT_QUERY_TIMEOUT_MS": 0}, {"MAX_WINDOW_DAYS": -1}],
    )
    def test_rejects_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            Settings(DATABASE_URL=DB_URL, **overrides)


@pytest.mark.unit
def test_structured_formatter_appends_extra_fields():
    record = logging.LogRecord("platform_metrics.fanout", logging.WARNING, __file__, 1, "Tenants excluded", None, None)
    record.failed = 1
    record.tenants = "charlie"

    line = StructuredFormatter().format(record)

    assert "WARNING platform_metrics.fanout: Tenants excluded" in line
    assert line.endswith("| failed=1 | tenants=charlie")


@pytest.mark.unit
def test_configure_logging_writes_structured_lines_to_file(tmp_path):
    log_file = tmp_path / "app.log"
    configure_logging("INFO", str(log_file))

    try:
        raise RuntimeError("schema missing")
    except RuntimeError as exc:
        get_logger("platform_metrics.test").error("Tenant query failed", exc=exc, tenant="acme")
    for handler in logging.getLogger().handlers:
        handler.flush()

    content = log_file.read_text()
    assert "ERROR platform_metrics.test: Tenant query failed | tenant=acme" in content
    assert "RuntimeError: schema missing" in content
    for handler in list(logging.getLogger().handlers):
        handler.close()
        logging.getLogger().removeHandler(handler)
