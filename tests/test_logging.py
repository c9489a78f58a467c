import json

from admissions.app.core.logging import bind_context, clear_context, get_logger, setup_logging
from admissions.app.core.settings import Settings
from admissions.app.services import waitlist


def test_service_module_logger_emits_events(capsys):
    setup_logging(Settings())
    waitlist.logger.info("entry_deleted", entry_id=7)
    get_logger(waitlist.__name__).info("entry_deleted", entry_id=8)
    assert "entry_deleted" in capsys.readouterr().out


def test_json_output_outside_development(capsys):
    setup_logging(Settings(environment="production"))
    try:
        bind_context(tenant_id="tenant-a")
        get_logger("admissions.tests").info("tour_booked", entry_id=12, slot_id=3)
        event = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert event["event"] == "tour_booked"
        assert event["entry_id"] == 12
        assert event["tenant_id"] == "tenant-a"
        assert event["level"] == "info"
    finally:
        clear_context()
        setup_logging(Settings())
