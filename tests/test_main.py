import json
import logging

from fastapi.testclient import TestClient

from mockgrade.main import CustomFormatter, app


def test_api_test():
    with TestClient(app) as client:
        response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"success": True, "service": "mockgrade"}


def test_health():
    with TestClient(app) as client:
        response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def make_record(**extra):
    record = logging.LogRecord("mockgrade.test", logging.WARNING, __file__, 1, "degraded computation", (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_text_formatter_prefixes_hub_context():
    formatter = CustomFormatter(fmt="%(levelname)s %(message)s")
    line = formatter.format(make_record(hub_id="hub1", series="MOCK 1", code="thin_cohort"))
    assert line == "[hub1 MOCK 1] WARNING degraded computation | code=thin_cohort"


def test_json_formatter_masks_contact_details():
    formatter = CustomFormatter(use_json=True)
    entry = json.loads(formatter.format(make_record(hub_id="hub1", parent_contact="0244000000")))
    assert entry["message"] == "degraded computation"
    assert entry["hub_id"] == "hub1"
    assert entry["parent_contact"] == "***"
