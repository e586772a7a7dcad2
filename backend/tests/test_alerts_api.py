from datetime import date, datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from wardwatch.core.database import get_db
from wardwatch.main import app
from wardwatch.models import Alert


def add_alert(db_session, entity_id, alert_type="worker_not_present_by_9am", severity="warning",
              eo_id=7, ward_id=12, acknowledged=False, hour=4):
    alert = Alert(
        alert_type=alert_type,
        severity=severity,
        entity_type="worker",
        entity_id=entity_id,
        eo_id=eo_id,
        ward_id=ward_id,
        title="Worker not marked present by 9 AM",
        message=f"{entity_id} has not been marked present today by 9 AM.",
        alert_metadata={"worker_id": entity_id},
        acknowledged=acknowledged,
        alert_date=date(2026, 10, 19),
        created_at=datetime(2026, 10, 19, hour, 0, tzinfo=timezone.utc),
    )
    db_session.add(alert)
    db_session.commit()
    return alert


@pytest.fixture
def seeded_alerts(client, db_session, eo, ward):
    return [
        add_alert(db_session, "w-1", hour=4),
        add_alert(db_session, "w-2", alert_type="geo_violations_threshold", severity="critical", hour=5),
        add_alert(db_session, "w-3", acknowledged=True, hour=6),
        add_alert(db_session, "w-4", eo_id=99, ward_id=None, hour=7),
    ]


def test_alert_endpoints_require_token(client):
    assert client.get("/api/v1/alerts/").status_code == 401
    assert client.get("/api/v1/alerts/stats").status_code == 401
    assert client.post("/api/v1/alerts/trigger-check").status_code == 401


def test_invalid_token_rejected(client):
    response = client.get("/api/v1/alerts/", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_supervisor_cannot_list_alerts(client, headers_for):
    response = client.get("/api/v1/alerts/", headers=headers_for(21, "supervisor"))
    assert response.status_code == 403


def test_admin_lists_all_alerts_newest_first(client, seeded_alerts, admin_headers):
    response = client.get("/api/v1/alerts/", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 4
    assert data["limit"] == 50
    assert data["offset"] == 0
    assert [a["entity_id"] for a in data["alerts"]] == ["w-4", "w-3", "w-2", "w-1"]

    first = data["alerts"][-1]
    assert first["metadata"] == {"worker_id": "w-1"}
    assert first["ward"] == {"id": 12, "ward_number": "12", "ward_name": "Gandhi Nagar"}
    assert data["alerts"][0]["ward"] is None


def test_eo_only_sees_own_alerts(client, seeded_alerts, headers_for):
    response = client.get("/api/v1/alerts/", headers=headers_for(7, "eo"))
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert {a["entity_id"] for a in data["alerts"]} == {"w-1", "w-2", "w-3"}


def test_list_filters_and_pagination(client, seeded_alerts, admin_headers):
    response = client.get("/api/v1/alerts/?acknowledged=false", headers=admin_headers)
    assert {a["entity_id"] for a in response.json()["alerts"]} == {"w-1", "w-2", "w-4"}

    response = client.get("/api/v1/alerts/?severity=critical", headers=admin_headers)
    assert [a["entity_id"] for a in response.json()["alerts"]] == ["w-2"]

    response = client.get("/api/v1/alerts/?alert_type=geo_violations_threshold", headers=admin_headers)
    assert response.json()["total"] == 1

    response = client.get("/api/v1/alerts/?limit=2&offset=1", headers=admin_headers)
    data = response.json()
    assert data["total"] == 4
    assert [a["entity_id"] for a in data["alerts"]] == ["w-3", "w-2"]


def test_limit_is_capped(client, seeded_alerts, admin_headers):
    response = client.get("/api/v1/alerts/?limit=500", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["limit"] == 100


def test_stats(client, seeded_alerts, admin_headers, headers_for):
    data = client.get("/api/v1/alerts/stats", headers=admin_headers).json()
    assert data["total"] == 4
    assert data["unacknowledged"] == 3
    assert data["by_alert_type"] == {"worker_not_present_by_9am": 3, "geo_violations_threshold": 1}
    assert data["by_severity"] == {"warning": 3, "critical": 1}

    data = client.get("/api/v1/alerts/stats", headers=headers_for(7, "eo")).json()
    assert data["total"] == 3
    assert data["unacknowledged"] == 2


def test_acknowledge_alert(client, seeded_alerts, headers_for):
    alert_id = seeded_alerts[0].id
    response = client.patch(f"/api/v1/alerts/{alert_id}/acknowledge", headers=headers_for(7, "eo"))
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == alert_id
    assert data["acknowledged"] is True
    assert data["acknowledged_by"] == 7
    assert data["acknowledged_at"] is not None

    # Acknowledging again keeps the original acknowledgment
    response = client.patch(f"/api/v1/alerts/{alert_id}/acknowledge", headers=headers_for(1, "admin"))
    assert response.status_code == 200
    assert response.json()["acknowledged_by"] == 7


def test_acknowledge_unknown_alert(client, admin_headers):
    response = client.patch("/api/v1/alerts/does-not-exist/acknowledge", headers=admin_headers)
    assert response.status_code == 404


def test_eo_cannot_acknowledge_other_eo_alert(client, seeded_alerts, headers_for):
    alert_id = seeded_alerts[3].id
    response = client.patch(f"/api/v1/alerts/{alert_id}/acknowledge", headers=headers_for(7, "eo"))
    assert response.status_code == 403


def test_trigger_check_requires_admin(client, headers_for):
    response = client.post("/api/v1/alerts/trigger-check", headers=headers_for(7, "eo"))
    assert response.status_code == 403


def test_trigger_check_runs_cycle(client, db_session, admin_headers, make_worker):
    worker = make_worker("Ravi Kumar")

    response = client.post("/api/v1/alerts/trigger-check", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["results"] == {
        "worker_not_present": 1,
        "supervisor_inactive": 1,
        "geo_violations": 0,
        "three_consecutive_absences": 1,
        "errors": [],
    }
    assert data["last_run_at"] is not None

    listed = client.get("/api/v1/alerts/?alert_type=worker_not_present_by_9am", headers=admin_headers).json()
    assert [a["entity_id"] for a in listed["alerts"]] == [str(worker.id)]

    # Same day again: nothing new
    response = client.post("/api/v1/alerts/trigger-check", headers=admin_headers)
    assert response.json()["results"]["worker_not_present"] == 0


def test_scheduler_status(client, admin_headers, headers_for):
    response = client.get("/api/v1/alerts/scheduler", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["running"] is False
    assert data["next_run_at"] is None
    assert data["timezone"] == "Asia/Kolkata"
    assert data["interval_minutes"] == 30

    assert client.get("/api/v1/alerts/scheduler", headers=headers_for(7, "eo")).status_code == 403


class UnreachableSession:
    def query(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused on 10.0.0.5"))

    def close(self):
        pass


def test_database_errors_are_not_leaked(client, admin_headers):
    def unreachable_db():
        yield UnreachableSession()

    previous = app.dependency_overrides[get_db]
    app.dependency_overrides[get_db] = unreachable_db
    try:
        stats = client.get("/api/v1/alerts/stats", headers=admin_headers)
        ack = client.patch("/api/v1/alerts/a-1/acknowledge", headers=admin_headers)
    finally:
        app.dependency_overrides[get_db] = previous

    assert stats.status_code == 500
    assert stats.json()["detail"] == "Alert stats failed. Please try again later."
    assert ack.status_code == 503
    assert "10.0.0.5" not in ack.text
