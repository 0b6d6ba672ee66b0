"""HTTP tests for /api/v1/tasks and /api/v1/health.

Coverage:
  1. Missing / invalid bearer token → 401
  2. Error mapping: 403 / 404 / 409 / 422
  3. Create → status change → Done awards via HTTP
  4. Timer endpoints end to end
  5. Freelance accept / cancel endpoints
  6. Health probes
"""

import pytest

from app.models import db
from app.services import status_catalog


def _status_id(tenant_id, name):
    ids = {s.name: s.id for s in status_catalog.get_statuses(tenant_id)}
    db.session.commit()
    return ids[name]


def _create(client, headers, tenant_id, **body):
    body.setdefault("title", "Investor update")
    res = client.post("/api/v1/tasks", json={"tenant_id": tenant_id, **body}, headers=headers)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


class TestAuthentication:
    def test_no_token(self, client, startup):
        res = client.get(f"/api/v1/tasks/startup/{startup.tenant.id}")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_garbage_token(self, client, startup):
        res = client.get(
            f"/api/v1/tasks/startup/{startup.tenant.id}",
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert res.status_code == 401

    def test_expired_token(self, client, startup):
        from app.services.jwt_service import generate_access_token
        token = generate_access_token(startup.owner.id, expires_in=-10)
        res = client.get("/api/v1/tasks/mine", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401


class TestTaskEndpoints:
    def test_statuses_seeded_on_first_read(self, client, startup, auth_headers):
        res = client.get(f"/api/v1/tasks/statuses/{startup.tenant.id}", headers=auth_headers(startup.member))
        assert res.status_code == 200
        assert [s["name"] for s in res.get_json()] == ["To Do", "In Progress", "Done"]

    def test_create_and_list(self, client, startup, auth_headers):
        headers = auth_headers(startup.owner)
        created = _create(client, headers, startup.tenant.id, assignee_ids=[startup.member.id])

        res = client.get(f"/api/v1/tasks/startup/{startup.tenant.id}", headers=headers)
        assert [t["id"] for t in res.get_json()] == [created["id"]]

        mine = client.get("/api/v1/tasks/mine", headers=auth_headers(startup.member)).get_json()
        assert [t["id"] for t in mine] == [created["id"]]

    def test_create_requires_tenant_id(self, client, startup, auth_headers):
        res = client.post("/api/v1/tasks", json={"title": "x"}, headers=auth_headers(startup.owner))
        assert res.status_code == 400

    def test_create_without_title_is_422(self, client, startup, auth_headers):
        res = client.post(
            "/api/v1/tasks", json={"tenant_id": startup.tenant.id}, headers=auth_headers(startup.owner),
        )
        assert res.status_code == 422
        assert res.get_json()["details"] == {"title": "required"}

    @pytest.mark.parametrize("body,field", [
        ({"title": 123}, "title"),
        ({"title": "Pitch deck", "priority": ["high"]}, "priority"),
    ])
    def test_wrongly_typed_fields_are_422(self, client, startup, auth_headers, body, field):
        res = client.post(
            "/api/v1/tasks", json={"tenant_id": startup.tenant.id, **body}, headers=auth_headers(startup.owner),
        )
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        assert res.get_json()["details"] == {field: "invalid"}

    def test_outsider_forbidden(self, client, startup, auth_headers):
        created = _create(client, auth_headers(startup.owner), startup.tenant.id)
        res = client.get(f"/api/v1/tasks/{created['id']}", headers=auth_headers(startup.outsider))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_unknown_task_404(self, client, startup, auth_headers):
        res = client.get("/api/v1/tasks/nope", headers=auth_headers(startup.owner))
        assert res.status_code == 404

    def test_update(self, client, startup, auth_headers):
        created = _create(client, auth_headers(startup.owner), startup.tenant.id)
        res = client.put(
            f"/api/v1/tasks/{created['id']}",
            json={"priority": "High", "description": "Q3 numbers"},
            headers=auth_headers(startup.member),
        )
        assert res.status_code == 200
        body = res.get_json()
        assert body["priority"] == "high"
        assert body["description"] == "Q3 numbers"

    def test_status_change_to_done_awards(self, client, startup, auth_headers):
        created = _create(
            client, auth_headers(startup.owner), startup.tenant.id, assignee_ids=[startup.member.id],
        )
        done = _status_id(startup.tenant.id, "Done")

        res = client.patch(
            f"/api/v1/tasks/{created['id']}/status",
            json={"status_id": done},
            headers=auth_headers(startup.owner),
        )
        assert res.status_code == 200
        body = res.get_json()
        assert body["completed"] is True
        assert body["rewards"][0]["points"] == 2

    def test_status_change_requires_status_id(self, client, startup, auth_headers):
        created = _create(client, auth_headers(startup.owner), startup.tenant.id)
        res = client.patch(
            f"/api/v1/tasks/{created['id']}/status", json={}, headers=auth_headers(startup.owner),
        )
        assert res.status_code == 400

    def test_delete(self, client, startup, auth_headers):
        created = _create(client, auth_headers(startup.owner), startup.tenant.id)

        res = client.delete(f"/api/v1/tasks/{created['id']}", headers=auth_headers(startup.member))
        assert res.status_code == 403

        res = client.delete(f"/api/v1/tasks/{created['id']}", headers=auth_headers(startup.owner))
        assert res.status_code == 200
        res = client.get(f"/api/v1/tasks/{created['id']}", headers=auth_headers(startup.owner))
        assert res.status_code == 404


class TestTimerEndpoints:
    def test_start_stop_and_logs(self, client, startup, auth_headers, clock):
        created = _create(
            client, auth_headers(startup.owner), startup.tenant.id, assignee_ids=[startup.member.id],
        )
        tid = created["id"]

        res = client.post(f"/api/v1/tasks/{tid}/timer/start", headers=auth_headers(startup.member))
        assert res.status_code == 200
        assert res.get_json()["is_timer_running"] is True

        res = client.post(f"/api/v1/tasks/{tid}/timer/start", headers=auth_headers(startup.member))
        assert res.status_code == 409
        assert res.get_json()["details"] == {"current_state": "running"}

        clock.advance(90)
        res = client.post(
            f"/api/v1/tasks/{tid}/timer/stop", json={"note": "done for today"},
            headers=auth_headers(startup.owner),
        )
        assert res.status_code == 200
        assert res.get_json()["time_log"]["duration"] == 90

        res = client.post(f"/api/v1/tasks/{tid}/timer/pause", headers=auth_headers(startup.owner))
        assert res.status_code == 409

        logs = client.get(f"/api/v1/tasks/{tid}/time-logs", headers=auth_headers(startup.member)).get_json()
        assert [log["note"] for log in logs] == ["done for today"]

    def test_non_assignee_cannot_start(self, client, startup, auth_headers):
        created = _create(client, auth_headers(startup.owner), startup.tenant.id)
        res = client.post(f"/api/v1/tasks/{created['id']}/timer/start", headers=auth_headers(startup.member))
        assert res.status_code == 403


class TestFreelanceEndpoints:
    def test_accept_then_cancel(self, client, startup, auth_headers):
        created = _create(
            client, auth_headers(startup.owner), startup.tenant.id,
            is_freelance=True, estimated_hours=3, hourly_rate=10,
        )
        tid = created["id"]

        board = client.get("/api/v1/tasks/freelance", headers=auth_headers(startup.outsider)).get_json()
        assert [t["id"] for t in board] == [tid]

        res = client.post(f"/api/v1/tasks/freelance/{tid}/accept", headers=auth_headers(startup.outsider))
        assert res.status_code == 200
        assert res.get_json()["task"]["freelancer_id"] == startup.outsider.id

        res = client.post(f"/api/v1/tasks/freelance/{tid}/accept", headers=auth_headers(startup.member))
        assert res.status_code == 409

        mine = client.get("/api/v1/tasks/freelance/my", headers=auth_headers(startup.outsider)).get_json()
        assert [t["id"] for t in mine] == [tid]

        res = client.post(f"/api/v1/tasks/freelance/{tid}/cancel", headers=auth_headers(startup.member))
        assert res.status_code == 403

        res = client.post(f"/api/v1/tasks/freelance/{tid}/cancel", headers=auth_headers(startup.outsider))
        assert res.status_code == 200
        assert res.get_json()["task"]["freelancer_id"] is None


class TestHealth:
    def test_ready(self, client):
        res = client.get("/api/v1/health/ready")
        assert res.status_code == 200
        assert res.get_json() == {"status": "ok"}

    def test_live(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["database"]["status"] == "ok"

    def test_request_id_echoed(self, client):
        res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
