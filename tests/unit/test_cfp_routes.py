import pytest
from fastapi.testclient import TestClient

from cfpdesk.api import main as api_main
from cfpdesk.api.routes import cfp as cfp_route
from cfpdesk.domain.errors import TransportError


@pytest.fixture()
def client(workflow, monkeypatch):
    monkeypatch.setattr(cfp_route, "_workflow", workflow)
    with TestClient(api_main.app) as c:
        yield c


def _create_submission(client) -> str:
    speaker = client.post(
        "/api/cfp/speakers",
        json={"email": "grace@example.com", "first_name": "Grace", "last_name": "Hopper"},
    ).json()["speaker"]
    resp = client.post(
        "/api/cfp/submissions", json={"speaker_id": speaker["id"], "title": "Compilers for all"}
    )
    assert resp.status_code == 200
    return resp.json()["submission"]["id"]


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_trace_id_header_is_echoed(client):
    resp = client.get("/health", headers={"x-trace-id": "req-abc"})
    assert resp.headers["x-trace-id"] == "req-abc"


def test_submission_lifecycle(client):
    submission_id = _create_submission(client)

    resp = client.get(f"/api/cfp/submissions/{submission_id}")
    assert resp.status_code == 200
    body = resp.json()["submission"]
    assert body["status"] == "draft"
    assert body["speaker"]["display_name"] == "Grace Hopper"

    resp = client.post(f"/api/cfp/submissions/{submission_id}/status", json={"status": "under_review"})
    assert resp.json() == {
        "submission_id": submission_id,
        "previous_status": "draft",
        "status": "under_review",
        "changed": True,
    }

    listed = client.get("/api/cfp/submissions", params={"status": "under_review"}).json()
    assert listed["count"] == 1


def test_unknown_submission_is_404(client):
    assert client.get("/api/cfp/submissions/missing").status_code == 404
    assert client.get("/api/cfp/submissions/missing/decision").status_code == 404


def test_bad_status_is_400(client):
    submission_id = _create_submission(client)
    resp = client.post(f"/api/cfp/submissions/{submission_id}/status", json={"status": "nope"})
    assert resp.status_code == 400


def test_bulk_status_reports_partial_failure(client):
    submission_id = _create_submission(client)
    resp = client.post(
        "/api/cfp/submissions/bulk-status",
        json={"submission_ids": [submission_id, "ghost"], "status": "rejected"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success_count"] == 1
    assert body["failure_count"] == 1
    assert body["failed"][0]["submission_id"] == "ghost"


def test_reviews_and_scores(client):
    submission_id = _create_submission(client)
    for reviewer, score in (("r1", 4), ("r2", 1)):
        resp = client.put(
            f"/api/cfp/submissions/{submission_id}/reviews/{reviewer}",
            json={"score_overall": score, "score_clarity": 3},
        )
        assert resp.status_code == 200

    resp = client.put(
        f"/api/cfp/submissions/{submission_id}/reviews/r3", json={"score_overall": 9}
    )
    assert resp.status_code == 400

    reviews = client.get(f"/api/cfp/submissions/{submission_id}/reviews").json()
    assert reviews["count"] == 2

    scores = client.get(f"/api/cfp/submissions/{submission_id}/scores").json()
    assert scores["aggregate"]["avg_overall"] == pytest.approx(2.5)
    assert scores["aggregate"]["avg_relevance"] is None
    assert scores["scoring"]["status"] == "borderline"


def test_scores_without_reviews_are_null(client):
    submission_id = _create_submission(client)
    scores = client.get(f"/api/cfp/submissions/{submission_id}/scores").json()
    assert scores["aggregate"] is None
    assert scores["scoring"]["review_count"] == 0


def test_decision_and_email_flow(client, transport):
    submission_id = _create_submission(client)

    resp = client.post(
        f"/api/cfp/submissions/{submission_id}/decision",
        json={"decision": "rejected", "notes": "full program", "decided_by": "admin-1"},
    )
    assert resp.status_code == 200
    assert resp.json()["decision"]["decision_status"] == "rejected"

    resp = client.post(
        f"/api/cfp/submissions/{submission_id}/emails",
        json={"email_type": "rejection", "coupon_discount_percent": 20, "coupon_validity_days": 14},
    )
    assert resp.status_code == 200
    email = resp.json()["scheduled_email"]
    assert email["status"] == "pending"
    assert email["time_remaining_minutes"] == 30
    assert email["time_remaining_display"] == "30 minutes"
    assert email["coupon_code"].startswith("CFPTHX")

    dup = client.post(
        f"/api/cfp/submissions/{submission_id}/emails", json={"email_type": "rejection"}
    )
    assert dup.status_code == 409
    assert dup.json()["detail"]["existing"]["id"] == email["id"]

    state = client.get(f"/api/cfp/submissions/{submission_id}/decision").json()
    assert state["decision"]["decision_status"] == "rejected"
    assert [e["id"] for e in state["scheduled_emails"]] == [email["id"]]
    assert state["events"][0]["event_type"] == "decision_made"

    resp = client.post(f"/api/cfp/emails/{email['id']}/cancel", json={"cancelled_by": "admin-1"})
    assert resp.status_code == 200
    assert resp.json()["scheduled_email"]["status"] == "cancelled"
    assert resp.json()["scheduled_email"]["time_remaining_minutes"] is None

    again = client.post(f"/api/cfp/emails/{email['id']}/cancel")
    assert again.status_code == 409

    fresh = client.post(
        f"/api/cfp/submissions/{submission_id}/emails", json={"email_type": "rejection"}
    ).json()["scheduled_email"]
    sent = client.post(f"/api/cfp/emails/{fresh['id']}/send-now")
    assert sent.status_code == 200
    assert sent.json()["scheduled_email"]["status"] == "sent"
    assert len(transport.calls) == 1

    late = client.post(f"/api/cfp/emails/{fresh['id']}/send-now")
    assert late.status_code == 409


def test_acceptance_with_coupon_is_400(client):
    submission_id = _create_submission(client)
    resp = client.post(
        f"/api/cfp/submissions/{submission_id}/emails",
        json={"email_type": "acceptance", "coupon_discount_percent": 10},
    )
    assert resp.status_code == 400


def test_transport_failure_is_502(client, transport):
    submission_id = _create_submission(client)
    email = client.post(
        f"/api/cfp/submissions/{submission_id}/emails", json={"email_type": "acceptance"}
    ).json()["scheduled_email"]
    transport.fail_with = TransportError("provider down")

    resp = client.post(f"/api/cfp/emails/{email['id']}/send-now")

    assert resp.status_code == 502
    emails = client.get(f"/api/cfp/submissions/{submission_id}/emails").json()
    assert emails["scheduled_emails"][0]["status"] == "failed"
    assert emails["scheduled_emails"][0]["failure_reason"] == "provider down"


def test_mark_failed_and_dispatch_tick(client, clock, transport):
    submission_id = _create_submission(client)
    first = client.post(
        f"/api/cfp/submissions/{submission_id}/emails", json={"email_type": "acceptance"}
    ).json()["scheduled_email"]
    resp = client.post(f"/api/cfp/emails/{first['id']}/fail", json={"reason": "bounced"})
    assert resp.json()["scheduled_email"]["status"] == "failed"

    second = client.post(
        f"/api/cfp/submissions/{submission_id}/emails", json={"email_type": "acceptance"}
    ).json()["scheduled_email"]
    clock.advance(minutes=30)

    tick = client.post("/api/cfp/dispatch/tick").json()
    assert tick == {"sent": [second["id"]], "failed": [], "skipped": []}
    assert len(transport.calls) == 1


def test_insights_histograms_and_pipeline_counts(client):
    reviewed = _create_submission(client)
    speaker = client.post(
        "/api/cfp/speakers",
        json={"email": "linus@example.com", "first_name": "Linus", "last_name": "T"},
    ).json()["speaker"]
    client.post("/api/cfp/submissions", json={"speaker_id": speaker["id"], "title": "Kernels"})

    client.post(f"/api/cfp/submissions/{reviewed}/status", json={"status": "under_review"})
    for reviewer in ("r1", "r2"):
        client.put(
            f"/api/cfp/submissions/{reviewed}/reviews/{reviewer}", json={"score_overall": 4}
        )

    body = client.get("/api/cfp/insights").json()

    assert body["total_submissions"] == 2
    assert body["total_reviewers"] == 2
    assert body["buckets"]["score"]["3.5-5"] == 1
    assert sum(body["buckets"]["score"].values()) == 1
    assert body["buckets"]["coverage"] == {"0-24": 1, "25-49": 0, "50-74": 0, "75-100": 1}
    assert body["buckets"]["status"]["likely_shortlisted"] == 1
    assert body["buckets"]["status"]["needs_more_reviews"] == 1
    assert body["pipeline_status"]["draft"] == 1
    assert body["pipeline_status"]["under_review"] == 1
    assert body["pipeline_status"]["accepted"] == 0

    assert client.get("/api/cfp/insights", params={"total_reviewers": -1}).status_code == 400


def test_attendance_confirmation_flow(client):
    submission_id = _create_submission(client)
    url = f"/api/cfp/submissions/{submission_id}/attendance"
    assert client.get(url).json() == {"attendance": None}

    client.post(f"/api/cfp/submissions/{submission_id}/emails", json={"email_type": "acceptance"})
    assert client.get(url).json()["attendance"]["status"] == "pending"

    # still a draft in the pipeline
    assert client.post(url, json={"response": "confirm"}).status_code == 400

    client.post(f"/api/cfp/submissions/{submission_id}/status", json={"status": "accepted"})
    resp = client.post(
        url, json={"response": "decline", "decline_reason": "conflict", "decline_notes": "wedding"}
    )
    assert resp.status_code == 200
    attendance = resp.json()["attendance"]
    assert attendance["status"] == "declined"
    assert attendance["decline_reason"] == "conflict"
    assert attendance["responded_at"] is not None

    assert client.post(url, json={"response": "decline", "decline_reason": "nope"}).status_code == 400
    assert client.get("/api/cfp/submissions/missing/attendance").status_code == 404
    assert client.post(
        "/api/cfp/submissions/missing/attendance", json={"response": "confirm"}
    ).status_code == 404
