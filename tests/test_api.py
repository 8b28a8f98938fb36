"""Tests for the bulk import HTTP API."""
import json

import pytest
from fastapi.testclient import TestClient

from helpers import dealer_row, to_csv
from importer.api.imports import get_job_publisher
from importer.database import get_db
from importer.main import app
from importer.models import JobStatus


@pytest.fixture
def client(session_factory, memory_queue):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_job_publisher] = lambda: memory_queue
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload_dealers(client, content: bytes, filename="dealers.csv"):
    return client.post(
        "/api/imports/dealers",
        files={"file": (filename, content, "text/csv")},
        data={"submitted_by": "5"},
    )


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_dealer_upload_is_accepted_and_queued(client, memory_queue):
    """Test uploading a dealer CSV returns 202 and queues the job."""
    response = upload_dealers(client, to_csv([dealer_row(1)]))

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "Queued"
    assert memory_queue.lease().message.job_id == body["job_id"]


def test_non_csv_upload_is_rejected(client, memory_queue):
    """Test a non-CSV upload is rejected before anything is queued."""
    response = upload_dealers(client, b"hello", filename="dealers.xlsx")
    assert response.status_code == 400
    assert memory_queue.depth() == 0


def test_payout_upload_for_unknown_cycle_is_rejected(client):
    """Test a payout upload naming a missing cycle is rejected."""
    response = client.post(
        "/api/imports/payouts",
        files={"file": ("payouts.csv", b"dealer_code\n", "text/csv")},
        data={"submitted_by": "5", "cycle_id": "999"},
    )
    assert response.status_code == 400
    assert "999" in response.json()["detail"]


def test_payout_upload_requires_cycle_id(client):
    """Test a payout upload without a cycle_id fails validation."""
    response = client.post(
        "/api/imports/payouts",
        files={"file": ("payouts.csv", b"dealer_code\n", "text/csv")},
        data={"submitted_by": "5"},
    )
    assert response.status_code == 422


def test_job_status_after_processing(client, memory_queue, processor):
    """Test job status before and after the worker processes it."""
    rows = [dealer_row(1), dealer_row(2, email="broken")]
    job_id = upload_dealers(client, to_csv(rows)).json()["job_id"]

    response = client.get(f"/api/imports/{job_id}")
    assert response.status_code == 200
    assert response.json()["status"] == "Queued"

    processor.process(memory_queue.lease().message)

    body = client.get(f"/api/imports/{job_id}").json()
    assert body["status"] == JobStatus.PARTIALLY_COMPLETED.value
    assert body["kind"] == "DealerImport"
    assert (body["total_records"], body["success_count"], body["failure_count"]) == (2, 1, 1)
    assert body["progress_percentage"] == 100.0
    assert body["attempts"] == 1
    assert body["errors"] == [{"row": 3, "errors": ["Invalid email format: broken"]}]


def test_stream_of_finished_job_sends_snapshot_and_ends(client, memory_queue, processor):
    """Test the progress stream of a finished job sends one snapshot and closes."""
    job_id = upload_dealers(client, to_csv([dealer_row(1)])).json()["job_id"]
    processor.process(memory_queue.lease().message)

    response = client.get(f"/api/imports/{job_id}/stream")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = [line[len("data: "):] for line in response.text.splitlines() if line.startswith("data: ")]
    assert len(events) == 1
    snapshot = json.loads(events[0])
    assert snapshot["job_id"] == job_id
    assert snapshot["status"] == JobStatus.COMPLETED.value
    assert (snapshot["total"], snapshot["success"], snapshot["failed"]) == (1, 1, 0)
    assert snapshot["progress"] == 100.0


def test_stream_of_unknown_job_is_404(client):
    """Test streaming an unknown job returns 404."""
    assert client.get("/api/imports/missing/stream").status_code == 404


def test_unknown_job_is_404(client):
    """Test fetching an unknown job returns 404."""
    assert client.get("/api/imports/missing").status_code == 404


def test_list_imports_filters_by_kind(client):
    """Test listing imports filtered by job kind."""
    job_id = upload_dealers(client, to_csv([dealer_row(1)])).json()["job_id"]

    dealers = client.get("/api/imports", params={"kind": "DealerImport"}).json()
    payouts = client.get("/api/imports", params={"kind": "PayoutImport"}).json()
    assert [job["id"] for job in dealers] == [job_id]
    assert payouts == []


def test_missing_publisher_is_503(session_factory):
    """Test uploads are refused when no queue client is configured."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        response = upload_dealers(TestClient(app), to_csv([dealer_row(1)]))
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 503
