"""
Tests for POST /api/admin/clear-queue and POST /api/debug/reset.
"""

A = "alice@example.com"
B = "bob@example.com"


def _join(client, *emails):
    for email in emails:
        client.post("/api/queue/join", json={"email": email})


def test_clear_queue_wrong_secret_returns_403(client):
    _join(client, A, B)
    before = client.get("/api/queue/status").json()

    response = client.post("/api/admin/clear-queue", json={"secret": "guess"})

    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "Unauthorized"
    after = client.get("/api/queue/status").json()
    assert after["queue"] == before["queue"]
    assert after["currentTurn"] == before["currentTurn"]


def test_clear_queue_missing_secret_returns_403(client):
    response = client.post("/api/admin/clear-queue", json={})
    assert response.status_code == 403


def test_clear_queue(client):
    _join(client, A, B)

    response = client.post("/api/admin/clear-queue", json={"secret": "admin123"})

    assert response.status_code == 200
    assert response.json() == {
        "message": "Queue cleared successfully",
        "clearedUsers": 2,
    }
    status = client.get("/api/queue/status").json()
    assert status["queueCount"] == 0
    assert status["currentTurn"] is None
    assert status["timeRemaining"] is None
    # Sessions survive an admin clear.
    assert status["activeSessions"] == 2


def test_debug_reset(client):
    _join(client, A, B)
    client.post("/api/robot/start")

    response = client.post("/api/debug/reset")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "System reset successfully"
    assert body["previousState"] == {
        "queueLength": 2,
        "currentUser": A,
        "robotStatus": "active",
        "clientCount": 0,
        "sessionCount": 2,
    }
    status = client.get("/api/queue/status").json()
    assert status["queueCount"] == 0
    assert status["robotStatus"] == "idle"
    assert status["activeSessions"] == 0
