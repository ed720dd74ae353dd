def test_health_ok(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["storage"] is True
    assert body["backend"] is True
    assert body["payment_widget"] is True


def test_health_degraded_when_storage_down(client, storage):
    storage.fail_reads = True
    body = client.get("/api/health").json()
    assert body["status"] == "degraded"
    assert body["storage"] is False
