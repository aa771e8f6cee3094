import json
import threading

from receipt_spooler import create_app
from receipt_spooler.printing.connection import ConnectionManager, PrinterAddress
from receipt_spooler.printing.executor import PrintExecutor
from receipt_spooler.printing.fetcher import ImageFetcher
from receipt_spooler.printing.worker import Processor

from conftest import FakeSession, PrinterFactory


def _make(spool_dir, overrides=None, factory=None, session=None, executor=None, autostart=False):
    proc = Processor(
        ImageFetcher(str(spool_dir), session=session or FakeSession()),
        ConnectionManager(PrinterAddress("192.168.1.103"), factory=factory or PrinterFactory()),
        executor or PrintExecutor(),
        autostart=autostart,
    )
    app = create_app(config_overrides=overrides, processor=proc)
    app.config.update(TESTING=True)
    return app, proc


def _post(client, payload, **headers):
    headers.setdefault("Content-Type", "application/json")
    return client.post("/api/v1/jobs", data=json.dumps(payload), headers=headers)


def test_submit_single_event_enqueues_job(spool_dir):
    app, proc = _make(spool_dir)
    client = app.test_client()

    r = _post(client, {"fullPath": "https://img.example.com/receipts/R1.jpg"})
    assert r.status_code == 202, r.get_data(as_text=True)
    body = r.get_json()
    assert body["status"] == "queued"
    assert body["source_uri"] == "https://img.example.com/receipts/R1.jpg"
    assert r.headers["Location"] == body["links"]["self"] == f"/api/v1/jobs/{body['id']}"
    assert proc.queue_size() == 1

    proc.drain()
    r = client.get(f"/api/v1/jobs/{body['id']}")
    assert r.status_code == 200
    assert r.get_json()["status"] == "success"

    r = client.get(f"/jobs/{body['id']}")
    assert r.get_json()["state"] == "done"


def test_submit_batch_preserves_order(spool_dir):
    session = FakeSession()
    app, proc = _make(spool_dir, session=session)
    client = app.test_client()

    events = [{"fullPath": f"https://h/r/{n}.png"} for n in "ABC"]
    events.append({"source_uri": "https://h/r/D.png"})
    r = _post(client, {"events": events})
    assert r.status_code == 202
    jobs = r.get_json()["jobs"]
    assert [j["source_uri"] for j in jobs] == [f"https://h/r/{n}.png" for n in "ABCD"]

    proc.drain()
    assert session.requested == [f"https://h/r/{n}.png" for n in "ABCD"]


def test_relative_full_path_uses_base_url(spool_dir):
    app, proc = _make(spool_dir, overrides={"image_base_url": "https://cdn.example.com/bucket"})
    r = _post(app.test_client(), {"fullPath": "receipts/R9.jpg"})
    assert r.status_code == 202
    assert r.get_json()["source_uri"] == "https://cdn.example.com/bucket/receipts/R9.jpg"


def test_validation_errors(spool_dir):
    app, proc = _make(spool_dir)
    client = app.test_client()

    r = _post(client, {})
    assert r.status_code == 400
    assert "error" in r.get_json()

    r = _post(client, {"fullPath": "   "})
    assert r.status_code == 400

    r = _post(client, {"events": []})
    assert r.status_code == 400

    r = _post(client, {"events": [{"fullPath": f"https://h/{i}.png"} for i in range(51)]})
    assert r.status_code == 400
    assert "too many events" in r.get_json()["error"]

    r = client.post("/api/v1/jobs", data="fullPath=x")
    assert r.status_code == 415

    assert proc.queue_size() == 0


def test_webhook_token_required_when_configured(spool_dir):
    app, proc = _make(spool_dir, overrides={"webhook_token": "s3cret"})
    client = app.test_client()
    payload = {"fullPath": "https://h/r/A.png"}

    assert _post(client, payload).status_code == 401
    assert _post(client, payload, Authorization="Bearer wrong").status_code == 401
    assert _post(client, payload, Authorization="Bearer s3cret").status_code == 202
    assert proc.queue_size() == 1


def test_unconfigured_service_returns_503():
    app = create_app(register_worker=False)
    client = app.test_client()
    r = _post(client, {"fullPath": "https://h/r/A.png"})
    assert r.status_code == 503

    r = client.get("/healthz")
    assert r.get_json() == {"status": "degraded", "reason": "no_config"}


def test_unknown_job_is_404(spool_dir):
    app, _ = _make(spool_dir)
    client = app.test_client()
    assert client.get("/api/v1/jobs/missing").status_code == 404
    assert client.get("/jobs/missing").status_code == 404


def test_jobs_list(spool_dir):
    app, proc = _make(spool_dir)
    client = app.test_client()
    _post(client, {"fullPath": "https://h/r/A.png"})
    _post(client, {"fullPath": "https://h/r/B.png"})
    jobs = client.get("/jobs").get_json()["jobs"]
    assert {j["source_uri"] for j in jobs} == {"https://h/r/A.png", "https://h/r/B.png"}
    assert {j["status"] for j in jobs} == {"queued"}


def test_healthz_reports_printer_and_queue(spool_dir):
    app, proc = _make(spool_dir)
    body = app.test_client().get("/healthz").get_json()
    assert body["status"] == "ok"
    assert body["printer_ok"] is True
    assert body["printer"] == "192.168.1.103:9100"
    assert body["state"] == "idle"
    assert body["queue_size"] == 0

    app, proc = _make(spool_dir, factory=PrinterFactory(failures=99))
    body = app.test_client().get("/healthz").get_json()
    assert body["status"] == "degraded"
    assert body["printer_ok"] is False
    assert body["reason"].startswith("printer_unreachable")


def test_create_app_builds_processor_from_config(tmp_path, monkeypatch):
    monkeypatch.setenv("RECEIPTSPOOLER_PRINTER_HOST", "10.0.0.5")
    monkeypatch.setenv("RECEIPTSPOOLER_CONNECT_RETRIES", "4")
    app = create_app(register_worker=False, config_overrides={"spool_dir": str(tmp_path)})
    proc = app.extensions["spooler"]
    assert proc.connections.address == PrinterAddress("10.0.0.5", 9100)
    assert proc.connections.retries == 4
    assert proc.autostart is False


def test_healthz_during_print_does_not_open_second_connection(spool_dir):
    entered = threading.Event()
    release = threading.Event()

    class BlockingExecutor(PrintExecutor):
        def render(self, handle, image):
            entered.set()
            release.wait(10)
            return super().render(handle, image)

    factory = PrinterFactory()
    app, proc = _make(spool_dir, factory=factory, executor=BlockingExecutor(), autostart=True)
    client = app.test_client()

    job = proc.enqueue("https://h/r/A.png")
    try:
        assert entered.wait(10)
        body = client.get("/healthz").get_json()
    finally:
        release.set()
    assert proc.wait_idle(timeout=10)

    assert body["state"] == "busy"
    assert body["printer_ok"] is True
    assert body["status"] == "ok"
    assert factory.max_open == 1
    assert factory.attempts == 1
    assert proc.get_job(job.id)["status"] == "success"

    # Once idle the health check connects to the printer itself again
    assert client.get("/healthz").get_json()["printer_ok"] is True
    assert factory.attempts == 2
    assert factory.max_open == 1
