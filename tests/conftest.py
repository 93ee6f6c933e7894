import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlparse

import pytest

BUCKET = "main-workspace"
COLLECTION = "devtools-compatibility-browsers"
COLLECTION_PATH = f"/v1/buckets/{BUCKET}/collections/{COLLECTION}"
RECORDS_PATH = f"{COLLECTION_PATH}/records"
SOURCE_PATH = "/data.json"


class _RemoteSettingsHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def _read_body(self):
        length = int(self.headers.get("Content-Length", "0"))
        if not length:
            return None
        return json.loads(self.rfile.read(length).decode("utf-8"))

    def _send_json(self, status, obj):
        raw = json.dumps(obj).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)

    def _dispatch(self, method):
        srv = self.server
        path = urlparse(self.path).path
        body = self._read_body()

        if path == SOURCE_PATH and method == "GET":
            srv.source_calls += 1
            self._send_json(srv.source_status, srv.source)
            return

        srv.calls.append((method, path, body))
        srv.auth_headers.append(self.headers.get("Authorization"))

        if method in srv.fail:
            self._send_json(srv.fail[method], {"error": "forced failure"})
            return

        if path == RECORDS_PATH and method == "GET":
            self._send_json(200, {"data": srv.records})
        elif path == RECORDS_PATH and method == "POST":
            srv.next_id += 1
            record = {"id": f"rec-{srv.next_id}", **body["data"]}
            srv.records.append(record)
            self._send_json(201, {"data": record})
        elif path.startswith(RECORDS_PATH + "/") and method in ("PUT", "DELETE"):
            rid = path.rsplit("/", 1)[1]
            pos = next((i for i, r in enumerate(srv.records) if str(r["id"]) == rid), None)
            if pos is None:
                self._send_json(404, {"error": "not found"})
            elif method == "PUT":
                srv.records[pos] = {"id": srv.records[pos]["id"], **body["data"]}
                self._send_json(200, {"data": srv.records[pos]})
            else:
                srv.records.pop(pos)
                self._send_json(200, {"data": {"id": rid, "deleted": True}})
        elif path == COLLECTION_PATH and method == "PATCH":
            srv.collection_status = body["data"]["status"]
            self._send_json(200, {"data": {"id": COLLECTION, "status": srv.collection_status}})
        else:
            self._send_json(404, {"error": "not found"})

    def do_GET(self):  # noqa: N802
        self._dispatch("GET")

    def do_POST(self):  # noqa: N802
        self._dispatch("POST")

    def do_PUT(self):  # noqa: N802
        self._dispatch("PUT")

    def do_DELETE(self):  # noqa: N802
        self._dispatch("DELETE")

    def do_PATCH(self):  # noqa: N802
        self._dispatch("PATCH")

    def log_message(self, fmt, *args):  # silence server logs during tests
        return


class FakeRemoteSettings(ThreadingHTTPServer):
    """In-memory Remote Settings collection plus a browser-compat-data endpoint."""

    def __init__(self):
        super().__init__(("127.0.0.1", 0), _RemoteSettingsHandler)
        self.records = []
        self.calls = []
        self.auth_headers = []
        self.fail = {}
        self.next_id = 0
        self.collection_status = None
        self.source = {"browsers": {}}
        self.source_status = 200
        self.source_calls = 0

    @property
    def base_url(self):
        host, port = self.server_address[:2]
        return f"http://{host}:{port}"

    @property
    def server_url(self):
        return f"{self.base_url}/v1"

    @property
    def source_url(self):
        return f"{self.base_url}{SOURCE_PATH}"

    def mutating_calls(self):
        return [c for c in self.calls if c[0] != "GET"]


@pytest.fixture()
def remote_settings():
    server = FakeRemoteSettings()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()
    thread.join(timeout=1.0)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
