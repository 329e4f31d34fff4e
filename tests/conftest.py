import json

import pytest

from bundle_rollout.models import BundleIdentity, HttpResponse, ServerConfiguration
from bundle_rollout.servers import ServersConfiguration
from bundle_rollout.support import BundleServerSupport, ServerSupport
from bundle_rollout.transport import HttpTransport

BUNDLES_URL = "http://localhost:{port}/system/console/bundles.json"
STATE_RAW = {"Active": 32, "Fragment": 4, "Installed": 2, "Resolved": 4, "Uninstalled": 1}


class FakeTransport(HttpTransport):
    """Replays canned responses per (method, url); the last response for a URL repeats forever"""

    def __init__(self, default=HttpResponse(404, "Not Found")):
        self.default = default
        self.responses = {}
        self.requests = []
        self.shutdowns = 0

    def respond(self, method, url, *responses):
        self.responses[(method, url)] = list(responses)
        return self

    def execute(self, request):
        self.requests.append(request)
        queue = self.responses.get((request.method, request.url))
        if not queue:
            return self.default
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def shutdown(self):
        self.shutdowns += 1

    def calls(self, method=None, url=None):
        return [r for r in self.requests
                if (method is None or r.method == method) and (url is None or r.url == url)]


def bundles_json(*bundles, counts=None):
    """A bundles.json payload; "bundles" are (symbolic name, state) pairs"""
    data = [
        {"id": 100 + i, "symbolicName": name, "state": state, "stateRaw": STATE_RAW.get(state, 0)}
        for i, (name, state) in enumerate(bundles)
    ]
    payload = {"status": "Bundle information", "data": data}
    if counts is not None:
        payload["s"] = counts
    return json.dumps(payload)


def bundle_json(symbolic_name, location=None, state="Active"):
    """A single bundle payload, with "Bundle Location" in its props when given"""
    props = [{"key": "Symbolic Name", "value": symbolic_name}, {"key": "Version", "value": "1.0.0"}]
    if location is not None:
        props.append({"key": "Bundle Location", "value": location})
    props.append({"key": "Start Level", "value": 20})
    return json.dumps({"data": [{"id": 284, "symbolicName": symbolic_name, "state": state, "props": props}]})


def ok(body=""):
    return HttpResponse(200, body)


@pytest.fixture
def bundle(tmp_path):
    jar = tmp_path / "com.test.bundle-1.0.0.jar"
    jar.write_bytes(b"PK\x03\x04 not really a jar")
    return BundleIdentity(symbolic_name="com.test.bundle", version="1.0.0", source_file=str(jar))


@pytest.fixture
def author():
    return ServerConfiguration(name="author", port=4502, max_wait_ms=100, retry_wait_ms=2)


@pytest.fixture
def publisher():
    return ServerConfiguration(name="publisher", port=4503, max_wait_ms=100, retry_wait_ms=2)


@pytest.fixture
def servers(author, publisher):
    return ServersConfiguration({"author": author, "publisher": publisher})


@pytest.fixture
def transports():
    """One FakeTransport per server name, created on first use"""
    class Transports(dict):
        def __missing__(self, name):
            self[name] = FakeTransport()
            return self[name]
    return Transports()


@pytest.fixture
def support_factory(transports):
    def factory(server_conf):
        return ServerSupport(server_conf, transports[server_conf.name])
    return factory


@pytest.fixture
def author_support(bundle, author, support_factory):
    return BundleServerSupport(bundle, support_factory(author))
