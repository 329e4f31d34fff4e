"""HTTP transport used to talk to the console servers.

Only a narrow surface is needed by the rest of the package: execute a prepared
``requests.Request`` and get back an ``HttpResponse``, then shut the connection
pool down. Network failures that mean "the server is not there" come back as a
408 response rather than an exception so callers can treat the server as down.
"""

from dataclasses import dataclass
from pathlib import Path

import requests

from .logger import get_logger
from .models import HttpResponse

HTTP_CLIENT_TIMEOUT = 408
DEFAULT_TIMEOUT_S = 30


@dataclass(frozen=True)
class FileBody:
    """A file part for a multipart POST"""
    path: str
    content_type: str = "application/octet-stream"
    filename: str = None

    def as_part(self):
        path = Path(self.path)
        return (self.filename or path.name, path.read_bytes(), self.content_type)


class HttpTransport:
    """What ServerSupport needs from an HTTP client"""

    def execute(self, request):
        raise NotImplementedError

    def shutdown(self):
        raise NotImplementedError


class RequestsTransport(HttpTransport):
    def __init__(self, username=None, password=None, timeout_s=DEFAULT_TIMEOUT_S):
        self.auth = (username, password) if username is not None else None
        self.timeout_s = timeout_s
        self.logger = get_logger("transport")
        self._session = None

    @property
    def session(self):
        if self._session is None:
            self._session = requests.Session()
            self._session.auth = self.auth
        return self._session

    def execute(self, request):
        prepared = self.session.prepare_request(request)
        try:
            resp = self.session.send(prepared, timeout=self.timeout_s)
        except (requests.Timeout, requests.ConnectionError) as e:
            self.logger.warning(f"{request.method} {request.url} did not respond: {e}")
            return HttpResponse(HTTP_CLIENT_TIMEOUT, str(e))
        return HttpResponse(resp.status_code, resp.text)

    def shutdown(self):
        if self._session is not None:
            self._session.close()
            self._session = None
