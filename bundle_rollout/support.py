import posixpath
from urllib.parse import urlsplit, urlunsplit

import requests

from .logger import get_logger
from .models import HttpResponse
from .transport import HTTP_CLIENT_TIMEOUT, FileBody, RequestsTransport

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_NOT_FOUND = 404
HTTP_BAD_METHOD = 405

BUNDLE_CONTROL_BASE_PATH = "/system/console/bundles"
JAVA_ARCHIVE = "application/java-archive"


def with_path(uri, path):
    """Same scheme, host and port as "uri", with "path" (normalized) as the path"""
    parts = urlsplit(uri)
    path = posixpath.normpath("/" + path.lstrip("/")) if path else "/"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


class ServerSupport:
    """Runs HTTP calls against one server, honoring and maintaining its "active" flag"""

    def __init__(self, server_conf, transport=None):
        if server_conf is None:
            raise ValueError("server_conf is None")
        self.server_conf = server_conf
        self._transport = transport
        self.logger = get_logger("support")

    @property
    def transport(self):
        if self._transport is None:
            self._transport = self.create_transport()
        return self._transport

    def create_transport(self):
        return RequestsTransport(self.server_conf.username, self.server_conf.password)

    def _not_responding(self):
        return HttpResponse(HTTP_CLIENT_TIMEOUT, f"{self.server_conf.name} is not responding")

    def do_http(self, action):
        """Call "action" with the transport, always shutting the transport down afterwards"""
        if not self.server_conf.active:
            return self._not_responding()
        try:
            return action(self.transport)
        finally:
            self.transport.shutdown()

    def do_get(self, url):
        if not self.server_conf.active:
            return self._not_responding()
        if url is None:
            return HttpResponse(HTTP_NOT_FOUND, "Missing URL")
        self.logger.info(f"GET {url}")
        resp = self.transport.execute(requests.Request("GET", url))
        if resp.code == HTTP_CLIENT_TIMEOUT:
            self.server_conf.mark_inactive()
        return resp

    def do_post(self, url, parts):
        """POST "parts" as multipart/form-data; values are either strings or FileBody"""
        if not self.server_conf.active:
            return self._not_responding()
        if url is None:
            return HttpResponse(HTTP_NOT_FOUND, "Missing URL")

        files = []
        for key, value in parts.items():
            if isinstance(value, str):
                files.append((key, (None, value.encode("utf-8"), "text/plain; charset=UTF-8")))
            elif isinstance(value, FileBody):
                files.append((key, value.as_part()))
            else:
                raise TypeError(f"Can not POST {type(value).__name__} as part {key!r}")

        self.logger.info(f"POST {url} - {parts}")
        resp = self.transport.execute(requests.Request("POST", url, files=files or None))
        if resp.code == HTTP_CLIENT_TIMEOUT:
            self.server_conf.mark_inactive()
        return resp

    def make_path(self, url):
        """Create the node at "url", along with any missing parents"""
        if url.endswith("/"):
            url = url[:-1]
        resp = self.do_post(url, {})
        return resp.code in (HTTP_OK, HTTP_CREATED)


class BundleServerSupport:
    """A bundle bound to one server: the bundle's URLs there and the console actions on it"""

    def __init__(self, bundle, server_support):
        if bundle is None:
            raise ValueError("bundle is None")
        if server_support is None:
            raise ValueError("server_support is None")
        self.bundle = bundle
        self.server_support = server_support
        self.logger = get_logger("support")

    @property
    def server_conf(self):
        return self.server_support.server_conf

    @property
    def bundle_control_base_uri(self):
        return with_path(self.server_conf.base_uri, BUNDLE_CONTROL_BASE_PATH)

    @property
    def bundles_control_uri(self):
        return with_path(self.server_conf.base_uri, f"{BUNDLE_CONTROL_BASE_PATH}.json")

    def bundle_url_for(self, symbolic_name):
        return with_path(self.server_conf.base_uri, f"{BUNDLE_CONTROL_BASE_PATH}/{symbolic_name}.json")

    @property
    def bundle_url(self):
        return self.bundle_url_for(self.bundle.symbolic_name)

    @property
    def bundle_install_url(self):
        """The folder the bundle file is uploaded into, not the file itself"""
        return with_path(self.server_conf.base_uri, self.bundle.install_path)

    def do_get(self, url):
        return self.server_support.do_get(url)

    def do_post(self, url, parts):
        return self.server_support.do_post(url, parts)

    def bundle_information(self, symbolic_name=None):
        return self.do_get(self.bundle_url_for(symbolic_name or self.bundle.symbolic_name))

    def start_bundle(self):
        return self.do_post(self.bundle_url, {"action": "start"})

    def stop_bundle(self):
        return self.do_post(self.bundle_url, {"action": "stop"})

    def refresh_bundle(self):
        return self.do_post(self.bundle_url, {"action": "refresh"})

    def update_bundle(self):
        return self.do_post(self.bundle_url, {"action": "update"})

    def uninstall_bundle(self):
        return self.do_post(self.bundle_url, {"action": "uninstall"})

    def remove_bundle(self, bundle_location):
        return self.do_post(bundle_location, {":operation": "delete"})

    def refresh_osgi_packages(self):
        return self.do_post(self.bundles_control_uri, {"action": "refreshPackages"})

    def upload_bundle(self):
        server_conf = self.server_conf
        if not server_conf.active:
            raise ValueError(f"Server {server_conf.name} is not active")

        install_url = self.bundle_install_url
        if not self.server_support.make_path(install_url):
            return HttpResponse(HTTP_BAD_METHOD, "Could not create area to put file in")

        filename = self.bundle.filename
        self.logger.info(f"Uploading {filename} to {install_url}")
        resp = self.do_post(install_url, {filename: FileBody(str(self.bundle.source_file), JAVA_ARCHIVE)})
        self.logger.info(f"Finished upload of {filename} to {install_url}")
        return resp
