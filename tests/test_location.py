import pytest

from bundle_rollout.errors import BundlePayloadError
from bundle_rollout.location import resolve_bundle_location
from bundle_rollout.models import HttpResponse

from conftest import bundle_json, ok

BUNDLE_URL = "http://localhost:4502/system/console/bundles/com.test.bundle.json"


class TestResolveBundleLocation:
    """Finding where a bundle's file is stored on a server."""

    def test_jcr_install_location(self, author_support, transports):
        transports["author"].respond(
            "GET", BUNDLE_URL, ok(bundle_json("com.test.bundle", "jcrinstall:/apps/x/foo.jar")))
        assert resolve_bundle_location(author_support) == "http://localhost:4502/apps/x/foo.jar"

    def test_location_keeps_server_scheme_and_port(self, author_support, author, transports):
        author.protocol = "https"
        author.machine_name = "cq-auth01.myco.com"
        url = "https://cq-auth01.myco.com:4502/system/console/bundles/com.test.bundle.json"
        transports["author"].respond(
            "GET", url, ok(bundle_json("com.test.bundle", "jcrinstall:/apps/install/com.test.bundle-1.0.jar")))
        assert resolve_bundle_location(author_support) == \
            "https://cq-auth01.myco.com:4502/apps/install/com.test.bundle-1.0.jar"

    def test_input_stream_location(self, author_support, transports):
        transports["author"].respond(
            "GET", BUNDLE_URL, ok(bundle_json("com.test.bundle", "inputstream:com.test.bundle-1.0.jar")))
        assert resolve_bundle_location(author_support) is None

    def test_unknown_location_scheme(self, author_support, transports):
        transports["author"].respond(
            "GET", BUNDLE_URL, ok(bundle_json("com.test.bundle", "file:/opt/bundles/foo.jar")))
        assert resolve_bundle_location(author_support) is None

    def test_no_location_property(self, author_support, transports):
        transports["author"].respond("GET", BUNDLE_URL, ok(bundle_json("com.test.bundle")))
        assert resolve_bundle_location(author_support) is None

    def test_bundle_not_installed(self, author_support, transports):
        transports["author"].respond("GET", BUNDLE_URL, HttpResponse(404, "Not Found"))
        assert resolve_bundle_location(author_support) is None

    def test_bad_json(self, author_support, transports):
        transports["author"].respond("GET", BUNDLE_URL, ok("{not json"))
        with pytest.raises(BundlePayloadError, match="Could not read JSON"):
            resolve_bundle_location(author_support)

    def test_empty_data(self, author_support, transports):
        transports["author"].respond("GET", BUNDLE_URL, ok('{"data": []}'))
        with pytest.raises(BundlePayloadError, match="Could not read JSON"):
            resolve_bundle_location(author_support)

    def test_error_response(self, author_support, transports):
        transports["author"].respond("GET", BUNDLE_URL, HttpResponse(500, "Boom"))
        with pytest.raises(BundlePayloadError, match="500: Boom"):
            resolve_bundle_location(author_support)

    def test_server_not_responding(self, author_support, author, transports):
        transports["author"].respond("GET", BUNDLE_URL, HttpResponse(408, "timed out"))
        assert resolve_bundle_location(author_support) is None
        assert author.active is False
