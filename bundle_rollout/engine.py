from dataclasses import replace

from .errors import DeploymentError
from .location import resolve_bundle_location
from .logger import get_logger
from .models import BundleState, HttpResponse
from .state import BundleStateTracker, parse_bundle_records, bundle_data, parse_json
from .support import HTTP_NOT_FOUND, HTTP_OK, BundleServerSupport, ServerSupport
from .transport import HTTP_CLIENT_TIMEOUT

HTTP_BAD_REQUEST = 400

logger = get_logger("engine")


def is_bad_response(code, missing_is_ok):
    """Is "code" a failure? 2xx/3xx and 408 (server not running) are not; 404 is only if missing is not OK"""
    if code == HTTP_NOT_FOUND:
        return not missing_is_ok

    if code >= HTTP_OK:
        if code < HTTP_BAD_REQUEST:
            return False
        if code == HTTP_CLIENT_TIMEOUT:
            return False
        return True
    return True


def do_across_servers(servers, bundle, missing_is_ok, action, support_factory=ServerSupport):
    """Run "action" against the bundle on every active server

    Returns an empty HTTP 200 if every server answered well (or did not answer at
    all), otherwise the first bad response in server order.
    """
    http_response = HttpResponse(HTTP_OK, "")
    got_bad_response = False

    for server_conf in servers:
        if not server_conf.active:
            logger.debug(f"Skipping inactive server {server_conf.name}")
            continue

        server_support = support_factory(server_conf)
        bundle_support = BundleServerSupport(bundle, server_support)
        resp = server_support.do_http(lambda transport: action(bundle_support))

        if is_bad_response(resp.code, missing_is_ok):
            logger.info(f"Received a bad response from {server_conf.name}: {resp}")
            if not got_bad_response:
                http_response = resp
                got_bad_response = True

    return http_response


class BundleEngine:
    """A bundle and the fleet it is deployed to"""

    def __init__(self, bundle, servers, support_factory=ServerSupport, state_tracker=None):
        if bundle is None:
            raise ValueError("bundle is None")
        if servers is None:
            raise ValueError("servers is None")
        self.bundle = bundle
        self.servers = servers
        self.support_factory = support_factory
        self.state_tracker = state_tracker if state_tracker else BundleStateTracker()
        self.logger = get_logger("engine")

    def do_across_servers(self, missing_is_ok, action):
        return do_across_servers(self.servers, self.bundle, missing_is_ok, action, self.support_factory)

    def bundle_support_for(self, server_conf):
        return BundleServerSupport(self.bundle, self.support_factory(server_conf))

    def _check(self, operation, resp):
        if resp.code != HTTP_OK:
            self.logger.error(f"{operation} of {self.bundle.symbolic_name} failed: {resp}")
            raise DeploymentError(resp)
        self.logger.info(f"{operation} of {self.bundle.symbolic_name} succeeded")

    def start(self):
        """Start the bundle everywhere; the bundle must be installed on every live server"""
        self._check("Start", self.do_across_servers(False, lambda bs: bs.start_bundle()))

    def stop(self):
        self._check("Stop", self.do_across_servers(True, lambda bs: bs.stop_bundle()))

    def remove(self):
        """Stop, uninstall and delete the bundle's file from every server"""
        self.stop()
        self._check("Remove", self.do_across_servers(True, self._remove_from_server))

    def _remove_from_server(self, bundle_support):
        bundle_location = resolve_bundle_location(bundle_support)
        resp = bundle_support.uninstall_bundle()
        if resp.code == HTTP_OK and bundle_location is not None:
            return bundle_support.remove_bundle(bundle_location)
        return resp

    def upload(self):
        """Replace whatever version of the bundle is on the servers with the local file"""
        self.remove()
        self._check("Upload", self.do_across_servers(True, lambda bs: bs.upload_bundle()))

    def refresh_all(self):
        """Refresh the package wiring of every bundle on the servers"""
        self._check("Refresh", self.do_across_servers(True, lambda bs: bs.refresh_osgi_packages()))

    def show(self):
        """The bundle's JSON as reported by the first server"""
        server_conf = next(iter(self._active_servers()), None)
        if server_conf is None:
            raise ValueError("There are no active servers configured")
        return self.bundle_information_json(self.bundle_support_for(server_conf))

    def bundle_information_json(self, bundle_support):
        resp = bundle_support.server_support.do_http(lambda transport: bundle_support.bundle_information())
        return resp.body if resp.code == HTTP_OK else f"{resp.code}: {resp.body}"

    def validate(self):
        """Wait for the bundle to be ACTIVE on every active server"""
        for server_conf in self._active_servers():
            self.validate_all_bundles([self.bundle.symbolic_name], self.bundle_support_for(server_conf))

    def check_active(self, group):
        for server_conf in self._active_servers():
            self.check_active_bundles(group, self.bundle_support_for(server_conf))

    def _active_servers(self):
        return [s for s in self.servers if s.active]

    def validate_all_bundles(self, symbolic_names, bundle_support):
        self.state_tracker.validate_all_bundles(symbolic_names, bundle_support)

    def check_active_bundles(self, group, bundle_support):
        self.state_tracker.check_active_bundles(group, bundle_support)

    def bundle_location(self, bundle_support):
        return resolve_bundle_location(bundle_support)

    def start_inactive_bundles(self, bundle_support):
        """Try to start every bundle the server reports as RESOLVED"""
        resp = bundle_support.do_get(bundle_support.bundles_control_uri)
        if resp.code != HTTP_OK:
            self.logger.warning(f"Could not list bundles on {bundle_support.server_conf.name}: {resp}")
            return

        payload = parse_json(resp.body)
        records = parse_bundle_records(payload)
        ids = [bundle.get("id") for bundle in bundle_data(payload)]
        for felix_id, record in zip(ids, records):
            if record.state == BundleState.RESOLVED:
                url = f"{bundle_support.bundle_control_base_uri}/{felix_id}.json"
                self.logger.info(f"Trying to start inactive bundle: {felix_id}:{record.symbolic_name}")
                bundle_support.do_post(url, {"action": "start"})

    def uninstall_all_bundles(self, symbolic_names, bundle_support, predicate=None):
        """Stop and uninstall each of "symbolic_names" that "predicate" accepts"""
        server_name = bundle_support.server_conf.name
        self.logger.info(f"Uninstalling/removing bundles on {server_name}: {symbolic_names}")

        for symbolic_name in symbolic_names:
            if predicate is None or not predicate(symbolic_name):
                continue
            bundle_support_for_name = BundleServerSupport(
                _rebind(self.bundle, symbolic_name), bundle_support.server_support)
            self.logger.info(f"Stopping {symbolic_name} on {server_name}")
            bundle_support_for_name.stop_bundle()
            self.logger.info(f"Uninstalling {symbolic_name} on {server_name}")
            bundle_support_for_name.uninstall_bundle()


def _rebind(bundle, symbolic_name):
    return replace(bundle, symbolic_name=symbolic_name)
