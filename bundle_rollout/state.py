import json

from .errors import BundlePayloadError, ConvergenceError
from .logger import get_logger
from .models import BundleRecord, BundleState
from .polling import block
from .support import HTTP_OK
from .transport import HTTP_CLIENT_TIMEOUT

logger = get_logger("state")


def parse_json(body):
    try:
        return json.loads(body)
    except (TypeError, ValueError) as e:
        raise BundlePayloadError(f'Problem parsing "{body}"') from e


def bundle_data(payload):
    """The "data" list of a bundles payload"""
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise BundlePayloadError(f"No bundle data in {payload!r}")
    return payload["data"]


def parse_bundle_records(payload):
    records = []
    for bundle in bundle_data(payload):
        try:
            symbolic_name = bundle["symbolicName"]
            state = bundle["state"]
        except (KeyError, TypeError):
            raise BundlePayloadError(f"Bundle entry without symbolicName/state: {bundle!r}") from None
        records.append(BundleRecord(symbolic_name, BundleState.from_wire(state)))
    return records


def with_missing(records, symbolic_names):
    """The records for "symbolic_names", with a MISSING record for each name the server did not report"""
    known = [r for r in records if r.symbolic_name in symbolic_names]
    known_names = {r.symbolic_name for r in known}
    missing = [BundleRecord(name, BundleState.MISSING) for name in symbolic_names if name not in known_names]
    return known + missing


def inactive_bundles(records):
    return [r for r in records if r.state.is_inactive]


def has_an_inactive_bundle(records):
    inactive = inactive_bundles(records)
    for r in inactive:
        logger.info(f"bundle {r.symbolic_name} NOT active: {r.state.value}")
    for r in records:
        if not r.state.is_inactive:
            logger.debug(f"bundle {r.symbolic_name} IS active")
    return len(inactive) > 0


def status_counts(payload):
    """The "s" array: [total, active, fragment, resolved, installed]"""
    counts = payload.get("s") if isinstance(payload, dict) else None
    if not isinstance(counts, list) or len(counts) < 5:
        raise BundlePayloadError(f"No bundle status counts in {payload!r}")
    try:
        return [int(c) for c in counts[:5]]
    except (TypeError, ValueError):
        raise BundlePayloadError(f"Bad bundle status counts: {counts!r}") from None


def are_all_bundles_active(payload, group):
    """True unless a bundle whose symbolic name contains "group" is installed, resolved or missing"""
    _, _, _, resolved, installed = status_counts(payload)
    if resolved == 0 and installed == 0:
        logger.debug('There are no bundles in the "resolved" or "installed" state')
        return True

    inactive = [r.symbolic_name for r in inactive_bundles(parse_bundle_records(payload))]
    for name in inactive:
        logger.info(f"Inactive bundle: {name}")
    return not any(group in name for name in inactive)


class BundleStateTracker:
    """Polls a server's bundle list until the tracked bundles are running, or its deadline passes"""

    def validate_all_bundles(self, symbolic_names, bundle_support):
        """Raise ConvergenceError unless every one of "symbolic_names" becomes ACTIVE (or is a fragment)"""
        symbolic_names = list(symbolic_names)
        server_name = bundle_support.server_conf.name
        logger.info(f"Checking for NON-ACTIVE bundles on {server_name}")

        def converged(payload):
            records = with_missing(parse_bundle_records(payload), symbolic_names)
            if has_an_inactive_bundle(records):
                return False
            for r in records:
                logger.debug(f"Active bundle: {r.symbolic_name}")
            return True

        self._poll(bundle_support, converged,
                   f"Not all bundles for {symbolic_names} are ACTIVE on {server_name}")

    def check_active_bundles(self, group, bundle_support):
        """Raise ConvergenceError if bundles with "group" in their symbolic name stay inactive"""
        server_name = bundle_support.server_conf.name
        logger.info(f"Checking for bundles status as Active on {server_name} for {group}")

        self._poll(bundle_support, lambda payload: are_all_bundles_active(payload, group),
                   f"Check Bundle Status FAILED: Not all bundles are ACTIVE on {server_name}")

    def _poll(self, bundle_support, converged, failure_message):
        server_conf = bundle_support.server_conf
        url = bundle_support.bundles_control_uri
        status = {"converged": False, "polls": 0}

        def poll():
            status["polls"] += 1
            logger.info(f"Polling {server_conf.name} ({status['polls']})")
            resp = bundle_support.do_get(url)
            if resp.code == HTTP_OK:
                if converged(parse_json(resp.body)):
                    status["converged"] = True
            elif resp.code == HTTP_CLIENT_TIMEOUT:
                server_conf.mark_inactive()
            else:
                raise BundlePayloadError(f"Could not get bundle data. {resp.code}: {resp.body}")

        block(server_conf.max_wait_ms,
              lambda: server_conf.active and not status["converged"],
              poll,
              server_conf.retry_wait_ms)

        if not server_conf.active:
            logger.warning(f"{server_conf.name} stopped responding; not checking its bundles")
            return

        if not status["converged"]:
            raise ConvergenceError(failure_message)
        logger.info(f"Bundles are ACTIVE on {server_conf.name}")
