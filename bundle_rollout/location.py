from urllib.parse import urlsplit

from .errors import BundlePayloadError
from .logger import get_logger
from .state import bundle_data, parse_json
from .support import HTTP_NOT_FOUND, HTTP_OK, with_path
from .transport import HTTP_CLIENT_TIMEOUT

logger = get_logger("location")

BUNDLE_LOCATION_KEY = "Bundle Location"
INPUT_STREAM_PREFIX = "inputstream:"
JCR_INSTALL_PREFIX = "jcrinstall:"


def bundle_location_property(payload):
    """The "Bundle Location" value of a single-bundle payload, or None"""
    data = bundle_data(payload)
    if not data or not isinstance(data[0], dict):
        raise BundlePayloadError(f"No bundle in {payload!r}")
    for prop in data[0].get("props") or []:
        if isinstance(prop, dict) and prop.get("key") == BUNDLE_LOCATION_KEY:
            return prop.get("value")
    return None


def resolve_bundle_location(bundle_support):
    """Where the bundle's file lives in the repository, as a URL on the bundle's server

    Returns None when the bundle is not installed, was installed from a stream,
    or its location is not one we know how to address.
    """
    symbolic_name = bundle_support.bundle.symbolic_name
    bundle_url = bundle_support.bundle_url
    resp = bundle_support.bundle_information()

    if resp.code == HTTP_NOT_FOUND:
        logger.info(f"Could not find {symbolic_name} on {bundle_support.server_conf.name}")
        return None

    if resp.code == HTTP_CLIENT_TIMEOUT:
        logger.warning(f"{bundle_support.server_conf.name} is not responding; can not locate {symbolic_name}")
        return None

    if resp.code != HTTP_OK:
        raise BundlePayloadError(f"Problem getting bundle location from {bundle_url} - {resp.code}: {resp.body}")

    try:
        location = bundle_location_property(parse_json(resp.body))
    except BundlePayloadError as e:
        raise BundlePayloadError(f'Could not read JSON from {bundle_url}: "{resp.body}"') from e

    if location is None:
        logger.warning(f"Could not find a Bundle Location for {symbolic_name}")
        return None

    location = str(location)
    if location.startswith(INPUT_STREAM_PREFIX):
        logger.info(f"{symbolic_name} is not stored in the JCR")
        return None

    if location.startswith(JCR_INSTALL_PREFIX):
        path = urlsplit(location[len(JCR_INSTALL_PREFIX):]).path
        return with_path(bundle_support.server_conf.base_uri, path)

    logger.warning(f"Don't know what to do with {location}")
    return None
