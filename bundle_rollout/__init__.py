from .models import (
    BundleIdentity, BundleRecord, BundleState, HttpResponse, ServerConfiguration
)
from .errors import (
    BundlePayloadError, BundleRolloutError, ConfigurationError, ConvergenceError, DeploymentError
)
from .polling import block
from .support import BundleServerSupport, ServerSupport
from .engine import BundleEngine, do_across_servers, is_bad_response
from .state import BundleStateTracker
from .location import resolve_bundle_location
from .servers import ServersConfiguration

__all__ = [
    "BundleIdentity", "BundleRecord", "BundleState", "HttpResponse", "ServerConfiguration",
    "BundlePayloadError", "BundleRolloutError", "ConfigurationError", "ConvergenceError", "DeploymentError",
    "block", "BundleServerSupport", "ServerSupport",
    "BundleEngine", "do_across_servers", "is_bad_response",
    "BundleStateTracker", "resolve_bundle_location", "ServersConfiguration",
]
