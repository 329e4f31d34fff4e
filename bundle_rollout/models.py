from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath

from .errors import BundlePayloadError, ConfigurationError
from .logger import get_logger

logger = get_logger("models")

DEFAULT_INSTALL_PATH = "/apps/install"


class BundleState(str, Enum):
    ACTIVE = "Active"
    FRAGMENT = "Fragment"
    INSTALLED = "Installed"
    RESOLVED = "Resolved"
    UNINSTALLED = "Uninstalled"
    MISSING = "Missing"  # never sent by a server

    @property
    def state_raw(self):
        return _STATE_RAW[self]

    @property
    def is_terminal(self):
        return self in (BundleState.ACTIVE, BundleState.FRAGMENT, BundleState.UNINSTALLED)

    @property
    def is_inactive(self):
        """Blocks convergence: the bundle is not (yet) running"""
        return self in (BundleState.INSTALLED, BundleState.RESOLVED, BundleState.MISSING)

    @classmethod
    def from_wire(cls, state_string):
        try:
            return cls(state_string)
        except ValueError:
            raise BundlePayloadError(f"Unknown bundle state: {state_string!r}") from None


# OSGi Bundle constants; Felix reports fragments with the RESOLVED code
_STATE_RAW = {
    BundleState.ACTIVE: 32,
    BundleState.FRAGMENT: 4,
    BundleState.INSTALLED: 2,
    BundleState.RESOLVED: 4,
    BundleState.UNINSTALLED: 1,
    BundleState.MISSING: 0,
}


@dataclass(frozen=True)
class HttpResponse:
    code: int
    body: str = ""

    def __str__(self):
        return f"{self.code}: {self.body}"


@dataclass(frozen=True)
class BundleRecord:
    symbolic_name: str
    state: BundleState


def _to_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _to_int(value):
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigurationError(f"{value!r} is not an integer") from None


# property name -> (attribute, coercion)
_PROPERTIES = {
    "name": ("name", str),
    "protocol": ("protocol", str),
    "port": ("port", _to_int),
    "machine_name": ("machine_name", str),
    "machineName": ("machine_name", str),
    "machinename": ("machine_name", str),
    "username": ("username", str),
    "password": ("password", str),
    "retry_wait_ms": ("retry_wait_ms", _to_int),
    "retryWaitMs": ("retry_wait_ms", _to_int),
    "retry.ms": ("retry_wait_ms", _to_int),
    "max_wait_ms": ("max_wait_ms", _to_int),
    "maxWaitMs": ("max_wait_ms", _to_int),
    "max.ms": ("max_wait_ms", _to_int),
    "active": ("active", _to_bool),
}


@dataclass
class ServerConfiguration:
    """Address, credentials and polling policy of one console server"""
    name: str
    protocol: str = "http"
    port: int = 9999
    machine_name: str = "localhost"
    username: str = "admin"
    password: str = field(default="admin", repr=False)
    retry_wait_ms: int = 1000  # wait between polls
    max_wait_ms: int = 10000  # give up polling after this long
    active: bool = True  # flipped off once the server stops responding

    @property
    def base_uri(self):
        return f"{self.protocol}://{self.machine_name}:{self.port}/"

    def mark_inactive(self):
        if self.active:
            logger.warning(f"Marking {self.name} as being inactive")
        self.active = False

    def set_property(self, prop_name, value):
        """Set a property by its canonical or legacy name, coercing the value to the property's type"""
        if prop_name is None:
            raise ValueError("prop_name is None")
        if prop_name not in _PROPERTIES:
            raise ConfigurationError(f'"{prop_name}" is not a known property on {self}')
        attribute, coerce = _PROPERTIES[prop_name]
        setattr(self, attribute, coerce(value))


@dataclass
class BundleIdentity:
    """The bundle to push around the fleet"""
    symbolic_name: str
    version: str = None
    install_path: str = DEFAULT_INSTALL_PATH
    source_file: str = None  # local artifact to upload
    name: str = None

    def __post_init__(self):
        if not self.symbolic_name:
            raise ValueError("symbolic_name is required")

    @property
    def filename(self):
        if self.source_file is None:
            raise ValueError(f"No source file set for {self.symbolic_name}")
        return PurePosixPath(str(self.source_file).replace("\\", "/")).name

    @property
    def bundle_path(self):
        return f"{self.install_path.rstrip('/')}/{self.filename}"
