"""Builds the ordered set of servers to work against.

Values are gathered from, in increasing order of precedence:

1. an environment JSON file (``slingserver.env.file`` + ``slingserver.env.name``)
2. environment variables starting with ``SLINGSERVER_`` (``SLINGSERVER_AUTHOR_PORT``
   is the same as the property ``slingserver.author.port``)
3. explicit ``slingserver.<server>.<property>`` properties

The reserved server name ``env`` applies a property to every server, unless
that server sets the property itself. When nothing defines a server, a
localhost ``author`` (4502) and ``publisher`` (4503) are assumed.

Environment file format::

    {
      "testEnv": {
        "authors": {"cq-auth01": "4502", "cq-auth02": "4502"},
        "publishers": {"cq-pub01": "4503"},
        "domainName": "test.myco.com",
        "protocol": "http",
        "username": "admin",
        "password": "admin",
        "clusterAuths": true,
        "clusterPubs": false
      }
    }

A clustered group only uses its first server.
"""

import json
import re
from dataclasses import dataclass

from .errors import ConfigurationError
from .logger import get_logger
from .models import ServerConfiguration

logger = get_logger("servers")

PROP_PREFIX = "slingserver."
ENV_VAR_PREFIX = "SLINGSERVER_"
ENV_FILE_PROPERTY = f"{PROP_PREFIX}env.file"
ENV_NAME_PROPERTY = f"{PROP_PREFIX}env.name"
ENV_NAMESPACE = "env"

_SERVER_NAME_PATTERN = re.compile(r"^slingserver\.([^.]*?)\..*$")
_SERVER_PROPERTY_PATTERN = re.compile(r"^slingserver\.[^.]*?\.(.*)$")


@dataclass(frozen=True)
class EnvFileInfo:
    filename: str
    env_name: str


class ServersConfiguration:
    """Server name -> ServerConfiguration, in the order the servers were defined"""

    def __init__(self, servers=None):
        self.servers = dict(servers or {})

    @classmethod
    def from_sources(cls, properties=None, env=None):
        configuration = combined_configuration(properties or {}, env or {})
        env_file = env_file_info(configuration)
        configuration.pop(ENV_FILE_PROPERTY, None)
        configuration.pop(ENV_NAME_PROPERTY, None)

        existing = servers_from_file(env_file.filename, env_file.env_name) if env_file else {}
        logger.info(f"The servers before modification: {list(existing)}")
        servers = servers_from_configuration(configuration, existing)
        logger.info(f"Setting servers configuration to {list(servers)}")
        return cls(servers)

    def __iter__(self):
        return iter(list(self.servers.values()))

    def __len__(self):
        return len(self.servers)

    def __contains__(self, name):
        return name in self.servers

    def __getitem__(self, name):
        return self.servers[name]

    def __setitem__(self, name, server_conf):
        self.servers[name] = server_conf

    def active_servers(self):
        return [s for s in self.servers.values() if s.active]

    def first(self):
        active = self.active_servers()
        return active[0] if active else None

    def __repr__(self):
        return f"ServersConfiguration({self.servers})"


def environment_vars_as_configuration(env):
    """SLINGSERVER_AUTHOR_PORT -> slingserver.author.port"""
    return {
        key.lower().replace("_", "."): value
        for key, value in env.items()
        if key.startswith(ENV_VAR_PREFIX)
    }


def combined_configuration(properties, env):
    configuration = environment_vars_as_configuration(env)
    for key, value in properties.items():
        if key.startswith(PROP_PREFIX):
            configuration[key] = value
    return configuration


def env_file_info(configuration):
    env_file = configuration.get(ENV_FILE_PROPERTY)
    env_name = configuration.get(ENV_NAME_PROPERTY)

    if env_file is None and env_name is None:
        return None
    if env_name is None:
        raise ConfigurationError(
            "When specifying the environment file, you must also specify the environment name "
            f"using either the {ENV_NAME_PROPERTY} property or the {ENV_VAR_PREFIX}ENV_NAME environment variable")
    if env_file is None:
        raise ConfigurationError(
            "When specifying the environment name, you must also specify the environment file "
            f"using either the {ENV_FILE_PROPERTY} property or the {ENV_VAR_PREFIX}ENV_FILE environment variable")
    return EnvFileInfo(env_file, env_name)


def server_name_from_key(key):
    return _property_group(key, _SERVER_NAME_PATTERN)


def server_property_from_key(key):
    return _property_group(key, _SERVER_PROPERTY_PATTERN)


def _property_group(key, pattern):
    match = pattern.match(key)
    if not match:
        raise ConfigurationError(f'{key} does not match the pattern of "{PROP_PREFIX}{{servername}}.{{propertyname}}"')
    return match.group(1)


def create_server_configuration(name):
    """A localhost server; authors (anything with "auth" in the name) on 4502, publishers on 4503"""
    if "auth" in name:
        logger.info(f'Creating a new author configuration for "{name}"')
        return ServerConfiguration(name=name, port=4502)
    logger.info(f'Creating a new publisher configuration for "{name}"')
    return ServerConfiguration(name=name, port=4503)


def servers_from_configuration(configuration, existing):
    if not existing:
        logger.info("Did not load any server configurations, so defaulting to a localhost author and publisher")
        defaults = {
            f"{PROP_PREFIX}author.machineName": "localhost",
            f"{PROP_PREFIX}publisher.machineName": "localhost",
        }
        configuration = {**defaults, **configuration}

    servers = dict(existing)
    for key in configuration:
        name = server_name_from_key(key)
        if name != ENV_NAMESPACE and name not in servers:
            servers[name] = create_server_configuration(name)

    apply_configuration(configuration, servers)
    return servers


def apply_configuration(configuration, servers):
    """Apply "env" namespace properties to all servers, then the server-specific ones"""
    for key, value in configuration.items():
        if server_name_from_key(key) == ENV_NAMESPACE:
            prop_name = server_property_from_key(key)
            for server_conf in servers.values():
                logger.info(f"Setting the {prop_name} property of {server_conf.name} to {value}")
                server_conf.set_property(prop_name, value)

    for key, value in configuration.items():
        name = server_name_from_key(key)
        if name == ENV_NAMESPACE:
            continue
        prop_name = server_property_from_key(key)
        logger.info(f"Setting the {prop_name} property of {name} to {value}")
        servers[name].set_property(prop_name, value)


def servers_from_file(filename, env_name):
    with open(filename) as f:
        environments = json.load(f)

    environment = environments.get(env_name)
    if not environment:
        logger.warning(f'Could not find "{env_name}" in "{filename}"')
        return {}

    authors = environment.get("authors") or {}
    publishers = environment.get("publishers") or {}
    if not authors and not publishers:
        raise ConfigurationError(f"There are no authors or publishers defined in {filename}")

    if environment.get("clusterAuths"):
        authors = _first_only(authors)
    if environment.get("clusterPubs"):
        publishers = _first_only(publishers)

    servers = _servers_for(environment, publishers)
    servers.update(_servers_for(environment, authors))
    return servers


def _first_only(hosts):
    first = next(iter(hosts), None)
    return {first: hosts[first]} if first is not None else {}


def _servers_for(environment, hosts_and_ports):
    servers = {}
    for hostname, port in hosts_and_ports.items():
        name = f"{hostname}-{port}"
        servers[name] = ServerConfiguration(
            name=name,
            protocol=environment.get("protocol", "http"),
            port=int(port),
            machine_name=f"{hostname}.{environment.get('domainName')}",
            username=environment.get("username", "admin"),
            password=environment.get("password", "admin"),
        )
    return servers
