import argparse
import os
import sys

from .engine import BundleEngine
from .errors import BundleRolloutError, ConfigurationError
from .logger import LEVELS, setup_logging, get_logger
from .models import BundleIdentity, DEFAULT_INSTALL_PATH
from .servers import ENV_FILE_PROPERTY, ENV_NAME_PROPERTY, ServersConfiguration


def parse_properties(pairs):
    properties = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ConfigurationError(f"Expected key=value, got {pair!r}")
        properties[key.strip()] = value
    return properties


def load_servers(args, env=None):
    properties = parse_properties(args.property)
    if args.env_file:
        properties[ENV_FILE_PROPERTY] = args.env_file
    if args.env_name:
        properties[ENV_NAME_PROPERTY] = args.env_name
    return ServersConfiguration.from_sources(properties, os.environ if env is None else env)


def build_parser():
    parser = argparse.ArgumentParser(prog="bundle-rollout", description="Manage an OSGi bundle across a fleet of servers")
    parser.add_argument("--log-level", default="INFO", type=str.upper, choices=LEVELS)
    parser.add_argument("--env-file", help="JSON file describing the server environments")
    parser.add_argument("--env-name", help="environment to use from --env-file")
    parser.add_argument("-P", "--property", action="append", metavar="KEY=VALUE",
                        help="server property, e.g. slingserver.author.port=4602")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def bundle_command(name, help_text):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--symbolic-name", required=True)
        cmd.add_argument("--version")
        cmd.add_argument("--install-path", default=DEFAULT_INSTALL_PATH)
        cmd.add_argument("--file", help="the bundle jar")
        return cmd

    bundle_command("upload", "upload the bundle to the servers").set_defaults(file_required=True)
    bundle_command("start", "start the bundle on the servers")
    bundle_command("stop", "stop the bundle on the servers")
    bundle_command("remove", "uninstall and delete the bundle from the servers")
    bundle_command("show", "print the bundle's JSON from the first server")
    bundle_command("refresh-all", "refresh the packages of every bundle on the servers")
    bundle_command("validate", "wait for the bundle to be ACTIVE on every server")
    check = bundle_command("check-active", "wait for bundles matching a group to be ACTIVE")
    check.add_argument("--group", required=True, help="part of the symbolic name, e.g. com.myco")
    return parser


def run(args, engine):
    if args.cmd == "upload":
        engine.upload()
    elif args.cmd == "start":
        engine.start()
    elif args.cmd == "stop":
        engine.stop()
    elif args.cmd == "remove":
        engine.remove()
    elif args.cmd == "show":
        print(engine.show())
    elif args.cmd == "refresh-all":
        engine.refresh_all()
    elif args.cmd == "validate":
        engine.validate()
    elif args.cmd == "check-active":
        engine.check_active(args.group)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    logger = get_logger("cli")

    if getattr(args, "file_required", False) and not args.file:
        parser.error("upload requires --file")

    try:
        servers = load_servers(args)
        bundle = BundleIdentity(symbolic_name=args.symbolic_name, version=args.version,
                                install_path=args.install_path, source_file=args.file)
        run(args, BundleEngine(bundle, servers))
    except (BundleRolloutError, OSError) as e:
        logger.error(f"{args.cmd} failed: {e}")
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
