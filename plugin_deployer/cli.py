import argparse
import asyncio
import json
import os
import sys
from dataclasses import asdict
from .models import Environment, RestartMode
from .config import EnvironmentResolver, load_settings
from .artifact import locate_package, MavenBuilder, PACKAGES_ROOT
from .transport import SSHTransport, LocalTransport
from .engine import DeploymentEngine
from .errors import DeploymentError
from .logger import setup_logging, get_logger

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def load_package(args, settings):
    builder = MavenBuilder(args.project_dir, packages_root=args.packages_root, plugin_name=settings.plugin_name)
    if args.build:
        _, package = builder.build_package()
        return package
    version = args.version or builder.resolve_version()
    return locate_package(version, builder.packages_root, builder.plugin_name)


def make_transport(kind, settings):
    if kind == "local":
        return LocalTransport()
    return SSHTransport.from_settings(settings)


def print_summary(result):
    for h in result.hosts:
        status = "OK" if h.success else f"FAILED during {h.stage}: {h.error}"
        print(f"  {h.host}: {status}")
        for warning in h.warnings:
            print(f"    warning: {warning}")
    planned = len(result.history[0]["hosts"]) if result.history else 0
    if result.history and result.history[-1]["event"] == "dry_run":
        print(f"DRY RUN: would deploy {result.version} to {planned} {result.environment} hosts "
              f"(restart={result.restart_mode})")
        return
    done = sum(1 for h in result.hosts if h.success)
    print(f"{result.outcome.value.upper()}: {result.version} deployed to {done}/{planned} "
          f"{result.environment} hosts (restart={result.restart_mode})")


def build_parser():
    parser = argparse.ArgumentParser(prog="plugin-deployer", description="Connect plugin deployer")
    parser.add_argument("--log-level", default="INFO", type=str.upper, choices=LOG_LEVELS)
    sub = parser.add_subparsers(dest="cmd", required=True)

    deploy = sub.add_parser("deploy")
    deploy.add_argument("--environment", required=True, choices=[e.value for e in Environment])
    deploy.add_argument("--restart-mode", required=True, choices=[m.value for m in RestartMode])
    source = deploy.add_mutually_exclusive_group()
    source.add_argument("--version", help="Deploy an already built version")
    source.add_argument("--build", action="store_true", help="Run maven before deploying")
    deploy.add_argument("--project-dir", default=".")
    deploy.add_argument("--packages-root", help=f"Defaults to <project-dir>/{PACKAGES_ROOT}")
    deploy.add_argument("--transport", choices=["ssh", "local"], default="ssh")
    deploy.add_argument("--dry-run", action="store_true")
    deploy.add_argument("--json", action="store_true", help="Print the full result as JSON")
    return parser


def main():
    args = build_parser().parse_args()
    setup_logging(args.log_level)
    logger = get_logger("cli")

    if args.cmd == "deploy":
        try:
            settings = load_settings()
            resolver = EnvironmentResolver.from_environ()
            package = load_package(args, settings)
        except DeploymentError as e:
            logger.error(str(e))
            print(f"Error: {e}")
            sys.exit(1)

        async def run():
            transport = make_transport(args.transport, settings)
            try:
                return await DeploymentEngine(transport, resolver, settings).deploy(
                    args.environment, args.restart_mode, package, args.dry_run)
            finally:
                await transport.close()

        try:
            result = asyncio.run(run())
        except DeploymentError as e:
            print(f"Error: {e}")
            sys.exit(1)

        if args.json:
            print(json.dumps(asdict(result), indent=2))
        print_summary(result)
        sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
