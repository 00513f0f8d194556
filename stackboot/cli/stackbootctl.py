#!/usr/bin/env python3
"""
stackboot - container bootstrap CLI

Runs the bootstrap sequence for a container role, then hands off to the
foreground service. Also reports provisioning state and renders the stack
files (compose, Dockerfiles, nginx site).

Usage:
    stackboot run --role web -- php-fpm
    stackboot run --role assets -- npm run watch
    stackboot status
    stackboot render all --output-dir .
"""
import argparse
import logging
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from stackboot.bootstrap.assets import AssetBuilder
from stackboot.bootstrap.lock import BootstrapLock
from stackboot.bootstrap.orchestrator import BootstrapOrchestrator
from stackboot.config import load_config
from stackboot.errors import StackbootError
from stackboot.files import render_all, write_rendered
from stackboot import topology

RENDER_TARGETS = ['all', 'compose', 'dockerfile-web', 'dockerfile-assets', 'nginx']


def configure_logging(level: str):
    """Configure root logging for container output."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='stackboot',
        description='Symfony + Vue container bootstrapper',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '--config',
        type=Path,
        help='YAML profile overlaid on environment settings'
    )

    parser.add_argument(
        '--log-level',
        help='Log level (default: $STACKBOOT_LOG_LEVEL or INFO)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # run
    run_parser = subparsers.add_parser('run', help='Bootstrap, then exec the foreground service')
    run_parser.add_argument(
        '--role',
        choices=['web', 'assets'],
        default='web',
        help='Container role (default: web)'
    )
    run_parser.add_argument(
        'foreground',
        nargs=argparse.REMAINDER,
        help='Foreground command (default from configuration)'
    )

    # status
    subparsers.add_parser('status', help='Show provisioning state of the working directory')

    # render
    render_parser = subparsers.add_parser('render', help='Render stack files')
    render_parser.add_argument('target', choices=RENDER_TARGETS, help='File to render')
    render_parser.add_argument(
        '--output-dir',
        type=Path,
        help='Write files under this directory instead of printing'
    )

    return parser


def _foreground(args: List[str]) -> Optional[List[str]]:
    """Strip the '--' separator argparse leaves in REMAINDER."""
    if args and args[0] == '--':
        args = args[1:]
    return args or None


def cmd_run(config, role: str, foreground: Optional[List[str]]):
    if role == 'assets':
        AssetBuilder(config).run(foreground)
    else:
        BootstrapOrchestrator(config).run(foreground)


def cmd_status(config) -> int:
    state = BootstrapOrchestrator(config).state()
    print(f"Working directory: {config.workdir}")
    print(f"Marker: {config.marker}")
    print(f"State: {state.value}")

    lock = BootstrapLock(config.lock_path, stale_after=config.lock_stale_after)
    if lock.path.exists():
        if lock.is_stale():
            print(f"Stale bootstrap lock: {lock.path} (held by {lock.holder()}), reclaimed on next run")
        else:
            print(f"Bootstrap in progress (lock: {lock.path})")
    return 0


def cmd_render(config, target: str, output_dir: Optional[Path]) -> int:
    files = render_all(config)
    selected = {
        'compose': ['docker-compose.yml'],
        'dockerfile-web': [topology.PHP_DOCKERFILE],
        'dockerfile-assets': [topology.NODE_DOCKERFILE],
        'nginx': [topology.NGINX_SITE],
    }.get(target, list(files))
    files = {name: files[name] for name in selected}

    if output_dir is None:
        for name, content in files.items():
            if len(files) > 1:
                print(f"# --- {name}")
            print(content, end='')
        return 0

    for name, status in write_rendered(files, output_dir).items():
        print(f"{status.value.capitalize()} {output_dir / name}")
    return 0


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config = load_config(args.config)
        configure_logging(args.log_level or config.log_level)

        if args.command == 'run':
            cmd_run(config, args.role, _foreground(args.foreground))
            sys.exit(0)
        elif args.command == 'status':
            sys.exit(cmd_status(config))
        elif args.command == 'render':
            sys.exit(cmd_render(config, args.target, args.output_dir))
        else:
            parser.print_help()
            sys.exit(1)
    except subprocess.CalledProcessError as e:
        # Exit the way the failing tool did
        print(f"Error: {' '.join(map(str, e.cmd))} exited with {e.returncode}", file=sys.stderr)
        sys.exit(e.returncode or 1)
    except StackbootError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
