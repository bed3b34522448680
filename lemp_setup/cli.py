#!/usr/bin/env python3
"""
LEMP Stack Setup

Installs nginx, MariaDB and PHP-FPM on an Ubuntu host, secures the
MariaDB installation, and proves the stack works with real HTTP and
database traffic. Every event is written to ``lemp_install.log`` in the
working directory.
Note: Run this script with root privileges.
"""

import os
import sys
from pathlib import Path
from typing import Optional

import click
from rich.traceback import install as install_rich_traceback

from lemp_setup.config import DEFAULT_PHP_VERSION, Config, normalize_php_version, split_modules
from lemp_setup.errors import PreflightError
from lemp_setup.pipeline import STEPS, LempInstaller
from lemp_setup.report import RunReport, close_logger, setup_logger
from lemp_setup.ui import console, create_header, print_error, print_status_report, print_warning

OS_RELEASE = Path("/etc/os-release")


def check_root() -> None:
    if os.geteuid() != 0:
        raise PreflightError("Please run this as root.")


def check_os(os_release: Path = OS_RELEASE) -> None:
    try:
        content = os_release.read_text()
    except OSError:
        raise PreflightError("OS not Ubuntu.")
    if "ubuntu" not in content.lower():
        raise PreflightError("OS not Ubuntu.")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--php-modules",
    default="",
    metavar="MOD[,MOD...]",
    help="Comma separated PHP modules to install (e.g. curl,gd).",
)
@click.option(
    "--php",
    "php_version",
    default=DEFAULT_PHP_VERSION,
    show_default=True,
    help="PHP version to install.",
)
@click.option("--no-mariadb-secure", is_flag=True, help="Skip MariaDB hardening.")
@click.option(
    "--php-no-socket",
    is_flag=True,
    help="Point nginx at PHP-FPM over TCP instead of the unix socket.",
)
@click.option(
    "--debug",
    "debug_step",
    type=click.Choice(list(STEPS)),
    default=None,
    help="Run a single step in isolation.",
)
@click.option("--skip-preflight", is_flag=True, help="Skip the root and OS checks.")
@click.option("--verbose", is_flag=True, help="Show every external command.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default="lemp_install.log",
    show_default=True,
    help="Run log, overwritten on each run.",
)
def main(
    php_modules: str,
    php_version: str,
    no_mariadb_secure: bool,
    php_no_socket: bool,
    debug_step: Optional[str],
    skip_preflight: bool,
    verbose: bool,
    log_file: Path,
) -> None:
    """Install and verify a LEMP stack (nginx, MariaDB, PHP-FPM)."""
    # Locals would include the generated database passwords.
    install_rich_traceback(show_locals=False)

    try:
        config = Config(
            php_version=normalize_php_version(php_version),
            php_modules=split_modules(php_modules),
            secure_mariadb=not no_mariadb_secure,
            php_socket=not php_no_socket,
            log_file=log_file,
        )
        if not skip_preflight:
            check_root()
            check_os()
    except PreflightError as e:
        print_error(f"{e} Exiting...")
        logger = setup_logger(log_file, verbose=False)
        logger.error(f"{e} Exiting...")
        close_logger(logger, log_file)
        sys.exit(1)

    console.print(create_header())
    logger = setup_logger(config.log_file, verbose=verbose)
    installer = LempInstaller(config, report=RunReport(logger))

    try:
        if debug_step:
            installer.run_step(debug_step)
            print_status_report(installer.statuses)
        else:
            installer.run()
    except KeyboardInterrupt:
        print_warning("Setup interrupted by user.")
        sys.exit(130)
    finally:
        close_logger(logger, config.log_file)


if __name__ == "__main__":
    main()
