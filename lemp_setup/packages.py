import re
from dataclasses import dataclass, field
from typing import List, Tuple

from lemp_setup.commands import CommandResult, CommandRunner
from lemp_setup.config import Config
from lemp_setup.report import RunReport


@dataclass(frozen=True)
class PackageCandidate:
    name: str
    validated: bool


@dataclass
class PackageSet:
    """Packages to install, plus requested modules the repository lacks."""

    install: List[str] = field(default_factory=list)
    invalid: List[str] = field(default_factory=list)
    candidates: List[PackageCandidate] = field(default_factory=list)


def _name_pattern(name: str) -> str:
    # apt-cache takes a POSIX regex; package names only carry . and + specials
    return "^" + re.sub(r"([.+])", r"\\\1", name) + "$"


def check_package(runner: CommandRunner, name: str) -> Tuple[PackageCandidate, CommandResult]:
    """
    Look a package up in the configured repository by exact name. A name
    that is only provided by another package still resolves, and apt then
    lists the provider instead, so any hit counts.
    """
    result = runner.run(["apt-cache", "search", "--names-only", _name_pattern(name)])
    if not result.ok:
        return PackageCandidate(name, False), result

    return PackageCandidate(name, bool(result.stdout.strip())), result


def build_pkglist(config: Config, runner: CommandRunner, report: RunReport) -> PackageSet:
    """
    Build the final install set. Optional modules are only added after
    the repository confirms they exist; missing ones are recorded as
    invalid and the run continues.
    """
    report.step("Checking packages...")
    pkgs = PackageSet(install=list(config.php_packages))

    for module in config.php_modules:
        php_mod = f"{config.php_prefix}-{module}"
        candidate, result = check_package(runner, php_mod)
        pkgs.candidates.append(candidate)
        if candidate.validated:
            report.ok(f"{php_mod} exists in repo.")
            pkgs.install.append(php_mod)
            continue

        if result.ok:
            report.error(f"{php_mod} doesn't exist in repo. Added to invalid modules.")
        else:
            report.error(
                f"Could not check {php_mod} in repo ({result.describe()}). "
                "Added to invalid modules."
            )
        pkgs.invalid.append(php_mod)

    pkgs.install = list(config.base_packages) + pkgs.install
    return pkgs


def refresh_system(runner: CommandRunner, report: RunReport) -> bool:
    """Update the package index and upgrade installed packages."""
    report.step("Upgrading current packages...")
    for cmd in (["apt-get", "update"], ["apt-get", "upgrade", "-y"]):
        result = runner.run(cmd)
        if not result.ok:
            report.error(f"Package refresh failed: {result.describe()}")
            return False
    return True


def install_packages(packages: List[str], runner: CommandRunner, report: RunReport) -> bool:
    report.step("Installing LEMP stack packages...")
    result = runner.run(["apt-get", "install", "-y"] + packages)
    if not result.ok:
        report.error(f"Package installation failed: {result.describe()}")
        return False
    report.ok(f"Installed {len(packages)} packages.")
    return True
