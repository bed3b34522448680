# ----------------------------------------------------------------
# Provisioning Pipeline
# ----------------------------------------------------------------
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import requests

from lemp_setup.commands import CommandRunner
from lemp_setup.config import Config
from lemp_setup.firewall import configure_fw
from lemp_setup.hardening import secure_mariadb
from lemp_setup.nginx import configure_phpfpm
from lemp_setup.packages import PackageSet, build_pkglist, install_packages, refresh_system
from lemp_setup.ports import check_listening_ports
from lemp_setup.report import RunReport
from lemp_setup.services import ServiceState, verify_services
from lemp_setup.smoke import SmokeTestHarness
from lemp_setup.ui import NordColors, display_panel, print_status_report

READY_MESSAGE = "Your LEMP stack is ready !!"
ERRORS_MESSAGE = (
    "LEMP stack installation is finished with errors. Need manual configuration."
)


@dataclass(frozen=True)
class Step:
    name: str
    title: str
    run: Callable[["LempInstaller"], bool]


class LempInstaller:
    """Runs the provisioning steps in order against one host."""

    def __init__(
        self,
        config: Config,
        runner: Optional[CommandRunner] = None,
        report: Optional[RunReport] = None,
        http_get: Callable[..., requests.Response] = requests.get,
    ):
        self.config = config
        self.runner = runner or CommandRunner(timeout=config.command_timeout)
        self.report = report or RunReport()
        self.smoke = SmokeTestHarness(config, self.runner, self.report, http_get)
        self.packages: Optional[PackageSet] = None
        self.statuses: Dict[str, Dict[str, str]] = {}

    # ----------------------------------------------------------------
    # Steps
    # ----------------------------------------------------------------
    def refresh_system(self) -> bool:
        return refresh_system(self.runner, self.report)

    def build_pkglist(self) -> bool:
        self.packages = build_pkglist(self.config, self.runner, self.report)
        return not self.packages.invalid

    def install_packages(self) -> bool:
        if self.packages is None:
            self.build_pkglist()
        return install_packages(self.packages.install, self.runner, self.report)

    def verify_services(self) -> bool:
        states = verify_services(self.config.all_services, self.runner, self.report)
        return ServiceState.FAILED not in states.values()

    def secure_mariadb(self) -> bool:
        if not self.config.secure_mariadb:
            self.report.info("Not securing mariadb installation.")
            return True
        return all(secure_mariadb(self.runner, self.report).values())

    def check_listening_ports(self) -> bool:
        return all(check_listening_ports(self.config, self.runner, self.report).values())

    def configure_fw(self) -> bool:
        return configure_fw(self.config, self.runner, self.report)

    def configure_phpfpm(self) -> bool:
        return configure_phpfpm(self.config, self.runner, self.report)

    def test_http(self) -> bool:
        return self.smoke.test_http()

    def test_php(self) -> bool:
        return self.smoke.test_php()

    def test_mysql_php(self) -> bool:
        return self.smoke.test_mysql_php()

    # ----------------------------------------------------------------
    # Orchestration
    # ----------------------------------------------------------------
    def run_step(self, name: str) -> bool:
        step = STEPS[name]
        self.report.section(step.title)
        errors_before = self.report.error_count
        start = time.time()

        passed = step.run(self)

        elapsed = time.time() - start
        errors = self.report.error_count - errors_before
        if errors:
            self.statuses[name] = {
                "status": "errors",
                "message": f"{errors} error(s) after {elapsed:.2f}s",
            }
        else:
            self.statuses[name] = {
                "status": "success" if passed else "failed",
                "message": f"Completed in {elapsed:.2f}s",
            }
        return passed

    def run(self) -> int:
        """Run the full pipeline. Returns the number of non-fatal errors."""
        self.report.info("Installing LEMP stack...")
        for name in PIPELINE:
            self.run_step(name)
        self.finish()
        return self.report.error_count

    def finish(self) -> None:
        print_status_report(self.statuses)
        if self.report.error_count == 0:
            self.report.ok(READY_MESSAGE)
            display_panel(READY_MESSAGE, style=NordColors.GREEN, title="Success")
        else:
            self.report.info(ERRORS_MESSAGE)
            display_panel(
                f"{ERRORS_MESSAGE}\n\n{self.report.error_count} issue(s) need attention. "
                f"See {self.config.log_file} for details.",
                style=NordColors.YELLOW,
                title="Finished with errors",
            )


STEPS: Dict[str, Step] = {
    step.name: step
    for step in [
        Step("refresh_system", "System Update", LempInstaller.refresh_system),
        Step("build_pkglist", "Package Resolution", LempInstaller.build_pkglist),
        Step("install_packages", "Package Installation", LempInstaller.install_packages),
        Step("verify_services", "Service Verification", LempInstaller.verify_services),
        Step("secure_mariadb", "MariaDB Hardening", LempInstaller.secure_mariadb),
        Step("check_listening_ports", "Port Audit", LempInstaller.check_listening_ports),
        Step("configure_fw", "Firewall", LempInstaller.configure_fw),
        Step("configure_phpfpm", "PHP-FPM Upstream", LempInstaller.configure_phpfpm),
        Step("test_http", "Web Server Smoke Test", LempInstaller.test_http),
        Step("test_php", "PHP-FPM Smoke Test", LempInstaller.test_php),
        Step("test_mysql_php", "Database Smoke Test", LempInstaller.test_mysql_php),
    ]
}

PIPELINE: List[str] = list(STEPS)
