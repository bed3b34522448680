from enum import Enum
from typing import Dict, List

from lemp_setup.commands import CommandRunner
from lemp_setup.report import RunReport


class ServiceState(Enum):
    ACTIVE = "active"
    STARTED = "started"
    FAILED = "failed"


def is_active(runner: CommandRunner, service: str) -> bool:
    result = runner.run(["systemctl", "is-active", service])
    return result.stdout.strip() == "active"


def reconcile_service(runner: CommandRunner, report: RunReport, service: str) -> ServiceState:
    """
    Make sure a service is running. A service that is already active is
    left alone; otherwise it is enabled and started once, then re-checked.
    """
    if is_active(runner, service):
        return ServiceState.ACTIVE

    report.step(f"Service {service} is not started yet. Starting...")
    runner.run(["systemctl", "enable", "--now", service])
    if is_active(runner, service):
        report.ok(f"Service {service} started.")
        return ServiceState.STARTED

    report.error(f"Please investigate {service} service manually.")
    return ServiceState.FAILED


def verify_services(
    services: List[str], runner: CommandRunner, report: RunReport
) -> Dict[str, ServiceState]:
    report.step("Verifying services...")
    states: Dict[str, ServiceState] = {}
    for service in services:
        states[service] = reconcile_service(runner, report, service)
    if all(state is not ServiceState.FAILED for state in states.values()):
        report.ok(f"All services active: {', '.join(services)}")
    return states
