from typing import Dict, Set

from lemp_setup.commands import CommandRunner
from lemp_setup.config import Config
from lemp_setup.report import RunReport


def listening_ports(runner: CommandRunner, report: RunReport) -> Set[int]:
    """Parse the TCP listening-socket table into a set of local ports."""
    result = runner.run(["ss", "-tln"])
    if not result.ok:
        report.error(f"Could not list listening sockets: {result.describe()}")
        return set()

    ports: Set[int] = set()
    for line in result.stdout.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 4:
            continue
        _, _, port = fields[3].rpartition(":")
        if port.isdigit():
            ports.add(int(port))
    return ports


def check_listening_ports(
    config: Config, runner: CommandRunner, report: RunReport
) -> Dict[str, bool]:
    """
    Check each expected TCP port, then the PHP-FPM channel, which may be
    either a TCP listener or a unix socket.
    """
    report.step("Checking ports...")
    listening = listening_ports(runner, report)
    outcomes: Dict[str, bool] = {}

    for port in config.expected_ports:
        if port in listening:
            report.ok(f"Port {port} is listening.")
            outcomes[str(port)] = True
        else:
            report.error(f"Port {port} is not listening.")
            outcomes[str(port)] = False

    if config.fpm_port in listening:
        report.ok(f"PHP-FPM is listening on port {config.fpm_port}.")
        outcomes["php-fpm"] = True
    else:
        report.step("PHP-FPM is probably using a unix socket. Checking...")
        if config.fpm_socket.is_socket():
            report.ok(f"It is: {config.fpm_socket}")
            outcomes["php-fpm"] = True
        else:
            report.error("PHP-FPM channel not found. Check configuration manually.")
            outcomes["php-fpm"] = False

    return outcomes
