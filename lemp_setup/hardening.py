"""
MariaDB post-install hardening.

Each step runs whether or not earlier steps succeeded; a failure is
reported and the chain moves on.
"""

import secrets
import string
from dataclasses import dataclass
from typing import Dict, List, Optional

from lemp_setup.commands import CommandResult, CommandRunner
from lemp_setup.report import RunReport

PASSWORD_ALPHABET = string.ascii_letters + string.digits
PASSWORD_LENGTH = 12
MANUAL_NOTICE = "Please secure mariadb installation manually."


def genpasswd(length: int = PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def query(runner: CommandRunner, statement: str) -> CommandResult:
    return runner.run(["mariadb", "-e", statement])


def use_root_password(runner: CommandRunner, password: str) -> None:
    """Make later client calls through this runner log in with the new root password."""
    runner.env["MYSQL_PWD"] = password


@dataclass(frozen=True)
class HardeningStep:
    description: str
    statements: List[str]
    failure: str
    password: Optional[str] = None


def root_auth_plugin(runner: CommandRunner) -> Optional[str]:
    """Return the auth plugin column(s) for root, or None if unreadable."""
    result = query(runner, "SELECT plugin FROM mysql.user WHERE User='root'")
    if not result.ok:
        return None
    return result.stdout


def uses_socket_auth(plugin: Optional[str]) -> bool:
    return plugin is not None and "socket" in plugin.lower()


def hardening_steps(password: Optional[str]) -> List[HardeningStep]:
    """
    Ordered hardening chain. Credential rotation is only included when a
    password is given.
    """
    steps: List[HardeningStep] = []
    if password is not None:
        steps.append(
            HardeningStep(
                "Changing root password",
                [
                    f"ALTER USER 'root'@'localhost' IDENTIFIED BY '{password}'",
                    "FLUSH PRIVILEGES",
                ],
                "Failed to change root password!",
                password=password,
            )
        )
    steps += [
        HardeningStep(
            "Deleting anonymous users",
            ["DELETE FROM mysql.user WHERE User=''"],
            "Failed to delete anonymous users!",
        ),
        HardeningStep(
            "Restricting root login to allow local only",
            [
                "DELETE FROM mysql.user WHERE User='root' "
                "AND Host NOT IN ('localhost', '127.0.0.1', '::1')"
            ],
            "Failed to configure root local only!",
        ),
        HardeningStep(
            "Removing test database",
            [
                "DROP DATABASE IF EXISTS test",
                r"DELETE FROM mysql.db WHERE Db='test' OR Db='test\_%'",
            ],
            "Failed to remove test database!",
        ),
        HardeningStep(
            "Reloading privilege tables",
            ["FLUSH PRIVILEGES"],
            "Failed to reload privilege tables!",
        ),
    ]
    return steps


def run_hardening_step(step: HardeningStep, runner: CommandRunner, report: RunReport) -> bool:
    report.step(f"{step.description}.")
    for statement in step.statements:
        result = query(runner, statement)
        if not result.ok:
            report.error(f"{step.failure} ({result.describe()})")
            report.info(MANUAL_NOTICE)
            return False
        # root now only logs in with the new password
        if step.password is not None:
            use_root_password(runner, step.password)
    return True


def secure_mariadb(
    runner: CommandRunner, report: RunReport, password: Optional[str] = None
) -> Dict[str, bool]:
    """
    Harden a fresh MariaDB install. Returns the outcome of each step,
    keyed by description.
    """
    report.step("Securing mariadb installation...")

    plugin = root_auth_plugin(runner)
    if plugin is None:
        report.advisory("Could not read root authentication plugin.")

    if uses_socket_auth(plugin):
        report.info("Root uses unix socket authentication. Not changing password.")
        password = None
    else:
        password = password or genpasswd()
        # The operator retrieves the new password from the run log.
        report.info(f"Changing mariadb root password to: {password}")

    outcomes: Dict[str, bool] = {}
    for step in hardening_steps(password):
        outcomes[step.description] = run_hardening_step(step, runner, report)

    if all(outcomes.values()):
        report.ok("Done securing mariadb installation.")
    return outcomes
