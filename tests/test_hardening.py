from __future__ import annotations

import string

from conftest import FakeRunner, result

from lemp_setup.hardening import (
    MANUAL_NOTICE,
    PASSWORD_LENGTH,
    genpasswd,
    hardening_steps,
    secure_mariadb,
    uses_socket_auth,
)
from lemp_setup.report import Severity

PLUGIN_QUERY = ["mariadb", "-e", "SELECT plugin FROM mysql.user WHERE User='root'"]


def statements(runner: FakeRunner):
    return [c[2] for c in runner.called(["mariadb", "-e"])]


def test_socket_auth_skips_credential_rotation(report):
    runner = FakeRunner().on(PLUGIN_QUERY, result("plugin\nunix_socket\n"))

    outcomes = secure_mariadb(runner, report)

    assert not any("ALTER USER" in s for s in statements(runner))
    assert "Changing root password" not in outcomes
    assert report.error_count == 0


def test_password_auth_rotates_root_credential(report):
    runner = FakeRunner().on(PLUGIN_QUERY, result("plugin\nmysql_native_password\n"))

    outcomes = secure_mariadb(runner, report, password="Secret123abc")

    assert (
        "ALTER USER 'root'@'localhost' IDENTIFIED BY 'Secret123abc'"
        in statements(runner)
    )
    assert outcomes["Changing root password"] is True
    assert any("Secret123abc" in m for m in report.messages(Severity.INFO))


def test_failed_step_does_not_stop_the_chain(report):
    runner = (
        FakeRunner()
        .on(PLUGIN_QUERY, result("plugin\nunix_socket\n"))
        .on(["mariadb", "-e", "DELETE FROM mysql.user WHERE User=''"], result(returncode=1))
    )

    outcomes = secure_mariadb(runner, report)

    assert outcomes["Deleting anonymous users"] is False
    assert outcomes["Restricting root login to allow local only"] is True
    assert outcomes["Removing test database"] is True
    assert "DROP DATABASE IF EXISTS test" in statements(runner)
    assert report.error_count == 1
    assert MANUAL_NOTICE in report.messages(Severity.INFO)


def test_unreadable_plugin_still_attempts_rotation(report):
    runner = FakeRunner().on(PLUGIN_QUERY, result(returncode=1))

    outcomes = secure_mariadb(runner, report)

    assert "Changing root password" in outcomes
    assert report.messages(Severity.ADVISORY)
    assert report.error_count == 0


def test_steps_run_in_fixed_order():
    names = [s.description for s in hardening_steps("x")]

    assert names == [
        "Changing root password",
        "Deleting anonymous users",
        "Restricting root login to allow local only",
        "Removing test database",
        "Reloading privilege tables",
    ]
    assert [s.description for s in hardening_steps(None)] == names[1:]


def test_genpasswd_is_alphanumeric():
    alphabet = set(string.ascii_letters + string.digits)
    passwords = {genpasswd() for _ in range(20)}

    assert all(len(p) == PASSWORD_LENGTH for p in passwords)
    assert all(set(p) <= alphabet for p in passwords)
    assert len(passwords) > 1


def test_uses_socket_auth():
    assert uses_socket_auth("plugin\nunix_socket")
    assert not uses_socket_auth("plugin\nmysql_native_password")
    assert not uses_socket_auth(None)


def password_protected_server(runner: FakeRunner) -> FakeRunner:
    """Root logs in without a password until ALTER USER changes it."""
    state = {"password": None}

    def respond(cmd, input):
        given = runner.env.get("MYSQL_PWD")
        if state["password"] is not None and given != state["password"]:
            using = "YES" if given else "NO"
            return result(
                returncode=1,
                stderr=f"ERROR 1045 (28000): Access denied for user 'root'@'localhost' (using password: {using})",
            )
        statement = cmd[2] if len(cmd) > 2 else ""
        if statement.startswith("ALTER USER 'root'@'localhost' IDENTIFIED BY '"):
            state["password"] = statement.rsplit("'", 2)[1]
        if statement.startswith("SELECT plugin"):
            return result("plugin\nmysql_native_password\n")
        return result()

    return runner.on(["mariadb"], respond)


def test_rotation_keeps_later_steps_logged_in(report):
    runner = password_protected_server(FakeRunner())

    outcomes = secure_mariadb(runner, report, password="Secret123abc")

    assert all(outcomes.values()), report.messages(Severity.ERROR)
    assert report.error_count == 0
    assert runner.env["MYSQL_PWD"] == "Secret123abc"
    rotate = statements(runner).index("ALTER USER 'root'@'localhost' IDENTIFIED BY 'Secret123abc'")
    assert "MYSQL_PWD" not in runner.envs[rotate]
    assert runner.envs[rotate + 1]["MYSQL_PWD"] == "Secret123abc"
