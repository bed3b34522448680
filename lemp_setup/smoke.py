"""
Smoke tests that push real traffic through nginx, PHP-FPM and MariaDB.

Every file or database object a test creates is removed again when the
test finishes, whether or not the check passed.
"""

import ipaddress
import shutil
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional

import requests

from lemp_setup.commands import CommandRunner
from lemp_setup.config import Config
from lemp_setup.hardening import genpasswd
from lemp_setup.nginx import nginx_reload, render_php_server
from lemp_setup.report import RunReport

NGINX_WELCOME = "welcome to nginx"
PHP_OK = "PHP-FPM is working"
DB_OK = "DB OK"

TEST_DB = "tesdb"
TEST_DB_USER = "dbuser@localhost"

PHP_ECHO_TEMPLATE = """<?php
    echo '{message}';
?>
"""

PHP_DB_TEMPLATE = """<?php
    $con = mysqli_connect("localhost","dbuser","{password}","{database}");

    if (mysqli_connect_errno()) {{
        echo "Failed to connect to MySQL: " . mysqli_connect_error();
        exit();
    }} else {{
        echo "{ok}";
    }}
?>
"""


@dataclass(frozen=True)
class EphemeralArtifact:
    path: Path
    content: str
    owner: Optional[str] = None


class SmokeTestHarness:
    """Runs the HTTP, PHP-FPM and PHP-to-MariaDB smoke tests."""

    def __init__(
        self,
        config: Config,
        runner: CommandRunner,
        report: RunReport,
        http_get: Callable[..., requests.Response] = requests.get,
    ):
        self.config = config
        self.runner = runner
        self.report = report
        self.http_get = http_get

    # ----------------------------------------------------------------
    # Helpers
    # ----------------------------------------------------------------
    def fetch(self, url: str) -> Optional[str]:
        """Return the response body, or None if the request failed."""
        try:
            response = self.http_get(url, timeout=self.config.http_timeout)
        except requests.RequestException as e:
            self.report.logger.debug(f"Request to {url} failed: {e}")
            return None
        return response.text

    def public_ip(self) -> Optional[str]:
        body = self.fetch(self.config.public_ip_url)
        if body is None:
            return None
        try:
            return str(ipaddress.ip_address(body.strip()))
        except ValueError:
            return None

    def _write(self, artifact: EphemeralArtifact) -> None:
        artifact.path.write_text(artifact.content)
        if artifact.owner:
            shutil.chown(artifact.path, user=artifact.owner, group=artifact.owner)

    def _remove(self, artifacts: List[EphemeralArtifact]) -> None:
        for artifact in artifacts:
            try:
                artifact.path.unlink(missing_ok=True)
            except OSError as e:
                self.report.error(f"Could not remove test file {artifact.path}: {e}")

    @contextmanager
    def ephemeral(self, artifacts: List[EphemeralArtifact]) -> Iterator[bool]:
        """
        Write the artifacts and reload nginx. Yields whether setup
        succeeded. On exit every artifact is deleted and nginx is
        reloaded again.
        """
        written: List[EphemeralArtifact] = []
        ready = True
        try:
            for artifact in artifacts:
                written.append(artifact)
                try:
                    self._write(artifact)
                except (OSError, LookupError) as e:
                    self.report.error(f"Could not create test file {artifact.path}: {e}")
                    ready = False
                    break
            if ready:
                ready = nginx_reload(self.runner, self.report)
            yield ready
        finally:
            self._remove(written)
            nginx_reload(self.runner, self.report)

    def php_fragment(self) -> EphemeralArtifact:
        return EphemeralArtifact(
            self.config.nginx_conf_dir / "test-php.conf", render_php_server(self.config)
        )

    def php_page(self, name: str, content: str) -> EphemeralArtifact:
        return EphemeralArtifact(self.config.web_root / name, content, self.config.web_user)

    def expect(self, url: str, needle: str, ok: str, failed: str) -> bool:
        body = self.fetch(url)
        if body is not None and needle in body:
            self.report.ok(ok)
            return True
        self.report.error(failed)
        return False

    # ----------------------------------------------------------------
    # Tests
    # ----------------------------------------------------------------
    def test_http(self) -> bool:
        self.report.step("Testing nginx webserver...")
        self.report.step("From localhost...")
        body = self.fetch(self.config.local_url)
        passed = body is not None and NGINX_WELCOME in body.lower()
        if passed:
            self.report.ok("Localhost connection successful!")
        else:
            self.report.error("nginx default page is not served on localhost.")

        self.report.step("From public IP...")
        ip = self.public_ip()
        if ip is None:
            self.report.advisory("Could not determine the public IP address.")
            return passed

        host = f"[{ip}]" if ipaddress.ip_address(ip).version == 6 else ip
        body = self.fetch(f"http://{host}")
        if body is not None and NGINX_WELCOME in body.lower():
            self.report.ok("Test via public IP successful.")
        else:
            self.report.advisory("Timed out. It might be blocked from your firewall.")
        return passed

    def test_php(self) -> bool:
        self.report.step("Testing PHP-FPM...")
        page = self.php_page("test-php.php", PHP_ECHO_TEMPLATE.format(message=PHP_OK))
        with self.ephemeral([self.php_fragment(), page]) as ready:
            if not ready:
                self.report.error("Nginx + PHP-FPM test could not be set up.")
                return False
            return self.expect(
                f"{self.config.local_url}/{page.path.name}",
                PHP_OK,
                "Nginx + PHP-FPM is working",
                "Nginx + PHP-FPM is not working.",
            )

    def test_mysql_php(self) -> bool:
        self.report.step("Testing MariaDB + PHP connectivity...")
        password = genpasswd()
        try:
            provisioned = self.runner.run(
                ["mariadb"],
                input=(
                    f"CREATE DATABASE IF NOT EXISTS {TEST_DB};\n"
                    f"DROP USER IF EXISTS {TEST_DB_USER};\n"
                    f"CREATE USER {TEST_DB_USER} IDENTIFIED BY '{password}';\n"
                    f"GRANT ALL PRIVILEGES ON {TEST_DB}.* TO {TEST_DB_USER};\n"
                    "FLUSH PRIVILEGES;\n"
                ),
            )
            if not provisioned.ok:
                self.report.error(
                    f"Could not create test database: {provisioned.describe()}"
                )
                return False

            page = self.php_page(
                "test-db.php",
                PHP_DB_TEMPLATE.format(password=password, database=TEST_DB, ok=DB_OK),
            )
            with self.ephemeral([self.php_fragment(), page]) as ready:
                if not ready:
                    self.report.error("PHP - MariaDB test could not be set up.")
                    return False
                return self.expect(
                    f"{self.config.local_url}/{page.path.name}",
                    DB_OK,
                    "PHP - MariaDB connection is working.",
                    "PHP - MariaDB connection is not working.",
                )
        finally:
            dropped = self.runner.run(
                ["mariadb"],
                input=(
                    f"DROP DATABASE IF EXISTS {TEST_DB};\n"
                    f"DROP USER IF EXISTS {TEST_DB_USER};\n"
                    "FLUSH PRIVILEGES;\n"
                ),
            )
            if not dropped.ok:
                self.report.error(
                    f"Could not remove test database and user: {dropped.describe()}"
                )

