from __future__ import annotations

from conftest import FakeRunner, result

from lemp_setup.commands import CommandStatus
from lemp_setup.packages import (
    _name_pattern,
    build_pkglist,
    install_packages,
    refresh_system,
)


def repo_with(*available: str) -> FakeRunner:
    """A runner whose apt-cache knows exactly the given package names."""

    def search(cmd, input):
        name = cmd[-1].strip("^$").replace("\\", "")
        if name in available:
            return result(f"{name} - {name} module for PHP\n")
        return result("")

    return FakeRunner().on(["apt-cache", "search"], search)


class TestBuildPkglist:
    def test_invalid_modules_are_excluded(self, config, report):
        runner = repo_with("php8.1-curl", "php8.1-gd")
        config.php_modules = ["curl", "gd", "doesnotexist"]

        pkgs = build_pkglist(config, runner, report)

        assert "php8.1-curl" in pkgs.install
        assert "php8.1-gd" in pkgs.install
        assert "php8.1-doesnotexist" not in pkgs.install
        assert pkgs.invalid == ["php8.1-doesnotexist"]
        assert report.error_count == 1

    def test_base_and_infrastructure_packages_always_present(self, config, report):
        runner = repo_with()
        config.php_modules = ["nothere"]

        pkgs = build_pkglist(config, runner, report)

        for name in ["nginx", "mariadb-server", "mariadb-common"]:
            assert name in pkgs.install
        for name in ["php8.1", "php8.1-fpm", "php8.1-common", "php8.1-cli", "php8.1-mysql"]:
            assert name in pkgs.install

    def test_empty_module_list_skips_repository(self, config, report, runner):
        pkgs = build_pkglist(config, runner, report)

        assert runner.called(["apt-cache"]) == []
        assert pkgs.invalid == []
        assert report.error_count == 0

    def test_duplicates_are_processed_independently(self, config, report):
        runner = repo_with("php8.1-curl")
        config.php_modules = ["curl", "curl", "bogus", "bogus"]

        pkgs = build_pkglist(config, runner, report)

        assert len(runner.called(["apt-cache", "search"])) == 4
        assert pkgs.install.count("php8.1-curl") == 2
        assert pkgs.invalid == ["php8.1-bogus", "php8.1-bogus"]

    def test_candidate_never_added_without_successful_check(self, config, report):
        runner = FakeRunner().on(
            ["apt-cache"], result(returncode=100, stderr="E: cache is broken")
        )
        config.php_modules = ["curl"]

        pkgs = build_pkglist(config, runner, report)

        assert "php8.1-curl" not in pkgs.install
        assert pkgs.invalid == ["php8.1-curl"]
        assert [c.validated for c in pkgs.candidates] == [False]
        assert report.error_count == 1

    def test_provided_name_is_a_match(self, config, report):
        runner = FakeRunner().on(
            ["apt-cache", "search", "--names-only", r"^php8\.1-json$"],
            result("php8.1-common - documentation, examples and common module for PHP\n"),
        )
        config.php_modules = ["json"]

        pkgs = build_pkglist(config, runner, report)

        assert "php8.1-json" in pkgs.install
        assert pkgs.invalid == []
        assert report.error_count == 0


def test_name_pattern_is_anchored_and_escaped():
    assert _name_pattern("php8.1-gd") == r"^php8\.1-gd$"
    assert _name_pattern("libstdc++6") == r"^libstdc\+\+6$"


def test_install_packages_reports_failure(report):
    runner = FakeRunner().on(["apt-get", "install"], result(returncode=100))

    assert install_packages(["nginx"], runner, report) is False
    assert runner.calls == [["apt-get", "install", "-y", "nginx"]]
    assert report.error_count == 1


def test_refresh_stops_after_failed_update(report):
    runner = FakeRunner().on(
        ["apt-get", "update"], result(status=CommandStatus.TIMED_OUT)
    )

    assert refresh_system(runner, report) is False
    assert runner.called(["apt-get", "upgrade"]) == []
    assert report.error_count == 1
