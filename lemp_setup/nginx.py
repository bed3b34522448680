from pathlib import Path

from lemp_setup.commands import CommandRunner
from lemp_setup.config import Config
from lemp_setup.report import RunReport

UPSTREAM_NAME = "php-fpm"
UPSTREAM_FILE = "php-fpm.conf"

UPSTREAM_TEMPLATE = """upstream {name} {{
    server {server};
}}
"""

PHP_SERVER_TEMPLATE = """server {{
    listen 80;
    server_name localhost;
    root {web_root};
    index index.php;
    location ~ \\.php$ {{
        fastcgi_pass {upstream};
        fastcgi_index index.php;
        include fastcgi.conf;
    }}
}}
"""


def config_ok(runner: CommandRunner) -> bool:
    return runner.run(["nginx", "-t"]).ok


def nginx_reload(runner: CommandRunner, report: RunReport) -> bool:
    """Reload nginx, but only if its configuration passes a syntax check."""
    if not config_ok(runner):
        report.error("nginx configuration test failed. Not reloading.")
        return False
    result = runner.run(["nginx", "-s", "reload"])
    if not result.ok:
        report.error(f"nginx reload failed: {result.describe()}")
        return False
    return True


def upstream_server(config: Config) -> str:
    if config.php_socket:
        return f"unix:{config.fpm_socket}"
    return f"127.0.0.1:{config.fpm_port}"


def render_php_server(config: Config) -> str:
    return PHP_SERVER_TEMPLATE.format(web_root=config.web_root, upstream=UPSTREAM_NAME)


def configure_phpfpm(config: Config, runner: CommandRunner, report: RunReport) -> bool:
    """Install the permanent upstream fragment that points nginx at PHP-FPM."""
    report.step("Configuring php-fpm...")
    path: Path = config.nginx_conf_dir / UPSTREAM_FILE
    try:
        path.write_text(
            UPSTREAM_TEMPLATE.format(name=UPSTREAM_NAME, server=upstream_server(config))
        )
    except OSError as e:
        report.error(f"Could not write {path}: {e}")
        return False

    if not config_ok(runner):
        report.error("php-fpm upstream configuration failed nginx syntax check.")
        return False
    report.ok("php-fpm upstream configured.")
    return True
