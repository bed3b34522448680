import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from lemp_setup.errors import PreflightError

DEFAULT_PHP_VERSION: str = "7.4"
OPERATION_TIMEOUT: int = 300  # 5 minutes default timeout for operations
HTTP_TIMEOUT: int = 10

# Versions no longer shipped by the target release, mapped to their successor.
PHP_VERSION_ALIASES = {"7.2": "7.4"}

_VERSION_RE = re.compile(r"^\d+\.\d+$")


def normalize_php_version(version: str) -> str:
    """Validate a PHP version string and apply the legacy alias table."""
    version = version.strip()
    if not _VERSION_RE.match(version):
        raise PreflightError(f"Invalid php version: {version!r}")
    return PHP_VERSION_ALIASES.get(version, version)


def split_modules(raw: str) -> List[str]:
    """Split a comma separated module list, keeping duplicates and order."""
    return [name.strip() for name in raw.split(",") if name.strip()]


@dataclass
class Config:
    """Configuration for a single LEMP provisioning run."""

    php_version: str = DEFAULT_PHP_VERSION
    php_modules: List[str] = field(default_factory=list)
    secure_mariadb: bool = True
    php_socket: bool = True

    log_file: Path = field(default_factory=lambda: Path("lemp_install.log"))
    nginx_conf_dir: Path = field(default_factory=lambda: Path("/etc/nginx/conf.d"))
    web_root: Path = field(default_factory=lambda: Path("/var/www/html"))
    web_user: Optional[str] = "www-data"
    fpm_socket_dir: Path = field(default_factory=lambda: Path("/run/php"))

    base_packages: List[str] = field(
        default_factory=lambda: ["nginx", "mariadb-server", "mariadb-common"]
    )
    php_base_suffixes: List[str] = field(
        default_factory=lambda: ["", "-fpm", "-common", "-cli", "-mysql"]
    )
    services: List[str] = field(default_factory=lambda: ["nginx", "mariadb"])

    expected_ports: List[int] = field(default_factory=lambda: [80, 3306])
    fpm_port: int = 9000
    firewall_ports: List[int] = field(default_factory=lambda: [80, 443])

    local_url: str = "http://localhost"
    public_ip_url: str = "http://icanhazip.com"
    command_timeout: int = OPERATION_TIMEOUT
    http_timeout: int = HTTP_TIMEOUT

    @property
    def php_prefix(self) -> str:
        return f"php{self.php_version}"

    @property
    def php_packages(self) -> List[str]:
        return [f"{self.php_prefix}{suffix}" for suffix in self.php_base_suffixes]

    @property
    def fpm_service(self) -> str:
        return f"{self.php_prefix}-fpm"

    @property
    def fpm_socket(self) -> Path:
        return self.fpm_socket_dir / f"{self.php_prefix}-fpm.sock"

    @property
    def all_services(self) -> List[str]:
        return self.services + [self.fpm_service]
