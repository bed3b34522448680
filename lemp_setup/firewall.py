from lemp_setup.commands import CommandRunner
from lemp_setup.config import Config
from lemp_setup.report import RunReport


def configure_fw(config: Config, runner: CommandRunner, report: RunReport) -> bool:
    """Open the web ports in ufw when ufw is installed and active."""
    ports = ",".join(str(p) for p in config.firewall_ports)

    if not runner.exists("ufw"):
        report.info(
            "No firewall detected. Either you are not using one or you need "
            "to configure it manually later..."
        )
        report.info(f"Please enable port: {ports}")
        return True

    status = runner.run(["ufw", "status"])
    if "Status: active" not in status.stdout:
        report.info("Ufw is disabled..")
        return True

    result = runner.run(
        ["ufw", "allow", "proto", "tcp", "from", "any", "to", "any", "port", ports]
    )
    if not result.ok:
        report.error(f"Failed to allow ports {ports} in ufw: {result.describe()}")
        return False
    report.ok(f"Ufw enabled, port {ports} allowed")
    return True
