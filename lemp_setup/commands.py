# ----------------------------------------------------------------
# Command Execution Utilities
# ----------------------------------------------------------------
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from lemp_setup.config import OPERATION_TIMEOUT

logger = logging.getLogger("lemp_setup")


class CommandStatus(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    MISSING = "missing"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    args: List[str]
    status: CommandStatus
    returncode: Optional[int] = None
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.status is CommandStatus.SUCCEEDED

    def describe(self) -> str:
        """Short human readable reason for a failed command."""
        cmd = self.args[0] if self.args else "command"
        if self.status is CommandStatus.MISSING:
            return f"{cmd} not found"
        if self.status is CommandStatus.TIMED_OUT:
            return f"{cmd} timed out"
        if self.status is CommandStatus.FAILED:
            detail = self.stderr.strip().splitlines()
            reason = f": {detail[-1]}" if detail else ""
            return f"{cmd} exited with {self.returncode}{reason}"
        return f"{cmd} succeeded"


class CommandRunner:
    """Runs external programs and never raises on their failure."""

    def __init__(self, timeout: Optional[int] = OPERATION_TIMEOUT):
        self.timeout = timeout
        self.env: Dict[str, str] = dict(os.environ, DEBIAN_FRONTEND="noninteractive")

    def run(self, cmd: List[str], input: Optional[str] = None) -> CommandResult:
        logger.debug(f"Running command: {' '.join(cmd)}")

        if shutil.which(cmd[0]) is None:
            logger.debug(f"Executable not found: {cmd[0]}")
            return CommandResult(cmd, CommandStatus.MISSING)

        try:
            proc = subprocess.run(
                cmd,
                input=input,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                env=self.env,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.debug(f"Command timed out after {self.timeout} seconds: {' '.join(cmd)}")
            return CommandResult(cmd, CommandStatus.TIMED_OUT)
        except FileNotFoundError:
            return CommandResult(cmd, CommandStatus.MISSING)

        status = CommandStatus.SUCCEEDED if proc.returncode == 0 else CommandStatus.FAILED
        return CommandResult(cmd, status, proc.returncode, proc.stdout, proc.stderr)

    def exists(self, name: str) -> bool:
        """Check if a command exists in the system path."""
        return shutil.which(name) is not None
