"""External tool invocation for the filesystem codec."""

from __future__ import annotations

import os
import shutil
import subprocess
from typing import Mapping, Optional, Sequence

from mkimg.logging import LoggerFactory


log = LoggerFactory.for_command()


def run_command(
    command: Sequence[str],
    env: Optional[Mapping[str, str]] = None,
) -> subprocess.CompletedProcess:
    """Run ``command`` capturing text output.

    Args:
        command: Program and arguments
        env: Extra environment variables layered over the current environment

    Raises:
        subprocess.CalledProcessError: If the command exits non-zero
        OSError: If the program cannot be executed
    """
    command = [str(part) for part in command]
    log.debug(f"Running command: {' '.join(command)}")
    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update(env)
    try:
        result = subprocess.run(
            command, check=True, text=True, capture_output=True, env=full_env
        )
    except subprocess.CalledProcessError as error:
        log.debug(f"Command failed: {' '.join(command)}")
        if error.stdout:
            log.trace(f"stdout: {error.stdout.strip()}")
        if error.stderr:
            log.trace(f"stderr: {error.stderr.strip()}")
        raise
    if result.stdout:
        log.trace(f"stdout: {result.stdout.strip()}")
    if result.stderr:
        log.trace(f"stderr: {result.stderr.strip()}")
    log.debug(f"Command completed with return code {result.returncode}")
    return result


def format_command_failure(error: subprocess.CalledProcessError) -> str:
    """Summarize a failed command for an error message."""
    command = error.cmd
    if isinstance(command, (list, tuple)):
        command = " ".join(str(part) for part in command)
    detail = (error.stderr or error.stdout or "").strip()
    message = f"{command} exited with status {error.returncode}"
    if detail:
        message += f": {detail.splitlines()[-1]}"
    return message


def require_tool(name: str) -> str:
    """Return the resolved path of ``name`` or raise FileNotFoundError."""
    resolved = shutil.which(name)
    if resolved is None:
        raise FileNotFoundError(f"Required tool not found: {name}")
    return resolved
