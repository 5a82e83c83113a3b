"""
Headless Blender subprocess helper.

Runs a generated Python script with ``blender -b --python`` and returns a
structured result. Used by the capture surface, one invocation per rendered
view.
"""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class BlenderExecResult:
    success: bool
    returncode: int = -1
    stdout: str = ""
    stderr: str = ""
    elapsed: float = 0.0
    script_path: str = ""
    timed_out: bool = False

    def tail(self, limit: int = 500) -> str:
        text = self.stderr or self.stdout
        return text[-limit:] if text else "no output"


def run_blender_script_sync(
    script_path: str,
    blender_executable: str,
    timeout: int = 120,
    script_args: list[str] | None = None,
) -> BlenderExecResult:
    """Execute a Python script in headless Blender (blocking)."""
    command = [blender_executable, "-b", "--factory-startup", "--python", script_path]
    if script_args:
        command += ["--", *script_args]

    logger.debug("Blender exec: %s", " ".join(command))
    t0 = time.time()

    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.error("Blender TIMEOUT (%ds): %s", timeout, script_path)
        return BlenderExecResult(
            success=False,
            elapsed=time.time() - t0,
            script_path=script_path,
            timed_out=True,
        )
    except OSError as e:
        logger.error("Blender could not be started (%s): %s", blender_executable, e)
        return BlenderExecResult(
            success=False,
            stderr=str(e),
            elapsed=time.time() - t0,
            script_path=script_path,
        )

    return BlenderExecResult(
        success=result.returncode == 0,
        returncode=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
        elapsed=time.time() - t0,
        script_path=script_path,
    )

