import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .constants import APP_NAME, DISM_REBOOT_REQUIRED
from .errors import ErrorKind, ToolkitError

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class RepairStep:
    """Result of one repair utility run.

    Attributes:
        name (str): The utility that ran.
        exit_code (int): Its native exit code.
        reboot_required (bool): Whether a restart is needed to finish the repair.
    """

    name: str
    exit_code: int
    reboot_required: bool = False


def _system32() -> Path:
    return Path(os.environ.get("SystemRoot", r"C:\Windows")) / "System32"


def _run_tool(name: str, args: list[str]) -> int:
    """Runs a repair utility with its output streamed to the console."""
    exe = _system32() / name
    logger.info(f"REPAIR: {name} {' '.join(args)}")
    try:
        res = subprocess.run([str(exe), *args])
    except FileNotFoundError as e:
        raise ToolkitError(
            ErrorKind.TOOL_UNAVAILABLE, f"{name} was not found", path=exe
        ) from e
    return res.returncode


def run_dism() -> RepairStep:
    """Repairs the component store with DISM RestoreHealth.

    Raises:
        ToolkitError: REPAIR_FAILED on any exit code other than 0 or 3010.
    """
    code = _run_tool("dism.exe", ["/Online", "/Cleanup-Image", "/RestoreHealth"])
    if code not in (0, DISM_REBOOT_REQUIRED):
        raise ToolkitError(
            ErrorKind.REPAIR_FAILED, "DISM could not repair the image", exit_code=code
        )
    return RepairStep("DISM", code, reboot_required=code == DISM_REBOOT_REQUIRED)


def run_sfc() -> RepairStep:
    """Verifies and repairs protected system files with SFC.

    Raises:
        ToolkitError: REPAIR_FAILED on a non-zero exit code.
    """
    code = _run_tool("sfc.exe", ["/scannow"])
    if code != 0:
        raise ToolkitError(
            ErrorKind.REPAIR_FAILED,
            "SFC reported files it could not repair. See CBS.log",
            exit_code=code,
        )
    return RepairStep("SFC", code)


def run_repair() -> list[RepairStep]:
    """Runs DISM, then SFC against the repaired component store.

    SFC repairs from the component store, so it only runs once DISM succeeds.

    Returns:
        list[RepairStep]: The completed steps in order.
    """
    steps = [run_dism()]
    steps.append(run_sfc())
    if any(step.reboot_required for step in steps):
        logger.warning("REPAIR: Restart required to complete repairs.")
    else:
        logger.info("REPAIR: Completed.")
    return steps
