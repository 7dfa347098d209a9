import logging
import os
import re
import subprocess
import sys
import tempfile
import xml.etree.ElementTree as ET
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from xml.sax.saxutils import escape

from .constants import APP_NAME, RUN_AS
from .errors import ErrorKind, ToolkitError

logger = logging.getLogger(APP_NAME)

TASK_NS = "http://schemas.microsoft.com/windows/2004/02/mit/task"
"""str: XML namespace of Task Scheduler definitions."""

_NS = {"t": TASK_NS}

# Well-known account names and the SIDs the scheduler stores them as.
_SID_ALIASES = {"SYSTEM": "S-1-5-18"}

# Any fixed date works as the start boundary of a daily trigger; only the
# time of day matters.
_DAILY_START_DATE = "2024-01-01"


class FiringKind(Enum):
    AT_STARTUP = "at_startup"
    DAILY = "daily"


@dataclass(frozen=True)
class FiringCondition:
    """When a trigger fires.

    Attributes:
        kind (FiringKind): Startup or daily.
        time (str | None): 'HH:MM' for daily triggers.
    """

    kind: FiringKind
    time: str | None = None

    @classmethod
    def at_startup(cls) -> "FiringCondition":
        return cls(FiringKind.AT_STARTUP)

    @classmethod
    def daily_at(cls, time: str) -> "FiringCondition":
        return cls(FiringKind.DAILY, time)

    def describe(self) -> str:
        if self.kind is FiringKind.AT_STARTUP:
            return "At system startup"
        return f"Daily at {self.time}"


@dataclass(frozen=True)
class ScheduledTrigger:
    """A named, unattended OS-level trigger.

    Attributes:
        name (str): The unique scheduler name.
        command (str): The executable to run.
        arguments (str): The command-line arguments, already quoted.
        firing (FiringCondition): When the trigger fires.
        run_as (str): The identity the command runs as.
        enabled (bool): Whether the scheduler will fire it.
        time_limit (int): Seconds after which the scheduler kills the run.
    """

    name: str
    command: str
    arguments: str = ""
    firing: FiringCondition = FiringCondition.at_startup()
    run_as: str = RUN_AS
    enabled: bool = True
    time_limit: int = 15 * 60


class DisablePolicy(Enum):
    """How `TriggerManager.disable` treats an existing trigger."""

    DELETE = "delete"
    DISABLE_IN_PLACE = "disable_in_place"


class DisableOutcome(Enum):
    DELETED = "deleted"
    DISABLED = "disabled"
    ALREADY_DISABLED = "already_disabled"


def to_iso_duration(seconds: int) -> str:
    """Formats seconds as an ISO 8601 duration (e.g., 900 -> 'PT15M')."""
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    out = "PT"
    if hours:
        out += f"{hours}H"
    if minutes:
        out += f"{minutes}M"
    if secs or out == "PT":
        out += f"{secs}S"
    return out


def from_iso_duration(value: str) -> int:
    """Parses the time part of an ISO 8601 duration into seconds."""
    match = re.match(
        r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?$", value.strip()
    )
    if not match:
        raise ValueError(f"Invalid duration '{value}'")
    days, hours, minutes, secs = (int(g) if g else 0 for g in match.groups())
    return days * 86400 + hours * 3600 + minutes * 60 + secs


def render_task_xml(trigger: ScheduledTrigger) -> str:
    """Renders a Task Scheduler XML definition for a trigger.

    Args:
        trigger (ScheduledTrigger): The trigger to render.

    Returns:
        str: The XML document accepted by `schtasks /Create /XML`.
    """
    enabled = "true" if trigger.enabled else "false"
    if trigger.firing.kind is FiringKind.AT_STARTUP:
        trigger_xml = "    <BootTrigger>\n      <Enabled>true</Enabled>\n    </BootTrigger>"
    else:
        trigger_xml = (
            "    <CalendarTrigger>\n"
            f"      <StartBoundary>{_DAILY_START_DATE}T{trigger.firing.time}:00</StartBoundary>\n"
            "      <Enabled>true</Enabled>\n"
            "      <ScheduleByDay>\n"
            "        <DaysInterval>1</DaysInterval>\n"
            "      </ScheduleByDay>\n"
            "    </CalendarTrigger>"
        )
    user_id = _SID_ALIASES.get(trigger.run_as.upper(), trigger.run_as)
    arguments = (
        f"\n      <Arguments>{escape(trigger.arguments)}</Arguments>"
        if trigger.arguments
        else ""
    )

    return f"""<?xml version="1.0" encoding="UTF-16"?>
<Task version="1.2" xmlns="{TASK_NS}">
  <RegistrationInfo>
    <Description>{escape(trigger.name)} ({APP_NAME})</Description>
  </RegistrationInfo>
  <Triggers>
{trigger_xml}
  </Triggers>
  <Principals>
    <Principal id="Author">
      <UserId>{escape(user_id)}</UserId>
      <RunLevel>HighestAvailable</RunLevel>
    </Principal>
  </Principals>
  <Settings>
    <MultipleInstancesPolicy>IgnoreNew</MultipleInstancesPolicy>
    <DisallowStartIfOnBatteries>false</DisallowStartIfOnBatteries>
    <StopIfGoingOnBatteries>false</StopIfGoingOnBatteries>
    <StartWhenAvailable>true</StartWhenAvailable>
    <ExecutionTimeLimit>{to_iso_duration(trigger.time_limit)}</ExecutionTimeLimit>
    <Enabled>{enabled}</Enabled>
  </Settings>
  <Actions Context="Author">
    <Exec>
      <Command>{escape(trigger.command)}</Command>{arguments}
    </Exec>
  </Actions>
</Task>
"""


def parse_task_xml(name: str, document: str) -> ScheduledTrigger:
    """Parses a Task Scheduler XML definition back into a trigger.

    Args:
        name (str): The scheduler name the definition was queried under.
        document (str): The XML printed by `schtasks /Query /XML`.

    Returns:
        ScheduledTrigger: The parsed trigger.

    Raises:
        ValueError: If the document is not a task definition.
    """
    # Decoded text still carries the UTF-16 declaration, which expat rejects.
    body = re.sub(r"^\s*<\?xml[^>]*\?>", "", document, count=1)
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise ValueError(f"Unreadable task definition for '{name}': {e}") from e

    def text(path: str, default: str = "") -> str:
        node = root.find(path, _NS)
        return node.text.strip() if node is not None and node.text else default

    calendar = root.find("t:Triggers/t:CalendarTrigger", _NS)
    if calendar is not None:
        boundary = text("t:Triggers/t:CalendarTrigger/t:StartBoundary")
        firing = FiringCondition.daily_at(boundary.split("T", 1)[-1][:5])
    else:
        firing = FiringCondition.at_startup()

    user_id = text("t:Principals/t:Principal/t:UserId", RUN_AS)
    run_as = next(
        (alias for alias, sid in _SID_ALIASES.items() if sid == user_id), user_id
    )

    limit = text("t:Settings/t:ExecutionTimeLimit")
    return ScheduledTrigger(
        name=name,
        command=text("t:Actions/t:Exec/t:Command"),
        arguments=text("t:Actions/t:Exec/t:Arguments"),
        firing=firing,
        run_as=run_as,
        enabled=text("t:Settings/t:Enabled", "true").lower() == "true",
        time_limit=from_iso_duration(limit) if limit else 0,
    )


class SchedulerBackend:
    """Base class defining the interface to the OS task scheduler.

    Triggers are keyed by their unique name.
    """

    def query(self, name: str) -> ScheduledTrigger | None:
        """Returns the registered trigger, or None if no trigger has that name."""
        raise NotImplementedError

    def register(self, trigger: ScheduledTrigger) -> None:
        """Registers a new trigger. The name must not already be in use."""
        raise NotImplementedError

    def unregister(self, name: str) -> None:
        """Removes a trigger and its definition."""
        raise NotImplementedError

    def disable(self, name: str) -> None:
        """Stops a trigger from firing while keeping its definition."""
        raise NotImplementedError


class SchtasksBackend(SchedulerBackend):
    """Scheduler backend driving the Windows `schtasks.exe` utility."""

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                ["schtasks", *args],
                capture_output=True,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            raise ToolkitError(
                ErrorKind.TOOL_UNAVAILABLE, "schtasks.exe was not found"
            ) from e

    def query(self, name: str) -> ScheduledTrigger | None:
        res = self._run(["/Query", "/TN", name, "/XML"])
        if res.returncode != 0:
            logger.debug(f"schtasks query for '{name}' returned {res.returncode}")
            return None
        return parse_task_xml(name, res.stdout)

    def register(self, trigger: ScheduledTrigger) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix="synctool-", suffix=".xml")
        os.close(fd)
        xml_path = Path(tmp_name)
        try:
            # schtasks only reliably accepts UTF-16 task files.
            xml_path.write_text(render_task_xml(trigger), encoding="utf-16")
            res = self._run(["/Create", "/TN", trigger.name, "/XML", str(xml_path)])
        finally:
            xml_path.unlink(missing_ok=True)

        if res.returncode != 0:
            raise ToolkitError(
                ErrorKind.REGISTRATION_FAILED,
                f"Could not register '{trigger.name}': {res.stderr.strip()}",
                exit_code=res.returncode,
            )

    def unregister(self, name: str) -> None:
        res = self._run(["/Delete", "/TN", name, "/F"])
        if res.returncode != 0:
            raise ToolkitError(
                ErrorKind.REGISTRATION_FAILED,
                f"Could not delete '{name}': {res.stderr.strip()}",
                exit_code=res.returncode,
            )

    def disable(self, name: str) -> None:
        res = self._run(["/Change", "/TN", name, "/DISABLE"])
        if res.returncode != 0:
            raise ToolkitError(
                ErrorKind.REGISTRATION_FAILED,
                f"Could not disable '{name}': {res.stderr.strip()}",
                exit_code=res.returncode,
            )


def get_scheduler() -> SchedulerBackend:
    """Factory function to retrieve the platform scheduler backend.

    Returns:
        SchedulerBackend: A SchtasksBackend on Windows.

    Raises:
        ToolkitError: TOOL_UNAVAILABLE on platforms without Task Scheduler.
    """
    if sys.platform == "win32":
        return SchtasksBackend()
    raise ToolkitError(
        ErrorKind.TOOL_UNAVAILABLE, "Scheduled triggers require Windows Task Scheduler"
    )


class TriggerManager:
    """Enable/disable lifecycle for named scheduler triggers.

    Enabling always replaces: an existing trigger of the same name is deleted
    before the new definition is registered, so there is never more than one.
    """

    def __init__(self, backend: SchedulerBackend):
        self.backend = backend

    def query(self, name: str) -> ScheduledTrigger | None:
        return self.backend.query(name)

    def is_enabled(self, name: str) -> bool:
        trigger = self.backend.query(name)
        return trigger is not None and trigger.enabled

    def enable(self, trigger: ScheduledTrigger) -> None:
        """Registers a trigger, replacing any existing one with the same name.

        Raises:
            ToolkitError: REGISTRATION_FAILED if the scheduler rejects the change.
        """
        if self.backend.query(trigger.name) is not None:
            logger.info(f"TASK '{trigger.name}': Replacing existing definition.")
            self.backend.unregister(trigger.name)
        self.backend.register(replace(trigger, enabled=True))
        logger.info(f"TASK '{trigger.name}': Enabled ({trigger.firing.describe()}).")

    def disable(self, name: str, policy: DisablePolicy) -> DisableOutcome:
        """Disables a trigger according to its policy.

        Args:
            name (str): The trigger name.
            policy (DisablePolicy): Delete the definition or keep it disabled.

        Returns:
            DisableOutcome: What happened. A missing trigger is ALREADY_DISABLED.
        """
        existing = self.backend.query(name)
        if existing is None:
            logger.info(f"TASK '{name}': Not registered. Nothing to disable.")
            return DisableOutcome.ALREADY_DISABLED

        if policy is DisablePolicy.DELETE:
            self.backend.unregister(name)
            logger.info(f"TASK '{name}': Deleted.")
            return DisableOutcome.DELETED

        if not existing.enabled:
            return DisableOutcome.ALREADY_DISABLED
        self.backend.disable(name)
        logger.info(f"TASK '{name}': Disabled (definition kept).")
        return DisableOutcome.DISABLED
