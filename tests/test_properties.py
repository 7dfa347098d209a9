from hypothesis import given
from hypothesis import strategies as st

from synctool import scheduler, sync
from synctool.config import parse_clock
from synctool.scheduler import FiringCondition, ScheduledTrigger

# Lower-case DNS labels joined by dots (urlparse lower-cases hostnames).
hosts = st.lists(
    st.from_regex(r"[a-z0-9]([a-z0-9-]{0,20}[a-z0-9])?", fullmatch=True),
    min_size=1,
    max_size=4,
).map(".".join)

# Text that survives an XML element body and the whitespace strip on parse.
xml_text = st.text(
    alphabet=st.characters(categories=("L", "N", "P", "S")) | st.just(" "),
    max_size=60,
).filter(lambda s: s == s.strip())


@given(seconds=st.integers(min_value=0, max_value=7 * 24 * 3600))
def test_iso_duration_preserves_seconds(seconds: int) -> None:
    """
    Property: Any execution time limit written into a task definition is read
    back as the same number of seconds.
    """
    duration = scheduler.to_iso_duration(seconds)

    assert duration.startswith("PT")
    assert scheduler.from_iso_duration(duration) == seconds


@given(hours=st.integers(0, 23), minutes=st.integers(0, 59))
def test_parse_clock_accepts_every_wall_clock_time(hours: int, minutes: int) -> None:
    assert parse_clock(f"{hours}:{minutes:02d}") == f"{hours:02d}:{minutes:02d}"


@given(host=hosts, path=st.from_regex(r"[a-z]{1,10}/[a-z]{1,10}\.git", fullmatch=True))
def test_remote_host_is_extracted_from_every_url_form(host: str, path: str) -> None:
    """
    Property: The probe target is the same host whether the remote is spelled
    as an HTTPS URL, an SSH URL or scp-like SSH.
    """
    assert sync.get_remote_host(f"https://{host}/{path}") == host
    assert sync.get_remote_host(f"ssh://git@{host}/{path}") == host
    assert sync.get_remote_host(f"git@{host}:{path}") == host


@given(
    arguments=xml_text,
    command=xml_text.filter(bool),
    daily=st.booleans(),
    hours=st.integers(0, 23),
    limit=st.integers(min_value=0, max_value=72 * 3600),
    enabled=st.booleans(),
)
def test_task_definition_survives_the_scheduler(
    arguments: str, command: str, daily: bool, hours: int, limit: int, enabled: bool
) -> None:
    """
    Property: A trigger rendered to Task Scheduler XML and queried back is
    unchanged, whatever characters its command line carries.
    """
    trigger = ScheduledTrigger(
        name="IGP Pull IGP Tools",
        command=command,
        arguments=arguments,
        firing=(
            FiringCondition.daily_at(f"{hours:02d}:00")
            if daily
            else FiringCondition.at_startup()
        ),
        enabled=enabled,
        time_limit=limit,
    )

    parsed = scheduler.parse_task_xml(trigger.name, scheduler.render_task_xml(trigger))

    assert parsed == trigger
