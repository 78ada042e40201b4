"""Cron helpers for the per-minute digest scheduler tick."""

from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

TICK_CRON_SCHEDULE = "* * * * *"


@dataclass(frozen=True)
class SchedulePlan:
    """Resolved cron plan for the scheduler tick."""

    project_root: Path
    runner: str
    log_file: Path
    label: str


def parse_time_24h(value: str) -> tuple[int, int]:
    """Parse HH:MM (24h) and return hour, minute."""
    parts = value.strip().split(":")
    if len(parts) != 2:
        raise ValueError("Time must be in HH:MM format")
    hour_str, minute_str = parts
    if not hour_str.isdigit() or not minute_str.isdigit():
        raise ValueError("Time must be numeric HH:MM")
    hour = int(hour_str)
    minute = int(minute_str)
    if not 0 <= hour <= 23:
        raise ValueError("Hour must be between 0 and 23")
    if not 0 <= minute <= 59:
        raise ValueError("Minute must be between 0 and 59")
    return hour, minute


def resolve_runner(runner_override: str | None) -> str:
    """Pick the command that invokes the newsdigest CLI."""
    if runner_override:
        return _shell_quote_command(runner_override)
    return "newsdigest"


def resolve_log_path(project_root: Path, log_file: Path) -> Path:
    """Resolve log path relative to project root when needed."""
    return log_file if log_file.is_absolute() else project_root / log_file


def build_plan(
    *,
    project_root: Path,
    runner_override: str | None,
    log_file: Path,
    label: str,
) -> SchedulePlan:
    """Build a validated schedule plan from CLI-like inputs."""
    normalized_label = label.strip()
    if not normalized_label:
        raise ValueError("label cannot be empty")

    resolved_root = project_root.resolve()
    return SchedulePlan(
        project_root=resolved_root,
        runner=resolve_runner(runner_override),
        log_file=resolve_log_path(resolved_root, log_file),
        label=normalized_label,
    )


def build_job_shell_command(plan: SchedulePlan) -> str:
    """Build shell command that runs one scheduler tick."""
    return (
        f"cd {shlex.quote(str(plan.project_root))} && "
        f"{plan.runner} tick >> {shlex.quote(str(plan.log_file))} 2>&1"
    )


def build_cron_line(plan: SchedulePlan) -> str:
    """Build complete cron entry."""
    shell_command = build_job_shell_command(plan)
    return f"{TICK_CRON_SCHEDULE} /bin/sh -c {shlex.quote(shell_command)}"


def cron_marker_start(label: str) -> str:
    """Managed cron block start marker."""
    return f"# >>> newsdigest tick ({label}) >>>"


def cron_marker_end(label: str) -> str:
    """Managed cron block end marker."""
    return f"# <<< newsdigest tick ({label}) <<<"


def render_cron_managed_block(plan: SchedulePlan) -> str:
    """Render managed cron block text."""
    start = cron_marker_start(plan.label)
    end = cron_marker_end(plan.label)
    return f"{start}\n{build_cron_line(plan)}\n{end}"


def _find_block(lines: list[str], label: str) -> tuple[int, int] | None:
    start = cron_marker_start(label)
    end = cron_marker_end(label)
    if start not in lines or end not in lines:
        return None

    start_idx = lines.index(start)
    end_idx = lines.index(end)
    if end_idx < start_idx:
        raise RuntimeError(
            "Malformed cron managed block; end marker appears before start marker."
        )
    return start_idx, end_idx


def get_cron_managed_block(label: str) -> str | None:
    """Return managed cron block for label, if present."""
    existing = _read_crontab()
    lines = existing.splitlines() if existing else []
    bounds = _find_block(lines, label)
    if bounds is None:
        return None
    start_idx, end_idx = bounds
    return "\n".join(lines[start_idx : end_idx + 1])


def install_cron(plan: SchedulePlan) -> None:
    """Install or replace the managed tick block in crontab."""
    block = render_cron_managed_block(plan)
    existing = _read_crontab()
    lines = existing.splitlines() if existing else []

    bounds = _find_block(lines, plan.label)
    if bounds is not None:
        start_idx, end_idx = bounds
        new_lines = lines[:start_idx] + block.splitlines() + lines[end_idx + 1 :]
    else:
        new_lines = lines + ([""] if lines else []) + block.splitlines()

    plan.log_file.parent.mkdir(parents=True, exist_ok=True)
    _write_crontab("\n".join(new_lines))


def remove_cron(label: str) -> bool:
    """Remove the managed block for label. Returns False if none was installed."""
    existing = _read_crontab()
    lines = existing.splitlines() if existing else []
    bounds = _find_block(lines, label)
    if bounds is None:
        return False
    start_idx, end_idx = bounds
    _write_crontab("\n".join(lines[:start_idx] + lines[end_idx + 1 :]))
    return True


def _read_crontab() -> str:
    """Read current crontab content."""
    result = subprocess.run(
        ["crontab", "-l"],
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode == 0:
        return result.stdout.rstrip("\n")

    message = (result.stderr or result.stdout or "").strip().lower()
    if "no crontab" in message:
        return ""
    raise RuntimeError(f"Unable to read crontab: {result.stderr.strip() or result.stdout.strip()}")


def _write_crontab(content: str) -> None:
    """Write full crontab content."""
    subprocess.run(
        ["crontab", "-"],
        input=content.rstrip("\n") + "\n",
        text=True,
        check=True,
    )


def _shell_quote_command(command: str) -> str:
    """Normalize free-form shell command to a safely quoted command string."""
    return " ".join(shlex.quote(part) for part in shlex.split(command))
