"""Markdown export of reflections."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .client.models import Reflection


def reflection_to_markdown(reflection: Reflection, generated_at: Optional[datetime] = None) -> str:
    """Render a reflection as a Markdown document."""
    generated_at = generated_at or datetime.now(timezone.utc)
    lines = [
        "# PAM Reflection",
        f"*Generated: {generated_at.strftime('%Y-%m-%d %H:%M UTC')}*",
        "",
        "## What Worked",
    ]
    lines.extend(f"- {item}" for item in reflection.what_worked)

    lines.extend(["", "## What Could Be Improved"])
    lines.extend(f"- {item}" for item in reflection.what_failed)

    lines.extend(["", "## Key Learnings"])
    lines.extend(f"- {item}" for item in reflection.learnings)

    if reflection.action_items:
        lines.extend(["", "## Action Items"])
        lines.extend(f"{i}. {item}" for i, item in enumerate(reflection.action_items, 1))

    return "\n".join(lines) + "\n"


def export_reflection(
    reflection: Reflection,
    directory: Optional[Path] = None,
    now: Optional[datetime] = None,
) -> Path:
    """Write a reflection to reflection_<YYYYmmdd_HHMMSS>.md.

    Args:
        reflection: Reflection to export
        directory: Target directory (default: current directory)
        now: Timestamp used for the file name and header

    Returns:
        Path of the written file
    """
    now = now or datetime.now(timezone.utc)
    path = Path(directory or Path.cwd()) / f"reflection_{now.strftime('%Y%m%d_%H%M%S')}.md"
    path.write_text(reflection_to_markdown(reflection, now), encoding="utf-8")
    return path
