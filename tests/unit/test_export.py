"""Tests for reflection markdown export."""

from datetime import datetime, timezone
from pathlib import Path

from pam_cli.core.client.models import Reflection
from pam_cli.core.export import export_reflection, reflection_to_markdown

GENERATED_AT = datetime(2026, 1, 30, 17, 45, 12, tzinfo=timezone.utc)


def make_reflection(**overrides) -> Reflection:
    data = {
        "what_worked": ["Focused standup"],
        "what_failed": ["Demo overran"],
        "learnings": ["Timebox demos"],
        "action_items": ["Book a longer slot", "Share notes"],
    }
    data.update(overrides)
    return Reflection(**data)


class TestReflectionMarkdown:
    """Test cases for reflection_to_markdown."""

    def test_sections(self) -> None:
        markdown = reflection_to_markdown(make_reflection(), GENERATED_AT)

        assert markdown.startswith("# PAM Reflection\n")
        assert "*Generated: 2026-01-30 17:45 UTC*" in markdown
        assert "## What Worked\n- Focused standup" in markdown
        assert "## What Could Be Improved\n- Demo overran" in markdown
        assert "## Key Learnings\n- Timebox demos" in markdown
        assert "## Action Items\n1. Book a longer slot\n2. Share notes" in markdown

    def test_action_items_omitted_when_empty(self) -> None:
        markdown = reflection_to_markdown(make_reflection(action_items=[]), GENERATED_AT)

        assert "## Action Items" not in markdown


def test_export_file_name(tmp_path: Path) -> None:
    path = export_reflection(make_reflection(), tmp_path, GENERATED_AT)

    assert path == tmp_path / "reflection_20260130_174512.md"
    assert path.read_text(encoding="utf-8") == reflection_to_markdown(make_reflection(), GENERATED_AT)
