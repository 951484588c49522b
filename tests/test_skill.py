from __future__ import annotations

from pathlib import Path

import pytest

from agentscope_core.message import ToolUseBlock
from agentscope_core.skill import AgentSkill, SkillBox, load_skill_from_dir, parse_skill_markdown
from agentscope_core.tool import Toolkit

GITHUB_SKILL = """---
name: github
description: Search repositories and trending projects through the GitHub API
---

# GitHub

Use `references/api.md` for the endpoint list.
"""


def _write_skill(root: Path, dirname: str, content: str, resources: dict[str, str] | None = None) -> Path:
    skill_dir = root / dirname
    skill_dir.mkdir(parents=True)
    (skill_dir / "SKILL.md").write_text(content, encoding="utf-8")
    for relative, text in (resources or {}).items():
        path = skill_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return skill_dir


# ── 解析 ──

def test_parse_skill_markdown() -> None:
    skill = parse_skill_markdown(GITHUB_SKILL)

    assert skill.name == "github"
    assert skill.description.startswith("Search repositories")
    assert skill.skill_content.startswith("# GitHub")
    assert skill.source == "custom"


@pytest.mark.parametrize(
    "raw",
    [
        "# no frontmatter",
        "---\nname: broken\n",
        "---\nname: [unclosed\n---\nbody",
        "---\nname: only-name\n---\nbody",
    ],
)
def test_parse_skill_markdown_rejects_invalid(raw: str) -> None:
    assert parse_skill_markdown(raw) is None


def test_load_skill_from_dir_collects_text_resources(tmp_path) -> None:
    skill_dir = _write_skill(tmp_path, "github", GITHUB_SKILL, {
        "references/api.md": "GET /search/repositories",
        "scripts/run.sh": "echo hi",
        "_private/notes.md": "hidden",
        "logo.png": "not really an image",
    })

    skill = load_skill_from_dir(skill_dir)

    assert skill.source == str(skill_dir)
    assert skill.resources == {
        "references/api.md": "GET /search/repositories",
        "scripts/run.sh": "echo hi",
    }


def test_directory_without_skill_file_is_skipped(tmp_path) -> None:
    (tmp_path / "empty").mkdir()

    assert load_skill_from_dir(tmp_path / "empty") is None


# ── SkillBox ──

def test_skill_box_scans_directories_and_later_ones_override(tmp_path) -> None:
    _write_skill(tmp_path / "builtin", "github", GITHUB_SKILL)
    _write_skill(tmp_path / "builtin", "_draft", "---\nname: draft\ndescription: d\n---\n")
    _write_skill(tmp_path / "custom", "github", GITHUB_SKILL.replace("Search repositories", "Custom search"))
    _write_skill(tmp_path / "custom", "broken", "no frontmatter")

    box = SkillBox.from_directories([tmp_path / "builtin", tmp_path / "custom", tmp_path / "missing"])

    assert box.skill_names == ["github"]
    assert box.get_skill("github").description.startswith("Custom search")


def test_skill_prompt_lists_skills() -> None:
    box = SkillBox()
    assert box.get_skill_prompt() == ""

    box.register_skill(AgentSkill(name="pdf", description="Work with PDF files", skill_content="..."))
    prompt = box.get_skill_prompt()

    assert prompt.startswith("# Agent Skills\n")
    assert "<available_skills>\n<skill>\n<id>pdf</id>\n<description>Work with PDF files</description>\n</skill>\n</available_skills>" in prompt


def test_remove_skill() -> None:
    box = SkillBox()
    box.register_skill(AgentSkill(name="pdf", description="d", skill_content=""))

    box.remove_skill("pdf")
    box.remove_skill("pdf")

    assert box.skill_names == []


def test_register_load_tool_requires_toolkit() -> None:
    with pytest.raises(ValueError):
        SkillBox().register_skill_load_tool()


async def test_load_skill_through_path(tmp_path) -> None:
    box = SkillBox()
    box.load_from_directory(tmp_path)
    _write_skill(tmp_path, "github", GITHUB_SKILL, {"references/api.md": "GET /search/repositories"})
    assert box.load_from_directory(tmp_path) == 1

    instructions = await box.load_skill_through_path("github", "SKILL.md")
    resource = await box.load_skill_through_path("github", "./references/api.md")
    missing_resource = await box.load_skill_through_path("github", "nope.md")
    missing_skill = await box.load_skill_through_path("gitlab", "SKILL.md")

    assert instructions.get_text().startswith("[Skill 'github' instructions]\n\n---\n\n# GitHub")
    assert resource.get_text() == "GET /search/repositories"
    assert missing_resource.is_error
    assert "Available resources: SKILL.md, references/api.md" in missing_resource.get_text()
    assert missing_skill.get_text() == "Error: Skill 'gitlab' not found. Available skills: github"


async def test_load_tool_is_registered_once_and_callable() -> None:
    toolkit = Toolkit()
    box = SkillBox(toolkit)
    box.register_skill(AgentSkill(name="pdf", description="d", skill_content="Use pypdf."))

    box.register_skill_load_tool()
    box.register_skill_load_tool()
    result = await toolkit.call_tool_function(
        ToolUseBlock(id="1", name="load_skill_through_path", input={"skill_id": "pdf", "path": "SKILL.md"})
    )

    assert toolkit.tool_names.count("load_skill_through_path") == 1
    assert result.get_text().endswith("Use pypdf.")
