"""
SkillBox：Skill 注册中心 + load_skill_through_path 元工具

不把每个 Skill 注册为独立工具，只在系统提示词中放 Skill 目录（id + description），
模型需要时通过 load_skill_through_path 读取 SKILL.md 正文或资源文件。
"""

from __future__ import annotations

from pathlib import Path

import structlog

from agentscope_core.skill.loader import SKILL_FILE, AgentSkill, scan_skills_dir
from agentscope_core.tool.response import ToolResponse
from agentscope_core.tool.toolkit import Toolkit

log = structlog.get_logger()

SKILL_PROMPT_HEADER = (
    "# Agent Skills\n"
    "The following skills provide specialized instructions for specific tasks. When a task "
    "matches a skill's description, call 'load_skill_through_path' with the skill id and "
    f"'{SKILL_FILE}' to read its instructions first, then follow them. Resource files "
    "mentioned in the instructions can be loaded the same way with their relative paths.\n"
)


class SkillBox:
    """Skill 容器"""

    def __init__(self, toolkit: Toolkit | None = None):
        self.toolkit = toolkit
        self._skills: dict[str, AgentSkill] = {}

    @classmethod
    def from_directories(cls, skill_dirs: list[Path], toolkit: Toolkit | None = None) -> SkillBox:
        """按顺序扫描多个目录，同名 Skill 后加载的覆盖先加载的"""
        box = cls(toolkit)
        for skill_dir in skill_dirs:
            box.load_from_directory(skill_dir)
        return box

    def load_from_directory(self, skills_root: Path | str) -> int:
        skills = scan_skills_dir(Path(skills_root))
        for skill in skills:
            self.register_skill(skill)
        return len(skills)

    def register_skill(self, skill: AgentSkill) -> None:
        if skill.name in self._skills:
            log.info("Skill 同名覆盖", skill=skill.name)
        self._skills[skill.name] = skill

    def remove_skill(self, name: str) -> None:
        if self._skills.pop(name, None) is None:
            log.warning("移除的 Skill 不存在", skill=name)

    def get_skill(self, name: str) -> AgentSkill | None:
        return self._skills.get(name)

    @property
    def skill_names(self) -> list[str]:
        return list(self._skills)

    def get_skill_prompt(self) -> str:
        """Skill 目录，拼接到系统提示词；没有 Skill 时返回空串"""
        if not self._skills:
            return ""
        entries = "\n".join(
            f"<skill>\n<id>{s.name}</id>\n<description>{s.description}</description>\n</skill>"
            for s in self._skills.values()
        )
        return f"{SKILL_PROMPT_HEADER}<available_skills>\n{entries}\n</available_skills>"

    def register_skill_load_tool(self, toolkit: Toolkit | None = None) -> None:
        toolkit = toolkit or self.toolkit
        if toolkit is None:
            raise ValueError("A toolkit is required to register the skill load tool")
        self.toolkit = toolkit
        if not toolkit.has_tool("load_skill_through_path"):
            toolkit.register_tool_function(self.load_skill_through_path)

    async def load_skill_through_path(self, skill_id: str, path: str) -> ToolResponse:
        """Load the instructions or a resource file of a skill.

        Args:
            skill_id (str): The id of the skill to load.
            path (str): The relative path inside the skill, use 'SKILL.md' to load the main
                instructions of the skill.
        """
        skill = self._skills.get(skill_id)
        if skill is None:
            return ToolResponse.fail(
                f"Skill '{skill_id}' not found. Available skills: {', '.join(self._skills) or 'none'}"
            )

        normalized = path.strip().lstrip("./")
        if normalized == SKILL_FILE:
            log.info("Skill 已加载到上下文", skill=skill_id)
            return ToolResponse.text(
                f"[Skill '{skill.name}' instructions]\n\n---\n\n{skill.skill_content}"
            )

        if normalized not in skill.resources:
            return ToolResponse.fail(
                f"Resource '{path}' not found in skill '{skill_id}'. Available resources: "
                f"{', '.join([SKILL_FILE, *skill.resources])}"
            )
        return ToolResponse.text(skill.resources[normalized])
