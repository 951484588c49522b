from agentscope_core.skill.loader import AgentSkill, load_skill_from_dir, parse_skill_markdown
from agentscope_core.skill.skill_box import SkillBox

__all__ = ["AgentSkill", "SkillBox", "load_skill_from_dir", "parse_skill_markdown"]
