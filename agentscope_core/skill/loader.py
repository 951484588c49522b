"""
Markdown Skill 加载器

目录结构：
    skill_dir/
    ├── SKILL.md         ← 必须存在（frontmatter: name + description，body: 操作手册）
    └── references/...   ← 可选，其他文本文件作为资源，按相对路径按需读取

SKILL.md 格式：
    ---
    name: github
    description: 通过 GitHub API 搜索仓库、用户和趋势项目
    ---

    # Skill 正文
    ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import structlog
import yaml

log = structlog.get_logger()

SKILL_FILE = "SKILL.md"
_TEXT_SUFFIXES = {".md", ".txt", ".py", ".json", ".yaml", ".yml", ".sh", ".csv", ".toml"}


@dataclass
class AgentSkill:
    """从 SKILL.md 解析出的 Skill 定义"""

    name: str
    description: str
    skill_content: str  # SKILL.md 正文
    resources: dict[str, str] = field(default_factory=dict)  # 相对路径 → 文本内容
    source: str = "custom"  # 目录路径或 custom


def parse_skill_markdown(raw: str, source: str = "custom") -> AgentSkill | None:
    """解析 SKILL.md 文本；frontmatter 缺失或不合法时返回 None"""
    if not raw.startswith("---"):
        log.warning("SKILL.md 缺少 YAML frontmatter（---）", source=source)
        return None

    parts = raw.split("---", 2)
    # parts[0]="" (---之前), parts[1]=frontmatter yaml, parts[2]=body
    if len(parts) < 3:
        log.warning("SKILL.md frontmatter 格式错误，缺少结束 ---", source=source)
        return None

    try:
        fm = yaml.safe_load(parts[1]) or {}
    except yaml.YAMLError as e:
        log.error("SKILL.md frontmatter YAML 解析失败", source=source, error=str(e))
        return None

    name = fm.get("name")
    description = fm.get("description")
    if not name or not description:
        log.error("SKILL.md 缺少必填字段 name/description", source=source, found_fields=list(fm))
        return None

    return AgentSkill(
        name=str(name),
        description=str(description),
        skill_content=parts[2].strip(),
        source=source,
    )


def load_skill_from_dir(skill_dir: Path) -> AgentSkill | None:
    skill_md_path = skill_dir / SKILL_FILE
    if not skill_md_path.exists():
        log.debug("跳过非 Skill 目录（缺少 SKILL.md）", dir=str(skill_dir))
        return None

    skill = parse_skill_markdown(skill_md_path.read_text(encoding="utf-8"), source=str(skill_dir))
    if skill is None:
        return None

    for path in sorted(skill_dir.rglob("*")):
        if not path.is_file() or path.name == SKILL_FILE or path.suffix.lower() not in _TEXT_SUFFIXES:
            continue
        relative = path.relative_to(skill_dir).as_posix()
        if any(part.startswith(("_", ".")) for part in relative.split("/")):
            continue
        skill.resources[relative] = path.read_text(encoding="utf-8", errors="replace")

    log.info("Skill 已加载", name=skill.name, resources=len(skill.resources))
    return skill


def scan_skills_dir(skills_root: Path) -> list[AgentSkill]:
    """每个包含 SKILL.md 的子目录都被视为一个 Skill"""
    if not skills_root.exists():
        log.warning("Skills 根目录不存在", path=str(skills_root))
        return []

    skills: list[AgentSkill] = []
    for entry in sorted(skills_root.iterdir()):
        if entry.is_dir() and not entry.name.startswith("_"):
            skill = load_skill_from_dir(entry)
            if skill:
                skills.append(skill)

    log.info("Skills 扫描完成", count=len(skills), root=str(skills_root))
    return skills
