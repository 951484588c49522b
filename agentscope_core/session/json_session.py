"""
JSON 文件会话存储：每个会话一个文件 <save_dir>/<session_id>.json

session_id 含路径分隔符等不安全字符时，文件名使用 "b64_" + base64url（无 padding）编码。
"""

import asyncio
import base64
import json
import os
import re
from pathlib import Path
from typing import Any

import structlog

from agentscope_core.config import get_settings
from agentscope_core.exceptions import SessionError
from agentscope_core.session.base import SessionBase

log = structlog.get_logger()

_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_\-][A-Za-z0-9_.\-]*$")
_ENCODED_PREFIX = "b64_"


def encode_session_id(session_id: str) -> str:
    if _SAFE_ID_RE.match(session_id) and not session_id.startswith(_ENCODED_PREFIX):
        return session_id
    encoded = base64.urlsafe_b64encode(session_id.encode("utf-8")).decode("ascii").rstrip("=")
    return _ENCODED_PREFIX + encoded


def decode_session_id(file_stem: str) -> str:
    if not file_stem.startswith(_ENCODED_PREFIX):
        return file_stem
    encoded = file_stem[len(_ENCODED_PREFIX):]
    padding = "=" * (-len(encoded) % 4)
    return base64.urlsafe_b64decode(encoded + padding).decode("utf-8")


class JsonSession(SessionBase):
    """本地 JSON 文件会话存储"""

    def __init__(self, save_dir: str | Path | None = None):
        self.save_dir = Path(save_dir or get_settings().SESSION_DIR).expanduser()

    def _path(self, session_id: str) -> Path:
        return self.save_dir / f"{encode_session_id(session_id)}.json"

    def _write(self, path: Path, state: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(state, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, path)

    async def _save(self, session_id: str, state: dict[str, Any]) -> None:
        path = self._path(session_id)
        try:
            await asyncio.to_thread(self._write, path, state)
        except (OSError, TypeError) as e:
            log.error("会话写入失败", session_id=session_id, path=str(path), error=str(e))
            raise SessionError(f"Failed to save session '{session_id}': {e}", cause=e) from e

    async def _load(self, session_id: str) -> dict[str, Any] | None:
        path = self._path(session_id)
        if not path.exists():
            return None
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
            return json.loads(raw)
        except (OSError, json.JSONDecodeError) as e:
            log.error("会话读取失败", session_id=session_id, path=str(path), error=str(e))
            raise SessionError(f"Failed to load session '{session_id}': {e}", cause=e) from e

    async def exists(self, session_id: str) -> bool:
        return self._path(session_id).exists()

    async def delete(self, session_id: str) -> bool:
        path = self._path(session_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    async def list_sessions(self) -> list[str]:
        if not self.save_dir.exists():
            return []
        return sorted(decode_session_id(p.stem) for p in self.save_dir.glob("*.json"))
