"""
文本读取与分块：按段落 / 句子 / 字符切分，再按 chunk_size 打包
"""

import re
from pathlib import Path
from typing import Any, Literal

import structlog

from agentscope_core.message import TextBlock
from agentscope_core.rag.document import Document

log = structlog.get_logger()

_SENTENCE_RE = re.compile(r"(?<=[.!?。！？；;])\s*")
_PARAGRAPH_RE = re.compile(r"\n\s*\n")


class TextReader:
    """文本分块器"""

    def __init__(
        self,
        chunk_size: int = 512,
        split_by: Literal["paragraph", "sentence", "char"] = "paragraph",
        overlap: int = 0,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        if split_by not in ("paragraph", "sentence", "char"):
            raise ValueError(f"Unsupported split_by '{split_by}'")
        self.chunk_size = chunk_size
        self.split_by = split_by
        self.overlap = overlap

    def _units(self, text: str) -> list[str]:
        if self.split_by == "char":
            return [text]
        pattern = _PARAGRAPH_RE if self.split_by == "paragraph" else _SENTENCE_RE
        return [u.strip() for u in pattern.split(text) if u.strip()]

    def split(self, text: str) -> list[str]:
        """切分为不超过 chunk_size 的分块（overlap 前缀不计入）"""
        separator = "\n\n" if self.split_by == "paragraph" else " "
        chunks: list[str] = []
        current = ""

        for unit in self._units(text):
            # 单个单元超长时硬切
            while len(unit) > self.chunk_size:
                if current:
                    chunks.append(current)
                    current = ""
                chunks.append(unit[: self.chunk_size])
                unit = unit[self.chunk_size:]
            if not unit:
                continue

            candidate = f"{current}{separator}{unit}" if current else unit
            if len(candidate) <= self.chunk_size:
                current = candidate
            else:
                chunks.append(current)
                current = unit
        if current:
            chunks.append(current)

        if self.overlap:
            chunks = [
                chunks[i - 1][-self.overlap:] + chunk if i > 0 else chunk
                for i, chunk in enumerate(chunks)
            ]
        return chunks

    async def __call__(self, text: str, metadata: dict[str, Any] | None = None) -> list[Document]:
        chunks = self.split(text)
        documents = [
            Document(
                content=TextBlock(text=chunk),
                metadata={**(metadata or {}), "chunk_index": i, "total_chunks": len(chunks)},
            )
            for i, chunk in enumerate(chunks)
        ]
        log.debug("文本分块完成", chunks=len(documents), split_by=self.split_by)
        return documents

    async def read_file(self, path: str | Path) -> list[Document]:
        file_path = Path(path)
        text = file_path.read_text(encoding="utf-8")
        return await self(text, metadata={"source": str(file_path)})
