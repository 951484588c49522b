"""
知识库导入脚本：读取目录下的文本文件，分块、生成 embedding 后写入 Milvus

运行方式：
    python scripts/ingest_knowledge.py <docs_dir> [collection_name]

导入策略：
1. 递归读取 docs_dir 下的 .md / .txt 文件，按段落分块
2. 使用 EMBEDDING_* 配置的 OpenAI 协议 Embedding 接口批量生成向量
3. 追加写入 Milvus 集合（集合不存在时自动创建 HNSW + COSINE 索引）
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from agentscope_core.config import get_settings
from agentscope_core.rag import Document, MilvusStore, OpenAITextEmbedding, SimpleKnowledge, TextReader

settings = get_settings()

DEFAULT_COLLECTION = "agentscope_knowledge"
_SUFFIXES = {".md", ".txt"}


async def load_documents(docs_dir: Path, reader: TextReader) -> list[Document]:
    """读取并分块目录下所有文本文件"""
    documents: list[Document] = []
    for path in sorted(docs_dir.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in _SUFFIXES:
            continue
        chunks = await reader.read_file(path)
        documents.extend(chunks)
        print(f"    - {path.relative_to(docs_dir)} ({len(chunks)} 块)")
    return documents


async def main(docs_dir: Path, collection_name: str):
    """主流程"""
    # 1. 读取并分块
    print(f"\n[1/2] 读取 {docs_dir} ...")
    documents = await load_documents(docs_dir, TextReader(chunk_size=512))
    if not documents:
        print("  未找到任何文本文件，退出")
        return

    # 2. 向量化并写入 Milvus
    print(f"\n[2/2] 生成 Embedding 并写入 Milvus（{len(documents)} 块）...")
    knowledge = SimpleKnowledge(
        embedding_model=OpenAITextEmbedding(dimensions=settings.EMBEDDING_DIM),
        store=MilvusStore(collection_name, dimensions=settings.EMBEDDING_DIM),
    )
    await knowledge.add_documents(documents)
    print(f"  集合: {collection_name}")
    print(f"  向量维度: {settings.EMBEDDING_DIM}")

    print("\n=== 导入完成 ===")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    print("=== 开始导入知识库到 Milvus ===")
    asyncio.run(main(Path(sys.argv[1]), sys.argv[2] if len(sys.argv) > 2 else DEFAULT_COLLECTION))
