# skill_translator/cache/schema.py
"""
定义了翻译缓存表的 SQLAlchemy ORM 模型。

表结构需与既有部署的数据库文件保持兼容：时间戳以 ISO-8601 文本保存，
metadata 列保存 JSON 文本。
"""

from __future__ import annotations

from sqlalchemy import Index, Integer, MetaData, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, MappedAsDataclass, mapped_column

metadata = MetaData()


class Base(MappedAsDataclass, DeclarativeBase):
    """项目统一的声明式基类。"""

    __abstract__ = True
    metadata = metadata


class TranslationRecord(Base):
    __tablename__ = "translations"
    __table_args__ = (
        Index("idx_content_hash", "content_hash"),
        Index("idx_path", "path"),
        Index("idx_created_at", "created_at"),
    )

    cache_key: Mapped[str] = mapped_column(Text, primary_key=True)
    content_hash: Mapped[str] = mapped_column(Text, nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False)
    translated_content: Mapped[str] = mapped_column(Text, nullable=False)
    translated_hash: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    accessed_at: Mapped[str] = mapped_column(Text, nullable=False)
    hit_count: Mapped[int] = mapped_column(Integer, server_default=text("0"), default=0)
    # "metadata" 是声明式基类的保留属性名，因此映射到不同的属性名。
    metadata_json: Mapped[str] = mapped_column(
        "metadata", Text, server_default="{}", default="{}"
    )
