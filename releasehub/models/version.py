"""
版本目录数据模型

每个版本一行，主键为文档 id ``version_{versionCode}``，列名与发布记录字段一致。
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from releasehub.core.db import Base


def document_id(version_code: int) -> str:
    return f"version_{version_code}"


class VersionRecord(Base):
    """应用版本目录表"""
    __tablename__ = "app_versions"
    __table_args__ = (
        UniqueConstraint("versionCode", name="uq_app_versions_version_code"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    version_code: Mapped[int] = mapped_column("versionCode", Integer, nullable=False, index=True)
    version_name: Mapped[str] = mapped_column("versionName", String(100), nullable=False)
    download_url: Mapped[str] = mapped_column("downloadUrl", String(2048), nullable=False)
    changelog: Mapped[str] = mapped_column("changelog", Text, nullable=False)
    file_size: Mapped[int] = mapped_column("fileSize", Integer, nullable=False, default=0)
    # naive UTC
    uploaded_at: Mapped[datetime] = mapped_column("uploadedAt", DateTime, nullable=False)
    uploaded_by: Mapped[str] = mapped_column("uploadedBy", String(128), nullable=False)
    is_critical: Mapped[bool] = mapped_column("isCritical", Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column("isActive", Boolean, nullable=False, default=True)
    download_count: Mapped[int] = mapped_column("downloadCount", Integer, nullable=False, default=0)
