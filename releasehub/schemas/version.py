"""
版本目录数据模式
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Version(CamelModel):
    """发布版本记录（创建后除 isActive / downloadCount 外不可变）"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    version_code: int = Field(..., gt=0, description="版本代码（唯一，排序键）")
    version_name: str = Field(..., min_length=1, description="版本名称，如 1.10")
    download_url: str = Field(..., description="下载链接")
    changelog: str = Field(..., min_length=1, description="更新说明")
    file_size: int = Field(..., ge=0, description="文件大小（字节）")
    uploaded_at: datetime = Field(..., description="上传时间（UTC）")
    uploaded_by: str = Field(..., description="上传者")
    is_critical: bool = Field(False, description="是否强制更新")
    is_active: bool = Field(True, description="是否已发布")
    download_count: int = Field(0, ge=0, description="下载次数")

    def wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ReleaseLinkRequest(CamelModel):
    """外链模式发布请求

    数值字段保持宽松类型，由校验引擎统一给出逐字段的错误信息。
    """
    version_name: Optional[str] = Field(None, description="版本名称")
    version_code: Any = Field(None, description="版本代码")
    changelog: Optional[str] = Field(None, description="更新说明")
    download_url: Optional[str] = Field(None, description="下载链接")
    file_size: Any = Field(None, description="文件大小（字节）")
    is_critical: bool = Field(False, description="是否强制更新")


class ActiveToggleRequest(CamelModel):
    is_active: bool = Field(..., description="是否发布")


class ValidationResponse(CamelModel):
    valid: bool
    errors: dict[str, str]


class UploadResponse(CamelModel):
    version: Version
    size_label: str = Field(..., description="文件大小（可读）")


class UpdateCheckResponse(CamelModel):
    """更新检查响应"""
    has_update: bool = Field(..., description="是否有更新")
    force_update: bool = Field(False, description="是否强制更新")
    current_version_code: int = Field(..., description="客户端当前版本代码")
    latest: Optional[Version] = Field(None, description="最新已发布版本")
