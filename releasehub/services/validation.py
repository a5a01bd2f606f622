"""
发布草稿校验

所有检查相互独立、全部执行，调用方一次拿到全部错误。版本代码唯一性只针对
调用方看到的目录快照做乐观检查，真正的唯一性由目录存储在提交时保证。
"""
from __future__ import annotations

import urllib.parse
from dataclasses import dataclass
from typing import Any, BinaryIO, Callable, Dict, Iterable, Optional

from releasehub.core.config import Settings
from releasehub.core.units import format_file_size
from releasehub.schemas.version import Version


# SQLite INTEGER 上限
MAX_INTEGER = 2**63 - 1

DUPLICATE_CODE = "Version code already exists"


@dataclass
class Artifact:
    """待传输的二进制制品"""
    filename: str
    size: int
    open: Callable[[], BinaryIO]


@dataclass
class ReleaseDraft:
    version_name: Optional[str] = None
    version_code: Any = None
    changelog: Optional[str] = None
    is_critical: bool = False
    download_url: Optional[str] = None
    file_size: Any = None
    artifact: Optional[Artifact] = None

    @property
    def binary_mode(self) -> bool:
        return self.artifact is not None

    def normalized(self) -> "ReleaseDraft":
        return ReleaseDraft(
            version_name=(self.version_name or "").strip(),
            version_code=self.version_code,
            changelog=(self.changelog or "").strip(),
            is_critical=bool(self.is_critical),
            download_url=(self.download_url or "").strip() or None,
            file_size=self.file_size,
            artifact=self.artifact,
        )


def parse_version_code(value: Any) -> Optional[int]:
    """解析版本代码，非正整数返回 None"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        code = value
    elif isinstance(value, str) and value.strip().isdecimal():
        code = int(value.strip())
    else:
        return None
    return code if code > 0 else None


def parse_file_size(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        size = value
    elif isinstance(value, str):
        try:
            size = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if isinstance(size, float) and not size.is_integer():
        return None
    return int(size) if size > 0 else None


def is_absolute_uri(value: str) -> bool:
    try:
        parts = urllib.parse.urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc) and " " not in value


def _is_safe_key_segment(name: str) -> bool:
    return "/" not in name and "\\" not in name and ".." not in name


def validate(
    draft: ReleaseDraft,
    catalog_snapshot: Iterable[Version],
    settings: Settings,
) -> Dict[str, str]:
    """校验发布草稿，返回 字段 -> 错误信息；空字典表示通过"""
    draft = draft.normalized()
    errors: Dict[str, str] = {}

    if not draft.version_name:
        errors["versionName"] = "Version name is required"
    elif not _is_safe_key_segment(draft.version_name):
        errors["versionName"] = "Version name must not contain path separators or '..'"

    if not draft.changelog:
        errors["changelog"] = "Changelog is required"

    code = parse_version_code(draft.version_code)
    if code is None:
        errors["versionCode"] = "Valid version code is required"
    elif code > MAX_INTEGER:
        errors["versionCode"] = f"Version code must not exceed {MAX_INTEGER}"
    elif any(v.version_code == code for v in catalog_snapshot):
        errors["versionCode"] = DUPLICATE_CODE

    artifact = draft.artifact
    if artifact is not None:
        if not artifact.filename or not artifact.filename.lower().endswith(settings.artifact_extension.lower()):
            errors["file"] = f"Please select a valid {settings.artifact_extension} file"
        elif artifact.size > settings.max_artifact_bytes:
            errors["file"] = f"File size must be less than {format_file_size(settings.max_artifact_bytes)}"
    else:
        if not draft.download_url:
            errors["downloadUrl"] = "Download URL is required"
        elif not is_absolute_uri(draft.download_url):
            errors["downloadUrl"] = "Download URL must be an absolute URI"
        size = parse_file_size(draft.file_size)
        if size is None:
            errors["fileSize"] = "File size must be a positive number of bytes"
        elif size > MAX_INTEGER:
            errors["fileSize"] = f"File size must not exceed {MAX_INTEGER} bytes"

    return errors
