"""Error kinds for catalog, transfer and admission operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    # 存储层的条件写入失败；控制器对外转换为 CONFLICT
    ALREADY_EXISTS = "already_exists"
    TRANSFER_FAILURE = "transfer_failure"
    URL_RESOLUTION_FAILURE = "url_resolution_failure"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Error payload scoped to a single admission or toggle attempt.

    ``fields`` maps wire field names to violations and is only populated for
    ``INVALID_INPUT``.
    """

    kind: ErrorKind
    message: str
    fields: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, "fields": dict(self.fields)}


class TransferError(Exception):
    """Raised by a blob store when moving bytes fails."""


class UrlResolutionError(Exception):
    """Raised by a blob store when a stored key has no fetchable URL."""
