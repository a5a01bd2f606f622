"""
发布准入流程

Draft -> Validating -> (Transferring ->) Committing -> Published | Failed(kind)

不跳过校验；Transferring 只在二进制模式出现；Failed 为终态，不自动重试。
重复的 versionCode 一律返回 CONFLICT，无论是校验时在快照里发现，还是校验通过后
提交时被并发抢先；调用方需换一个 versionCode 重新提交。传输成功但提交失败时制品会留在存储里，不做清理。
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from releasehub.core.config import Settings
from releasehub.core.errors import ErrorKind, ReleaseError
from releasehub.core.result import Err, Ok, Result
from releasehub.core.units import format_file_size
from releasehub.schemas.version import Version
from releasehub.services.catalog_store import VersionCatalogStore
from releasehub.services.transfer import (
    ArtifactTransferPipeline,
    ProgressEvent,
    TransferFailed,
    TransferSucceeded,
)
from releasehub.services.validation import DUPLICATE_CODE, ReleaseDraft, parse_file_size, parse_version_code, validate


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class AdmissionState(str, Enum):
    DRAFT = "draft"
    VALIDATING = "validating"
    TRANSFERRING = "transferring"
    COMMITTING = "committing"
    PUBLISHED = "published"
    FAILED = "failed"


@dataclass
class AdmissionAttempt:
    draft: ReleaseDraft
    uploaded_by: str
    state: AdmissionState = AdmissionState.DRAFT
    history: List[AdmissionState] = field(default_factory=lambda: [AdmissionState.DRAFT])
    result: Optional[Result[Version, ReleaseError]] = None
    blob_key: Optional[str] = None

    def advance(self, state: AdmissionState) -> None:
        self.state = state
        self.history.append(state)

    def fail(self, error: ReleaseError) -> Result[Version, ReleaseError]:
        self.advance(AdmissionState.FAILED)
        self.result = Err(error)
        return self.result

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        if self.result is not None and self.result.is_err():
            return self.result.unwrap_err().kind
        return None


class ReleaseAdmissionController:
    def __init__(
        self,
        store: VersionCatalogStore,
        pipeline: ArtifactTransferPipeline,
        settings: Settings,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.settings = settings
        self.clock = clock

    def check(self, draft: ReleaseDraft) -> dict[str, str]:
        """只做校验，不改动任何状态"""
        return validate(draft, self.store.snapshot(), self.settings)

    def admit(
        self,
        draft: ReleaseDraft,
        uploaded_by: str,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> AdmissionAttempt:
        attempt = AdmissionAttempt(draft=draft.normalized(), uploaded_by=uploaded_by)
        draft = attempt.draft

        attempt.advance(AdmissionState.VALIDATING)
        errors = validate(draft, self.store.snapshot(), self.settings)
        code = parse_version_code(draft.version_code)
        if errors or code is None:
            logger.info("admission.invalid fields=%s", sorted(errors))
            if errors.get("versionCode") == DUPLICATE_CODE:
                # 目录里已有该 versionCode，与提交时的冲突同样处理
                attempt.fail(ReleaseError(
                    ErrorKind.CONFLICT,
                    f"Version code {code} already exists; resubmit with a new version code",
                    errors,
                ))
            else:
                attempt.fail(ReleaseError(ErrorKind.INVALID_INPUT, "Release draft is invalid", errors))
            return attempt

        if draft.artifact is not None:
            attempt.advance(AdmissionState.TRANSFERRING)
            attempt.blob_key = self.pipeline.key_for(draft.version_name or "")
            outcome = None
            for event in self.pipeline.transfer(draft.artifact, attempt.blob_key, cancel=cancel):
                if isinstance(event, ProgressEvent):
                    if on_progress is not None:
                        on_progress(event)
                else:
                    outcome = event
            if not isinstance(outcome, TransferSucceeded):
                error = outcome.error if isinstance(outcome, TransferFailed) else ReleaseError(
                    ErrorKind.TRANSFER_FAILURE, "Transfer ended without a result"
                )
                logger.warning("admission.transfer_failed code=%s kind=%s", code, error.kind.value)
                attempt.fail(error)
                return attempt
            download_url, file_size = outcome.url, outcome.size
        else:
            download_url = draft.download_url or ""
            file_size = parse_file_size(draft.file_size) or 0

        if cancel is not None and cancel.is_set():
            attempt.fail(ReleaseError(ErrorKind.CANCELLED, "Upload cancelled"))
            return attempt

        attempt.advance(AdmissionState.COMMITTING)
        version = Version(
            version_code=code,
            version_name=draft.version_name or "",
            download_url=download_url,
            changelog=draft.changelog or "",
            file_size=file_size,
            uploaded_at=self.clock(),
            uploaded_by=uploaded_by,
            is_critical=draft.is_critical,
            is_active=True,
            download_count=0,
        )
        created = self.store.create(version)
        if created.is_err():
            error = created.unwrap_err()
            if error.kind is ErrorKind.ALREADY_EXISTS:
                if attempt.blob_key:
                    logger.warning("admission.orphaned_blob key=%s code=%s", attempt.blob_key, code)
                attempt.fail(ReleaseError(
                    ErrorKind.CONFLICT,
                    f"Version code {code} was published concurrently; resubmit with a new version code",
                    dict(error.fields),
                ))
            else:
                attempt.fail(error)
            return attempt

        attempt.advance(AdmissionState.PUBLISHED)
        attempt.result = created
        logger.info(
            "admission.published code=%s name=%s size=%s critical=%s by=%s",
            code, version.version_name, format_file_size(file_size), version.is_critical, uploaded_by,
        )
        return attempt
