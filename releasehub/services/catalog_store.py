"""
版本目录存储

目录的唯一写入口。create 依赖数据库主键/唯一约束做条件写入（先到先得），
set_active 只修改 isActive。每次写入成功后在同一把锁内读取新快照并交给
广播器，保证订阅者按提交顺序收到快照；广播本身不阻塞写入。
"""
from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from releasehub.core.errors import ErrorKind, ReleaseError
from releasehub.core.result import Err, Ok, Result
from releasehub.models.version import VersionRecord, document_id
from releasehub.schemas.version import Version
from releasehub.services.broadcaster import Subscription, SyncBroadcaster


logger = logging.getLogger(__name__)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        # normalize to UTC-aware
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_naive_utc(value: datetime) -> datetime:
    return _to_utc(value).replace(tzinfo=None)


def _to_version(row: VersionRecord) -> Version:
    return Version(
        version_code=row.version_code,
        version_name=row.version_name,
        download_url=row.download_url,
        changelog=row.changelog,
        file_size=row.file_size,
        uploaded_at=_to_utc(row.uploaded_at),
        uploaded_by=row.uploaded_by,
        is_critical=row.is_critical,
        is_active=row.is_active,
        download_count=row.download_count,
    )


class VersionCatalogStore:
    def __init__(self, session_factory: sessionmaker[Session], broadcaster: Optional[SyncBroadcaster] = None) -> None:
        self._session_factory = session_factory
        self.broadcaster = broadcaster or SyncBroadcaster()
        # 同进程内串行化写入与快照发布；跨进程的唯一性由数据库约束保证
        self._write_lock = threading.RLock()

    def _read_snapshot(self, db: Session) -> List[Version]:
        rows = db.execute(select(VersionRecord).order_by(VersionRecord.version_code.desc())).scalars().all()
        return [_to_version(r) for r in rows]

    def snapshot(self) -> List[Version]:
        with self._session_factory() as db:
            return self._read_snapshot(db)

    def latest(self) -> Optional[Version]:
        """versionCode 最大的记录，不区分是否发布"""
        with self._session_factory() as db:
            row = db.execute(
                select(VersionRecord).order_by(VersionRecord.version_code.desc()).limit(1)
            ).scalar_one_or_none()
            return _to_version(row) if row else None

    def get(self, version_code: int) -> Optional[Version]:
        with self._session_factory() as db:
            row = db.get(VersionRecord, document_id(version_code))
            return _to_version(row) if row else None

    def create(self, version: Version) -> Result[Version, ReleaseError]:
        record = VersionRecord(
            id=document_id(version.version_code),
            version_code=version.version_code,
            version_name=version.version_name,
            download_url=version.download_url,
            changelog=version.changelog,
            file_size=version.file_size,
            uploaded_at=_to_naive_utc(version.uploaded_at),
            uploaded_by=version.uploaded_by,
            is_critical=version.is_critical,
            is_active=version.is_active,
            download_count=version.download_count,
        )
        with self._write_lock:
            with self._session_factory() as db:
                db.add(record)
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    logger.warning("catalog.create.conflict code=%s", version.version_code)
                    return Err(ReleaseError(
                        ErrorKind.ALREADY_EXISTS,
                        f"Version code {version.version_code} already exists",
                        {"versionCode": "Version code already exists"},
                    ))
                created = _to_version(record)
                snapshot = self._read_snapshot(db)
            self.broadcaster.publish(snapshot)
        logger.info("catalog.created code=%s name=%s by=%s", created.version_code, created.version_name, created.uploaded_by)
        return Ok(created)

    def set_active(self, version_code: int, value: bool) -> Result[Version, ReleaseError]:
        with self._write_lock:
            with self._session_factory() as db:
                row = db.get(VersionRecord, document_id(version_code))
                if row is None:
                    logger.warning("catalog.set_active.not_found code=%s", version_code)
                    return Err(ReleaseError(ErrorKind.NOT_FOUND, f"Version code {version_code} not found"))
                row.is_active = bool(value)
                db.commit()
                updated = _to_version(row)
                snapshot = self._read_snapshot(db)
            self.broadcaster.publish(snapshot)
        logger.info("catalog.set_active code=%s active=%s", version_code, updated.is_active)
        return Ok(updated)

    def subscribe(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> Subscription:
        """订阅目录变更；首条消息即当前快照

        在工作线程里订阅时传入消费方的事件循环，推送会经由该循环投递。
        """
        with self._write_lock:
            return self.broadcaster.subscribe(self.snapshot(), loop)

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()
