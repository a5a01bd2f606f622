"""
更新检查API接口
"""
import logging

from fastapi import APIRouter, Depends, Query

from releasehub.deps.services import get_store
from releasehub.schemas.version import UpdateCheckResponse
from releasehub.services.catalog_store import VersionCatalogStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/update", tags=["更新检查"])


@router.get("/check", response_model=UpdateCheckResponse, summary="检查更新")
def check_update(
    version_code: int = Query(..., alias="versionCode", ge=0, description="客户端当前版本代码"),
    store: VersionCatalogStore = Depends(get_store),
) -> UpdateCheckResponse:
    """
    检查已安装客户端是否有可用更新

    - 只考虑已发布（isActive）的版本
    - 任一比客户端新的已发布版本标记为 critical 时 **forceUpdate** 为 true
    """
    newer = [v for v in store.snapshot() if v.is_active and v.version_code > version_code]
    latest = newer[0] if newer else None
    force_update = any(v.is_critical for v in newer)

    logger.info(f"更新检查 - 客户端版本: {version_code}, 有更新: {latest is not None}, 强制: {force_update}")

    return UpdateCheckResponse(
        has_update=latest is not None,
        force_update=force_update,
        current_version_code=version_code,
        latest=latest,
    )
