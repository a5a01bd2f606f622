"""
数据库初始化脚本 - 版本目录表
"""
import argparse
from datetime import datetime, timezone

from releasehub.core.config import get_settings
from releasehub.core.db import get_engine, init_db, make_session_factory
from releasehub.schemas.version import Version
from releasehub.services.catalog_store import VersionCatalogStore


def init_catalog(seed: bool = False) -> None:
    """初始化版本目录表"""
    settings = get_settings()
    engine = get_engine(settings.sqlite_path)
    init_db(engine)
    print(f"✅ 版本目录表就绪: {settings.sqlite_path}")
    if seed:
        insert_sample_data(VersionCatalogStore(make_session_factory(engine)))


def insert_sample_data(store: VersionCatalogStore) -> None:
    """插入示例数据"""
    if store.latest() is not None:
        print("📝 示例数据已存在，跳过插入")
        return
    result = store.create(Version(
        version_code=1,
        version_name="1.0",
        download_url="https://example.com/downloads/app-release-v1.0.apk",
        changelog="Initial release",
        file_size=52428800,  # 50MB
        uploaded_at=datetime.now(timezone.utc),
        uploaded_by=get_settings().default_uploader,
        is_critical=False,
    ))
    if result.is_err():
        print(f"❌ 插入示例数据失败: {result.unwrap_err().message}")
        return
    print("✅ 示例数据插入成功")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the version catalog tables")
    parser.add_argument("--seed", action="store_true", help="insert a sample version")
    args = parser.parse_args()
    init_catalog(seed=args.seed)
