"""
发布流程冒烟测试脚本（针对运行中的服务）
"""
import sys
import time

import requests


API_BASE_URL = "http://127.0.0.1:8000"


def main() -> int:
    s = requests.Session()
    # 1) health
    r = s.get(f"{API_BASE_URL}/health", timeout=5)
    print("health:", r.status_code, r.text)
    if r.status_code != 200:
        return 1

    # 2) 外链模式发布，使用时间戳作为版本代码避免冲突
    code = int(time.time())
    payload = {
        "versionCode": code,
        "versionName": f"smoke-{code}",
        "downloadUrl": "https://example.com/a.apk",
        "changelog": "smoke test",
        "fileSize": 1000000,
        "isCritical": False,
    }
    r = s.post(f"{API_BASE_URL}/versions", json=payload, timeout=10)
    print("publish:", r.status_code, r.text)
    if r.status_code != 201:
        return 1

    # 3) 重复提交应返回冲突
    r = s.post(f"{API_BASE_URL}/versions", json=payload, timeout=10)
    print("duplicate:", r.status_code, r.json().get("detail"))

    # 4) 下架再检查更新
    r = s.patch(f"{API_BASE_URL}/versions/{code}/active", json={"isActive": False}, timeout=10)
    print("deactivate:", r.status_code)
    r = s.get(f"{API_BASE_URL}/update/check", params={"versionCode": 0}, timeout=10)
    print("update check:", r.status_code, r.text)

    # 5) 目录
    r = s.get(f"{API_BASE_URL}/versions", timeout=10)
    print("catalog size:", len(r.json()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
