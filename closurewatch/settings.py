# closurewatch/settings.py
from __future__ import annotations
from pydantic import BaseModel, Field

class Server(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080

class Storage(BaseModel):
    config_path: str = "config.json"            # 리전 카탈로그 + 허용 목록
    tracking_path: str = "data/tracking.db"
    features_path: str = "data/features.db"
    scan_results_path: str = "scan_results.json"
    legacy_tracking_json: str = "closure_tracking.json"

class Upstream(BaseModel):
    base_url: str = "https://www.waze.com"
    cookie_path: str = "cookies.json"
    timeout_sec: int = 30
    bbox_padding_deg: float = 0.005
    max_retries: int = 2                        # 네트워크 오류만 재시도
    default_env: str = "na"

class Dispatch(BaseModel):
    spacing_sec: float = 1.0
    max_attempts: int = 3
    default_retry_after_sec: float = 1.0
    timeout_sec: int = 10

class Reload(BaseModel):
    config_reload_sec: float = 15.0
    scan_poll_sec: float = 1.0
    scan_enabled: bool = True

class Observability(BaseModel):
    metrics_enabled: bool = True
    service_name: str = "closurewatch"
    build_version: str = "0.4.0"
    build_date: str = "2025-06-01"
    log_level: str = "INFO"

class Settings(BaseModel):
    dry_run: bool = False

    # 하위 섹션 (기본값/팩토리로 누락 방지)
    server: Server = Field(default_factory=Server)
    storage: Storage = Field(default_factory=Storage)
    upstream: Upstream = Field(default_factory=Upstream)
    dispatch: Dispatch = Field(default_factory=Dispatch)
    reload: Reload = Field(default_factory=Reload)
    observability: Observability = Field(default_factory=Observability)
