# closurewatch/main.py
import os, sys, asyncio, signal
from typing import Optional
import uvicorn
from closurewatch.settings import Settings
from closurewatch.errors import ConfigError, UpstreamAuthError
from closurewatch.observability.health import create_app
from closurewatch.observability.logging_setup import setup_logging, get_logger
from closurewatch.adapters.config.json_catalog import ConfigStore
from closurewatch.adapters.storage import SQLiteFeatureStore, SQLiteTrackingStore
from closurewatch.adapters.upstream.client import FeaturesClient, load_cookie_header
from closurewatch.adapters.webhooks.client import WebhookClient
from closurewatch.ingestion.scan_watcher import ScanFileWatcher
from closurewatch.orchestrators import ClosurePipeline, FeatureEnricher, NotificationDispatcher
from closurewatch.ports import ScanSourcePort

def _b(name, default=False): return os.getenv(name, str(default)).lower() in ("1","true","yes","on")

def build_settings() -> Settings:
    s = Settings()
    # 플래그
    s.dry_run = _b("DRY_RUN", s.dry_run)

    # HTTP
    s.server.host = os.getenv("HOST", s.server.host)
    s.server.port = int(os.getenv("PORT", s.server.port))

    # 저장소
    s.storage.config_path = os.getenv("CONFIG_PATH", s.storage.config_path)
    s.storage.tracking_path = os.getenv("TRACKING_DB_PATH", s.storage.tracking_path)
    s.storage.features_path = os.getenv("FEATURES_DB_PATH", s.storage.features_path)
    s.storage.scan_results_path = os.getenv("SCAN_RESULTS_PATH", s.storage.scan_results_path)
    s.storage.legacy_tracking_json = os.getenv("LEGACY_TRACKING_JSON", s.storage.legacy_tracking_json)

    # 업스트림
    s.upstream.base_url = os.getenv("UPSTREAM_BASE_URL", s.upstream.base_url)
    s.upstream.cookie_path = os.getenv("COOKIE_PATH", s.upstream.cookie_path)
    s.upstream.timeout_sec = int(os.getenv("UPSTREAM_TIMEOUT_SEC", s.upstream.timeout_sec))
    s.upstream.bbox_padding_deg = float(os.getenv("BBOX_PADDING_DEG", s.upstream.bbox_padding_deg))
    s.upstream.default_env = os.getenv("UPSTREAM_DEFAULT_ENV", s.upstream.default_env)

    # 발송
    s.dispatch.spacing_sec = float(os.getenv("DISPATCH_SPACING_SEC", s.dispatch.spacing_sec))
    s.dispatch.max_attempts = int(os.getenv("DISPATCH_MAX_ATTEMPTS", s.dispatch.max_attempts))
    s.dispatch.default_retry_after_sec = float(
        os.getenv("DISPATCH_DEFAULT_RETRY_AFTER_SEC", s.dispatch.default_retry_after_sec)
    )

    # 다시 읽기
    s.reload.config_reload_sec = float(os.getenv("CONFIG_RELOAD_SEC", s.reload.config_reload_sec))
    s.reload.scan_poll_sec = float(os.getenv("SCAN_POLL_SEC", s.reload.scan_poll_sec))
    s.reload.scan_enabled = _b("SCAN_ENABLED", s.reload.scan_enabled)

    # 관측성
    s.observability.metrics_enabled = _b("METRICS_ENABLED", s.observability.metrics_enabled)
    s.observability.log_level = os.getenv("LOG_LEVEL", s.observability.log_level)

    return s

def start_http(settings: Settings, app) -> asyncio.Task:
    return asyncio.create_task(uvicorn.Server(
        uvicorn.Config(app, host=settings.server.host, port=settings.server.port, log_level="info")
    ).serve())

def _cookie_header(path: str, log) -> str:
    try:
        return load_cookie_header(path)
    except FileNotFoundError:
        log.warning(f"쿠키 파일이 없습니다. 인증 없이 업스트림을 호출합니다 path:{path}")
        return ""

async def _pump_scans(source: ScanSourcePort, pipeline: ClosurePipeline) -> None:
    async for results in source.recv():
        pipeline.submit_scan(results)

async def main() -> int:
    s = build_settings()
    setup_logging(s.observability.log_level)
    log = get_logger("closurewatch.main")
    log.info(f"설정 로드 완료 dry_run:{s.dry_run}")

    config = ConfigStore(s.storage.config_path)
    try:
        config.load()
    except ConfigError as e:
        log.error(f"초기 설정 로드 실패, 파일이 고쳐질 때까지 빈 설정으로 동작: {e}")

    tracking = SQLiteTrackingStore(s.storage.tracking_path); await tracking.init()
    features = SQLiteFeatureStore(s.storage.features_path); await features.init()

    upstream = FeaturesClient(
        base_url=s.upstream.base_url,
        cookie_header=_cookie_header(s.upstream.cookie_path, log),
        timeout=s.upstream.timeout_sec,
        max_retries=s.upstream.max_retries,
    )
    webhooks = WebhookClient(timeout=s.dispatch.timeout_sec)

    async with upstream, webhooks:
        enricher = FeatureEnricher(upstream, features, bbox_padding=s.upstream.bbox_padding_deg)
        await enricher.load()
        dispatcher = NotificationDispatcher(
            webhooks,
            spacing_sec=s.dispatch.spacing_sec,
            max_attempts=s.dispatch.max_attempts,
            default_retry_after=s.dispatch.default_retry_after_sec,
            dry_run=s.dry_run,
        )
        pipeline = ClosurePipeline(config, tracking, enricher, dispatcher, default_env=s.upstream.default_env)

        worker = asyncio.create_task(pipeline.run())
        tasks = [asyncio.create_task(config.watch(s.reload.config_reload_sec))]
        if s.reload.scan_enabled:
            watcher = ScanFileWatcher(s.storage.scan_results_path, s.reload.scan_poll_sec)
            tasks.append(asyncio.create_task(_pump_scans(watcher, pipeline)))
        tasks.append(start_http(s, create_app(s, config, tracking, pipeline)))
        log.info(f"HTTP 서버 시작됨 port:{s.server.port}")

        stop = asyncio.Future()
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                try: loop.add_signal_handler(sig, lambda: (not stop.done()) and stop.set_result(True))
                except NotImplementedError: pass
        except RuntimeError: pass

        await asyncio.wait({stop, worker}, return_when=asyncio.FIRST_COMPLETED)

        exit_code = 0
        if worker.done() and not worker.cancelled():
            exc: Optional[BaseException] = worker.exception()
            if isinstance(exc, UpstreamAuthError):
                log.critical(f"업스트림 인증 실패로 종료합니다: {exc}")
                exit_code = 1
            elif exc is not None:
                log.opt(exception=exc).error("파이프라인 워커 비정상 종료")
                exit_code = 1

        # 진행 중인 재시도는 버림, 이미 기록된 추적 행은 유지
        for t in [worker, *tasks]:
            t.cancel()
        await asyncio.gather(worker, *tasks, return_exceptions=True)
        log.info("종료 완료")
    return exit_code

def run() -> None:
    sys.exit(asyncio.run(main()))

if __name__ == "__main__":
    run()
