"""
HTTP endpoints for closurewatch.

This module implements the ingestion endpoints (/uploadClosures,
/trackedClosures) together with the health, readiness, metrics and
info endpoints for monitoring and operational visibility.
"""

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import Response, JSONResponse, PlainTextResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import asyncio
import time
from closurewatch.settings import Settings
from closurewatch.adapters.config.json_catalog import ConfigStore
from closurewatch.ingestion.http_handlers import EndpointResult, handle_tracked, handle_upload
from closurewatch.observability import metrics as svc_metrics
from closurewatch.observability.logging_setup import get_logger
from closurewatch.orchestrators.pipeline import ClosurePipeline
from closurewatch.ports.tracking import TrackingStorePort

log = get_logger("closurewatch.http")

def _respond(result: EndpointResult) -> Response:
    if result.media_type == "application/json":
        return JSONResponse(result.body, status_code=result.status)
    return PlainTextResponse(str(result.body), status_code=result.status)

def create_app(settings: Settings,
               config_store: ConfigStore,
               tracking: TrackingStorePort,
               pipeline: ClosurePipeline) -> FastAPI:
    """FastAPI 애플리케이션을 생성합니다."""
    app = FastAPI(
        title=settings.observability.service_name,
        version=settings.observability.build_version,
        description="Road closure ingestion and notification service"
    )

    start_time = time.time()

    async def _apply_provision(result: EndpointResult) -> None:
        # 설정 파일 쓰기는 이벤트 루프 밖에서
        if result.provision:
            await asyncio.to_thread(config_store.provision_user, result.provision)

    @app.post("/uploadClosures")
    async def upload_closures(request: Request):
        """closure 배치 업로드 엔드포인트"""
        result = handle_upload(await request.body(), config_store.snapshot)
        await _apply_provision(result)
        if result.batch is not None:
            if not pipeline.submit(result.batch):
                return PlainTextResponse("Busy", status_code=503)
            log.info(f"업로드 수신 user:{result.batch.user_name} closures:{len(result.batch.closures)}")
        elif result.status == 400:
            log.warning(f"잘못된 업로드 요청: {result.body}")
        return _respond(result)

    @app.post("/trackedClosures")
    async def tracked_closures(request: Request):
        """추적 중인 closure id 목록 엔드포인트"""
        raw = await request.body()
        entries = await tracking.entries()
        result = handle_tracked(raw, config_store.snapshot, entries)
        await _apply_provision(result)
        return _respond(result)

    @app.get("/health")
    async def health():
        """헬스 체크 엔드포인트"""
        return JSONResponse({
            "status": "ok",
            "service": settings.observability.service_name,
            "timestamp": time.time()
        })

    @app.get("/ready")
    async def ready():
        """레디니스 체크 엔드포인트"""
        snapshot = config_store.snapshot
        if not snapshot.regions:
            return JSONResponse({
                "status": "not_ready",
                "reason": "no regions configured",
                "service": settings.observability.service_name,
                "timestamp": time.time()
            }, status_code=503)
        return JSONResponse({
            "status": "ready",
            "service": settings.observability.service_name,
            "regions": snapshot.region_names,
            "queue_depth": pipeline.q.qsize(),
            "timestamp": time.time()
        })

    @app.get("/metrics")
    async def metrics():
        """Prometheus 메트릭 엔드포인트"""
        if not settings.observability.metrics_enabled:
            raise HTTPException(status_code=503, detail="Metrics disabled")

        svc_metrics.uptime_seconds.set(time.time() - start_time)
        return Response(
            generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    @app.get("/info")
    async def info():
        """서비스 정보 엔드포인트"""
        uptime = time.time() - start_time
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "build_date": settings.observability.build_date,
            "uptime_seconds": int(uptime),
            "metrics_enabled": settings.observability.metrics_enabled,
            "log_level": settings.observability.log_level,
            "dry_run": settings.dry_run
        })

    @app.get("/")
    async def root():
        """루트 엔드포인트"""
        return JSONResponse({
            "service": settings.observability.service_name,
            "version": settings.observability.build_version,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "metrics": "/metrics",
                "info": "/info",
                "upload_closures": "/uploadClosures",
                "tracked_closures": "/trackedClosures"
            }
        })

    return app
