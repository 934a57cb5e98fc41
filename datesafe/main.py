"""FastAPI entry point. One FusionEngine is built per process and shared by
all requests. Exposes GET / (health), POST /verify (full verification) and the
quick-analysis, safety-check and report-export endpoints."""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from datesafe import __version__, config
from datesafe.auth import verify_api_key
from datesafe.engine import FusionEngine
from datesafe.models import (
    ComprehensiveVerificationResult,
    ConversationAnalysisRequest,
    ConversationSummary,
    ExportReport,
    PhotoAnalysisRequest,
    PhotoSummary,
    SafetyCheckRequest,
    SafetyCheckResult,
    VerificationRequest,
)
from datesafe.report import (
    build_conversation_summary,
    build_export_report,
    build_photo_summary,
    build_safety_check,
    failed_safety_check,
    safety_check_request,
    save_report,
)

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "DateSafe Verification API"


def get_engine(request: Request) -> FusionEngine:
    return request.app.state.engine


def create_app(engine: Optional[FusionEngine] = None) -> FastAPI:
    """Build the application around `engine`, or an engine configured from the environment."""
    application = FastAPI(
        title=SERVICE_NAME,
        description="Photo, conversation and profile verification fused into a single trust score",
        version=__version__,
    )
    application.state.engine = engine or FusionEngine.from_config()

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.on_event("startup")
    async def _on_startup() -> None:
        logger.info(f"{SERVICE_NAME} v{__version__} started | Docs: /docs | Health: GET /")

    @application.on_event("shutdown")
    async def _on_shutdown() -> None:
        application.state.engine.close()
        logger.info(f"{SERVICE_NAME} stopped")

    @application.exception_handler(RequestValidationError)
    async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.error(f"422 VALIDATION ERROR | {request.url.path} | {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content={"detail": exc.errors(), "message": "Invalid request payload."},
        )

    @application.get("/")
    async def health_check() -> dict:
        return {
            "status": "online",
            "service": SERVICE_NAME,
            "version": __version__,
        }

    @application.post("/verify", response_model=ComprehensiveVerificationResult)
    def verify(
        payload: VerificationRequest,
        engine: FusionEngine = Depends(get_engine),
        api_key: str = Depends(verify_api_key),
    ) -> ComprehensiveVerificationResult:
        logger.info(
            f"VERIFY photos={len(payload.photos)} urls={len(payload.profileUrls)} "
            f"messages={len(payload.conversation)} context={payload.context is not None}"
        )
        return engine.perform_comprehensive_verification(payload)

    @application.post("/analyze/photos", response_model=PhotoSummary)
    def analyze_photos(
        payload: PhotoAnalysisRequest,
        engine: FusionEngine = Depends(get_engine),
        api_key: str = Depends(verify_api_key),
    ) -> PhotoSummary:
        result = engine.perform_comprehensive_verification(
            VerificationRequest(photos=payload.photos, profileData=payload.profileData)
        )
        return build_photo_summary(result)

    @application.post("/analyze/conversation", response_model=ConversationSummary)
    def analyze_conversation(
        payload: ConversationAnalysisRequest,
        engine: FusionEngine = Depends(get_engine),
        api_key: str = Depends(verify_api_key),
    ) -> ConversationSummary:
        result = engine.perform_comprehensive_verification(VerificationRequest(conversation=payload.messages))
        return build_conversation_summary(result)

    @application.post("/safety-check", response_model=SafetyCheckResult)
    def safety_check(
        payload: SafetyCheckRequest,
        engine: FusionEngine = Depends(get_engine),
        api_key: str = Depends(verify_api_key),
    ) -> SafetyCheckResult:
        try:
            result = engine.perform_comprehensive_verification(safety_check_request(payload))
            return build_safety_check(result)
        except Exception as exc:
            logger.error(f"Real-time safety check failed: {exc}", exc_info=True)
            return failed_safety_check()

    @application.post("/report/export", response_model=ExportReport)
    def export_report(
        payload: ComprehensiveVerificationResult,
        api_key: str = Depends(verify_api_key),
    ) -> ExportReport:
        report = build_export_report(payload)
        if config.REPORT_EXPORT_DIR:
            try:
                report.savedTo = save_report(report, config.REPORT_EXPORT_DIR)
            except OSError as exc:
                logger.warning(f"Failed to persist verification report: {exc}")
        return report

    return application


app = create_app()


def run() -> None:
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
