import os
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field

from fixloop.browser import BrowserInitializationError
from fixloop.config import load_config
from fixloop.models import FeatureTest, ValidationRule
from fixloop.service import DebuggingService

logger = logging.getLogger(__name__)

_service: Optional[DebuggingService] = None


def get_service() -> DebuggingService:
    """Process-wide service; config is read once, on first use."""
    global _service
    if _service is None:
        _service = DebuggingService(load_config())
    return _service


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _service is not None:
        logger.info("Shutting down: closing browser and dev server")
        await _service.cleanup()


app = FastAPI(title="Feature Verification and Fix Loop", lifespan=lifespan)

# CORS Configuration
# Set CORS_ORIGINS to a comma-separated list in production
cors_origins_env = os.getenv("CORS_ORIGINS", "")
if cors_origins_env:
    allowed_origins = [origin.strip() for origin in cors_origins_env.split(",")]
else:
    allowed_origins = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept"],
)


class CaptureErrorsRequest(BaseModel):
    url: Optional[str] = None


class FixAndRetestRequest(BaseModel):
    feature: FeatureTest
    max_iterations: Optional[int] = Field(default=None, ge=1)


class RunFeatureSuiteRequest(BaseModel):
    features: List[FeatureTest]
    max_iterations: Optional[int] = Field(default=None, ge=1)


class BuildAndTestRequest(BaseModel):
    plan: str
    feature_name: str
    url: Optional[str] = None
    ui_rules: List[ValidationRule] = []
    max_iterations: Optional[int] = Field(default=None, ge=1)
    wait_for_build: bool = False
    wait_time: Optional[int] = None


def _text_payload(result: BaseModel) -> Response:
    """Results go back as one JSON text body."""
    return Response(content=result.model_dump_json(indent=2), media_type="application/json")


async def _guarded(operation):
    try:
        return _text_payload(await operation)
    except BrowserInitializationError as e:
        raise HTTPException(status_code=503, detail=f"Browser unavailable: {e}")
    except TimeoutError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        # e.g. the LLM provider rejected the guidance request
        raise HTTPException(status_code=502, detail=str(e))


# ============ Verification ============
@app.post("/api/test-feature")
async def test_feature(feature: FeatureTest, service: DebuggingService = Depends(get_service)):
    """Run one verification pass and report pass/fail plus errors"""
    return await _guarded(service.test_feature(feature))


@app.post("/api/capture-errors")
async def capture_errors(
    request: CaptureErrorsRequest,
    service: DebuggingService = Depends(get_service)
):
    """Load a page (the base URL by default) and report the errors it raises"""
    return await _guarded(service.capture_errors(request.url))


# ============ Remediation ============
@app.post("/api/fix-and-retest")
async def fix_and_retest(
    request: FixAndRetestRequest,
    service: DebuggingService = Depends(get_service)
):
    """Test, fix and retest one feature until it passes or the cap is hit"""
    return await _guarded(service.fix_and_retest(request.feature, request.max_iterations))


@app.post("/api/run-feature-suite")
async def run_feature_suite(
    request: RunFeatureSuiteRequest,
    service: DebuggingService = Depends(get_service)
):
    """Run the remediation loop for each feature, one after another"""
    return await _guarded(service.run_feature_suite(request.features, request.max_iterations))


@app.post("/api/build-and-test-feature")
async def build_and_test_feature(
    request: BuildAndTestRequest,
    service: DebuggingService = Depends(get_service)
):
    """Implementation guidance for a plan, then test and fix until the feature works"""
    return await _guarded(service.build_and_test_feature(
        plan=request.plan,
        feature_name=request.feature_name,
        url=request.url,
        ui_rules=request.ui_rules,
        max_iterations=request.max_iterations,
        wait_for_build=request.wait_for_build,
        wait_time=request.wait_time
    ))


@app.get("/api/status")
async def status(service: DebuggingService = Depends(get_service)):
    """Browser backend and dev server state"""
    dev = service.dev_server.get_status()
    return {
        "browser": {
            "state": service.browser.state.value,
            "backend": service.browser.kind.value if service.browser.kind else None,
        },
        "dev_server": {"is_running": dev.is_running, "url": dev.url, "port": dev.port},
    }
