import asyncio
import logging
import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from glimpse import llm_client, logbuffer
from glimpse.code_analysis import AnalysisResult
from glimpse.errors import GlimpseError
from glimpse.llm_prompts import ANALYSIS, FRAMEWORKS
from glimpse.render import DEFAULT_ENTRY, PREVIEW_HEIGHT, PREVIEW_WIDTH, render_error_document, render_index, render_preview
from glimpse.sandbox import parse_sandbox_message
from glimpse.session import PreviewSession, drop_session, get_session, language_for

if not logging.getLogger().handlers:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

log = logging.getLogger(__name__)
_log_buffer = logbuffer.install()

app = FastAPI(title="Glimpse")

allow_origins = [o.strip() for o in os.getenv("ALLOW_ORIGINS", "*").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = str(uuid.uuid4())
    start = time.time()
    request.state.request_id = rid
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        dur_ms = int((time.time() - start) * 1000)
        log.info(
            "rid=%s method=%s path=%s status=%s dur_ms=%d",
            rid,
            request.method,
            request.url.path,
            getattr(response, "status_code", "?"),
            dur_ms,
        )


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field("", description="What the generated code should do")
    framework: str = Field("react", description="react, p5.js, classic or analysis")
    provider: str = Field("grok", description="grok, openai or gemini")
    api_key: str = Field("", alias="apiKey", description="Provider credential; used for this request only")


class PreviewRequest(BaseModel):
    code: str = ""
    framework: str = "react"
    running: bool = True
    width: int = Field(PREVIEW_WIDTH, ge=1, le=4096)
    height: int = Field(PREVIEW_HEIGHT, ge=1, le=4096)
    entry: str = Field(DEFAULT_ENTRY, description="Name of the React component to mount")


class AnalyzeRequest(BaseModel):
    code: str = ""
    language: str = "javascript"


def current_session(x_session_id: Optional[str] = Header(default=None)) -> PreviewSession:
    return get_session(x_session_id)


def _preview_response(framework: str, code: str, running: bool, width: int, height: int, entry: str) -> HTMLResponse:
    rendered = render_preview(framework, code, running=running, width=width, height=height, entry=entry)
    headers = {"X-Preview-Error": rendered.error.encode("ascii", "replace").decode("ascii")} if rendered.error else None
    return HTMLResponse(rendered.html, headers=headers)


@app.get("/", response_class=HTMLResponse)
def root() -> str:
    """Serve the prompt form, code editor and sandboxed preview."""
    return render_index(
        providers=llm_client.PROVIDERS,
        frameworks=[f for f in FRAMEWORKS if f != ANALYSIS],
    )


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/llm/status")
def llm_status_endpoint() -> Dict[str, Any]:
    return llm_client.status()


@app.post("/generate")
async def generate_endpoint(req: GenerateRequest, session: PreviewSession = Depends(current_session)):
    try:
        artifact = await asyncio.to_thread(
            llm_client.generate_artifact, req.prompt, req.framework, req.provider, req.api_key
        )
    except GlimpseError as exc:
        log.error("generation failed provider=%s framework=%s: %s", req.provider, req.framework, exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})
    except Exception:
        log.exception("generation failed unexpectedly provider=%s", req.provider)
        return JSONResponse(status_code=500, content={"error": "Model generation failed"})
    session.set_artifact(artifact)
    log.info("Code generated successfully framework=%s provider=%s", artifact.framework, artifact.provider)
    # The stored analysis always describes the current artifact
    await session.analyze(artifact.extracted_code, language_for(artifact.framework))
    return {"code": artifact.extracted_code}


@app.post("/preview", response_class=HTMLResponse)
def preview_endpoint(req: PreviewRequest):
    return _preview_response(req.framework, req.code, req.running, req.width, req.height, req.entry)


@app.get("/preview", response_class=HTMLResponse)
def session_preview(
    running: bool = True,
    width: int = PREVIEW_WIDTH,
    height: int = PREVIEW_HEIGHT,
    entry: str = DEFAULT_ENTRY,
    session: PreviewSession = Depends(current_session),
):
    """Preview of the session's current artifact."""
    if session.artifact is None:
        message = "Nothing generated yet"
        return HTMLResponse(render_error_document(message), headers={"X-Preview-Error": message})
    artifact = session.artifact
    return _preview_response(artifact.framework, artifact.extracted_code, running, width, height, entry)


@app.post("/preview/events", status_code=204)
def preview_events(payload: Dict[str, Any], session: PreviewSession = Depends(current_session)):
    try:
        msg = parse_sandbox_message(payload)
    except ValidationError as ve:
        errors = [
            {"path": ".".join(str(p) for p in e.get("loc", [])) or "(root)", "message": e.get("msg", "invalid")}
            for e in ve.errors()
        ]
        return JSONResponse(status_code=422, content={"detail": {"valid": False, "errors": errors}})
    session.record_sandbox_message(msg)
    return Response(status_code=204)


@app.post("/analyze", response_model=AnalysisResult)
async def analyze_endpoint(req: AnalyzeRequest, session: PreviewSession = Depends(current_session)):
    return await session.analyze(req.code, req.language)


@app.get("/session")
def session_endpoint(session: PreviewSession = Depends(current_session)) -> Dict[str, Any]:
    return session.snapshot()


@app.delete("/session")
def delete_session(x_session_id: Optional[str] = Header(default=None)) -> Dict[str, bool]:
    return {"deleted": drop_session(x_session_id)}


@app.get("/logs")
def logs_endpoint(limit: int = 100) -> Dict[str, Any]:
    return {"logs": _log_buffer.entries(limit=max(0, min(limit, logbuffer.LOG_BUFFER_SIZE)))}
