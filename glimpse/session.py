from __future__ import annotations

import logging
import os
import threading
from typing import Any, Dict, Optional, Union

from glimpse.agent_registry import AgentRegistry
from glimpse.code_analysis import CODE_ANALYZER_ID, AnalysisResult, create_code_analysis_agent
from glimpse.llm_client import GeneratedArtifact
from glimpse.llm_prompts import CLASSIC
from glimpse.sandbox import ErrorMessage, LoadedMessage, describe_sandbox_message

log = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"
try:
    MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "256"))
except Exception:
    MAX_SESSIONS = 256


def language_for(framework: str) -> str:
    return "html" if framework == CLASSIC else "javascript"


class PreviewSession:
    """Everything one preview view holds in memory: agents, the current artifact, the latest analysis."""

    def __init__(self, session_id: str) -> None:
        self.id = session_id
        self.registry = AgentRegistry()
        self.registry.register(create_code_analysis_agent({"provider": "", "apiKey": ""}))
        self.artifact: Optional[GeneratedArtifact] = None
        self.analysis: Optional[AnalysisResult] = None
        self.sandbox_status: Optional[Dict[str, Any]] = None

    def set_artifact(self, artifact: GeneratedArtifact) -> None:
        # Last write wins; an older request finishing late replaces a newer one
        self.artifact = artifact
        self.analysis = None
        self.sandbox_status = None

    async def analyze(self, code: str, language: str) -> AnalysisResult:
        """Run the code analyzer; any failure yields an empty result instead of an error."""
        try:
            raw = await self.registry.run_one(CODE_ANALYZER_ID, {"code": code, "language": language})
            result = AnalysisResult.model_validate(raw)
        except Exception as exc:
            log.warning("Code analysis failed session=%s: %r", self.id, exc)
            result = AnalysisResult(code=code, language=language)
        self.analysis = result
        return result

    def record_sandbox_message(self, msg: Union[LoadedMessage, ErrorMessage]) -> Dict[str, Any]:
        detail = describe_sandbox_message(msg)
        self.sandbox_status = {"type": msg.type, "detail": detail}
        if isinstance(msg, ErrorMessage):
            log.warning("sandbox error session=%s: %s", self.id, detail)
        else:
            log.info("sandbox loaded session=%s", self.id)
        return self.sandbox_status

    def snapshot(self) -> Dict[str, Any]:
        artifact = None
        if self.artifact is not None:
            artifact = {
                "framework": self.artifact.framework,
                "provider": self.artifact.provider,
                "code": self.artifact.extracted_code,
            }
        return {
            "id": self.id,
            "agents": [a.describe() for a in self.registry.agents],
            "is_processing": self.registry.is_processing,
            "artifact": artifact,
            "analysis": self.analysis.model_dump() if self.analysis else None,
            "sandbox": self.sandbox_status,
        }


_LOCK = threading.Lock()
_sessions: Dict[str, PreviewSession] = {}


def get_session(session_id: Optional[str] = None) -> PreviewSession:
    sid = (session_id or "").strip() or DEFAULT_SESSION_ID
    with _LOCK:
        session = _sessions.pop(sid, None)
        if session is not None:
            # Reinsert so eviction order follows last use
            _sessions[sid] = session
        else:
            session = PreviewSession(sid)
            _sessions[sid] = session
            # Drop the least recently used sessions to keep the footprint bounded
            while len(_sessions) > max(1, MAX_SESSIONS):
                stale = next(iter(_sessions))
                _sessions.pop(stale, None)
                log.info("session evicted id=%s", stale)
        return session


def drop_session(session_id: Optional[str] = None) -> bool:
    sid = (session_id or "").strip() or DEFAULT_SESSION_ID
    with _LOCK:
        return _sessions.pop(sid, None) is not None


def _reset() -> None:
    """Used by tests to clear state."""
    with _LOCK:
        _sessions.clear()
