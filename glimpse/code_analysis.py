from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from glimpse.agent_registry import Agent, AgentType

log = logging.getLogger(__name__)

CODE_ANALYZER_ID = "code-analyzer"

SCRIPT_LANGUAGES = {"javascript", "typescript"}


class AnalysisResult(BaseModel):
    code: str = ""
    language: str = ""
    suggestions: List[str] = Field(default_factory=list)
    optimizations: List[str] = Field(default_factory=list)
    bugs: List[str] = Field(default_factory=list)


def _check_script(code: str, result: AnalysisResult) -> None:
    if "var " in code:
        result.suggestions.append("Consider using let or const instead of var for better scoping")
    if "for (let i = 0;" in code:
        result.optimizations.append("Consider using forEach, map, or filter instead of for loops")
    if "console.log" in code:
        result.suggestions.append("Remove console.log statements before production")


def _check_html(code: str, result: AnalysisResult) -> None:
    if "<img" in code and "alt=" not in code:
        result.suggestions.append("Add alt attributes to img tags for better accessibility")
    if "<table" in code and "<th" not in code:
        result.suggestions.append("Consider adding table headers (th) for better semantics")
    if "onclick=" in code:
        result.optimizations.append("Consider using addEventListener instead of inline event handlers")
    if "style=" in code:
        result.optimizations.append("Consider moving inline styles to a CSS stylesheet")


def analyze_code(code: str, language: str) -> AnalysisResult:
    """Substring heuristics only; each rule fires on its own."""
    lang = (language or "").strip().lower()
    result = AnalysisResult(code=code, language=lang)
    if lang in SCRIPT_LANGUAGES:
        _check_script(code, result)
    elif lang == "html":
        _check_html(code, result)
    return result


def create_code_analysis_agent(api_config: Optional[Mapping[str, str]] = None) -> Agent:
    config = dict(api_config or {})

    async def process(payload: Mapping[str, Any]) -> Dict[str, Any]:
        code = ""
        try:
            code = str(payload.get("code") or "")
            language = str(payload.get("language") or "")
            return analyze_code(code, language).model_dump()
        except Exception:
            log.exception("Error in code analysis provider=%s", config.get("provider") or "-")
            return AnalysisResult(code=code).model_dump()

    return Agent(
        id=CODE_ANALYZER_ID,
        type=AgentType.ANALYZER,
        name="Code Analyzer",
        description="Analyzes code for bugs, optimizations, and best practices",
        process=process,
    )
