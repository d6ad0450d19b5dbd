from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from glimpse.errors import NoComponentFound, RenderFault, UnsupportedFramework, is_error_placeholder
from glimpse.llm_prompts import CLASSIC, P5JS, REACT, normalize_framework
from glimpse.sandbox import SANDBOX_PERMISSIONS

log = logging.getLogger(__name__)

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html", "xml"]),
    enable_async=False,
)

REACT_VERSION = os.getenv("REACT_VERSION", "18").strip()
REACT_URL = f"https://unpkg.com/react@{REACT_VERSION}/umd/react.development.js"
REACT_DOM_URL = f"https://unpkg.com/react-dom@{REACT_VERSION}/umd/react-dom.development.js"
BABEL_URL = os.getenv("BABEL_URL", "https://unpkg.com/@babel/standalone/babel.min.js").strip()

P5_VERSION = os.getenv("P5_VERSION", "1.9.0").strip()
P5_URL = f"https://cdnjs.cloudflare.com/ajax/libs/p5.js/{P5_VERSION}/p5.js"
P5_SOUND_URL = f"https://cdnjs.cloudflare.com/ajax/libs/p5.js/{P5_VERSION}/addons/p5.sound.min.js"

try:
    LOAD_TIMEOUT_MS = int(os.getenv("LOAD_TIMEOUT_MS", "3000"))
except Exception:
    LOAD_TIMEOUT_MS = 3000
try:
    PREVIEW_WIDTH = int(os.getenv("PREVIEW_WIDTH", "400"))
except Exception:
    PREVIEW_WIDTH = 400
try:
    PREVIEW_HEIGHT = int(os.getenv("PREVIEW_HEIGHT", "400"))
except Exception:
    PREVIEW_HEIGHT = 400

DEFAULT_ENTRY = "App"
INVALID_CODE_MESSAGE = "Invalid or no code provided"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")
_REACT_IMPORT_RE = re.compile(
    r"""^[ \t]*import\s+(?P<clause>[^;'"]*?)\s+from\s+['"](?P<module>react|react-dom|react-dom/client)['"][ \t]*;?""",
    re.MULTILINE,
)
_NAMED_RE = re.compile(r"\{([^}]*)\}")
_EXPORT_DEFAULT_NAME_RE = re.compile(r"^[ \t]*export\s+default\s+[A-Za-z_$][\w$]*[ \t]*;?[ \t]*$", re.MULTILINE)
_EXPORT_DECL_RE = re.compile(
    r"^([ \t]*)export\s+(?:default\s+)?(?=(?:async\s+)?function\b|class\b|const\b|let\b|var\b)",
    re.MULTILINE,
)
_FULL_DOCUMENT_RE = re.compile(r"<!doctype\s+html|<html", re.IGNORECASE)
_SCRIPT_CLOSE_RE = re.compile(r"</(script)", re.IGNORECASE)


@dataclass
class RenderedPreview:
    html: str
    error: Optional[str] = None


def _binding_for(module: str) -> str:
    return "React" if module == "react" else "ReactDOM"


def _rebind_import(match: re.Match[str]) -> str:
    """Turn a react/react-dom import into reads from the injected React/ReactDOM objects."""
    binding = _binding_for(match.group("module"))
    clause = match.group("clause").strip()
    statements: List[str] = []

    named = _NAMED_RE.search(clause)
    if named:
        specs = []
        for spec in named.group(1).split(","):
            spec = spec.strip()
            if not spec:
                continue
            spec = re.sub(r"\s+as\s+", ": ", spec)
            specs.append(spec)
        if specs:
            statements.append(f"const {{ {', '.join(specs)} }} = {binding};")
        clause = (clause[: named.start()] + clause[named.end():]).strip()

    for part in clause.split(","):
        name = re.sub(r"^\*\s+as\s+", "", part.strip())
        if name and _IDENTIFIER_RE.match(name) and name != binding:
            statements.append(f"const {name} = {binding};")
    return " ".join(statements)


def prepare_component_source(code: str) -> str:
    """Drop module syntax the preview scope cannot evaluate.

    React and ReactDOM are supplied by the preview, so imports of them are
    removed or rewritten as destructuring of those objects; export keywords
    are removed so declarations stay plain.
    """
    src = _REACT_IMPORT_RE.sub(_rebind_import, code or "")
    src = _EXPORT_DEFAULT_NAME_RE.sub("", src)
    src = _EXPORT_DECL_RE.sub(r"\1", src)
    return src.strip()


def declares_component(code: str, entry: str) -> bool:
    name = re.escape(entry)
    pattern = (
        rf"(?:\bfunction\s*\*?\s*{name}\s*\("
        rf"|\bclass\s+{name}\b"
        rf"|\b(?:const|let|var)\s+{name}\s*=)"
    )
    return re.search(pattern, code) is not None


def _require_code(code: str) -> str:
    if not (code or "").strip():
        raise RenderFault(INVALID_CODE_MESSAGE)
    if is_error_placeholder(code):
        raise RenderFault(code.strip())
    return code


def render_react_preview(code: str, entry: str = DEFAULT_ENTRY) -> str:
    """Build the preview document for a React component named `entry`.

    Transpiling and mounting happen inside the document; the component
    source only sees the React and ReactDOM bindings.
    """
    _require_code(code)
    if not entry or not _IDENTIFIER_RE.match(entry):
        raise RenderFault(f"Invalid component name: {entry!r}")
    source = prepare_component_source(code)
    if not declares_component(source, entry):
        raise NoComponentFound(entry)
    return _env.get_template("react_preview.html").render(
        source=source,
        entry=entry,
        react_url=REACT_URL,
        react_dom_url=REACT_DOM_URL,
        babel_url=BABEL_URL,
    )


def render_sketch_preview(
    code: str,
    running: bool = True,
    width: int = PREVIEW_WIDTH,
    height: int = PREVIEW_HEIGHT,
) -> str:
    """Build the isolated document hosting a p5.js sketch in global mode."""
    if not (code or "").strip() or is_error_placeholder(code) or "function" not in code:
        raise RenderFault(INVALID_CODE_MESSAGE)
    # The sketch goes in verbatim; only a closing script tag would end the block early
    sketch = _SCRIPT_CLOSE_RE.sub(r"<\\/\1", code)
    return _env.get_template("p5_preview.html").render(
        sketch=sketch,
        running=running,
        width=int(width),
        height=int(height),
        load_timeout_ms=LOAD_TIMEOUT_MS,
        p5_url=P5_URL,
        p5_sound_url=P5_SOUND_URL,
    )


def is_full_document(code: str) -> bool:
    return _FULL_DOCUMENT_RE.search(code or "") is not None


def render_html_preview(code: str) -> str:
    _require_code(code)
    if is_full_document(code):
        return code
    return _env.get_template("classic_shell.html").render(fragment=code)


def render_error_document(message: str) -> str:
    return _env.get_template("preview_error.html").render(message=message)


def render_index(**context: object) -> str:
    return _env.get_template("index.html").render(
        sandbox_permissions=SANDBOX_PERMISSIONS,
        load_timeout_ms=LOAD_TIMEOUT_MS,
        preview_width=PREVIEW_WIDTH,
        preview_height=PREVIEW_HEIGHT,
        **context,
    )


def render_preview(
    framework: str,
    code: str,
    running: bool = True,
    width: int = PREVIEW_WIDTH,
    height: int = PREVIEW_HEIGHT,
    entry: str = DEFAULT_ENTRY,
) -> RenderedPreview:
    """Render `code` with the strategy for `framework`.

    Faults never escape: they come back as an error document plus the
    error text, so the hosting view keeps working.
    """
    fw = ""
    try:
        fw = normalize_framework(framework)
        if fw == REACT:
            html = render_react_preview(code, entry)
        elif fw == P5JS:
            html = render_sketch_preview(code, running=running, width=width, height=height)
        elif fw == CLASSIC:
            html = render_html_preview(code)
        else:
            raise UnsupportedFramework(framework)
    except UnsupportedFramework:
        message = "Unsupported framework"
    except RenderFault as exc:
        message = f"Render Error: {exc}" if fw == REACT else str(exc)
    except TemplateError as exc:
        log.exception("preview template failed framework=%s", fw)
        message = f"Error rendering preview: {exc}"
    else:
        return RenderedPreview(html=html)
    log.warning("preview error framework=%s: %s", framework, message)
    return RenderedPreview(html=render_error_document(message), error=message)
