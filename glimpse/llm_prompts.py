from __future__ import annotations

from typing import Dict

from glimpse.errors import UnsupportedFramework

REACT = "react"
P5JS = "p5.js"
CLASSIC = "classic"
ANALYSIS = "analysis"

FRAMEWORKS = (REACT, P5JS, CLASSIC, ANALYSIS)

_FRAMEWORK_ALIASES: Dict[str, str] = {
    "p5js": P5JS,
    "p5": P5JS,
    "html": CLASSIC,
}

_SHAPE_FOOTER = "explanation\n\nDo not deviate from this structure."


def normalize_framework(framework: str) -> str:
    """Map a user-supplied framework name to its canonical value or raise UnsupportedFramework."""
    key = (framework or "").strip().lower()
    key = _FRAMEWORK_ALIASES.get(key, key)
    if key not in FRAMEWORKS:
        raise UnsupportedFramework(framework)
    return key


def _react_prompt(prompt: str) -> str:
    return (
        f"Generate {REACT} code for: {prompt}. Return your response in this exact format:\n\n"
        "explainfiton\n'''\n"
        "[raw JavaScript/TypeScript code for a single React component named App, no imports "
        "(assume React and hooks are available), no comments, no markdown]\n"
        f"'''\n{_SHAPE_FOOTER}"
    )


def _sketch_prompt(prompt: str) -> str:
    return (
        f"Generate {P5JS} code for: {prompt}. Return your response in this exact format:\n\n"
        "explainfiton\n'''\n"
        "[raw JavaScript code for a p5.js sketch, no comments, no markdown]\n"
        f"'''\n{_SHAPE_FOOTER}"
    )


def _classic_prompt(prompt: str) -> str:
    return (
        "Generate a complete HTML document with embedded CSS and JavaScript for: "
        f"{prompt}. The HTML should include visualization elements. "
        "Return your response in this exact format:\n\n"
        "explainfiton\n'''\n"
        "<!DOCTYPE html>\n<html>\n<head>\n"
        '  <meta charset="UTF-8">\n'
        f"  <title>{prompt}</title>\n"
        "  <style>\n    /* CSS goes here */\n  </style>\n"
        "</head>\n<body>\n"
        "  <!-- HTML content goes here -->\n"
        "  <script>\n    // JavaScript goes here\n  </script>\n"
        "</body>\n</html>\n"
        f"'''\n{_SHAPE_FOOTER}"
    )


def build_prompt(prompt: str, framework: str) -> str:
    """Wrap the user prompt in the instruction template for `framework`.

    The analysis framework sends the prompt as-is.
    """
    fw = normalize_framework(framework)
    if fw == REACT:
        return _react_prompt(prompt)
    if fw == P5JS:
        return _sketch_prompt(prompt)
    if fw == CLASSIC:
        return _classic_prompt(prompt)
    return prompt
