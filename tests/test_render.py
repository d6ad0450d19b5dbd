import pytest

from glimpse import render
from glimpse.errors import GENERATION_ERROR_PLACEHOLDER, PARSE_ERROR_PLACEHOLDER, NoComponentFound, RenderFault


def test_fragment_is_wrapped_unmodified_inside_body():
    fragment = "<h1 class='t'>Hello & welcome</h1>\n<script>document.title = 'x';</script>"
    html = render.render_html_preview(fragment)
    assert html.startswith("<!DOCTYPE html>")
    body = html.split("<body>", 1)[1].split("</body>", 1)[0]
    assert body.strip() == fragment
    assert "font-family: Arial, sans-serif" in html
    assert "padding: 20px" in html


def test_full_document_is_returned_verbatim():
    doc = "<!doctype html>\n<html><head><title>Mine</title></head><body>x</body></html>"
    assert render.render_html_preview(doc) == doc
    assert render.render_html_preview("<HTML><body>y</body></HTML>") == "<HTML><body>y</body></HTML>"


@pytest.mark.parametrize("code", ["", "   ", PARSE_ERROR_PLACEHOLDER, GENERATION_ERROR_PLACEHOLDER])
def test_html_strategy_rejects_empty_and_placeholder_code(code):
    with pytest.raises(RenderFault):
        render.render_html_preview(code)


def test_sketch_with_setup_is_wrapped_not_replaced():
    code = "function setup() {\n  createCanvas(200, 100);\n}\nfunction draw() {\n  background(0);\n}"
    html = render.render_sketch_preview(code, running=True, width=400, height=400)
    assert code in html
    assert "typeof window.setup === 'function'" in html
    assert "noLoop();" not in html
    assert render.P5_URL in html and render.P5_SOUND_URL in html


def test_sketch_without_setup_gets_default_canvas_size():
    code = "function draw() { ellipse(50, 50, 10, 10); }"
    html = render.render_sketch_preview(code, width=320, height=240)
    assert "createCanvas(320, 240)" in html


def test_paused_sketch_stops_the_loop():
    html = render.render_sketch_preview("function setup() { createCanvas(10, 10); }", running=False)
    assert "noLoop();" in html


def test_sketch_without_function_is_invalid():
    with pytest.raises(RenderFault) as excinfo:
        render.render_sketch_preview("background(0);")
    assert str(excinfo.value) == render.INVALID_CODE_MESSAGE


def test_sketch_cannot_close_its_script_block():
    html = render.render_sketch_preview("function setup() { let s = '</script><b>'; }")
    assert "'<\\/script><b>'" in html


def test_component_source_rebinds_react_imports():
    code = (
        "import React, { useState, useEffect as onEffect } from 'react';\n"
        "import ReactDOM from \"react-dom\";\n"
        "export default function App() {\n"
        "  const [n, setN] = useState(0);\n"
        "  return <button onClick={() => setN(n + 1)}>{n}</button>;\n"
        "}\n"
    )
    src = render.prepare_component_source(code)
    assert "import" not in src
    assert "export" not in src
    assert "const { useState, useEffect: onEffect } = React;" in src
    assert src.splitlines()[-4].startswith("function App()")


def test_component_source_drops_trailing_export_default():
    src = render.prepare_component_source("const App = () => <p>hi</p>;\nexport default App;\n")
    assert src == "const App = () => <p>hi</p>;"


def test_react_preview_embeds_source_and_entry():
    html = render.render_react_preview("function App() { return null; }")
    assert '"function App() { return null; }"' in html
    assert 'var entry = "App";' in html
    assert render.BABEL_URL in html


def test_react_preview_accepts_custom_entry():
    html = render.render_react_preview("class Counter extends React.Component {}", entry="Counter")
    assert 'var entry = "Counter";' in html


def test_react_preview_without_entry_component_fails():
    with pytest.raises(NoComponentFound) as excinfo:
        render.render_react_preview("function Widget() { return null; }")
    assert excinfo.value.entry == "App"


def test_react_preview_rejects_non_identifier_entry():
    with pytest.raises(RenderFault):
        render.render_react_preview("function App() {}", entry="App); alert(1")


def test_render_preview_dispatches_by_framework_alias():
    out = render.render_preview("html", "<p>ok</p>")
    assert out.error is None
    assert "<p>ok</p>" in out.html


def test_render_preview_reports_react_faults_in_place():
    out = render.render_preview("react", "function Widget() {}")
    assert out.error == "Render Error: No component named 'App' found"
    assert "Render Error: No component named" in out.html


def test_render_preview_reports_placeholder_as_error():
    out = render.render_preview("classic", PARSE_ERROR_PLACEHOLDER)
    assert out.error == PARSE_ERROR_PLACEHOLDER


def test_render_preview_rejects_unknown_and_analysis_frameworks():
    for fw in ("vue", "analysis"):
        out = render.render_preview(fw, "function App() {}")
        assert out.error == "Unsupported framework"


def test_error_document_escapes_message():
    html = render.render_error_document("<b>bad</b>")
    assert "<b>bad</b>" not in html.split("<script>", 1)[0]
    assert "&lt;b&gt;bad&lt;/b&gt;" in html


def test_sketch_document_suppresses_blocking_dialogs():
    html = render.render_sketch_preview("function draw() {}")
    assert "window.prompt = function () { return null; };" in html
    assert "window.alert = function () { return; };" in html
    assert "window.confirm = function () { return false; };" in html


def test_sketch_errors_are_forwarded_before_the_sketch_runs():
    code = "function draw() { undefinedCall(); }"
    html = render.render_sketch_preview(code)
    handler = html.index("window.onerror = function (message, source, lineno, colno)")
    assert handler < html.index(code)
    forwarded = html[handler:html.index("};", handler)]
    for field in ("type: 'error'", "message: String(message)", "source: source", "lineno: lineno", "colno: colno"):
        assert field in forwarded


def test_sketch_reports_loaded_after_bounded_wait():
    html = render.render_sketch_preview("function draw() {}")
    wait = html.index("setTimeout(function () {")
    block = html[wait:html.index(");", html.index("}, ", wait)) + 2]
    assert "notifyParent({ type: 'loaded' })" in block
    assert f"}}, {render.LOAD_TIMEOUT_MS});" in block


def test_sketch_setup_failure_is_reported():
    html = render.render_sketch_preview("function setup() { throw new Error('bad'); }")
    assert "'Error in setup: ' + setupError.message" in html
    assert "'Error loading sketch: ' + error.message" in html


def test_sketch_canvas_is_made_focusable():
    html = render.render_sketch_preview("function draw() {}")
    assert "el.setAttribute('tabindex', '0');" in html
    assert "makeFocusable(canvas);" in html
    assert "window.mousePressed = function () {" in html
