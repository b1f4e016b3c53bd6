"""Tests for JavaScript source builders and URL helpers."""
import json

from cdp_kit.engine.scripts import (
    EVALUATE_TIMEOUT_MARKER,
    build_call_expression,
    build_deadline_expression,
    build_inject_css,
    build_inject_js,
    complete_url,
    is_function_source,
    make_send_to_host,
    module_to_function_sources,
    normalize_url,
)


def test_is_function_source():
    assert is_function_source("function () { return 1 }")
    assert is_function_source("async function f() {}")
    assert is_function_source("(a, b) => a + b")
    assert is_function_source("  x => x * 2")
    assert is_function_source("async () => 1")
    assert not is_function_source("return document.title")
    assert not is_function_source("window.history.back()")


def test_build_call_expression_function_with_args():
    expr = build_call_expression("(a, b) => a + b", (1, "two"))
    assert expr == '((a, b) => a + b)(1, "two")'


def test_build_call_expression_body():
    expr = build_call_expression("return location.href")
    assert expr == "(function () { return location.href })()"


def test_build_call_expression_escapes_args():
    expr = build_call_expression("(s) => s", ("it's \"quoted\"\n",))
    assert json.dumps("it's \"quoted\"\n") in expr


def test_module_to_function_sources():
    sources = module_to_function_sources({"double": "x => x * 2"})
    assert sources == ["function double () { return (x => x * 2)(...arguments) }"]


def test_make_send_to_host_tags_messages():
    src = make_send_to_host("abc-123")
    assert '"abc-123:"' in src
    assert "console.info" in src
    assert "Array.from(arguments)" in src


def test_build_inject_js_embeds_source_safely():
    script = "alert('hi')\nconsole.log(\"x\\y\")"
    expr = build_inject_js(script)
    assert json.dumps(script) in expr
    assert "document.body.appendChild(script)" in expr


def test_build_inject_css():
    css = "body { content: `x`; }"
    expr = build_inject_css(css)
    assert json.dumps(css) in expr
    assert "document.head.appendChild(style)" in expr


def test_complete_url():
    assert complete_url("example.com") == "http://example.com"
    assert complete_url("localhost:8080/a") == "http://localhost:8080/a"
    assert complete_url("https://example.com") == "https://example.com"
    assert complete_url("about:blank") == "about:blank"
    assert complete_url("data:text/html,hi") == "data:text/html,hi"
    assert complete_url("file:///tmp/a.html") == "file:///tmp/a.html"


def test_normalize_url():
    assert normalize_url("example.com") == "http://example.com/"
    assert normalize_url("https://example.com/a?b=1") == "https://example.com/a?b=1"
    assert normalize_url("about:blank") == "about:blank"


def test_normalize_url_matches_reported_response_urls():
    assert normalize_url("HTTPS://Example.COM/Path#top") == "https://example.com/Path"
    assert normalize_url("example.com#section") == "http://example.com/"
    assert normalize_url("https://example.com/a#b", keep_fragment=True) == "https://example.com/a#b"
    assert normalize_url("about:blank#x") == "about:blank"


def test_build_deadline_expression():
    expr = build_deadline_expression("(function () { return 1 })()", 2500)
    assert f"reject({json.dumps(EVALUATE_TIMEOUT_MARKER)}), 2500)" in expr
    assert "Promise.resolve().then(() => (function () { return 1 })())" in expr
    assert "Promise.race([work, deadline])" in expr
    assert "clearTimeout(timer)" in expr
