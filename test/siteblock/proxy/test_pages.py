from siteblock.proxy import pages


def test_format_error():
    body = pages.format_error(400, "Missing <Host> header.")
    assert body.startswith(b"<html>")
    assert b"<title>400 Bad Request</title>" in body
    assert b"Missing &lt;Host&gt; header." in body


def test_format_blocked():
    body = pages.format_blocked("http://youtube.com/watch?v=1&x=<script>")
    assert body.startswith(b"<!DOCTYPE html>")
    assert b"<title>Site Blocked</title>" in body
    assert b"http://youtube.com/watch?v=1&amp;x=&lt;script&gt;" in body
    assert b"<script>" not in body
