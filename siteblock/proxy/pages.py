import html
import http
import textwrap

from siteblock import version


def format_error(status_code: int, message: str) -> bytes:
    reason = http.HTTPStatus(status_code).phrase
    return (
        textwrap.dedent(
            f"""
    <html>
    <head>
        <title>{status_code} {reason}</title>
    </head>
    <body>
        <h1>{status_code} {reason}</h1>
        <p>{html.escape(message)}</p>
    </body>
    </html>
    """
        )
        .strip()
        .encode("utf8", "replace")
    )


def format_blocked(url: str) -> bytes:
    """The page shown instead of a blocked site."""
    return (
        textwrap.dedent(
            f"""
    <!DOCTYPE html>
    <html>
    <head>
        <title>Site Blocked</title>
        <style>
            body {{ font-family: Arial, sans-serif; text-align: center; margin-top: 100px; }}
            .blocked {{ color: #d32f2f; font-size: 24px; }}
            .url {{ color: #666; font-style: italic; }}
        </style>
    </head>
    <body>
        <div class="blocked">Site Blocked</div>
        <p>Access to <span class="url">{html.escape(url)}</span> has been blocked.</p>
        <p>This page was blocked by {version.SITEBLOCK}.</p>
    </body>
    </html>
    """
        )
        .strip()
        .encode("utf8", "replace")
    )
