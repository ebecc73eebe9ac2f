"""Branch naming: slugs, template rendering, and sanitization."""

from __future__ import annotations

import re

DEFAULT_BRANCH_TEMPLATE = "agent/{slug}-{timestamp}"

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_DASH_RUN = re.compile(r"-{2,}")
_SLASH_RUN = re.compile(r"/{2,}")
_INVALID_BRANCH_CHAR = re.compile(r"[^A-Za-z0-9._/-]")
_WHITESPACE = re.compile(r"\s")
_EDGE_CHARS = "./-"


def slugify(name: str) -> str:
    """Lowercase *name* and reduce it to ``[a-z0-9-]`` with single dashes."""
    out = _NON_ALNUM.sub("-", name.lower())
    return _DASH_RUN.sub("-", out).strip("-")


def sanitize_branch_name(name: str) -> str:
    """Turn *name* into something git will accept as a branch name.

    Never returns an empty string or ``HEAD``; both fall back to
    ``agent/task``.
    """
    n = _WHITESPACE.sub("-", name)
    n = _INVALID_BRANCH_CHAR.sub("-", n)
    n = _SLASH_RUN.sub("/", n)
    n = _DASH_RUN.sub("-", n)
    trimmed = n.strip(_EDGE_CHARS)
    if not trimmed or trimmed == "HEAD":
        return f"agent/{slugify('task')}"
    return trimmed


def render_branch_template(template: str, slug: str, timestamp: str) -> str:
    """Substitute ``{slug}`` / ``{timestamp}`` in *template* and sanitize."""
    replaced = template.replace("{slug}", slug).replace("{timestamp}", timestamp)
    return sanitize_branch_name(replaced)


def extract_template_prefix(template: str) -> str | None:
    """Return the first path segment of the template's literal prefix.

    ``"agent/{slug}-{timestamp}"`` -> ``"agent"``; ``"{slug}"`` -> ``None``.
    Used to recognize workspaces created with a custom template after the
    registry has been reset.
    """
    head = template.split("{", 1)[0].strip()
    cleaned = head.replace(" ", "")
    if not cleaned:
        return None
    seg = cleaned.split("/", 1)[0].strip(_EDGE_CHARS)
    return seg or None
