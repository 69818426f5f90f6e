"""Best-effort AI analysis layered on top of pattern matching."""

from __future__ import annotations

import logging
import re
from typing import Optional

from clawfix.core.llm import LLMClient
from clawfix.core.models import Analysis
from clawfix.core.snapshot import Snapshot

logger = logging.getLogger(__name__)

PATTERN_ENGINE = "pattern-matching"
SUMMARY_FALLBACK_CHARS = 500

_HEADING = re.compile(r"^ {0,3}#{1,6}\s+(.*?)[\s#:]*$")
_PLAIN_HEADING = re.compile(r"^\s*([A-Za-z][\w ]*?)\s*:\s*$")
_FENCE = re.compile(r"^\s*(```|~~~)")


def _starts_section(line: str, keyword: str) -> bool:
    match = _HEADING.match(line) or _PLAIN_HEADING.match(line)
    return bool(match) and match.group(1).lower().startswith(keyword.lower())


def extract_section(text: str, keyword: str) -> str:
    """Return the body under a ``keyword`` heading, or ``""``.

    Headings may be markdown (``## Summary``) or plain (``Summary:``). The
    body runs until the next markdown heading outside a code fence, so
    ``# comment`` lines inside a fenced script stay in the section.
    """
    body: Optional[list[str]] = None
    in_fence = False
    for line in text.splitlines():
        if _FENCE.match(line):
            in_fence = not in_fence
        elif not in_fence:
            if body is None:
                if _starts_section(line, keyword):
                    body = []
                continue
            if _HEADING.match(line):
                break
        if body is not None:
            body.append(line)
    return "\n".join(body).strip() if body else ""


def unwrap_fences(text: str) -> str:
    """Keep only the contents of fenced code blocks, without the fences.

    Text with no fence is returned unchanged. An unclosed fence runs to
    the end of the text.
    """
    if not any(_FENCE.match(line) for line in text.splitlines()):
        return text.strip()
    kept: list[str] = []
    in_fence = False
    for line in text.splitlines():
        if _FENCE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            kept.append(line)
    return "\n".join(kept).strip()


def fallback_analysis(issue_count: int, reason: str = "no API key configured") -> Analysis:
    return Analysis(
        summary=(
            f"Pattern matching found {issue_count} issue(s). "
            f"AI analysis unavailable ({reason})."
        )
    )


class Augmenter:
    """Wraps the optional LLM call. Never raises to the pipeline.

    With no client configured every call returns the deterministic
    fallback. Any failure of the outbound call (timeout, HTTP status,
    empty or malformed reply) is logged and also turned into the fallback.
    """

    def __init__(self, client: Optional[LLMClient] = None):
        self.client = client

    @property
    def available(self) -> bool:
        return self.client is not None

    @property
    def engine(self) -> str:
        return self.client.model if self.client is not None else PATTERN_ENGINE

    def augment(self, snapshot: Snapshot, detected_ids: list[str]) -> Analysis:
        if self.client is None:
            return fallback_analysis(len(detected_ids))

        try:
            response = self.client.analyze(snapshot.to_dict(), detected_ids)
            if not isinstance(response, str) or not response.strip():
                raise ValueError("empty response from model")
        except Exception as e:
            logger.warning("AI analysis failed: %s", e)
            return fallback_analysis(len(detected_ids), str(e) or type(e).__name__)

        return Analysis(
            summary=extract_section(response, "summary")
            or response[:SUMMARY_FALLBACK_CHARS],
            insights=extract_section(response, "optimization"),
            extra_fix=unwrap_fences(extract_section(response, "fix")),
            raw=response,
        )
