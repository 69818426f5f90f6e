"""Tests for clawfix.core.augmenter."""

from __future__ import annotations

from clawfix.core.augmenter import (
    PATTERN_ENGINE,
    SUMMARY_FALLBACK_CHARS,
    Augmenter,
    extract_section,
    fallback_analysis,
    unwrap_fences,
)

FENCED_REPLY = (
    "## Summary\n"
    "Mostly fine.\n"
    "\n"
    "## Fix\n"
    "Raise the heartbeat interval:\n"
    "```bash\n"
    "# Raise the heartbeat interval\n"
    "jq '.agents.defaults.heartbeat.every = \"1h\"' \"$OPENCLAW_CONFIG\" > /tmp/oc.json\n"
    "#\n"
    "echo done\n"
    "```\n"
    "\n"
    "## Optimization\n"
    "Use a cheaper heartbeat model.\n"
)


class TestExtractSection:
    def test_markdown_headings(self):
        text = "## Summary\nAll good.\n## Fix\necho hi\n"
        assert extract_section(text, "summary") == "All good."
        assert extract_section(text, "fix") == "echo hi"

    def test_plain_heading(self):
        assert extract_section("Summary:\nshort text", "summary") == "short text"

    def test_missing_section(self):
        assert extract_section("## Summary\nx", "optimization") == ""


class TestWithoutClient:
    def test_fallback(self, healthy_snapshot):
        augmenter = Augmenter()
        analysis = augmenter.augment(healthy_snapshot, ["no-soul", "no-memory-files"])
        assert analysis.summary.startswith("Pattern matching found 2 issue(s).")
        assert "no API key configured" in analysis.summary
        assert analysis.insights == ""
        assert analysis.extra_fix == ""

    def test_engine_and_availability(self):
        augmenter = Augmenter()
        assert augmenter.available is False
        assert augmenter.engine == PATTERN_ENGINE


class TestWithClient:
    def test_sections_parsed(self, mock_llm_client, healthy_snapshot):
        augmenter = Augmenter(mock_llm_client)
        analysis = augmenter.augment(healthy_snapshot, ["no-soul"])

        assert analysis.summary == "Gateway looks healthy."
        assert analysis.insights == "Lower the heartbeat frequency."
        assert analysis.extra_fix == 'echo "extra fix"'
        assert augmenter.engine == "minimax/minimax-m2.5"
        mock_llm_client.analyze.assert_called_once_with(
            healthy_snapshot.to_dict(), ["no-soul"]
        )

    def test_summary_falls_back_to_prefix(self, mock_llm_client, healthy_snapshot):
        mock_llm_client.analyze.return_value = "x" * (SUMMARY_FALLBACK_CHARS + 100)
        analysis = Augmenter(mock_llm_client).augment(healthy_snapshot, [])
        assert analysis.summary == "x" * SUMMARY_FALLBACK_CHARS
        assert analysis.extra_fix == ""

    def test_network_error_gives_fallback(self, mock_llm_client, healthy_snapshot):
        mock_llm_client.analyze.side_effect = ConnectionError("connection reset")
        analysis = Augmenter(mock_llm_client).augment(healthy_snapshot, ["no-soul"])

        assert analysis == fallback_analysis(1, "connection reset")
        assert analysis.summary
        assert analysis.insights == ""

    def test_empty_reply_gives_fallback(self, mock_llm_client, healthy_snapshot):
        mock_llm_client.analyze.return_value = "   "
        analysis = Augmenter(mock_llm_client).augment(healthy_snapshot, [])
        assert "empty response" in analysis.summary

    def test_error_without_message(self, mock_llm_client, healthy_snapshot):
        mock_llm_client.analyze.side_effect = TimeoutError()
        analysis = Augmenter(mock_llm_client).augment(healthy_snapshot, [])
        assert "TimeoutError" in analysis.summary


class TestFencedReplies:
    def test_comment_lines_in_fence_stay_in_section(self):
        body = extract_section(FENCED_REPLY, "fix")
        assert body.startswith("Raise the heartbeat interval:")
        assert "# Raise the heartbeat interval" in body
        assert body.rstrip().endswith("```")

    def test_section_ends_at_next_heading(self):
        assert extract_section(FENCED_REPLY, "summary") == "Mostly fine."
        assert extract_section(FENCED_REPLY, "optimization") == (
            "Use a cheaper heartbeat model."
        )

    def test_unwrap_fences(self):
        text = "Intro\n```bash\necho a\n```\nmiddle\n```\necho b\n```"
        assert unwrap_fences(text) == "echo a\necho b"

    def test_unwrap_without_fence_is_unchanged(self):
        assert unwrap_fences("  echo a\n") == "echo a"

    def test_unwrap_unclosed_fence(self):
        assert unwrap_fences("```sh\necho a\n# tail") == "echo a\n# tail"

    def test_extra_fix_is_plain_shell(self, mock_llm_client, healthy_snapshot):
        mock_llm_client.analyze.return_value = FENCED_REPLY
        analysis = Augmenter(mock_llm_client).augment(healthy_snapshot, [])

        assert "```" not in analysis.extra_fix
        assert analysis.extra_fix.splitlines()[0] == "# Raise the heartbeat interval"
        assert analysis.extra_fix.splitlines()[-1] == "echo done"
        assert analysis.summary == "Mostly fine."
