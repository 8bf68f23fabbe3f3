import unittest

from hypothesis import given, settings, strategies as st

from core.classifier import (
    SIMULATED_MARKER,
    build_simulated_payload,
    classify_response,
    is_simulated,
    strip_simulated_header,
)


class ResponseClassifierTest(unittest.TestCase):
    def test_plain_text_passes_through(self):
        result = classify_response("The tower fell at dawn.")
        self.assertFalse(result.simulated)
        self.assertEqual(result.content, "The tower fell at dawn.")

    def test_none_is_empty_and_not_simulated(self):
        result = classify_response(None)
        self.assertFalse(result.simulated)
        self.assertEqual(result.content, "")

    def test_header_is_stripped_through_first_blank_line(self):
        raw = f"{SIMULATED_MARKER}\nprovider=openai model=gpt-4o\nreason=missing_api_key\n\nBody line one.\n\nBody two."
        result = classify_response(raw)
        self.assertTrue(result.simulated)
        self.assertEqual(result.content, "Body line one.\n\nBody two.")

    def test_blank_line_with_spaces_counts(self):
        raw = f"{SIMULATED_MARKER}\nheader\n   \nBody"
        self.assertEqual(strip_simulated_header(raw), "Body")

    def test_marker_without_blank_line_is_all_header(self):
        self.assertEqual(strip_simulated_header(f"{SIMULATED_MARKER}\nonly header"), "")

    def test_marker_in_the_middle_is_not_simulated(self):
        raw = f"Intro text {SIMULATED_MARKER}\n\nrest"
        self.assertFalse(is_simulated(raw))
        self.assertEqual(strip_simulated_header(raw), raw)

    def test_leading_whitespace_before_marker_is_tolerated(self):
        raw = f"\n  {SIMULATED_MARKER}\nh\n\nBody"
        self.assertTrue(is_simulated(raw))
        self.assertEqual(strip_simulated_header(raw), "Body")

    def test_nested_markers_are_all_removed(self):
        inner = build_simulated_payload("second", "Body")
        raw = build_simulated_payload("first", inner)
        once = strip_simulated_header(raw)
        self.assertEqual(once, "Body")
        self.assertEqual(strip_simulated_header(once), once)

    def test_build_simulated_payload_round_trips(self):
        raw = build_simulated_payload("provider=groq\n\nreason=x", "Placeholder body")
        self.assertTrue(raw.startswith(SIMULATED_MARKER + "\n"))
        self.assertEqual(classify_response(raw).content, "Placeholder body")


_header = st.lists(
    st.text(alphabet=st.characters(exclude_characters="\n\r"), min_size=1, max_size=20).filter(str.strip),
    max_size=3,
).map("\n".join)


class TestClassifierIdempotence:
    @given(raw=st.text(max_size=200))
    @settings(max_examples=200)
    def test_strip_is_idempotent_on_arbitrary_text(self, raw: str) -> None:
        once = strip_simulated_header(raw)
        assert strip_simulated_header(once) == once

    @given(header=_header, body=st.text(max_size=200))
    @settings(max_examples=200)
    def test_strip_is_idempotent_on_marked_payloads(self, header: str, body: str) -> None:
        raw = build_simulated_payload(header, body)
        once = strip_simulated_header(raw)
        assert strip_simulated_header(once) == once
        assert classify_response(raw).simulated

    @given(body=st.text(max_size=200).filter(lambda s: not s.lstrip().startswith(SIMULATED_MARKER)))
    @settings(max_examples=100)
    def test_unmarked_text_is_unchanged(self, body: str) -> None:
        result = classify_response(body)
        assert not result.simulated
        assert result.content == body


if __name__ == "__main__":
    unittest.main()
