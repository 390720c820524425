"""Tests for the message structure gate."""

from __future__ import annotations

from tracetune.pipeline.schemas import PreferenceExample, ReinforcementExample, SupervisedExample
from tracetune.pipeline.validate import validate_example, validate_messages


class TestValidateMessages:
    """First violation wins."""

    def test_valid_transcript(self) -> None:
        messages = [
            {"role": "user", "content": ""},
            {"role": "assistant", "content": "ok"},
        ]
        assert validate_messages(messages) is None

    def test_not_an_object(self) -> None:
        assert validate_messages([{"role": "user", "content": "a"}, "b"]) == "message 1 is not an object"

    def test_missing_role(self) -> None:
        assert validate_messages([{"content": "a"}]) == "message 0 missing or invalid role"

    def test_empty_role(self) -> None:
        assert validate_messages([{"role": "", "content": "a"}]) == "message 0 missing or invalid role"

    def test_non_string_role(self) -> None:
        assert validate_messages([{"role": 3, "content": "a"}]) == "message 0 missing or invalid role"

    def test_missing_content(self) -> None:
        messages = [{"role": "user", "content": "a"}, {"role": "assistant"}]
        assert validate_messages(messages) == "message 1 missing content"

    def test_null_content(self) -> None:
        assert validate_messages([{"role": "user", "content": None}]) == "message 0 missing content"

    def test_short_circuits_on_first_violation(self) -> None:
        messages = [{"role": "user"}, "junk"]
        assert validate_messages(messages) == "message 0 missing content"

    def test_empty(self) -> None:
        assert validate_messages([]) == "messages array is empty"


class TestValidateExample:
    """Validation dispatch by example type."""

    def test_supervised(self) -> None:
        example = SupervisedExample(messages=[{"role": "user", "content": None}])
        assert validate_example(example) == "message 0 missing content"

    def test_reinforcement(self) -> None:
        example = ReinforcementExample(messages=[{"role": "user", "content": "q"}])
        assert validate_example(example) is None

    def test_preference_passes(self) -> None:
        example = PreferenceExample(input="q", preferred_output="a", non_preferred_output="b")
        assert validate_example(example) is None
