import pytest

from spendly.services.routing import is_complex_request, select_provider

BOTH = {"openai", "gemini"}


@pytest.mark.parametrize(
    "preferred,available,complex_hint,expected",
    [
        ("openai", BOTH, False, ("openai", "preferred")),
        ("google", BOTH, True, ("gemini", "preferred")),
        ("openai", {"gemini"}, False, ("gemini", "default")),
        ("", BOTH, True, ("openai", "complex")),
        ("", BOTH, False, ("gemini", "default")),
        ("", {"openai"}, False, ("openai", "fallback")),
        ("", set(), True, ("gemini", "default")),
    ],
)
def test_select_provider(preferred, available, complex_hint, expected):
    choice = select_provider(preferred, available, complex_hint)
    assert (choice.provider, choice.reason) == expected


def test_complexity_by_keyword_and_length():
    assert is_complex_request("Can you forecast next month?")
    assert is_complex_request("Where can I save money?")
    assert not is_complex_request("how much this week")
    assert is_complex_request("x" * 101)
    assert not is_complex_request("x" * 100)
