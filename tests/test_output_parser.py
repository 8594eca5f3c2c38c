import pytest

from processor import OutputParseError, extract_json_array


def test_plain_array():
    assert extract_json_array('[{"id": "a"}]') == [{"id": "a"}]


def test_fenced_array_with_prose():
    raw = 'Here you go:\n```json\n[{"id": "a"}, {"id": "b"}]\n```\nLet me know.'
    assert extract_json_array(raw) == [{"id": "a"}, {"id": "b"}]


def test_array_embedded_in_text():
    raw = 'Result: [{"id": "a", "tags": ["x"]}] (end)'
    assert extract_json_array(raw) == [{"id": "a", "tags": ["x"]}]


def test_trailing_commas_are_repaired():
    assert extract_json_array('[{"id": "a",}, ]') == [{"id": "a"}]


def test_top_level_object_is_rejected():
    with pytest.raises(OutputParseError):
        extract_json_array('{"results": [{"id": "a"}]}')


@pytest.mark.parametrize("raw", ["", "   ", None, "not json at all", "[unterminated"])
def test_unusable_output(raw):
    with pytest.raises(OutputParseError):
        extract_json_array(raw)
