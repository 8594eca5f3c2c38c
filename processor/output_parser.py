"""
Output Parser - Recover a JSON array from LLM output.

Models wrap JSON in code fences, add prose around it or leave trailing
commas. The parser strips fences, then takes the first substring that
decodes to a JSON array.
"""
import json
import re
from typing import Any, List, Optional


class OutputParseError(ValueError):
    """LLM output contained no usable JSON array."""
    pass


_CODE_BLOCK = re.compile(r'```(?:json)?\s*\n?([\s\S]*?)\n?```')


def strip_code_fences(text: str) -> str:
    """Return the contents of the first code block, or the text unchanged."""
    match = _CODE_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _try_fix_json(json_str: str) -> str:
    """Try to fix common JSON issues."""
    fixed = re.sub(r',\s*}', '}', json_str)
    fixed = re.sub(r',\s*]', ']', fixed)
    return fixed


def _first_array(text: str) -> Optional[List[Any]]:
    decoder = json.JSONDecoder()
    for match in re.finditer(r'\[', text):
        try:
            value, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(value, list):
            return value
    return None


def extract_json_array(raw_output: Optional[str]) -> List[Any]:
    """
    Parse the first JSON array in an LLM response.

    Raises:
        OutputParseError: empty output, no array found, or a non-array top level
    """
    if not raw_output or not raw_output.strip():
        raise OutputParseError("Empty response")

    text = strip_code_fences(raw_output)

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    else:
        if not isinstance(data, list):
            raise OutputParseError(f"Expected JSON array, got {type(data).__name__}")
        return data

    for candidate in (text, _try_fix_json(text)):
        array = _first_array(candidate)
        if array is not None:
            return array

    raise OutputParseError("No JSON array found in response")
