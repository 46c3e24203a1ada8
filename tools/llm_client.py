"""LLM response parsing utilities.

Providers return raw text; these helpers turn it into JSON, tolerating
markdown code fences, prose around the payload, and raw control
characters inside strings.
"""

import json
import re

# Precompiled regex for JSON extraction
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

# Lenient decoder that allows control characters (raw newlines, tabs) inside
# JSON strings; LLMs frequently produce these instead of proper \n escapes.
_LENIENT_DECODER = json.JSONDecoder(strict=False)


def _try_loads(text: str):
    """Try parsing JSON, first strictly then leniently."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    try:
        return _LENIENT_DECODER.decode(text)
    except json.JSONDecodeError:
        pass
    raise json.JSONDecodeError("", text, 0)


def parse_json_payload(text: str) -> dict | list:
    """Extract and parse a JSON object or array from LLM response text.

    Raises:
        ValueError: Empty text, or no parseable object/array found.
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("Empty LLM response")

    try:
        result = _try_loads(text)
        if isinstance(result, (dict, list)):
            return result
    except json.JSONDecodeError:
        pass

    match = _JSON_FENCE_RE.search(text)
    if match:
        try:
            result = _try_loads(match.group(1).strip())
            if isinstance(result, (dict, list)):
                return result
        except json.JSONDecodeError:
            pass

    # Whichever bracket opens first is the outer payload
    pairs = sorted(
        [("{", "}"), ("[", "]")],
        key=lambda p: text.find(p[0]) if text.find(p[0]) != -1 else len(text),
    )
    for start_char, end_char in pairs:
        start = text.find(start_char)
        end = text.rfind(end_char)
        if start != -1 and end != -1 and end > start:
            try:
                return _try_loads(text[start:end + 1])
            except json.JSONDecodeError:
                continue

    raise ValueError(f"Failed to parse JSON from LLM response: {text[:200]}...")


def extract_list(payload: dict | list, *keys: str) -> list:
    """Return ``payload`` if it is a list, else the first list found under ``keys``.

    Raises:
        ValueError: No list present.
    """
    if isinstance(payload, list):
        return payload
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list):
            return value
    raise ValueError(f"Expected a JSON array or an object with one of {list(keys)}")
