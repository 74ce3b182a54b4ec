# src/playground_api/fast_json.py
"""
Fast JSON processing with orjson.

Used for SSE frames and for decoding the newline-delimited JSON the
inference backend streams back.
"""

from typing import Any, Union

import orjson


def dumps(obj: Any, **kwargs) -> str:
    """Encode to a str (orjson itself returns bytes)."""
    options = 0
    if kwargs.get('indent'):
        options |= orjson.OPT_INDENT_2
    if kwargs.get('sort_keys'):
        options |= orjson.OPT_SORT_KEYS

    return orjson.dumps(obj, option=options).decode('utf-8')


def loads(s: Union[str, bytes], **kwargs) -> Any:
    if isinstance(s, str):
        s = s.encode('utf-8')
    return orjson.loads(s)


JSONDecodeError = orjson.JSONDecodeError
