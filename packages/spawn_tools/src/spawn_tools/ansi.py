from __future__ import annotations

import re

_ANSI_RE = re.compile(
    "|".join(
        [
            r"[\u001B\u009B][[\]()#;?]*(?:(?:(?:(?:;[-a-zA-Z\d\/#&.:=?%@~_]+)*"
            r"|[a-zA-Z\d]+(?:;[-a-zA-Z\d\/#&.:=?%@~_]*)*)?\u0007)",
            r"(?:(?:\d{1,4}(?:;\d{0,4})*)?[\dA-PR-TZcf-nq-uy=><~]))",
        ]
    )
)


def strip_ansi(text: str) -> str:
    if not isinstance(text, str):
        raise TypeError(f"Expected a `str`, got `{type(text).__name__}`")
    return _ANSI_RE.sub("", text)
