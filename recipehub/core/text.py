import re

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_TAGS = re.compile(r"<[^>]*>")


def clean_text(text: str | None) -> str:
    """
    Normalize user-submitted text.
    Removes:
    - HTML tags
    - Control characters (newlines and tabs are kept)
    - Leading/trailing whitespace
    """
    if not text:
        return ""
    text = _TAGS.sub("", text)
    text = _CONTROL_CHARS.sub("", text)
    return text.strip()
