from __future__ import annotations
import html
import re

_TAG_RE = re.compile(r"<\/?[^>]+(>|$)")
_BREAK_RE = re.compile(r"<\s*(br|/p|/div|/li)\s*/?\s*>", re.IGNORECASE)
_SPACE_RE = re.compile(r"[ \t\f\v]+")


def strip_markup(text: str | None) -> str:
	"""Plain text of an editor fragment; line breaks survive as newlines."""
	if not text:
		return ""
	out = _BREAK_RE.sub("\n", str(text))
	out = _TAG_RE.sub("", out)
	out = html.unescape(out).replace("\xa0", " ")
	lines = [_SPACE_RE.sub(" ", line).strip() for line in out.splitlines()]
	return "\n".join(line for line in lines if line)
