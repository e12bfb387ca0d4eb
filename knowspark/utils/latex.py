"""Repair LLM-generated LaTeX so a KaTeX-class renderer accepts it.

The model output mixes prose, ``$``/``$$`` math and fenced code. Repairs run on
prose only; fenced code is left as written apart from dropping the ``json``
info string from its opening marker. ``repair_latex`` never raises.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, Iterator, Tuple

from knowspark.utils.fences import code_spans


logger = logging.getLogger(__name__)

# Inside math, \n followed by a command starting with "n" is LaTeX, not an escaped newline
_LATEX_AWARE_NEWLINE_RE = re.compile(
	r"\\n(?!(?:e|eq|eg|abla|ewline|u|ot|i|mid|leq|geq|exists|subseteq|supseteq|parallel|cong|sim|prec|succ)(?![A-Za-z]))"
)
_JSON_TAG_RE = re.compile(r"```json(?![A-Za-z0-9_+#.-])", re.IGNORECASE)
_MATH_RE = re.compile(r"\$\$([^$]+?)\$\$|\$([^$]+?)\$")
_GREEK_RE = re.compile(r"(?<!\\)\b(pi|sigma)\b", re.IGNORECASE)
_STAR_RE = re.compile(r"(?<=[A-Za-z0-9)])\s*\*\s*(?=[A-Za-z0-9(])")
_DOT_PAREN_RE = re.compile(r"\.\s*\)")
_TEXT_CMD_RE = re.compile(r"\\text\s*\{([^{}]*)\}")
_BAR_RE = re.compile(r"\\bar(?![A-Za-z])")
_MISENCODED_BULLET = "\u00e2\u20ac\u00a2"  # UTF-8 bullet read as cp1252

_GREEK = {"pi": r"\Pi", "sigma": r"\Sigma"}


def repair_latex(text: str) -> str:
	if not text:
		return ""
	try:
		return _repair(text)
	except Exception:
		logger.exception("LaTeX repair failed, returning text unchanged")
		return text


def unescape_serialized(text: str) -> str:
	"""Undo ``\\n`` escaping for a completion that was serialised whole.

	Only applies when ``text`` has no real newline but does contain escaped
	ones; ``\\n`` starting a LaTeX command such as ``\\neq`` is kept.
	"""
	if text and "\n" not in text and "\\n" in text:
		return _LATEX_AWARE_NEWLINE_RE.sub("\n", text)
	return text


def _repair(text: str) -> str:
	# Serialised whole: unescape everywhere so the fences become visible again
	text = unescape_serialized(text)

	parts: list[str] = []
	for is_code, chunk in _split_code(text):
		chunk = _JSON_TAG_RE.sub("```", chunk)
		if not is_code:
			chunk = _repair_prose(chunk)
		parts.append(chunk)
	return "".join(parts)


def _split_code(text: str) -> Iterator[Tuple[bool, str]]:
	pos = 0
	for start, end in code_spans(text):
		if start > pos:
			yield False, text[pos:start]
		yield True, text[start:end]
		pos = end
	if pos < len(text):
		yield False, text[pos:]


def _repair_prose(text: str) -> str:
	text = (
		text.replace("\\(", "$")
		.replace("\\)", "$")
		.replace("\\[", "$$")
		.replace("\\]", "$$")
	)
	text = _map_math_regions(
		text,
		lambda math: _fix_math(_LATEX_AWARE_NEWLINE_RE.sub("\n", math)),
		lambda prose: _strip_text_command(prose.replace("\\n", "\n")),
	)
	text = _BAR_RE.sub(lambda _: r"\overline", text)
	text = text.replace(_MISENCODED_BULLET, r"\cdot")
	return text


def _map_math_regions(text: str, inside: Callable[[str], str], outside: Callable[[str], str]) -> str:
	"""Apply ``inside`` to each non-greedy ``$$..$$``/``$..$`` body and ``outside`` to the rest."""
	out: list[str] = []
	pos = 0
	for m in _MATH_RE.finditer(text):
		out.append(outside(text[pos:m.start()]))
		if m.group(1) is not None:
			out.append("$$" + inside(m.group(1)) + "$$")
		else:
			out.append("$" + inside(m.group(2)) + "$")
		pos = m.end()
	out.append(outside(text[pos:]))
	return "".join(out)


def _fix_math(math: str) -> str:
	math = _GREEK_RE.sub(lambda m: _GREEK[m.group(1).lower()], math)
	math = _STAR_RE.sub(lambda _: r" \cdot ", math)
	# "(A+B.)" is almost always a product dot the model typed as a period
	math = _DOT_PAREN_RE.sub(lambda _: r"\cdot)", math)
	math = _TEXT_CMD_RE.sub(lambda m: r"\mathrm{" + m.group(1) + "}", math)
	return math


def _strip_text_command(text: str) -> str:
	return _TEXT_CMD_RE.sub(lambda m: m.group(1), text)
