from __future__ import annotations

import logging
import re
from typing import Optional

from knowspark.schemas import Answer, AnswerSection
from knowspark.utils.fences import code_spans, find_closing_fence, in_spans, outermost_blocks, pair_fences, scan_fences
from knowspark.utils.latex import unescape_serialized


logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^[ \t]*#+[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)

DEFAULT_ERROR_DETAILS = "Try again later or verify your completion API key and network connection."


class EmptyCompletionError(Exception):
	"""The completion service answered with nothing usable."""

	def __init__(self, message: str = "Empty completion") -> None:
		super().__init__(message)


def extract_body(completion: str) -> str:
	"""Pick the answer body out of a raw completion.

	Preference order: the inside of the first ```markdown wrapper (nested
	fenced blocks kept intact), the first top-level untagged fenced block,
	then the whole completion.
	"""
	tokens = scan_fences(completion)
	for i, tok in enumerate(tokens):
		if tok.tag.lower() != "markdown":
			continue
		closing = find_closing_fence(tokens, i)
		if closing is None:
			logger.warning("Unterminated ```markdown wrapper, using the rest of the completion")
			return completion[tok.end:].strip()
		return completion[tok.end:tokens[closing].start].strip()

	for block in outermost_blocks(pair_fences(completion, tokens)):
		if not block.tag:
			return block.content(completion).strip()

	return completion.strip()


def extract_title(body: str, fallback: str) -> str:
	spans = code_spans(body)
	for m in _HEADING_RE.finditer(body):
		if in_spans(spans, m.start()):
			continue
		title = m.group(1).strip().strip("*_").strip()
		if title:
			return title
	return fallback


def synthesize_answer(question: str, completion: Optional[str]) -> Answer:
	"""Turn one raw completion into an Answer with a single Overview section.

	Raises EmptyCompletionError when there is nothing to show; it never returns
	a partially filled Answer.
	"""
	if not completion or not completion.strip():
		raise EmptyCompletionError()

	body = extract_body(unescape_serialized(completion))
	if not body:
		raise EmptyCompletionError()

	return Answer(
		title=extract_title(body, fallback=question),
		sections=[AnswerSection(name="Overview", content=body)],
	)


def build_error_answer(message: str, details: Optional[str] = DEFAULT_ERROR_DETAILS) -> Answer:
	sections = [AnswerSection(name="Error", content=message)]
	if details:
		sections.append(AnswerSection(name="Details", content=details))
	return Answer(title="Error", sections=sections)
