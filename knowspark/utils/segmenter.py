from __future__ import annotations

import re
import uuid
from typing import List, Optional, Sequence

from knowspark.schemas import Answer, ContentSegment, DiagramSegment, MarkdownSegment, RenderedSection
from knowspark.utils.diagrams import DiagramCandidate, extract_diagram_blocks
from knowspark.utils.latex import repair_latex


def segment_content(text: str, candidates: Optional[Sequence[DiagramCandidate]] = None) -> List[ContentSegment]:
	"""Split markdown into prose and diagram segments in document order.

	Valid diagram blocks are swapped for inert placeholder tokens, the text is
	cut at each token and every prose run gets LaTeX repair on its own.
	Invalid json blocks stay in the prose and render as plain code.
	"""
	if not text:
		return []
	if candidates is None:
		candidates = extract_diagram_blocks(text)

	valid = [(i, c) for i, c in enumerate(candidates) if c.graph is not None]
	if not valid:
		repaired = repair_latex(text).strip()
		if not repaired:
			return []
		return [MarkdownSegment(text=repaired, source=text.strip())]

	nonce = _placeholder_nonce(text)
	token_re = re.compile(rf"@@KSDIAGRAM{nonce}N(\d+)@@")
	by_index = {i: c for i, c in valid}

	# Highest offset first so earlier offsets stay valid after each substitution
	substituted = text
	for i, cand in sorted(valid, key=lambda pair: pair[1].start_offset, reverse=True):
		substituted = (
			substituted[:cand.start_offset]
			+ f"\n@@KSDIAGRAM{nonce}N{i}@@\n"
			+ substituted[cand.end_offset:]
		)

	segments: List[ContentSegment] = []
	for pos, part in enumerate(token_re.split(substituted)):
		if pos % 2 == 1:
			cand = by_index[int(part)]
			segments.append(DiagramSegment(
				graph=cand.graph,
				renderable=cand.graph.is_renderable,
				source=text[cand.start_offset:cand.end_offset],
			))
			continue
		# Each run is repaired alone: a diagram is a fence, and math never spans one
		run = repair_latex(part).strip()
		if run:
			segments.append(MarkdownSegment(text=run, source=part.strip()))
	return segments


def render_sections(answer: Answer) -> List[RenderedSection]:
	return [RenderedSection(name=s.name, segments=segment_content(s.content)) for s in answer.sections]


def _placeholder_nonce(text: str) -> str:
	while True:
		nonce = uuid.uuid4().hex[:8]
		if nonce not in text:
			return nonce
