from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError

from knowspark.schemas import DiagramGraph
from knowspark.utils.fences import pair_fences


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiagramCandidate:
	raw_json: str
	start_offset: int  # opening ``` of the fenced block
	end_offset: int  # one past the closing ```
	graph: Optional[DiagramGraph]

	@property
	def is_valid(self) -> bool:
		return self.graph is not None


def extract_diagram_blocks(text: str) -> List[DiagramCandidate]:
	"""Find every ```json block in ``text`` and try to read it as a diagram.

	Blocks that fail to parse stay in the result with ``graph=None`` so callers
	can leave them in the prose; they never abort the rest of the document.
	"""
	if not text:
		return []

	candidates: List[DiagramCandidate] = []
	last_end = -1
	for block in pair_fences(text):
		if block.tag != "json" or block.start < last_end:
			continue
		raw = block.content(text).strip()
		candidates.append(DiagramCandidate(
			raw_json=raw,
			start_offset=block.start,
			end_offset=block.end,
			graph=parse_diagram(raw, offset=block.start),
		))
		last_end = block.end
	return candidates


def parse_diagram(raw: str, offset: int = 0) -> Optional[DiagramGraph]:
	try:
		data = json.loads(raw)
	except ValueError as e:
		logger.warning("Skipping json block at %d: invalid JSON (%s)", offset, e)
		return None

	if not isinstance(data, dict) or not isinstance(data.get("nodes"), list) or not isinstance(data.get("edges"), list):
		logger.warning("Skipping json block at %d: nodes/edges arrays missing", offset)
		return None

	try:
		graph = DiagramGraph.model_validate({"nodes": data["nodes"], "edges": data["edges"]})
	except ValidationError as e:
		logger.warning("Skipping json block at %d: %d malformed node/edge entries", offset, e.error_count())
		return None

	dangling = graph.dangling_edges()
	if dangling:
		# Passed through as-is; the renderer decides how to draw them
		logger.warning(
			"Diagram at %d has %d edge(s) pointing at unknown nodes: %s",
			offset, len(dangling), ", ".join(e.id for e in dangling),
		)
	return graph


def is_renderable(graph: Optional[DiagramGraph]) -> bool:
	return graph is not None and graph.is_renderable
