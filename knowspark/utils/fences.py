from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple


# A fence marker plus the info string glued to it (```json, ```markdown, ```c++).
# The tag ends at the first character that cannot appear in a language name,
# so a literal \n or a "{" glued to the marker is already content.
FENCE_RE = re.compile(r"```([A-Za-z0-9_+#.-]*)")


@dataclass(frozen=True)
class FenceToken:
	start: int
	end: int
	tag: str

	@property
	def is_bare(self) -> bool:
		return not self.tag


@dataclass(frozen=True)
class FencedBlock:
	tag: str
	start: int  # first backtick of the opening marker
	end: int  # one past the last backtick of the closing marker
	content_start: int
	content_end: int
	depth: int  # 0 when no other block is open around it

	def content(self, text: str) -> str:
		return text[self.content_start:self.content_end]


def scan_fences(text: str) -> List[FenceToken]:
	"""Tokenize ``text`` on triple-backtick boundaries."""
	if not text:
		return []
	return [FenceToken(m.start(), m.end(), m.group(1)) for m in FENCE_RE.finditer(text)]


def pair_fences(text: str, tokens: Optional[Sequence[FenceToken]] = None) -> List[FencedBlock]:
	"""Pair fence markers into blocks with a single depth-counting pass.

	A tagged marker always opens a block. A bare marker closes the innermost
	open block, or opens a generic block when nothing is open. Openers that are
	never closed produce no block. Result is ordered by opening position.
	"""
	if tokens is None:
		tokens = scan_fences(text)
	stack: List[FenceToken] = []
	blocks: List[FencedBlock] = []
	for tok in tokens:
		if tok.tag or not stack:
			stack.append(tok)
			continue
		opener = stack.pop()
		blocks.append(FencedBlock(
			tag=opener.tag.lower(),
			start=opener.start,
			end=tok.end,
			content_start=opener.end,
			content_end=tok.start,
			depth=len(stack),
		))
	blocks.sort(key=lambda b: b.start)
	return blocks


def find_closing_fence(tokens: Sequence[FenceToken], opener_index: int) -> Optional[int]:
	"""Index of the bare marker that closes ``tokens[opener_index]``.

	Tagged markers met on the way open nested blocks, so the closer is the first
	bare marker after every nested block has been closed.
	"""
	depth = 1
	for i in range(opener_index + 1, len(tokens)):
		if tokens[i].tag:
			depth += 1
		else:
			depth -= 1
			if depth == 0:
				return i
	return None


def outermost_blocks(blocks: Sequence[FencedBlock]) -> List[FencedBlock]:
	outer: List[FencedBlock] = []
	last_end = -1
	for block in sorted(blocks, key=lambda b: b.start):
		if block.start >= last_end:
			outer.append(block)
			last_end = block.end
	return outer


def code_spans(text: str) -> List[Tuple[int, int]]:
	"""``[start, end)`` ranges covered by fenced code, outermost blocks only."""
	return [(b.start, b.end) for b in outermost_blocks(pair_fences(text))]


def in_spans(spans: Sequence[Tuple[int, int]], pos: int) -> bool:
	i = bisect_right([s for s, _ in spans], pos) - 1
	return i >= 0 and spans[i][0] <= pos < spans[i][1]
