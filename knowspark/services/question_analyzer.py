from __future__ import annotations

from typing import List, Optional

from knowspark.schemas import QuestionAnalysis


PROGRAMMING_KEYWORDS = ("program", "code", "write a", "algorithm")
BOOLEAN_KEYWORDS = ("truth table", "boolean", "gate", "circuit", "logic")
MATH_KEYWORDS = ("simplify", "equation", "solve", "derive")
DIAGRAM_KEYWORDS = ("diagram", "flowchart", "logic circuit", "circuit diagram")

CONSTRAINT_KEYWORDS = (
	"without if",
	"without loop",
	"without ternary",
	"without using",
	"using switch",
	"using recursion",
	"using array",
	"using operator",
)

# Ordered: "javascript" must win over its "java" prefix
EXPLICIT_LANGUAGES = (
	(("javascript", "node.js", "nodejs", " node "), "javascript"),
	(("java",), "java"),
	(("python",), "python"),
	(("c++",), "cpp"),
	(("c language", " in c "), "c"),
)

LANGUAGE_HINTS = (
	(("scanner", "system.out", "main("), "java"),
	(("print(", "def ", "input("), "python"),
	(("printf", "scanf"), "c"),
	(("cout", "cin"), "cpp"),
)

SECTION_STRUCTURES = {
	"programming": ["Overview", "Code", "Sample I/O", "Summary"],
	"boolean": ["Overview", "Truth Table", "Simplified Expression", "Diagram", "Summary"],
	"math": ["Concept", "Steps", "Final Answer", "Summary"],
	"theory": ["Overview", "Explanation", "Summary"],
}


def _contains_any(text: str, keywords) -> bool:
	return any(k in text for k in keywords)


def detect_topic(question: str) -> str:
	lower = question.lower()
	if _contains_any(lower, PROGRAMMING_KEYWORDS):
		return "programming"
	if _contains_any(lower, BOOLEAN_KEYWORDS):
		return "boolean"
	if _contains_any(lower, MATH_KEYWORDS):
		return "math"
	return "theory"


def detect_language(question: str, infer: bool = False) -> Optional[str]:
	"""Explicitly named language, or with ``infer`` one guessed from API names in the text."""
	lower = f" {question.lower()} "
	for keywords, language in EXPLICIT_LANGUAGES:
		if _contains_any(lower, keywords):
			return language
	if infer:
		for keywords, language in LANGUAGE_HINTS:
			if _contains_any(lower, keywords):
				return language
	return None


def detect_constraints(question: str) -> List[str]:
	lower = question.lower()
	return [c for c in CONSTRAINT_KEYWORDS if c in lower]


def analyze_question(question: str) -> QuestionAnalysis:
	"""Classify a question to steer prompt construction.

	Pure keyword matching, case-insensitive; never raises. The returned
	``structure`` is a hint for the prompt, not enforced on the answer.
	"""
	question = question or ""
	lower = question.lower()
	topic = detect_topic(question)
	return QuestionAnalysis(
		topic=topic,
		language=detect_language(question, infer=topic == "programming"),
		constraints=detect_constraints(question),
		requires_diagram=_contains_any(lower, DIAGRAM_KEYWORDS),
		structure=list(SECTION_STRUCTURES[topic]),
	)
