from __future__ import annotations

import logging
from typing import Optional

import anyio
from groq import Groq
try:
	import google.generativeai as genai
except Exception:
	genai = None

from knowspark.config import settings
from knowspark.schemas import Answer, QuestionAnalysis
from knowspark.services.answer_synthesizer import EmptyCompletionError, build_error_answer, synthesize_answer
from knowspark.services.question_analyzer import analyze_question


logger = logging.getLogger(__name__)


KNOWSPARK_PROMPT = (
	"You are a Markdown content generator for an educational web app that teaches programming, "
	"logic and Boolean algebra.\n\n"

	"Formatting Rules:\n\n"

	"1. **All math must be written in LaTeX syntax inside math mode.**\n"
	"   - Inline math: $E = mc^2$\n"
	"   - Block math:\n"
	"     $$\n"
	"     F = \\overline{A}\\overline{B}C + ABC'\n"
	"     $$\n\n"

	"2. Use correct LaTeX commands:\n"
	"   - Σ (Sigma): \\Sigma\n"
	"   - Π (Pi): \\Pi\n"
	"   - Multiplication / AND: \\cdot\n"
	"   - NOT / complement: \\overline{}\n\n"

	"3. Always wrap the entire answer inside a markdown code block:\n\n"
	"   ```markdown\n"
	"   <markdown content here>\n"
	"   ```\n\n"

	"4. Do **not** use words like \"Sigma\" or \"Pi\"; always use LaTeX symbols.\n\n"

	"5. Use proper Markdown tables (| A | B | C | F |).\n\n"

	"6. Include equations and expressions using double-dollar blocks for readability.\n\n"

	"7. Start the answer with a single level-one heading that names the topic.\n\n"

	"Example:\n\n"
	"```markdown\n"
	"# Example Boolean Function\n\n"
	"| A | B | C | F |\n"
	"|:-:|:-:|:-:|:-:|\n"
	"| 0 | 0 | 0 | 1 |\n"
	"| 0 | 0 | 1 | 0 |\n"
	"| 1 | 1 | 1 | 1 |\n\n"
	"$$\n"
	"F(A,B,C) = \\Sigma m(0,2,5,7)\n"
	"$$\n\n"
	"$$\n"
	"F(A,B,C) = \\Pi M(1,3,4,6)\n"
	"$$\n"
	"```\n"
)

DIAGRAM_RULES = (
	"\n\nLogic Circuit Diagram:"
	"\n- Draw the circuit as ONE fenced ```json block inside the markdown answer, placed where the diagram belongs."
	"\n- Shape: {\"nodes\": [{\"id\": \"A\", \"data\": {\"label\": \"INPUT\"}, \"position\": {\"x\": 0, \"y\": 0}}], "
	"\"edges\": [{\"id\": \"e1\", \"source\": \"A\", \"target\": \"G1\"}]}"
	"\n- Node labels: INPUT, OUTPUT, AND, OR, XOR, NOT, NAND, NOR, a single-letter signal name, or the output signal name."
	"\n- Every edge source and target must be a node id from the same block. Ids must be unique."
	"\n- The JSON must be valid: double quotes, no comments, no trailing commas."
)


class CompletionError(Exception):
	"""The completion service could not produce text (transport, auth, quota, model)."""


def describe_completion_error(error: Exception, model: Optional[str] = None) -> str:
	if isinstance(error, EmptyCompletionError):
		return "The model returned an empty response. Please regenerate the answer."
	message = str(error)
	lower = message.lower()
	if "api key" in lower or "401" in lower or "403" in lower:
		return "API key error: please check the completion service API key in the server configuration."
	if "404" in lower or "not found" in lower:
		return f"Model not found: {model or 'unknown'}. Please check the configured model name."
	if "429" in lower or "rate limit" in lower or "quota" in lower:
		return "Rate limit exceeded: please try again in a few moments."
	return f"Error: {message}"


class LLMService:
	def __init__(self) -> None:
		self._client: Groq | None = None

	def _ensure_client(self):
		provider = (settings.llm_provider or "gemini").lower()
		if provider == "groq":
			api_key = settings.groq_api_key
			if not api_key:
				self._client = None
				return None
			if self._client is None or not isinstance(self._client, Groq):
				self._client = Groq(api_key=api_key)
			return self._client
		elif provider == "gemini":
			if genai is None:
				return None
			api_key = settings.gemini_api_key
			if not api_key:
				return None
			# For gemini we return a configured module handle to keep usage simple
			genai.configure(api_key=api_key)
			return genai
		else:
			return None

	@property
	def provider(self) -> str:
		return (settings.llm_provider or "gemini").lower()

	@property
	def model(self) -> str:
		return settings.groq_model if self.provider == "groq" else settings.gemini_model

	@property
	def enabled(self) -> bool:
		if self.provider == "groq":
			return bool(settings.groq_api_key)
		if self.provider == "gemini":
			return genai is not None and bool(settings.gemini_api_key)
		return False

	def _structure_overrides(self, analysis: QuestionAnalysis) -> str:
		if not analysis.structure:
			return ""
		headings = ", ".join(analysis.structure)
		return (
			"\n\nAnswer Structure:"
			f"\n- Use these second-level headings in order: {headings}."
			"\n- Skip a heading only when it clearly does not apply."
		)

	def _language_overrides(self, analysis: QuestionAnalysis) -> str:
		if analysis.topic != "programming":
			return ""
		language = analysis.language or "the language the question implies"
		return (
			"\n\nCode Rules:"
			f"\n- Write the implementation in {language}, in a fenced block tagged with the language name."
			"\n- Show sample input and the exact output it produces."
		)

	def _constraint_overrides(self, analysis: QuestionAnalysis) -> str:
		if not analysis.constraints:
			return ""
		rules = "".join(f"\n- Respect the constraint: {c}." for c in analysis.constraints)
		return "\n\nConstraints from the question:" + rules

	def build_prompt(self, question: str, analysis: Optional[QuestionAnalysis] = None) -> str:
		analysis = analysis or analyze_question(question)
		prompt = KNOWSPARK_PROMPT
		prompt = prompt + self._structure_overrides(analysis)
		prompt = prompt + self._language_overrides(analysis)
		prompt = prompt + self._constraint_overrides(analysis)
		if analysis.requires_diagram or analysis.topic == "boolean":
			prompt = prompt + DIAGRAM_RULES
		return prompt + "\n\nNow generate your answer for:\n\n" + question

	async def complete(self, prompt: str) -> str:
		"""Send ``prompt`` to the configured provider and return the raw text."""
		client = self._ensure_client()
		if client is None:
			raise CompletionError(f"API key not configured for completion provider '{self.provider}'")

		provider = self.provider
		model = self.model

		def _call() -> str:
			if provider == "groq":
				kwargs = {
					"model": model,
					"messages": [{"role": "user", "content": prompt}],
					"temperature": settings.answer_temperature,
				}
				if settings.max_tokens:
					kwargs["max_tokens"] = settings.max_tokens
				resp = client.chat.completions.create(**kwargs)
				return resp.choices[0].message.content or ""
			gmodel = client.GenerativeModel(model)
			resp = gmodel.generate_content(prompt)
			return getattr(resp, "text", None) or (resp.candidates[0].content.parts[0].text if getattr(resp, "candidates", None) else "")

		logger.info("Calling %s model %s", provider, model)
		try:
			text = await anyio.to_thread.run_sync(_call)
		except Exception as e:
			logger.error("Completion request to %s failed: %s", provider, e)
			raise CompletionError(str(e)) from e
		return (text or "").strip()

	async def generate_answer(self, question: str, analysis: Optional[QuestionAnalysis] = None) -> Answer:
		"""Ask the model and always come back with an Answer.

		Failures become an Error answer the caller stores like any other; there
		are no automatic retries.
		"""
		analysis = analysis or analyze_question(question)
		prompt = self.build_prompt(question, analysis)
		try:
			completion = await self.complete(prompt)
			return synthesize_answer(question, completion)
		except (CompletionError, EmptyCompletionError) as e:
			logger.warning("Answer generation failed for %r: %s", question[:80], e)
			return build_error_answer(describe_completion_error(e, self.model))


llm_service = LLMService()
