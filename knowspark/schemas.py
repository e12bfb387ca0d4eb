from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Annotated, Any, List, Literal, Optional, Union
from datetime import datetime, timezone
import uuid


def _new_id() -> str:
	return str(uuid.uuid4())


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


def _coerce_str(value: Any) -> Any:
	# Models often emit numeric ids ("id": 1); the renderer keys everything by string
	if isinstance(value, (int, float)) and not isinstance(value, bool):
		return str(value)
	return value


# --- Diagrams -------------------------------------------------------------

GATE_LABELS = ("INPUT", "OUTPUT", "AND", "OR", "XOR", "NOT", "NAND", "NOR")


class NodeData(BaseModel):
	model_config = ConfigDict(extra="allow")

	label: str = ""

	@field_validator("label", mode="before")
	@classmethod
	def coerce_label(cls, v):
		if v is None:
			return ""
		return _coerce_str(v)


class NodePosition(BaseModel):
	"""Layout hint only; the client is free to re-layout."""
	x: float = 0.0
	y: float = 0.0


class DiagramNode(BaseModel):
	model_config = ConfigDict(extra="allow")

	id: str
	type: Optional[str] = None
	data: NodeData = Field(default_factory=NodeData)
	position: NodePosition = Field(default_factory=NodePosition)

	@field_validator("id", mode="before")
	@classmethod
	def coerce_id(cls, v):
		return _coerce_str(v)

	@field_validator("data", "position", mode="before")
	@classmethod
	def default_when_null(cls, v):
		return {} if v is None else v

	@property
	def is_gate(self) -> bool:
		return self.data.label.upper() in GATE_LABELS


class DiagramEdge(BaseModel):
	model_config = ConfigDict(extra="allow")

	id: str
	source: str
	target: str

	@model_validator(mode="before")
	@classmethod
	def fill_missing_id(cls, data):
		if isinstance(data, dict) and not data.get("id"):
			data = {**data, "id": f"e-{data.get('source')}-{data.get('target')}"}
		return data

	@field_validator("id", "source", "target", mode="before")
	@classmethod
	def coerce_refs(cls, v):
		return _coerce_str(v)


class DiagramGraph(BaseModel):
	nodes: List[DiagramNode]
	edges: List[DiagramEdge]

	@property
	def is_renderable(self) -> bool:
		"""Both lists must be non-empty; otherwise the client shows a "no diagram data" placeholder."""
		return bool(self.nodes) and bool(self.edges)

	def dangling_edges(self) -> List[DiagramEdge]:
		node_ids = {n.id for n in self.nodes}
		return [e for e in self.edges if e.source not in node_ids or e.target not in node_ids]


# --- Rendered content -----------------------------------------------------

class MarkdownSegment(BaseModel):
	kind: Literal["markdown"] = "markdown"
	text: str
	source: str = Field(..., description="Segment text before LaTeX repair")


class DiagramSegment(BaseModel):
	kind: Literal["diagram"] = "diagram"
	graph: DiagramGraph
	renderable: bool
	source: str = Field(..., description="Fenced json block as it appeared in the answer")


ContentSegment = Annotated[Union[MarkdownSegment, DiagramSegment], Field(discriminator="kind")]


# --- Answers, questions, projects ----------------------------------------

class AnswerSection(BaseModel):
	name: str
	content: str


class Answer(BaseModel):
	id: str = Field(default_factory=_new_id)
	title: str
	sections: List[AnswerSection] = Field(..., min_length=1)

	def section(self, name: str) -> Optional[str]:
		for s in self.sections:
			if s.name == name:
				return s.content
		return None

	@property
	def is_error(self) -> bool:
		return self.section("Error") is not None


class Question(BaseModel):
	id: str = Field(default_factory=_new_id)
	text: str
	topic: Optional[str] = Field(default=None, description="Optional group name used to organise questions")
	created_at: datetime = Field(default_factory=_utcnow)
	answer: Optional[Answer] = None


class Project(BaseModel):
	id: str = Field(default_factory=_new_id)
	user_id: str = ""
	title: str
	created_at: datetime = Field(default_factory=_utcnow)
	updated_at: datetime = Field(default_factory=_utcnow)
	questions: List[Question] = Field(default_factory=list)

	@field_validator("created_at", "updated_at")
	@classmethod
	def assume_utc(cls, v: datetime) -> datetime:
		# Clients may send naive timestamps; merging compares them with stored ones
		return v if v.tzinfo else v.replace(tzinfo=timezone.utc)


class QuestionAnalysis(BaseModel):
	topic: Literal["programming", "boolean", "math", "theory"] = "theory"
	language: Optional[str] = None
	constraints: List[str] = Field(default_factory=list)
	requires_diagram: bool = False
	structure: List[str] = Field(default_factory=list)


# --- HTTP bodies ------------------------------------------------------------

class AskIn(BaseModel):
	question: str = Field(..., min_length=1)


class RenderIn(BaseModel):
	content: str = Field(default="", description="Markdown that may embed ```json diagram blocks")


class RenderOut(BaseModel):
	segments: List[ContentSegment]


class ProjectCreate(BaseModel):
	title: str = Field(..., min_length=1)


class ProjectUpdate(BaseModel):
	title: str = Field(..., min_length=1)


class ProjectList(BaseModel):
	items: List[Project]


class SyncIn(BaseModel):
	projects: List[Project] = Field(default_factory=list, description="Projects held by the client, e.g. from local storage")


class SyncOut(BaseModel):
	items: List[Project]
	local_count: int
	cloud_count: int
	merged_count: int


class QuestionCreate(BaseModel):
	text: str = Field(..., min_length=1)
	topic: Optional[str] = None


class QuestionUpdate(BaseModel):
	text: Optional[str] = Field(default=None, min_length=1)
	topic: Optional[str] = None


class ReorderIn(BaseModel):
	question_ids: List[str]


class RenderedSection(BaseModel):
	name: str
	segments: List[ContentSegment]


class RenderedQuestion(BaseModel):
	id: str
	text: str
	topic: Optional[str] = None
	title: Optional[str] = None
	sections: List[RenderedSection] = Field(default_factory=list)


class SharedProject(BaseModel):
	id: str
	title: str
	updated_at: datetime
	questions: List[RenderedQuestion]
