from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional
import asyncio
import json
import logging

from pydantic import ValidationError

from knowspark.config import settings
from knowspark.schemas import Answer, Project, Question


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


def merge_projects(local: Iterable[Project], cloud: Iterable[Project]) -> List[Project]:
	"""Cloud copies first, replaced by a local copy only when it was updated later."""
	merged: Dict[str, Project] = {}
	for project in cloud:
		merged[project.id] = project
	for project in local:
		existing = merged.get(project.id)
		if existing is None or project.updated_at > existing.updated_at:
			merged[project.id] = project
	return list(merged.values())


class ProjectStore:
	"""Project/question document store, one JSON file per project.

	Everything is held in memory and written through on each change.
	Lookups raise KeyError for unknown ids, including projects owned by
	another user.
	"""

	def __init__(self, data_dir: str | Path | None = None) -> None:
		self._projects: Dict[str, Project] = {}
		self._lock = asyncio.Lock()
		self._data_dir = Path(data_dir or settings.data_dir) / "projects"
		self._data_dir.mkdir(parents=True, exist_ok=True)
		self._pending: set[str] = set()
		self._load_all()

	def _project_path(self, project_id: str) -> Path:
		return self._data_dir / f"{project_id}.json"

	def _load_all(self) -> None:
		for p in self._data_dir.glob("*.json"):
			try:
				with p.open("r", encoding="utf-8") as f:
					project = Project.model_validate(json.load(f))
			except (OSError, ValueError, ValidationError) as e:
				logger.warning("Skipping unreadable project file %s: %s", p.name, e)
				continue
			self._projects[project.id] = project

	def _save(self, project: Project) -> None:
		path = self._project_path(project.id)
		try:
			with path.open("w", encoding="utf-8") as f:
				f.write(project.model_dump_json(indent=2))
		except OSError:
			# Memory stays authoritative; the next write retries the file
			logger.exception("Failed to persist project %s", project.id)

	def _touch(self, project: Project) -> None:
		project.updated_at = _utcnow()
		self._save(project)

	async def get(self, project_id: str, user_id: Optional[str] = None) -> Optional[Project]:
		project = self._projects.get(project_id)
		if project is None or (user_id is not None and project.user_id != user_id):
			return None
		return project

	async def get_required(self, project_id: str, user_id: Optional[str] = None) -> Project:
		project = await self.get(project_id, user_id)
		if project is None:
			raise KeyError("project not found")
		return project

	async def get_question(self, project_id: str, question_id: str, user_id: Optional[str] = None) -> Question:
		project = await self.get_required(project_id, user_id)
		for question in project.questions:
			if question.id == question_id:
				return question
		raise KeyError("question not found")

	async def list_projects(self, user_id: str) -> List[Project]:
		items = [p for p in self._projects.values() if p.user_id == user_id]
		# Newest first
		items.sort(key=lambda p: p.updated_at, reverse=True)
		return items

	async def create_project(self, user_id: str, title: str) -> Project:
		async with self._lock:
			project = Project(user_id=user_id, title=title.strip())
			self._projects[project.id] = project
			self._save(project)
			return project

	async def rename_project(self, project_id: str, title: str, user_id: Optional[str] = None) -> Project:
		async with self._lock:
			project = await self.get_required(project_id, user_id)
			project.title = title.strip()
			self._touch(project)
			return project

	async def delete_project(self, project_id: str, user_id: Optional[str] = None) -> bool:
		"""Delete a project and its file. Returns True if deleted."""
		async with self._lock:
			if await self.get(project_id, user_id) is None:
				return False
			self._projects.pop(project_id, None)
			path = self._project_path(project_id)
			try:
				path.unlink(missing_ok=True)
			except OSError:
				logger.exception("Failed to remove project file %s", path)
			return True

	async def add_question(self, project_id: str, text: str, topic: Optional[str] = None, user_id: Optional[str] = None) -> Question:
		async with self._lock:
			project = await self.get_required(project_id, user_id)
			question = Question(text=text.strip(), topic=topic)
			project.questions.append(question)
			self._touch(project)
			return question

	async def update_question_answer(self, project_id: str, question_id: str, answer: Answer, user_id: Optional[str] = None) -> Question:
		async with self._lock:
			project = await self.get_required(project_id, user_id)
			question = await self.get_question(project_id, question_id, user_id)
			question.answer = answer
			self._touch(project)
			return question

	async def update_question(
		self,
		project_id: str,
		question_id: str,
		*,
		text: Optional[str] = None,
		topic: Optional[str] = None,
		clear_topic: bool = False,
		user_id: Optional[str] = None,
	) -> Question:
		async with self._lock:
			project = await self.get_required(project_id, user_id)
			question = await self.get_question(project_id, question_id, user_id)
			if text is not None:
				question.text = text.strip()
			if clear_topic:
				question.topic = None
			elif topic is not None:
				question.topic = topic.strip() or None
			self._touch(project)
			return question

	async def delete_question(self, project_id: str, question_id: str, user_id: Optional[str] = None) -> None:
		async with self._lock:
			project = await self.get_required(project_id, user_id)
			remaining = [q for q in project.questions if q.id != question_id]
			if len(remaining) == len(project.questions):
				raise KeyError("question not found")
			project.questions = remaining
			self._touch(project)

	async def reorder_questions(self, project_id: str, question_ids: List[str], user_id: Optional[str] = None) -> Project:
		"""Order questions by ``question_ids``.

		Unknown ids are ignored and questions missing from the list are dropped.
		"""
		async with self._lock:
			project = await self.get_required(project_id, user_id)
			by_id = {q.id: q for q in project.questions}
			ordered: List[Question] = []
			for qid in question_ids:
				question = by_id.pop(qid, None)
				if question is not None:
					ordered.append(question)
			if by_id:
				logger.info("Reorder of project %s dropped %d question(s)", project_id, len(by_id))
			project.questions = ordered
			self._touch(project)
			return project

	async def sync_projects(self, user_id: str, incoming: List[Project]) -> Dict[str, object]:
		"""Merge a client's projects into the store and return the merged set."""
		async with self._lock:
			stored = [p for p in self._projects.values() if p.user_id == user_id]
			foreign = {pid for pid, p in self._projects.items() if p.user_id != user_id}
			local = []
			for project in incoming:
				if project.id in foreign:
					logger.warning("Ignoring synced project %s owned by another user", project.id)
					continue
				local.append(project.model_copy(update={"user_id": user_id}))
			merged = merge_projects(local, stored)
			for project in merged:
				self._projects[project.id] = project
				self._save(project)
			merged.sort(key=lambda p: p.updated_at, reverse=True)
			return {
				"items": merged,
				"local_count": len(local),
				"cloud_count": len(stored),
				"merged_count": len(merged),
			}

	def begin_generation(self, question_id: str) -> bool:
		"""Mark a question as generating; False if it already is."""
		if question_id in self._pending:
			return False
		self._pending.add(question_id)
		return True

	def end_generation(self, question_id: str) -> None:
		self._pending.discard(question_id)

	def is_generating(self, question_id: str) -> bool:
		return question_id in self._pending


project_store = ProjectStore()
