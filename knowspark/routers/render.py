from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from knowspark.dependencies import get_project_store
from knowspark.schemas import RenderIn, RenderOut, RenderedQuestion, SharedProject
from knowspark.services.project_store import ProjectStore
from knowspark.utils.segmenter import render_sections, segment_content
from knowspark.utils.security import verify_api_key


router = APIRouter()

MAX_RENDER_CHARS = 200_000


@router.post("/render", response_model=RenderOut, dependencies=[Depends(verify_api_key)])
async def render_markdown(payload: RenderIn):
	"""Split answer markdown into repaired prose and diagram segments.

	Expected payload: { "content": "# Title ... ```json {...} ``` ..." }
	"""
	# Basic guardrail: hard-limit size to avoid abuse
	if len(payload.content) > MAX_RENDER_CHARS:
		raise HTTPException(status_code=413, detail="Content too large")
	return RenderOut(segments=segment_content(payload.content))


@router.get("/share/{project_id}", response_model=SharedProject)
async def share_project(project_id: str, store: ProjectStore = Depends(get_project_store)):
	"""Read-only view of a project for share links; answers come back pre-segmented."""
	project = await store.get(project_id)
	if project is None:
		raise HTTPException(status_code=404, detail="Project not found")
	questions = [
		RenderedQuestion(
			id=q.id,
			text=q.text,
			topic=q.topic,
			title=q.answer.title if q.answer else None,
			sections=render_sections(q.answer) if q.answer else [],
		)
		for q in project.questions
	]
	return SharedProject(id=project.id, title=project.title, updated_at=project.updated_at, questions=questions)
