from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.responses import JSONResponse
import logging

from knowspark.dependencies import get_llm_service, get_project_store
from knowspark.schemas import Answer, AskIn, Project, Question, QuestionAnalysis, QuestionCreate, QuestionUpdate, ReorderIn
from knowspark.services.answer_synthesizer import build_error_answer
from knowspark.services.llm_service import LLMService
from knowspark.services.project_store import ProjectStore
from knowspark.services.question_analyzer import analyze_question
from knowspark.utils.audit import auditor
from knowspark.utils.security import current_user_id, verify_api_key


logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_api_key)])


def _clean_question(text: str) -> str:
	question = (text or "").strip()
	if not question:
		raise HTTPException(status_code=400, detail="Question cannot be empty")
	return question


async def _generate_and_store(
	store: ProjectStore,
	llm: LLMService,
	project_id: str,
	question: Question,
	user_id: str,
) -> Question:
	if not store.begin_generation(question.id):
		raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An answer is already being generated for this question")
	try:
		answer = await llm.generate_answer(question.text)
	finally:
		store.end_generation(question.id)

	try:
		stored = await store.update_question_answer(project_id, question.id, answer, user_id=user_id)
	except KeyError:
		# Deleted while the model was busy: the result is stale, drop it
		logger.info("Question %s was removed during generation, discarding answer", question.id)
		raise HTTPException(status_code=404, detail="Question was removed while its answer was being generated")

	await auditor.log({
		"type": "qna",
		"project_id": project_id,
		"question_id": question.id,
		"question": question.text,
		"title": answer.title,
		"error": answer.is_error,
	})
	return stored


@router.post("/ask", response_model=Answer)
async def ask(payload: AskIn, llm: LLMService = Depends(get_llm_service)):
	"""Stateless ask: generate an answer without storing it."""
	question = _clean_question(payload.question)
	try:
		answer = await llm.generate_answer(question)
	except Exception as e:
		logger.exception("Error in ask route")
		error_answer = build_error_answer(str(e) or "Failed to generate answer", details=None)
		return JSONResponse(status_code=500, content={"error": str(e), **error_answer.model_dump()})
	await auditor.log({"type": "ask", "question": question, "title": answer.title, "error": answer.is_error})
	return answer


@router.post("/analyze", response_model=QuestionAnalysis)
async def analyze(payload: AskIn):
	return analyze_question(_clean_question(payload.question))


@router.post("/projects/{project_id}/questions", response_model=Question, status_code=201)
async def add_question(
	project_id: str,
	payload: QuestionCreate,
	user_id: str = Depends(current_user_id),
	store: ProjectStore = Depends(get_project_store),
	llm: LLMService = Depends(get_llm_service),
):
	text = _clean_question(payload.text)
	try:
		question = await store.add_question(project_id, text, topic=payload.topic, user_id=user_id)
	except KeyError:
		raise HTTPException(status_code=404, detail="Project not found")
	return await _generate_and_store(store, llm, project_id, question, user_id)


@router.post("/projects/{project_id}/questions/{question_id}/regenerate", response_model=Question)
async def regenerate_answer(
	project_id: str,
	question_id: str,
	user_id: str = Depends(current_user_id),
	store: ProjectStore = Depends(get_project_store),
	llm: LLMService = Depends(get_llm_service),
):
	try:
		question = await store.get_question(project_id, question_id, user_id=user_id)
	except KeyError:
		raise HTTPException(status_code=404, detail="Question not found")
	return await _generate_and_store(store, llm, project_id, question, user_id)


@router.patch("/projects/{project_id}/questions/{question_id}", response_model=Question)
async def update_question(
	project_id: str,
	question_id: str,
	payload: QuestionUpdate,
	user_id: str = Depends(current_user_id),
	store: ProjectStore = Depends(get_project_store),
):
	fields = payload.model_fields_set
	text = _clean_question(payload.text) if "text" in fields and payload.text is not None else None
	try:
		return await store.update_question(
			project_id,
			question_id,
			text=text,
			topic=payload.topic,
			clear_topic="topic" in fields and payload.topic is None,
			user_id=user_id,
		)
	except KeyError:
		raise HTTPException(status_code=404, detail="Question not found")


@router.delete("/projects/{project_id}/questions/{question_id}")
async def delete_question(
	project_id: str,
	question_id: str,
	user_id: str = Depends(current_user_id),
	store: ProjectStore = Depends(get_project_store),
):
	try:
		await store.delete_question(project_id, question_id, user_id=user_id)
	except KeyError:
		raise HTTPException(status_code=404, detail="Question not found")
	return {"status": "ok", "deleted": True}


@router.put("/projects/{project_id}/questions/order", response_model=Project)
async def reorder_questions(
	project_id: str,
	payload: ReorderIn,
	user_id: str = Depends(current_user_id),
	store: ProjectStore = Depends(get_project_store),
):
	try:
		return await store.reorder_questions(project_id, payload.question_ids, user_id=user_id)
	except KeyError:
		raise HTTPException(status_code=404, detail="Project not found")
