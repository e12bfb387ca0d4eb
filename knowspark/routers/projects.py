from fastapi import APIRouter, HTTPException, Depends

from knowspark.dependencies import get_project_store
from knowspark.schemas import Project, ProjectCreate, ProjectList, ProjectUpdate, SyncIn, SyncOut
from knowspark.services.project_store import ProjectStore
from knowspark.utils.security import current_user_id, verify_api_key


router = APIRouter(dependencies=[Depends(verify_api_key)])


def _title(raw: str) -> str:
	title = (raw or "").strip()
	if not title:
		raise HTTPException(status_code=400, detail="Project title cannot be empty")
	return title


@router.get("/projects", response_model=ProjectList)
async def list_projects(user_id: str = Depends(current_user_id), store: ProjectStore = Depends(get_project_store)):
	return ProjectList(items=await store.list_projects(user_id))


@router.post("/projects", response_model=Project, status_code=201)
async def create_project(
	payload: ProjectCreate,
	user_id: str = Depends(current_user_id),
	store: ProjectStore = Depends(get_project_store),
):
	return await store.create_project(user_id, _title(payload.title))


@router.post("/projects/sync", response_model=SyncOut)
async def sync_projects(
	payload: SyncIn,
	user_id: str = Depends(current_user_id),
	store: ProjectStore = Depends(get_project_store),
):
	"""Merge projects kept client-side with the stored ones; the newest copy of each wins."""
	result = await store.sync_projects(user_id, payload.projects)
	return SyncOut(**result)


@router.get("/projects/{project_id}", response_model=Project)
async def get_project(project_id: str, user_id: str = Depends(current_user_id), store: ProjectStore = Depends(get_project_store)):
	try:
		return await store.get_required(project_id, user_id)
	except KeyError:
		raise HTTPException(status_code=404, detail="Project not found")


@router.patch("/projects/{project_id}", response_model=Project)
async def rename_project(
	project_id: str,
	payload: ProjectUpdate,
	user_id: str = Depends(current_user_id),
	store: ProjectStore = Depends(get_project_store),
):
	try:
		return await store.rename_project(project_id, _title(payload.title), user_id=user_id)
	except KeyError:
		raise HTTPException(status_code=404, detail="Project not found")


@router.delete("/projects/{project_id}")
async def delete_project(project_id: str, user_id: str = Depends(current_user_id), store: ProjectStore = Depends(get_project_store)):
	deleted = await store.delete_project(project_id, user_id=user_id)
	if not deleted:
		raise HTTPException(status_code=404, detail="Project not found")
	return {"status": "ok", "deleted": True}
