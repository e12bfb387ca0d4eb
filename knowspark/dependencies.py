from knowspark.services.llm_service import LLMService, llm_service
from knowspark.services.project_store import ProjectStore, project_store


def get_project_store() -> ProjectStore:
	return project_store


def get_llm_service() -> LLMService:
	return llm_service
