from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List
from dotenv import load_dotenv


# Ensure .env is loaded eagerly
load_dotenv(dotenv_path=".env")


class Settings(BaseSettings):
	# Server
	host: str = "0.0.0.0"
	port: int = 8000
	cors_allow_origins: List[str] = [
		"http://localhost:3000",
		"http://127.0.0.1:3000",
	]

	# Auth
	api_key: str | None = None  # simple bearer key if provided

	# Completion provider selection
	llm_provider: str = "gemini"  # options: gemini, groq

	# Google Gemini
	gemini_api_key: str | None = None
	gemini_model: str = "gemini-2.5-flash"

	# Groq
	groq_api_key: str | None = None
	groq_model: str = "openai/gpt-oss-120b"

	answer_temperature: float = 0.4
	max_tokens: int | None = None

	# Storage
	data_dir: str = "data"

	# Logging
	log_level: str = "INFO"
	analytics_path: str | None = None  # e.g., logs/qna.jsonl

	@field_validator("answer_temperature")
	@classmethod
	def clamp_temperature(cls, v: float) -> float:
		return max(0.0, min(1.0, v))

	@field_validator("cors_allow_origins", mode="before")
	@classmethod
	def parse_cors_origins(cls, v):
		# Allow environment variable override
		if isinstance(v, str):
			return [origin.strip() for origin in v.split(",")]
		return v

	class Config:
		env_file = ".env"
		env_file_encoding = "utf-8"


settings = Settings()
