from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	# Model used to write the group report
	gemini_model: str = Field(default="gemini-1.5-flash", validation_alias="GEMINI_MODEL")
	# Model used to embed student answers and curriculum items
	gemini_embedding_model: str = Field(default="text-embedding-004", validation_alias="GEMINI_EMBEDDING_MODEL")
	# Seconds; unset means no limit on a slow Gemini call
	gemini_timeout_seconds: float | None = Field(default=None, validation_alias="GEMINI_TIMEOUT_SECONDS")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# Curriculum retrieval: "local" (cosine over curriculum_items) or "rpc" (match_curriculum_items SQL function)
	curriculum_search_backend: str = Field(default="local", validation_alias="CURRICULUM_SEARCH_BACKEND")
	match_threshold: float = Field(default=0.75, validation_alias="MATCH_THRESHOLD")
	match_count: int = Field(default=10, validation_alias="MATCH_COUNT")

	# Join codes handed out to students
	join_code_length: int = Field(default=6, validation_alias="JOIN_CODE_LENGTH")

	# Live response feed keep-alive interval (seconds)
	feed_keepalive_seconds: float = Field(default=15.0, validation_alias="FEED_KEEPALIVE_SECONDS")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
