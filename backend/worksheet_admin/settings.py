from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_MODEL")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")
	gemini_timeout_seconds: float = Field(default=30.0, validation_alias="GEMINI_TIMEOUT_SECONDS")

	# Supabase object storage for question images
	supabase_url: str | None = Field(default=None, validation_alias="SUPABASE_URL")
	supabase_key: str | None = Field(default=None, validation_alias="SUPABASE_KEY")
	storage_bucket: str = Field(default="questions", validation_alias="SUPABASE_BUCKET")

	# Auth configuration
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=120, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
	# Seed admin
	seed_username: str | None = Field(default=None, validation_alias="SEED_USERNAME")
	seed_password_plain: str | None = Field(default=None, validation_alias="SEED_PASSWORD")
	# Password given to accounts provisioned when a set is attached to an unknown email
	default_user_password: str = Field(default="123456", validation_alias="DEFAULT_USER_PASSWORD")

	# PDF export geometry, millimetres
	export_page_width_mm: float = Field(default=210.0, validation_alias="EXPORT_PAGE_WIDTH_MM")
	export_page_height_mm: float = Field(default=297.0, validation_alias="EXPORT_PAGE_HEIGHT_MM")
	export_margin_mm: float = Field(default=10.0, validation_alias="EXPORT_MARGIN_MM")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
	# Comma separated origins allowed to call the API from the admin SPA
	cors_origins: str = Field(default="http://localhost:5173,http://127.0.0.1:5173", validation_alias="CORS_ORIGINS")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

settings = Settings()
