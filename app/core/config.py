# app/core/config.py

import json
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables or .env file.
    BaseSettings automatically reads environment variables into these fields.
    """
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Core application settings
    PROJECT_NAME: str = "LectureCast"
    BACKEND_CORS_ORIGINS: Optional[List[str]] = None
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str = "sqlite:///./lecturecast.db"

    # Object storage ("local" writes under UPLOADS_DIR, "s3" uses the bucket below)
    STORAGE_BACKEND: str = "local"
    UPLOADS_DIR: str = "./uploads"
    PUBLIC_BASE_URL: str = ""
    S3_BUCKET: Optional[str] = None
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    S3_ENDPOINT_URL: Optional[str] = None

    # OpenAI (chat completions for scripts, audio/speech for narration)
    openai_api_key: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    AI_MODEL: str = "gpt-4"
    AI_MAX_TOKENS: int = 500
    AI_TEMPERATURE: float = 0.7
    TTS_MODEL: str = "tts-1"
    PROVIDER_TIMEOUT_SECONDS: float = 60.0
    BASE_LECTURE_PROMPT: str = (
        "Explain the slide as you would to university students attending the lecture."
    )

    # Pipeline pacing (seconds between provider calls)
    SCRIPT_REQUEST_DELAY_SECONDS: float = 1.0
    SPEECH_REQUEST_DELAY_SECONDS: float = 2.0
    SLIDE_RENDER_DPI: int = 110

    # Upload limits
    MAX_FILE_SIZE: int = 10 * 1024 * 1024
    ALLOWED_FILE_TYPES: str = "pptx,pdf"

    @field_validator('BACKEND_CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from JSON string if needed."""
        if v is None or v == "":
            return None
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # If it's a single origin string, return as list
                return [v]
        return v

    @property
    def allowed_file_types(self) -> List[str]:
        return [ext.strip().lower().lstrip('.') for ext in self.ALLOWED_FILE_TYPES.split(',') if ext.strip()]


# Create a global settings instance for use throughout the application
settings = Settings()
