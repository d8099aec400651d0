from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    environment: str = "development"

    # Database (food catalog + read-only agent queries)
    postgres_user: str = "cardiocare"
    postgres_password: str = "cardiocare"
    postgres_db: str = "cardiocare"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    database_url_override: Optional[str] = None

    # MongoDB (agent chat history)
    mongodb_host: str = "localhost"
    mongodb_port: int = 27017
    mongodb_user: str = "cardiocare"
    mongodb_password: str = "cardiocare"
    mongodb_db: str = "cardiocare_agent"
    chat_history_collection: str = "agent_chat_messages"

    # LLM (any OpenAI-compatible endpoint, Groq by default)
    llm_api_key: str = ""
    llm_base_url: Optional[str] = "https://api.groq.com/openai/v1"
    router_model: str = "llama-3.1-8b-instant"
    medical_model: str = "llama-3.3-70b-versatile"
    router_temperature: float = 0.1
    medical_temperature: float = 0.5
    llm_request_timeout_seconds: float = 30.0

    # Agent behaviour
    agent_history_limit: int = 5
    agent_max_tool_iterations: int = 5
    agent_turn_timeout_seconds: float = 60.0
    classifier_context_messages: int = 4
    chat_message_retention_hours: int = 24

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def mongodb_url(self) -> str:
        return (
            f"mongodb://{self.mongodb_user}:{self.mongodb_password}"
            f"@{self.mongodb_host}:{self.mongodb_port}/{self.mongodb_db}?authSource=admin"
        )

    class Config:
        env_file = ".env"


settings = Settings()
