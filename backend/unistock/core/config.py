"""
Configuração centralizada da aplicação UNISTOCK
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Configuração da aplicação"""

    # API Settings
    API_TITLE: str = "UNISTOCK API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "API de integração de marketplaces do UNISTOCK"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = ""
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_JWT_SECRET: str = ""

    # CORS - Can be string (comma-separated) or JSON array
    # Example: "http://localhost:5173,https://app.unistock.com.br" or '["http://localhost:5173"]'
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:5173,http://localhost:8080"

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:5173"]

        import json
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Scheduled jobs (cron) authentication
    SYNC_API_KEY: str = ""

    # Marketplaces
    MERCADOLIVRE_APP_ID: str = ""
    MERCADOLIVRE_SECRET_KEY: str = ""
    AMAZON_LWA_CLIENT_ID: str = ""
    AMAZON_LWA_CLIENT_SECRET: str = ""
    AMAZON_SP_API_ENDPOINT: str = "https://sellingpartnerapi-na.amazon.com"
    META_APP_ID: str = ""
    META_APP_SECRET: str = ""

    # AI
    ANTHROPIC_API_KEY: str = ""
    CLAUDE_MODEL: str = "claude-haiku-4-5-20251001"

    # Stock forecast
    STOCK_FORECAST_CACHE_HOURS: int = 6

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
