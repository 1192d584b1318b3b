from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    # Database
    db_user: str = Field(default='postgres', alias='DB_USER')
    db_host: str = Field(default='localhost', alias='DB_HOST')
    db_password: str = Field(default='', alias='DB_PASSWORD')
    db_port: int = Field(default=5432, alias='DB_PORT')
    db_name: str = Field(default='eventpass', alias='DB_NAME')

    # Ticket signing - generate with: openssl rand -hex 32
    qr_secret_key: Optional[str] = Field(default=None, alias='QR_SECRET_KEY')

    # AWS SES (para emails)
    aws_access_key_id: Optional[str] = Field(default=None, alias='AWS_ACCESS_KEY_ID')
    aws_secret_access_key: Optional[str] = Field(default=None, alias='AWS_SECRET_ACCESS_KEY')
    aws_region: Optional[str] = Field(default=None, alias='AWS_REGION')
    aws_ses_from_email: Optional[str] = Field(default=None, alias='AWS_SES_FROM_EMAIL')
    aws_ses_from_name: str = Field(default='EventPass', alias='AWS_SES_FROM_NAME')
    notification_max_attempts: int = Field(default=3, alias='NOTIFICATION_MAX_ATTEMPTS')

    # App settings
    app_env: str = Field(default="development", alias='APP_ENV')
    frontend_url: str = Field(default="http://localhost:3000", alias='FRONTEND_URL')

    # FastAPI specific
    port: int = Field(default=8001, alias='FASTAPI_PORT')
    host: str = Field(default="0.0.0.0", alias='FASTAPI_HOST')
    debug: bool = Field(default=False, alias='DEBUG')

    # CORS configuration
    cors_origins: str = Field(default="http://localhost:3000", alias='CORS_ORIGINS')

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def db_connection_params(self) -> dict:
        return {
            "host": self.db_host,
            "port": self.db_port,
            "user": self.db_user,
            "password": self.db_password,
            "database": self.db_name,
        }

settings = Settings()
