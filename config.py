"""Configuration module for the Strata application.

Values come from environment variables, optionally loaded from a .env file.
Supports both local development and production deployment.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Config:
    """Base configuration class."""

    # Flask settings
    SECRET_KEY: str = os.environ.get('SECRET_KEY', 'strata-secret-key-dev')
    DEBUG: bool = os.environ.get('DEBUG', 'False').lower() == 'true'
    LOG_LEVEL: str = os.environ.get('LOG_LEVEL', 'INFO')

    # Persistence settings
    STORE_BACKEND: str = os.environ.get('STORE_BACKEND', 'redis')
    REDIS_URL: str = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')

    # Server settings
    HOST: str = os.environ.get('HOST', '0.0.0.0')
    PORT: int = int(os.environ.get('PORT', '8080'))

    # LLM Provider settings
    LLM_PROVIDER: str = os.environ.get('LLM_PROVIDER', 'gemini')
    GEMINI_API_KEY: Optional[str] = os.environ.get('GEMINI_API_KEY')
    GEMINI_MODEL: str = os.environ.get('GEMINI_MODEL', 'gemini-2.0-flash')
    OLLAMA_URL: str = os.environ.get('OLLAMA_URL', 'http://localhost:11434')
    OLLAMA_MODEL: str = os.environ.get('OLLAMA_MODEL', 'llama3.2')

    # Planning settings
    DEFAULT_LANGUAGE: str = os.environ.get('DEFAULT_LANGUAGE', 'zh')
    # Termination bound for ancestry walks over possibly corrupted parent links
    MAX_ANCESTRY_HOPS: int = int(os.environ.get('MAX_ANCESTRY_HOPS', '20'))

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return os.environ.get('STRATA_ENV', '').lower() == 'production'


@dataclass
class LocalConfig(Config):
    """Configuration for local development."""

    DEBUG: bool = True
    HOST: str = '127.0.0.1'
    PORT: int = int(os.environ.get('PORT', '8080'))


@dataclass
class ProductionConfig(Config):
    """Configuration for production deployment."""

    DEBUG: bool = False
    HOST: str = '0.0.0.0'

    def __post_init__(self):
        if self.STORE_BACKEND != 'redis':
            raise ValueError("STORE_BACKEND must be 'redis' in production")
        if self.SECRET_KEY == 'strata-secret-key-dev':
            raise ValueError("SECRET_KEY must be set in production")


def get_config() -> Config:
    """Get configuration based on environment."""
    if os.environ.get('STRATA_ENV', '').lower() == 'production':
        return ProductionConfig()
    else:
        return LocalConfig()


# Global config instance
config = get_config()
