"""
Schema Publisher Core Configuration
Connection and service settings for the DDL publishing backend
"""
from typing import List, Dict, Any
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "Schema Publisher"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Compiles visual schema designs into SQL Server DDL and publishes them"
    DEBUG: bool = False
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Target server - SQL Server over ODBC
    MSSQL_DRIVER: str = "ODBC Driver 18 for SQL Server"
    MSSQL_SERVER: str = "localhost"
    MSSQL_PORT: int = 1433
    MSSQL_USER: str = "sa"
    MSSQL_PASSWORD: str = ""
    MSSQL_DATABASE: str = "master"
    MSSQL_ENCRYPT: bool = True
    MSSQL_TRUST_SERVER_CERTIFICATE: bool = True

    # Channel behaviour
    DATABASE_CONNECT_TIMEOUT: int = 30
    DATABASE_CONNECT_ATTEMPTS: int = 1

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: List[str] = ["*"]
    CORS_ALLOW_HEADERS: List[str] = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True

    def get_odbc_connection_string(self) -> str:
        """Build the ODBC connection string for the target server"""
        parts = {
            "DRIVER": "{" + self.MSSQL_DRIVER + "}",
            "SERVER": f"{self.MSSQL_SERVER},{self.MSSQL_PORT}",
            "DATABASE": self.MSSQL_DATABASE,
            "UID": self.MSSQL_USER,
            "PWD": "{" + self.MSSQL_PASSWORD.replace("}", "}}") + "}",
            "Encrypt": "yes" if self.MSSQL_ENCRYPT else "no",
            "TrustServerCertificate": "yes" if self.MSSQL_TRUST_SERVER_CERTIFICATE else "no",
        }
        return ";".join(f"{key}={value}" for key, value in parts.items())

    def get_safe_connection_info(self) -> Dict[str, Any]:
        """Connection details suitable for logging (password masked)"""
        return {
            "driver": self.MSSQL_DRIVER,
            "server": self.MSSQL_SERVER,
            "port": self.MSSQL_PORT,
            "database": self.MSSQL_DATABASE,
            "user": self.MSSQL_USER,
            "password": "***" if self.MSSQL_PASSWORD else "",
            "encrypt": self.MSSQL_ENCRYPT,
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Global settings instance
settings = get_settings()
