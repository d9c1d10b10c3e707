from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # App Info
    app_name: str = "Stock Transfers API"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str
    auto_create_tables: bool = False

    # CORS
    allowed_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Transferencias
    transfer_list_default_limit: int = Field(
        default=50,
        description="Cantidad de transferencias devueltas si no se indica límite"
    )
    transfer_list_max_limit: int = Field(
        default=200,
        description="Tope duro del listado para evitar escaneos sin límite"
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = False

settings = Settings()
