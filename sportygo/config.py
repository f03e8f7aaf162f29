from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SPORTYGO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    mongodb_url: str = Field(default="mongodb://localhost:27017/?replicaSet=rs0")
    database_name: str = Field(default="sportygo")

    vote_shard_count: int = Field(default=10, ge=1)

    # 31 characters without 0/O/1/I/L, 8 chars gives ~8.5e11 codes
    invite_code_alphabet: str = Field(default="23456789ABCDEFGHJKMNPQRSTUVWXYZ")
    invite_code_length: int = Field(default=8, ge=6)
    invite_link_base_url: str = Field(default="https://sportygo.app/groups/")

    log_level: str = Field(default="INFO")

    # operator console
    admin_password_hash: Optional[str] = None
    cookie_key: Optional[str] = None
    cookie_name: str = Field(default="sportygo_admin_auth_cookie")


settings = Settings()
