from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LINEHOOK_", extra="ignore", frozen=True)

    port: int = Field(default=8080, ge=0, le=65535, description="Port to listen on. 0 picks a free port.")
    secret: Optional[str] = Field(
        default=None,
        description="Channel secret. When set, X-Line-Signature is required and checked.",
    )
    forward_url: Optional[str] = Field(
        default=None,
        description="URL that receives a copy of every accepted webhook body.",
    )
    quiet: bool = Field(default=False, description="Only print errors, no event logging.")

    @field_validator("secret", "forward_url", mode="before")
    @classmethod
    def _empty_to_none(cls, v):
        # Unset flags arrive as "" from the CLI and from blank env vars
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def verifies_signature(self) -> bool:
        return bool(self.secret)

    @property
    def forwards(self) -> bool:
        return bool(self.forward_url)
