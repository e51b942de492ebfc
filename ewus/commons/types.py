from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Credentials(BaseModel):
    domain: str
    username: str
    password: str = Field(repr=False)
    provider_type: Optional[str] = None  # LEK | SWD
    provider_code: Optional[str] = None

    @field_validator("domain", "username", "password")
    @classmethod
    def _not_blank(cls, v: str):
        if not v or not v.strip():
            raise ValueError("El valor es obligatorio")
        return v


class PathsCfg(BaseModel):
    logs_root: str = "logs"
    inbox: str = "inbox"
    archive: str = "archive"
    error: str = "error"


class EwusCfg(BaseModel):
    auth_url: str
    timeout_sec: float = 30.0
    domain: str
    username: str
    provider_type: Optional[str] = None
    provider_code: Optional[str] = None


class RetryCfg(BaseModel):
    attempts: int = Field(default=3, ge=1)
    backoff_sec: float = Field(default=1.0, ge=0)


class Settings(BaseModel):
    app: dict = {}
    paths: PathsCfg = PathsCfg()
    ewus: EwusCfg
    retry: RetryCfg = RetryCfg()
