"""Explicit configuration handed to each workflow component.

Components never read ``app.config.settings`` themselves; they receive one of
these models in their constructor so tests can build them per case.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from app.config import Settings

MIN_TOKEN_EXPIRY_DAYS = 1
MAX_TOKEN_EXPIRY_DAYS = 30


class TokenExpiryDefaults(BaseModel):
    model_config = ConfigDict(frozen=True)

    signing_days: int = Field(default=7, ge=MIN_TOKEN_EXPIRY_DAYS, le=MAX_TOKEN_EXPIRY_DAYS)
    download_days: int = Field(default=90, ge=1)


class EmailConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str | None = None
    port: int = 587
    username: str | None = None
    password: str | None = None
    use_tls: bool = True
    use_ssl: bool = False
    from_email: str = "noreply@signflow.local"
    from_name: str = "SignFlow"
    timeout: int = 30


class StorageConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_attachment_bytes: int = 8 * 1024 * 1024
    fetch_timeout: float = 20.0


class WorkflowConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    app_url: str = "http://localhost:8000"
    token_expiry: TokenExpiryDefaults = Field(default_factory=TokenExpiryDefaults)
    email: EmailConfig = Field(default_factory=EmailConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    audit_atomic: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkflowConfig":
        return cls(
            app_url=settings.app_url,
            token_expiry=TokenExpiryDefaults(
                signing_days=settings.signing_token_expiry_days,
                download_days=settings.download_token_expiry_days,
            ),
            email=EmailConfig(
                host=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_username,
                password=settings.smtp_password,
                use_tls=settings.smtp_use_tls,
                use_ssl=settings.smtp_use_ssl,
                from_email=settings.smtp_from_email,
                from_name=settings.smtp_from_name,
                timeout=settings.smtp_timeout,
            ),
            storage=StorageConfig(
                max_attachment_bytes=settings.max_attachment_bytes,
                fetch_timeout=settings.file_fetch_timeout,
            ),
            audit_atomic=settings.audit_atomic,
        )

    def signing_url(self, token: str) -> str:
        return f"{self.app_url.rstrip('/')}/sign/{token}"

    def download_url(self, token: str) -> str:
        return f"{self.app_url.rstrip('/')}/download/{token}"

    def token_expiry_days_for(self, organization_settings: dict | None) -> int:
        """Organization override of the signing link lifetime, if in range."""
        raw = (organization_settings or {}).get("token_expiry_days")
        if isinstance(raw, bool):
            return self.token_expiry.signing_days
        try:
            days = int(raw)
        except (TypeError, ValueError):
            return self.token_expiry.signing_days
        if MIN_TOKEN_EXPIRY_DAYS <= days <= MAX_TOKEN_EXPIRY_DAYS:
            return days
        return self.token_expiry.signing_days
