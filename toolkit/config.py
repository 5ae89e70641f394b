from dataclasses import dataclass, field

from pydantic_settings import BaseSettings, SettingsConfigDict

ONE_GIB = 1024 * 1024 * 1024
ONE_MIB = 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "http-file-toolkit"
    app_version: str = "dev"
    host: str = "0.0.0.0"
    port: int = 8081
    upload_dir: str = "./uploads"
    download_dir: str = "./files"
    max_upload_bytes: int = ONE_GIB
    allowed_upload_types: str = "image/jpeg,image/png"
    rename_uploads: bool = True
    max_json_bytes: int = ONE_MIB
    allow_unknown_json_fields: bool = False
    remote_service_url: str = "http://localhost:8081/v1/simulated-service"
    remote_timeout_seconds: float = 10.0
    tracing_enabled: bool = False
    tracing_service_name: str = "http-file-toolkit"
    otlp_endpoint: str = "localhost:4317"
    otlp_insecure: bool = True


@dataclass(frozen=True)
class UploadConfig:
    max_total_bytes: int = ONE_GIB
    allowed_content_types: frozenset[str] = field(default_factory=frozenset)
    rename_files: bool = True

    @classmethod
    def from_settings(cls, source: Settings) -> "UploadConfig":
        allowed = frozenset(
            item.strip().lower() for item in source.allowed_upload_types.split(",") if item.strip()
        )
        return cls(
            max_total_bytes=source.max_upload_bytes,
            allowed_content_types=allowed,
            rename_files=source.rename_uploads,
        )


@dataclass(frozen=True)
class JSONConfig:
    max_body_bytes: int = ONE_MIB
    allow_unknown_fields: bool = False

    @classmethod
    def from_settings(cls, source: Settings) -> "JSONConfig":
        return cls(max_body_bytes=source.max_json_bytes, allow_unknown_fields=source.allow_unknown_json_fields)


settings = Settings()
