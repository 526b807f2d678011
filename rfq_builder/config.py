from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_PROVIDERS = {"openai", "mistral", "auto"}
_PROFILES = {"rfq", "quotation"}


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _optional_path(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    value = value.strip()
    if not Path(value).exists():
        raise ValueError(f"{name} not found: {value}")
    return value


@dataclass(frozen=True)
class Settings:
    extraction_provider: str = "openai"
    extraction_model: str = "gpt-4.1-mini"
    enrich_item_descriptions: bool = True
    max_upload_bytes: int = 15 * 1024 * 1024
    allowed_mime_types: tuple[str, ...] = (
        "application/pdf",
        "image/png",
        "image/jpeg",
        "image/jpg",
        "image/webp",
        "image/tiff",
    )
    log_level: str = "INFO"
    normalization_profile: str = "rfq"
    normalization_profile_path: str | None = None
    company_profiles_path: str | None = None
    default_company_id: str = "sos"
    assets_dir: str = "public"

    @classmethod
    def from_env(cls) -> "Settings":
        provider = os.getenv("EXTRACTION_PROVIDER", "openai").strip().lower()
        if provider not in _PROVIDERS:
            raise ValueError("EXTRACTION_PROVIDER must be one of: openai, mistral, auto")

        model = os.getenv("EXTRACTION_MODEL", "gpt-4.1-mini").strip()
        if not model:
            raise ValueError("EXTRACTION_MODEL must not be blank")

        max_upload_mb = os.getenv("MAX_UPLOAD_MB", "15").strip()
        try:
            max_upload_bytes = int(float(max_upload_mb) * 1024 * 1024)
        except ValueError as exc:
            raise ValueError(f"MAX_UPLOAD_MB must be a number, got: {max_upload_mb}") from exc
        if max_upload_bytes <= 0:
            raise ValueError("MAX_UPLOAD_MB must be greater than zero")

        mime_env = os.getenv("ALLOWED_MIME_TYPES", ",".join(cls.allowed_mime_types))
        allowed_mimes = tuple(v.strip().lower() for v in mime_env.split(",") if v.strip())
        if not allowed_mimes:
            raise ValueError("ALLOWED_MIME_TYPES must contain at least one mime type")

        profile = os.getenv("NORMALIZATION_PROFILE", "rfq").strip().lower()
        if profile not in _PROFILES:
            raise ValueError("NORMALIZATION_PROFILE must be one of: rfq, quotation")

        return cls(
            extraction_provider=provider,
            extraction_model=model,
            enrich_item_descriptions=_parse_bool(os.getenv("ENRICH_ITEM_DESCRIPTIONS"), default=True),
            max_upload_bytes=max_upload_bytes,
            allowed_mime_types=allowed_mimes,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            normalization_profile=profile,
            normalization_profile_path=_optional_path("NORMALIZATION_PROFILE_PATH"),
            company_profiles_path=_optional_path("COMPANY_PROFILES_PATH"),
            default_company_id=os.getenv("DEFAULT_COMPANY_ID", "sos").strip() or "sos",
            assets_dir=os.getenv("ASSETS_DIR", "public"),
        )


def load_dotenv(path: str | Path = ".env") -> None:
    env_path = Path(path)
    if not env_path.exists():
        return
    for line in env_path.read_text(encoding="utf-8").splitlines():
        entry = line.strip()
        if not entry or entry.startswith("#") or "=" not in entry:
            continue
        key, value = entry.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        os.environ.setdefault(key, value)
