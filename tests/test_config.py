from __future__ import annotations

import os
from pathlib import Path

import pytest

from rfq_builder.config import Settings, load_dotenv

_ENV_NAMES = (
    "EXTRACTION_PROVIDER",
    "EXTRACTION_MODEL",
    "ENRICH_ITEM_DESCRIPTIONS",
    "MAX_UPLOAD_MB",
    "ALLOWED_MIME_TYPES",
    "LOG_LEVEL",
    "NORMALIZATION_PROFILE",
    "NORMALIZATION_PROFILE_PATH",
    "COMPANY_PROFILES_PATH",
    "DEFAULT_COMPANY_ID",
    "ASSETS_DIR",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_settings_defaults() -> None:
    settings = Settings.from_env()
    assert settings.extraction_provider == "openai"
    assert settings.extraction_model == "gpt-4.1-mini"
    assert settings.enrich_item_descriptions is True
    assert settings.max_upload_bytes == 15 * 1024 * 1024
    assert "application/pdf" in settings.allowed_mime_types
    assert settings.normalization_profile == "rfq"
    assert settings.company_profiles_path is None
    assert settings.default_company_id == "sos"


def test_settings_read_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    profiles = tmp_path / "companies.json"
    profiles.write_text("[]", encoding="utf-8")
    monkeypatch.setenv("EXTRACTION_PROVIDER", " Auto ")
    monkeypatch.setenv("ENRICH_ITEM_DESCRIPTIONS", "false")
    monkeypatch.setenv("MAX_UPLOAD_MB", "2.5")
    monkeypatch.setenv("ALLOWED_MIME_TYPES", "application/pdf, IMAGE/PNG")
    monkeypatch.setenv("NORMALIZATION_PROFILE", "quotation")
    monkeypatch.setenv("COMPANY_PROFILES_PATH", str(profiles))
    monkeypatch.setenv("DEFAULT_COMPANY_ID", "dle")

    settings = Settings.from_env()
    assert settings.extraction_provider == "auto"
    assert settings.enrich_item_descriptions is False
    assert settings.max_upload_bytes == int(2.5 * 1024 * 1024)
    assert settings.allowed_mime_types == ("application/pdf", "image/png")
    assert settings.normalization_profile == "quotation"
    assert settings.company_profiles_path == str(profiles)
    assert settings.default_company_id == "dle"


@pytest.mark.parametrize(
    ("name", "value", "error_fragment"),
    [
        ("EXTRACTION_PROVIDER", "gemini", "EXTRACTION_PROVIDER"),
        ("EXTRACTION_MODEL", "   ", "EXTRACTION_MODEL"),
        ("MAX_UPLOAD_MB", "lots", "MAX_UPLOAD_MB must be a number"),
        ("MAX_UPLOAD_MB", "0", "greater than zero"),
        ("ALLOWED_MIME_TYPES", " , ", "ALLOWED_MIME_TYPES"),
        ("NORMALIZATION_PROFILE", "invoice", "NORMALIZATION_PROFILE"),
        ("COMPANY_PROFILES_PATH", "missing-companies.json", "not found"),
    ],
)
def test_settings_reject_invalid_values(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str, error_fragment: str
) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=error_fragment):
        Settings.from_env()


def test_load_dotenv_keeps_existing_values(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# comment\nEXTRACTION_MODEL='gpt-4.1'\nDEFAULT_COMPANY_ID=\"dug\"\nnot-an-entry\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("EXTRACTION_MODEL", "already-set")
    monkeypatch.setenv("DEFAULT_COMPANY_ID", "placeholder")
    monkeypatch.delenv("DEFAULT_COMPANY_ID")

    load_dotenv(env_file)
    assert os.environ["EXTRACTION_MODEL"] == "already-set"
    assert os.environ["DEFAULT_COMPANY_ID"] == "dug"


def test_load_dotenv_ignores_missing_file(tmp_path: Path) -> None:
    load_dotenv(tmp_path / "absent.env")
