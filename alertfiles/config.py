"""Configuration management for alertfiles."""

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from alertfiles.models.remote import CommitMetadata, Repo

DEFAULT_CONFIG_FILE = "githubfiles-receiver.yaml"

DEFAULT_INCIDENT_HEADER = """\
title: {{ alert.labels.alertname | default('N/A', true) | tojson }}
state: {{ state }}
startsAt: "{{ starts_at }}"
endsAt: "{{ ends_at }}"
resolved: {{ 'true' if state == 'Resolved' else 'false' }}
"""

DEFAULT_INCIDENT_ENTRY = (
    "**{{ state }}** - {{ timestamp }}"
    "{% if alert.annotations.summary %}: {{ alert.annotations.summary }}{% endif %}"
)

EngineName = Literal["passthrough", "incident"]

# Engine names accepted from older receiver configs
ENGINE_ALIASES = {"cstate": "incident"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables and an optional YAML file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server settings
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=9959)
    log_level: str = Field(default="INFO")

    # Target repository ("owner/name") and base directory inside it
    repo: str = Field(default="")
    dir: str = Field(default="content/issues")

    # Templates
    filename: str = Field(default="{{ alert.labels.alertname }}.md")
    content: str = Field(default="{{ alert | tojson(indent=2) }}\n")
    engine: EngineName = Field(default="passthrough")
    incident_header: str = Field(default=DEFAULT_INCIDENT_HEADER)
    incident_entry: str = Field(default=DEFAULT_INCIDENT_ENTRY)

    # Debounce and reconciliation
    debounce_delay: float = Field(default=30.0, gt=0)  # seconds
    handle_timeout: float = Field(default=15.0, gt=0)  # seconds, whole reconciliation
    shutdown_grace: float = Field(default=10.0, ge=0)  # seconds
    dry_run: bool = Field(default=False)
    # Create a document for a resolved alert that never had one
    create_on_resolve: bool = Field(default=True)
    enabled_label: str = Field(default="githubfilesenabled")

    # Commit metadata
    commit_message: str = Field(default="alertfiles: update from alert")
    branch: str = Field(default="main")
    commit_name: str = Field(default="alertfiles")
    commit_email: str = Field(default="alertfiles@localhost")

    # GitHub
    github_token: str = Field(default="")
    github_api_url: str = Field(default="https://api.github.com")
    remote_timeout: float = Field(default=5.0, gt=0)  # seconds, per remote call

    @field_validator("engine", mode="before")
    @classmethod
    def _resolve_engine_alias(cls, value: object) -> object:
        if isinstance(value, str):
            return ENGINE_ALIASES.get(value.strip().lower(), value)
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        yaml_file = os.environ.get("ALERTFILES_CONFIG", DEFAULT_CONFIG_FILE)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
            file_secret_settings,
        )

    @property
    def target_repo(self) -> Repo:
        return Repo.parse(self.repo, dir=self.dir)

    @property
    def commit_metadata(self) -> CommitMetadata:
        return CommitMetadata(
            message=self.commit_message,
            branch=self.branch,
            author_name=self.commit_name,
            author_email=self.commit_email,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
