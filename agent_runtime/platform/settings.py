"""Application settings and configuration.

This module provides Pydantic settings classes for application configuration,
loaded from environment variables with support for nested configuration.
"""

import logging

import pydantic_settings
from pydantic import BaseModel, Field, field_validator

from agent_runtime.platform.constants import SERVICE_NAME


class AppHTTPSettings(BaseModel):
    host: str = Field("0.0.0.0")
    port: int = Field(8000)
    log_level: str = Field("INFO")
    log_json: bool | None = Field(
        None, description="Override log format: True=JSON, False=console, None=auto"
    )

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v):
        v_upper = v.upper()
        if v_upper not in logging.getLevelNamesMapping():
            raise ValueError(f'invalid value "{v}"')
        return v_upper


class BugsnagSettings(BaseModel):
    api_key: str = Field("")
    release_stage: str = Field("local")

    @field_validator("release_stage")
    @classmethod
    def _validate_bugsnag_release_stage(cls, v):
        if v not in ["development", "production", "local"]:
            raise ValueError(f'invalid bugsnag release stage "{v}"')
        return v


class ProviderDefaults(pydantic_settings.BaseSettings):
    """Provider-wide defaults read from un-prefixed environment variables.

    Attributes:
        openai_base_url: OPENAI_BASE_URL
        gemini_base_url: GEMINI_BASE_URL
        openrouter_base_url: OPENROUTER_BASE_URL
        openrouter_http_referer: OPENROUTER_HTTP_REFERER, sent as HTTP-Referer
        openrouter_app_title: OPENROUTER_APP_TITLE, sent as X-Title
    """

    model_config = pydantic_settings.SettingsConfigDict(extra="ignore")

    openai_base_url: str = ""
    gemini_base_url: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_http_referer: str = ""
    openrouter_app_title: str = SERVICE_NAME


class AgentTraceSettings(BaseModel):
    """Trace sink configuration.

    Attributes:
        url: Ingest endpoint for trace events; empty logs events instead
        timeout: Publish timeout in seconds
    """

    url: str = Field("")
    timeout: float = Field(5.0)


class McpSettings(BaseModel):
    timeout: float = Field(60.0, description="Per-call MCP tool timeout in seconds")


class SecretsSettings(BaseModel):
    env_prefix: str = Field("AGENT_SECRET_")


class Settings(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_nested_delimiter="__")

    app_http: AppHTTPSettings = AppHTTPSettings()
    bugsnag: BugsnagSettings = BugsnagSettings()

    # Agent run configuration
    agent_trace: AgentTraceSettings = AgentTraceSettings()
    mcp: McpSettings = McpSettings()
    secrets: SecretsSettings = SecretsSettings()
    providers: ProviderDefaults = Field(default_factory=ProviderDefaults)
