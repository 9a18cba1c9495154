"""Configuration — Pydantic models for sqlhtml settings."""

from __future__ import annotations

import json
import os
import re
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from sqlhtml.proxy.boundary import DEFAULT_PROMPT
from sqlhtml.render.registry import BACKENDS, DEFAULT_PRIORITY


class ProgressConfig(BaseModel):
    """Progress reporting while a long response streams in."""

    enabled: bool = Field(default=True)
    step: int = Field(default=1024, gt=0, description="Bytes between status updates")
    threshold: int = Field(
        default=0, ge=0, description="No status until this many bytes arrived"
    )


class SqlHtmlConfig(BaseModel):
    """Top-level sqlhtml configuration."""

    prompt: str = Field(
        default=DEFAULT_PROMPT,
        description="Regex for the prompt that ends a response (multiline mode)",
    )
    backends: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PRIORITY),
        description="Renderer backends in priority order",
    )
    width: int = Field(default=200, gt=0, description="Rendering width in columns")
    render_timeout: float | None = Field(
        default=30.0, description="Seconds before an external renderer is killed"
    )
    scan_window: int | None = Field(
        default=None,
        gt=0,
        description=(
            "Only scan the last N chars of the buffer for the prompt. "
            "Must cover the longest possible prompt match."
        ),
    )
    encoding: str = Field(default="utf-8")
    progress: ProgressConfig = Field(default_factory=ProgressConfig)

    @field_validator("prompt")
    @classmethod
    def _check_prompt(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid prompt regex: {e}") from e
        return v

    @field_validator("backends")
    @classmethod
    def _check_backends(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("at least one backend is required")
        unknown = [name for name in v if name not in BACKENDS]
        if unknown:
            raise ValueError(
                f"unknown backend(s): {', '.join(unknown)} "
                f"(known: {', '.join(BACKENDS)})"
            )
        return v

    @classmethod
    def load(cls, config_path: str | None = None) -> SqlHtmlConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            SQLHTML_PROMPT          - Prompt regex
            SQLHTML_BACKENDS        - Comma-separated backend priority list
            SQLHTML_WIDTH           - Rendering width
            SQLHTML_RENDER_TIMEOUT  - Renderer timeout in seconds
            SQLHTML_PROGRESS_STEP   - Bytes between progress updates
        """
        load_dotenv()

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        env_prompt = os.environ.get("SQLHTML_PROMPT")
        if env_prompt:
            config_data["prompt"] = env_prompt

        env_backends = os.environ.get("SQLHTML_BACKENDS")
        if env_backends:
            config_data["backends"] = [
                b.strip() for b in env_backends.split(",") if b.strip()
            ]

        env_width = os.environ.get("SQLHTML_WIDTH")
        if env_width:
            config_data["width"] = int(env_width)

        env_timeout = os.environ.get("SQLHTML_RENDER_TIMEOUT")
        if env_timeout:
            config_data["render_timeout"] = float(env_timeout)

        env_step = os.environ.get("SQLHTML_PROGRESS_STEP")
        if env_step:
            progress = dict(config_data.get("progress", {}))
            progress["step"] = int(env_step)
            config_data["progress"] = progress

        return cls.model_validate(config_data)
