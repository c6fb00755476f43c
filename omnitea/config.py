"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .patterns import DEFAULT_ASIDE_PREFIX, DEFAULT_BARRIER_PREFIX, DEFAULT_SYSTEM_PROMPT
from .types import (
    AssemblerConfig,
    CompletionConfig,
    MarkerConfig,
    OmniteaConfig,
    PlatformConfig,
    RendererConfig,
)

CONFIG_FILENAMES = [
    "omnitea.yaml",
    "omnitea.yml",
    "omnitea.json",
]

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "DISCORD_TOKEN": ("platform", "token"),
    "OPENAI_KEY": ("completion", "api_key"),
    "CHANNEL_NAME": ("platform", "channel_name"),
    "PROMPT_FILE": (None, "prompt_file"),
}

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _apply_env(raw: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    """Overlay environment variables onto a raw config dict."""
    merged = dict(raw)
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if not value:
            continue
        if section is None:
            merged[key] = value
        else:
            merged[section] = {**(merged.get(section) or {}), key: value}
    return merged


def _build_config(raw: dict[str, Any]) -> OmniteaConfig:
    """Build an OmniteaConfig from a raw dict."""
    asm_raw = raw.get("assembler") or {}
    assembler = AssemblerConfig(
        context_window=asm_raw.get("context_window", 4096),
        reply_reserve=asm_raw.get("reply_reserve", 500),
        page_size=asm_raw.get("page_size", 10),
        max_pages=asm_raw.get("max_pages", 1000),
        token_counter=asm_raw.get("token_counter", raw.get("token_counter", "estimate")),
    )

    markers_raw = raw.get("markers") or {}
    markers = MarkerConfig(
        barrier_prefix=markers_raw.get("barrier_prefix", DEFAULT_BARRIER_PREFIX),
        aside_prefix=markers_raw.get("aside_prefix", DEFAULT_ASIDE_PREFIX),
        barrier_reaction=markers_raw.get("barrier_reaction", MarkerConfig.barrier_reaction),
        aside_reaction=markers_raw.get("aside_reaction", MarkerConfig.aside_reaction),
    )

    comp_raw = raw.get("completion") or {}
    completion = CompletionConfig(
        provider=comp_raw.get("provider", "openai"),
        base_url=comp_raw.get("base_url", "https://api.openai.com/v1"),
        model=comp_raw.get("model", "gpt-3.5-turbo"),
        api_key=comp_raw.get("api_key", ""),
        timeout=comp_raw.get("timeout", 120.0),
    )

    render_raw = raw.get("renderer") or {}
    renderer = RendererConfig(
        strategy=render_raw.get("strategy", "markdown"),
        work_dir=render_raw.get("work_dir", "."),
        density=render_raw.get("density", 300),
        echo_source=render_raw.get("echo_source", True),
    )

    platform_raw = raw.get("platform") or {}
    platform = PlatformConfig(
        token=platform_raw.get("token", ""),
        channel_name=platform_raw.get("channel_name", "omnitea"),
        message_limit=platform_raw.get("message_limit", 2000),
        message_margin=platform_raw.get("message_margin", 6),
    )

    return OmniteaConfig(
        version=str(raw.get("version", "1.0")),
        system_prompt=raw.get("system_prompt", ""),
        prompt_file=raw.get("prompt_file"),
        log_level=str(raw.get("log_level", "DEBUG")).upper(),
        assembler=assembler,
        markers=markers,
        completion=completion,
        renderer=renderer,
        platform=platform,
    )


def validate_config(config: OmniteaConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []

    asm = config.assembler
    if asm.token_budget <= 0:
        errors.append(
            f"reply_reserve ({asm.reply_reserve}) must be < context_window ({asm.context_window})"
        )
    if asm.page_size < 1:
        errors.append("page_size must be >= 1")
    if asm.max_pages < 1:
        errors.append("max_pages must be >= 1")

    barrier, aside = config.markers.barrier_prefix, config.markers.aside_prefix
    if not barrier or not aside:
        errors.append("Marker prefixes must not be empty")
    elif barrier.startswith(aside) or aside.startswith(barrier):
        errors.append(f"Marker prefixes overlap: barrier={barrier!r} aside={aside!r}")

    if config.renderer.strategy not in ("markdown", "latex"):
        errors.append(f"Unknown renderer strategy: {config.renderer.strategy}")

    if config.completion.provider != "openai":
        errors.append(f"Unknown completion provider: {config.completion.provider}")

    platform = config.platform
    if platform.message_limit - platform.message_margin <= 0:
        errors.append(
            f"message_margin ({platform.message_margin}) must be < message_limit ({platform.message_limit})"
        )

    if config.log_level not in VALID_LOG_LEVELS:
        errors.append(f"Unknown log_level: {config.log_level}")

    if config.prompt_file and not Path(config.prompt_file).is_file():
        errors.append(f"Prompt file not found: {config.prompt_file}")

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
    env: Mapping[str, str] | None = None,
) -> OmniteaConfig:
    """Load config from dict, explicit path, or auto-discover.

    Environment variables (DISCORD_TOKEN, OPENAI_KEY, CHANNEL_NAME,
    PROMPT_FILE) override file values. Pass ``env={}`` to ignore them.
    """
    env = os.environ if env is None else env

    if config_dict is not None:
        return _build_config(_apply_env(config_dict, env))

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        # Return defaults
        return _build_config(_apply_env({}, env))

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    return _build_config(_apply_env(raw, env))


def load_system_prompt(config: OmniteaConfig) -> str:
    """Prompt file contents, else the inline prompt, else the built-in default."""
    if config.prompt_file:
        return Path(config.prompt_file).read_text()
    return config.system_prompt or DEFAULT_SYSTEM_PROMPT
