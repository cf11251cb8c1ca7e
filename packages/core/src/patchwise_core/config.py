import os
from pathlib import Path
from typing import Optional

import yaml

from patchwise_core.models import RepositoryConfig

DEFAULT_CONFIG: dict = {
    "model": "anthropic",  # anthropic | openai | gemini
    "model_name": None,  # None = provider default
    "exclude": [],  # fnmatch patterns or directory names to skip (e.g. "migrations/", "*.min.js")
    "cache": "sqlite",  # sqlite | none
    "cache_path": ".patchwise.db",
    "cache_max_age_days": 30,
    "metrics": "sqlite",  # sqlite | none
    "metrics_path": ".patchwise.db",
    "review_draft_prs": False,  # review-event skips draft PRs unless set
    "repositories": {},  # "owner/name" -> {enabled, custom_prompt, custom_prompt_file}
}

# config key -> environment variables tried in order
_CREDENTIAL_ENV = {
    "github_token": ("GITHUB_TOKEN",),
    "anthropic_api_key": ("ANTHROPIC_API_KEY",),
    "openai_api_key": ("OPENAI_API_KEY",),
    "gemini_api_key": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "webhook_secret": ("GITHUB_WEBHOOK_SECRET",),
}


def load_config(config_path: str = ".patchwise.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .patchwise.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "exclude": list(DEFAULT_CONFIG["exclude"]), "repositories": {}}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    for key, env_vars in _CREDENTIAL_ENV.items():
        config[key] = next((os.environ[v] for v in env_vars if os.environ.get(v)), None)

    return config


def get_repository_config(config: dict, repository_id: str) -> RepositoryConfig:
    """
    Look up per-repository settings under ``repositories:``.

    Repositories without an entry are reviewed with the default prompt. A
    ``custom_prompt_file`` is read relative to the current directory and wins
    over an inline ``custom_prompt``.
    """
    entry = (config.get("repositories") or {}).get(repository_id) or {}

    custom_prompt = entry.get("custom_prompt")
    prompt_file = entry.get("custom_prompt_file")
    if prompt_file:
        p = Path(prompt_file)
        if not p.exists():
            raise FileNotFoundError(f"Custom prompt file not found: {prompt_file}")
        custom_prompt = p.read_text()

    return RepositoryConfig(
        repository_id=repository_id,
        custom_prompt=custom_prompt or None,
        enabled=bool(entry.get("enabled", True)),
    )
