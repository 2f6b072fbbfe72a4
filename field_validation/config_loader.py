"""Two-tier configuration loading with URI fetching and caching."""

import hashlib
import logging
import os
import time
import urllib.parse
from importlib.resources import files
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema
import requests
import yaml

logger = logging.getLogger(__name__)

_RULE_SPEC_SCHEMA = {
    "oneOf": [
        {"type": "string"},
        {"type": "array", "items": {"type": "string"}},
    ]
}

# Shape of the tier 2 document. Rule names are not checked here; an unknown
# rule only surfaces when a context is used.
CONTEXTS_SCHEMA = {
    "type": "object",
    "required": ["contexts"],
    "properties": {
        "contexts": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "required": ["rules"],
                "properties": {
                    "metadata": {"type": "object"},
                    "rules": {
                        "type": "object",
                        "additionalProperties": _RULE_SPEC_SCHEMA,
                    },
                    "lists": {
                        "type": "object",
                        "additionalProperties": {"type": "array"},
                    },
                },
                "additionalProperties": False,
            },
        }
    },
}


class ConfigLoader:
    """Handles two-tier configuration: local config + contexts config."""

    CACHE_DIR = Path.home() / ".cache" / "field-validation-lib"
    DEFAULT_MAX_AGE = 1800
    DEFAULT_FETCH_TIMEOUT = 10

    def __init__(self, local_config_path: Optional[str] = None, cache_dir: Optional[str] = None):
        """
        Initialize config loader.

        Args:
            local_config_path: Path to a local config file. Defaults to the
                local-config.yaml bundled with the package.
            cache_dir: Directory for cached remote configs. Created lazily,
                only when a remote config is fetched.

        Raises:
            RuntimeError: If a config file cannot be read or fetched
            ValueError: If the contexts config is malformed
        """
        if local_config_path is None:
            config_file = files("field_validation").joinpath("local-config.yaml")
            self.local_config_path = str(config_file)
        else:
            self.local_config_path = os.path.abspath(local_config_path)

        self.cache_dir = Path(cache_dir) if cache_dir else self.CACHE_DIR
        self.local_config = self._load_yaml(self.local_config_path) or {}
        self.load_contexts_config()

    def load_contexts_config(self, use_cache: bool = True) -> Dict[str, Any]:
        """
        (Re)load the contexts config named by the local config.

        Without a contexts_config_uri the local config itself must hold the
        "contexts" section.
        """
        uri = self.get_contexts_config_uri()
        if uri:
            config = self._load_config_from_uri(uri, use_cache=use_cache)
        else:
            config = self.local_config

        self.validate_contexts_config(config)
        self.contexts_config = config
        self.contexts_config_loaded_at = time.time()

        logger.info(
            "Contexts config loaded",
            extra={"uri": uri or self.local_config_path, "contexts": len(config["contexts"])},
        )
        return config

    @staticmethod
    def validate_contexts_config(config: Any) -> None:
        """
        Check a contexts document against CONTEXTS_SCHEMA.

        Raises:
            ValueError: Naming the first failing location
        """
        try:
            jsonschema.validate(instance=config, schema=CONTEXTS_SCHEMA)
        except jsonschema.ValidationError as e:
            location = " -> ".join(str(p) for p in e.path) if e.path else "root"
            raise ValueError(f"Invalid contexts config at {location}: {e.message}") from e

    def _load_yaml(self, path: str) -> Any:
        """Load YAML file from disk."""
        try:
            with open(path) as f:
                return yaml.safe_load(f)
        except OSError as e:
            raise RuntimeError(f"Failed to read config {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse config {path}: {e}") from e

    def _load_config_from_uri(self, uri: str, use_cache: bool = True) -> Any:
        """
        Load config from URI (with caching).

        Supports:
        - Relative paths - resolved against the local config's directory
        - file:// - Local filesystem (absolute paths)
        - https:// / http:// - Remote, cached on disk

        Args:
            uri: Config URI or relative path
            use_cache: Reuse a previously fetched remote copy if present

        Returns:
            Parsed YAML config
        """
        parsed = urllib.parse.urlparse(uri)

        if not parsed.scheme:
            config_dir = os.path.dirname(os.path.abspath(self.local_config_path))
            return self._load_yaml(os.path.join(config_dir, uri))

        if parsed.scheme == "file":
            return self._load_yaml(urllib.parse.unquote(parsed.path))

        if parsed.scheme in ("http", "https"):
            cache_path = self._cache_path(uri)

            if use_cache and cache_path.exists():
                logger.debug(f"Using cached config for {uri}: {cache_path}")
                return self._load_yaml(str(cache_path))

            content = self._fetch_uri(uri)
            try:
                config = yaml.safe_load(content)
            except yaml.YAMLError as e:
                raise ValueError(f"Failed to parse config from {uri}: {e}") from e

            # A bad document never replaces the last good cached copy
            self.validate_contexts_config(config)
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            cache_path.write_text(content)
            return config

        raise ValueError(f"Unsupported URI scheme: {parsed.scheme} in {uri}")

    def _cache_path(self, uri: str) -> Path:
        cache_key = hashlib.sha256(uri.encode()).hexdigest()
        return self.cache_dir / f"config_{cache_key}.yaml"

    def _fetch_uri(self, uri: str) -> str:
        """Fetch content from HTTP/HTTPS URI."""
        try:
            response = requests.get(uri, timeout=self.get_fetch_timeout())
            response.raise_for_status()
        except requests.RequestException as e:
            raise RuntimeError(f"Failed to fetch config from {uri}: {e}") from e
        return response.text

    def get_local_config(self) -> Dict[str, Any]:
        """Get local configuration (tier 1)."""
        return self.local_config

    def get_contexts_config(self) -> Dict[str, Any]:
        """Get contexts configuration (tier 2)."""
        return self.contexts_config

    def get_contexts_config_uri(self) -> Optional[str]:
        return self.local_config.get("contexts_config_uri")

    def get_contexts_config_age(self) -> Optional[float]:
        """
        Get age of contexts config in seconds since it was loaded.

        Returns:
            Age in seconds, or None if not loaded
        """
        if hasattr(self, "contexts_config_loaded_at"):
            return time.time() - self.contexts_config_loaded_at
        return None

    def get_config_max_age(self) -> int:
        """Seconds after which the contexts config counts as stale."""
        return int(self.local_config.get("config_cache_max_age_seconds", self.DEFAULT_MAX_AGE))

    def get_fetch_timeout(self) -> float:
        return float(self.local_config.get("remote_fetch_timeout_seconds", self.DEFAULT_FETCH_TIMEOUT))
