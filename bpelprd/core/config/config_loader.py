"""Configuration loading for bpelprd.

Settings live in ``config/bpelprd.yaml`` at the repository root. The
directory can be moved with ``BPELPRD_CONFIG_DIR``; a ``.env`` file in the
working directory is honoured. Values missing from the YAML fall back to
the defaults below, so an absent file is not an error.
"""

import copy
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml
from dotenv import load_dotenv

from ..constants import DEFAULT_TASK_SERVICE_SUFFIXES, DEFAULT_VENDOR_XPATH_PREFIXES

load_dotenv()

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "bpelprd.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "project": {
        "bpel_globs": ["bpel/**/*.bpel"],
        "wsdl_globs": ["wsdl/**/*.wsdl"],
        "xsd_globs": ["xsd/**/*.xsd"],
    },
    "output": {
        "prd_dir": "prds",
        "summary_dir": "summaries",
        "include_diagram": True,
        "include_checklist": True,
        "json_indent": 2,
    },
    "extraction": {
        "vendor_xpath_prefixes": list(DEFAULT_VENDOR_XPATH_PREFIXES),
        "task_service_suffixes": list(DEFAULT_TASK_SERVICE_SUFFIXES),
    },
    "gaps": {
        "disabled_rules": [],
    },
    "api": {
        "host": "0.0.0.0",
        "port": 9010,
        "max_request_bytes": 5 * 1024 * 1024,
        "cors_origins": ["http://localhost:3000", "http://localhost:5173"],
    },
    "logging": {
        "level": "INFO",
    },
}


def get_config_path() -> Path:
    """Directory holding bpelprd.yaml."""
    env_dir = os.getenv("BPELPRD_CONFIG_DIR")
    if env_dir:
        return Path(env_dir)
    return Path(__file__).parents[3] / "config"


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@lru_cache(maxsize=1)
def load_unified_config() -> Dict[str, Any]:
    """Load bpelprd.yaml merged over the defaults (cached)."""
    config_file = get_config_path() / CONFIG_FILE_NAME

    if not config_file.exists():
        logger.warning("%s not found at %s, using defaults", CONFIG_FILE_NAME, config_file)
        config = copy.deepcopy(DEFAULT_CONFIG)
    else:
        with open(config_file, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"{config_file} must contain a mapping at top level")
        config = _deep_merge(DEFAULT_CONFIG, loaded)
        logger.debug("Loaded configuration from %s", config_file)

    env_level = os.getenv("BPELPRD_LOG_LEVEL")
    if env_level:
        config["logging"]["level"] = env_level.upper()
    return config


def reload_configs() -> None:
    """Clear cached configuration so the next read picks up file changes."""
    load_unified_config.cache_clear()


@dataclass
class ExtractionSettings:
    """Typed view of the settings the extraction pipeline needs."""

    bpel_globs: List[str] = field(default_factory=lambda: ["bpel/**/*.bpel"])
    wsdl_globs: List[str] = field(default_factory=lambda: ["wsdl/**/*.wsdl"])
    xsd_globs: List[str] = field(default_factory=lambda: ["xsd/**/*.xsd"])
    prd_dir: str = "prds"
    summary_dir: str = "summaries"
    include_diagram: bool = True
    include_checklist: bool = True
    json_indent: int = 2
    vendor_xpath_prefixes: List[str] = field(
        default_factory=lambda: list(DEFAULT_VENDOR_XPATH_PREFIXES)
    )
    task_service_suffixes: List[str] = field(
        default_factory=lambda: list(DEFAULT_TASK_SERVICE_SUFFIXES)
    )
    disabled_rules: List[str] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ExtractionSettings":
        project = config.get("project", {})
        output = config.get("output", {})
        extraction = config.get("extraction", {})
        gaps = config.get("gaps", {})
        defaults = cls()
        return cls(
            bpel_globs=list(project.get("bpel_globs", defaults.bpel_globs)),
            wsdl_globs=list(project.get("wsdl_globs", defaults.wsdl_globs)),
            xsd_globs=list(project.get("xsd_globs", defaults.xsd_globs)),
            prd_dir=output.get("prd_dir", defaults.prd_dir),
            summary_dir=output.get("summary_dir", defaults.summary_dir),
            include_diagram=bool(output.get("include_diagram", defaults.include_diagram)),
            include_checklist=bool(output.get("include_checklist", defaults.include_checklist)),
            json_indent=int(output.get("json_indent", defaults.json_indent)),
            vendor_xpath_prefixes=list(
                extraction.get("vendor_xpath_prefixes", defaults.vendor_xpath_prefixes)
            ),
            task_service_suffixes=list(
                extraction.get("task_service_suffixes", defaults.task_service_suffixes)
            ),
            disabled_rules=list(gaps.get("disabled_rules", []) or []),
        )


def get_settings() -> ExtractionSettings:
    return ExtractionSettings.from_config(load_unified_config())
