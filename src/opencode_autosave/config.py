"""
Configuration for the autosave plugin.

Defaults match the behaviour of the plugin when no configuration is given.
Values can be loaded from a YAML file in the project directory and the
secondary (global) save root can be set from the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = ".opencode-autosave.yaml"
GLOBAL_DIR_ENV = "OPENCODE_AUTOSAVE_GLOBAL_DIR"

# Subdirectory, next to each transcript, that holds extracted images
IMAGES_DIRNAME = "images"


@dataclass
class AutosaveConfig:
    """
    Main configuration for the autosave plugin.

    Example YAML:
        save_directory: ./conversations
        max_topic_length: 30
        debounce_ms: 2000
        global_directory: ~/notes/opencode
    """

    save_directory: str = "./conversations"  # Relative to the project directory
    max_topic_length: int = 30  # Topic characters in filenames
    debounce_ms: int = 2000  # Idle debounce window
    global_directory: Path | None = None  # Secondary save root (None = disabled)
    image_title_length: int = 50  # Title characters in image filenames
    max_parent_depth: int = 32  # Bound for root resolution

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    def primary_root(self, project_dir: str | Path) -> Path:
        """Directory that holds transcripts for *project_dir*."""
        return Path(project_dir) / self.save_directory

    def secondary_root(self, project_dir: str | Path) -> Path | None:
        """Mirror directory for *project_dir*, or ``None`` when disabled."""
        if self.global_directory is None:
            return None
        name = Path(project_dir).resolve().name or "root"
        return Path(self.global_directory).expanduser() / name

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AutosaveConfig:
        """Create config from a dictionary."""
        global_dir = data.get("global_directory")
        return cls(
            save_directory=data.get("save_directory", "./conversations"),
            max_topic_length=data.get("max_topic_length", 30),
            debounce_ms=data.get("debounce_ms", 2000),
            global_directory=Path(global_dir) if global_dir else None,
            image_title_length=data.get("image_title_length", 50),
            max_parent_depth=data.get("max_parent_depth", 32),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> AutosaveConfig:
        """Load config from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_yaml_string(cls, content: str) -> AutosaveConfig:
        """Load config from a YAML string."""
        data = yaml.safe_load(content)
        return cls.from_dict(data or {})

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary."""
        return {
            "save_directory": self.save_directory,
            "max_topic_length": self.max_topic_length,
            "debounce_ms": self.debounce_ms,
            "global_directory": str(self.global_directory) if self.global_directory else None,
            "image_title_length": self.image_title_length,
            "max_parent_depth": self.max_parent_depth,
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False)


def load_config(project_dir: str | Path) -> AutosaveConfig:
    """
    Load the effective configuration for *project_dir*.

    Reads ``.opencode-autosave.yaml`` from the project directory when it
    exists, then applies ``OPENCODE_AUTOSAVE_GLOBAL_DIR`` from the
    environment (the environment wins).
    """
    path = Path(project_dir) / CONFIG_FILENAME
    config = AutosaveConfig.from_yaml(path) if path.is_file() else AutosaveConfig()

    global_dir = os.environ.get(GLOBAL_DIR_ENV, "").strip()
    if global_dir:
        config.global_directory = Path(global_dir)
    return config
