from __future__ import annotations

from functools import cached_property, lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGED_FONT = Path(__file__).resolve().parent / "assets" / "fonts" / "SourceCodePro-Bold.ttf"


class Settings(BaseSettings):
    """Service settings loaded from environment, `.env` and an optional YAML defaults file."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    log_level: str = Field(default="INFO")
    log_dir: Path = Field(default=Path("./logs"))
    log_to_file: bool = Field(default=True)

    font_path: Optional[Path] = Field(default=None)
    defaults_config: Optional[Path] = Field(default=None)

    default_opacity: float = Field(default=0.5)
    default_spacing: float = Field(default=100.0)
    default_font_size: float = Field(default=32.0)
    default_color: str = Field(default="#000000")
    default_size_percent: float = Field(default=25.0)

    max_upload_bytes: int = Field(default=10 << 20)
    max_bulk_upload_bytes: int = Field(default=50 << 20)
    max_tiles: int = Field(default=250_000)
    # Large canvases get a proportionally larger budget; 0 disables the scaling.
    max_tiles_per_megapixel: float = Field(default=150_000.0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TILEMARK_",
        case_sensitive=False,
        extra="ignore",
    )

    def model_post_init(self, __context: Dict[str, Any]) -> None:  # type: ignore[override]
        self.log_dir = Path(self.log_dir).expanduser().resolve()
        if self.font_path is not None:
            self.font_path = Path(self.font_path).expanduser().resolve()
        if self.defaults_config is not None:
            self.defaults_config = Path(self.defaults_config).expanduser().resolve()
            self._apply_defaults(self._load_yaml(self.defaults_config))

    @cached_property
    def font_bytes(self) -> bytes:
        # Read once; immutable bytes are safe to share across request threads.
        return self.resolved_font_path.read_bytes()

    @property
    def resolved_font_path(self) -> Path:
        return self.font_path or PACKAGED_FONT

    def _apply_defaults(self, data: Dict[str, Any]) -> None:
        section = data.get("defaults", data)
        mapping = {
            "opacity": "default_opacity",
            "spacing": "default_spacing",
            "font_size": "default_font_size",
            "color": "default_color",
            "size_percent": "default_size_percent",
        }
        for key, attr in mapping.items():
            if key in section:
                value = section[key]
                setattr(self, attr, str(value) if attr == "default_color" else float(value))

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            data: Dict[str, Any] = yaml.safe_load(handle) or {}
        return data


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
