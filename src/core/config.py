"""Configuración del Core.

Reglas:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Los servicios (transacciones, agentes, documentos) leen la misma config.
"""

from __future__ import annotations

import os
import sys
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DocumentFormat(str, Enum):
    """Formatos de documento soportados por la capa de I/O."""

    JSON = "json"
    YAML = "yaml"

    @classmethod
    def from_suffix(cls, suffix: str, default: "DocumentFormat | None" = None) -> "DocumentFormat":
        """Deriva el formato a partir de la extensión de un fichero."""

        suffix = suffix.lower().lstrip(".")
        if suffix in ("yaml", "yml"):
            return cls.YAML
        if suffix == "json":
            return cls.JSON
        return default or cls.JSON


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "mapkit"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "mapkit"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "mapkit"
    return Path.home() / ".config" / "mapkit"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], *, env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# mapkit user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


def _default_pool_size() -> int:
    return (os.cpu_count() or 1) + 2


class AppSettings(BaseSettings):
    """Configuración central de la aplicación."""

    model_config = SettingsConfigDict(
        env_prefix="MAPKIT_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    path_separator: str = Field(
        default=".",
        min_length=1,
        max_length=4,
        description="Separador de segmentos en key paths textuales (p.ej. 'a.b.0').",
    )
    indent: int = Field(
        default=2,
        ge=0,
        le=8,
        description="Indentación al serializar documentos.",
    )
    default_format: DocumentFormat = Field(
        default=DocumentFormat.JSON,
        description="Formato usado cuando no se puede deducir de la extensión.",
    )

    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout por request al cargar documentos remotos (segundos).",
    )
    user_agent: str = Field(
        default="mapkit/0.1",
        min_length=1,
        description="User-Agent para descargas de documentos.",
    )

    ref_max_retries: int = Field(
        default=10_000,
        ge=1,
        description="Reintentos máximos de una transacción `dosync` ante conflictos.",
    )
    agent_pool_size: int = Field(
        default_factory=_default_pool_size,
        ge=1,
        le=512,
        description="Hilos del pool compartido para `Agent.send`.",
    )

    log_level: str = Field(
        default="WARNING",
        description="Nivel de logging (DEBUG, INFO, WARNING, ERROR).",
    )
    log_json: bool = Field(
        default=False,
        description="Emitir logs como JSON en lugar de salida de consola.",
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Instancia compartida de `AppSettings` (se lee el entorno una vez)."""

    return AppSettings()
