"""Carregamento da configuração YAML da captura."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULTS: Dict[str, Any] = {
    "source": "0",
    "buffer": {
        "seconds": 5.0,
        "fallback_fps": 30.0,
    },
    "fps_window": 5,
    "output": {
        "dir": "runs/clips",
        "path": None,
        "codec": "mp4v",
    },
    "log_level": "INFO",
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def validate(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for label, value in (
        ("buffer.seconds", cfg["buffer"]["seconds"]),
        ("buffer.fallback_fps", cfg["buffer"]["fallback_fps"]),
        ("fps_window", cfg["fps_window"]),
    ):
        if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
            raise ValueError(f"{label} deve ser um número positivo (recebido {value!r})")
    cfg["fps_window"] = int(cfg["fps_window"])
    if cfg["fps_window"] < 1:
        raise ValueError("fps_window deve ser de ao menos 1 segundo")
    codec = cfg["output"]["codec"]
    if not isinstance(codec, str) or len(codec) != 4:
        raise ValueError(f"output.codec deve ter 4 caracteres (FourCC), recebido {codec!r}")
    return cfg


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Lê o YAML (se houver) por cima de DEFAULTS e valida o resultado."""
    data: Dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuração não encontrada: {config_path}")
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{config_path}: esperado um mapeamento no topo do YAML")
    return validate(_merge(DEFAULTS, data))
