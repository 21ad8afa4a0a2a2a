"""
Model configuration for study notes generation.
Centralized model table so routes can validate a requested model.
"""

import os
from typing import Dict, Any, Optional


# Study notes are long-form and should stay close to the transcript,
# hence the low temperature.
MODEL_CONFIGS: Dict[str, Dict[str, Any]] = {
    "claude-sonnet-4": {
        "model": "claude-sonnet-4-20250514",
        "max_tokens": 8192,
        "temperature": 0.3
    },
    "claude-sonnet-4-5": {
        "model": "claude-sonnet-4-5-20250929",
        "max_tokens": 16000,
        "temperature": 0.3
    },
    "claude-haiku-4-5": {
        "model": "claude-haiku-4-5-20251001",
        "max_tokens": 16000,
        "temperature": 0.3
    },
}

DEFAULT_MODEL = "claude-sonnet-4"


class ModelConfig:
    """Model configuration manager"""

    @staticmethod
    def default_model() -> str:
        key = os.getenv("INSIGHTS_MODEL", DEFAULT_MODEL)
        return key if key in MODEL_CONFIGS else DEFAULT_MODEL

    @staticmethod
    def get_config(model_key: Optional[str] = None) -> Dict[str, Any]:
        """Get configuration for specified model or default"""
        key = model_key or ModelConfig.default_model()

        if key not in MODEL_CONFIGS:
            raise ValueError(f"Unknown model: {key}. Available: {list(MODEL_CONFIGS.keys())}")

        return MODEL_CONFIGS[key]
