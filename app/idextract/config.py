from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

BASE_DIR = Path(__file__).parent


def _load_dotenv() -> None:
    repo_root = Path(__file__).resolve().parents[2]
    candidates = [repo_root / ".env", Path.cwd() / ".env"]
    for env_path in candidates:
        if not env_path.exists():
            continue
        try:
            for line in env_path.read_text().splitlines():
                stripped = line.strip()
                if not stripped or stripped.startswith("#") or "=" not in stripped:
                    continue
                key, value = stripped.split("=", 1)
                key = key.strip()
                value = value.strip().strip('"').strip("'")
                if key and key not in os.environ:
                    os.environ[key] = value
        except OSError:
            continue
        break


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


_load_dotenv()


@dataclass(frozen=True)
class PipelineConfig:
    autofill_threshold: float = float(os.getenv("IDEXTRACT_AUTOFILL_THRESHOLD", "0.60"))
    mrz_reliability_threshold: float = float(os.getenv("IDEXTRACT_MRZ_RELIABILITY", "0.60"))
    # Fallback values must stay below the auto-fill threshold.
    legacy_name_confidence: float = float(os.getenv("IDEXTRACT_LEGACY_NAME_CONFIDENCE", "0.55"))
    legacy_document_confidence: float = float(os.getenv("IDEXTRACT_LEGACY_DOC_CONFIDENCE", "0.50"))
    entity_penalty: float = float(os.getenv("IDEXTRACT_ENTITY_PENALTY", "0.20"))


@dataclass(frozen=True)
class HintConfig:
    timeout_seconds: float = float(os.getenv("IDEXTRACT_HINT_TIMEOUT_S", "2.0"))
    rule_based: bool = _env_flag("IDEXTRACT_RULE_HINTS", "true")


@dataclass(frozen=True)
class MetricsConfig:
    directory: Path = Path(os.getenv("IDEXTRACT_METRICS_DIR", str(BASE_DIR / "metrics")))
    retention_days: int = int(os.getenv("IDEXTRACT_METRICS_RETENTION_DAYS", "90"))
    retention_cap: int = int(os.getenv("IDEXTRACT_METRICS_RETENTION_CAP", "1000"))


@dataclass(frozen=True)
class AppConfig:
    log_level: str = os.getenv("IDEXTRACT_LOG_LEVEL", "INFO")
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    hints: HintConfig = field(default_factory=HintConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)


CONFIG = AppConfig()
