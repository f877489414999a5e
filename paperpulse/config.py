"""Configuration management.

``Settings`` is a **metaclass-based singleton**: the first call to
``Settings.load()`` creates the instance; every later call returns
the same object.  Use ``update()`` to change values at runtime, or
``reload()`` to re-read everything from disk.

All user-editable configuration lives under ``.metadata/``:

* ``llm_profiles.yaml``  – LLM provider credentials (structured extraction)
* ``scoring.yaml``       – momentum score weights and tuning constants
* ``enrich.yaml``        – enrichment defaults, HTTP politeness, tokens

On first run, missing files are copied from ``.metadata.example/``.
Secrets may also come from the environment (``GITHUB_TOKEN``,
``PWC_API_TOKEN``, ``CRON_SECRET``); ``PAPERPULSE_DB`` overrides the
database path.
"""

import logging
import math
import os
import shutil
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from paperpulse.exceptions import ConfigError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# LLM Profile dataclasses
# ---------------------------------------------------------------------------

@dataclass
class LLMModel:
    """A single model entry from the built-in registry."""

    id: str
    name: str
    provider_id: str
    provider_name: str
    base_url: str
    context_window: int = 0
    max_output: int = 0


@dataclass
class LLMProfile:
    """A single LLM provider credential."""

    id: str
    name: str
    model: str
    api_key: str


# ---------------------------------------------------------------------------
# Scoring + enrichment dataclasses
# ---------------------------------------------------------------------------

@dataclass
class ScoreWeights:
    """Convex weights of the four score components (must sum to 1)."""

    recency: float = 0.5
    code: float = 0.15
    stars: float = 0.15
    watchlist: float = 0.2

    @property
    def total(self) -> float:
        return self.recency + self.code + self.stars + self.watchlist


@dataclass
class ScoringConfig:
    """Tuning constants of the momentum score."""

    half_life_days: float = 5.0
    stars_cap: float = 1500.0
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    code_base: float = 0.7
    has_weights_bonus: float = 0.3
    keyword_weight: float = 1.0
    author_weight: float = 1.2
    benchmark_weight: float = 1.1
    max_watch_boost: float = 5.0

    def validate(self) -> "ScoringConfig":
        """Check the invariants the scorer relies on.

        Raises:
            ConfigError: If weights are negative or do not sum to 1
        """
        values = asdict(self.weights)
        for name, value in values.items():
            if not math.isfinite(value) or value < 0:
                raise ConfigError(f"Score weight '{name}' must be a non-negative number")
        if abs(self.weights.total - 1.0) > 1e-6:
            raise ConfigError(
                f"Score weights must sum to 1 (got {self.weights.total:.6f})"
            )
        for name in ("half_life_days", "stars_cap", "max_watch_boost"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"'{name}' must be positive")
        return self

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "ScoringConfig":
        """Build from a YAML mapping; unknown keys are rejected."""
        data = dict(data or {})
        weights = data.pop("weights", None) or {}
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown scoring settings: {', '.join(sorted(unknown))}")
        try:
            cfg = cls(
                weights=ScoreWeights(**{k: float(v) for k, v in weights.items()}),
                **{k: float(v) for k, v in data.items()},
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid scoring settings: {e}") from e
        return cfg.validate()


@dataclass
class EnrichConfig:
    """Defaults and politeness knobs for the enrichment pipeline."""

    default_limit: int = 30
    default_lookback_days: int = 7
    fetch_readme: bool = False
    run_extract: bool = True
    run_benchmark_lookup: bool = True
    skip_recently_enriched: bool = False
    workers: int = 1

    request_timeout: float = 15.0
    retry_attempts: int = 3
    retry_base_delay: float = 0.6
    polite_delay: float = 0.2
    user_agent: str = "paperpulse/1.0 (+https://github.com/paperpulse; enrich)"

    github_token: Optional[str] = None
    pwc_token: Optional[str] = None
    cron_secret: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "EnrichConfig":
        data = data or {}
        known = {f.name for f in fields(cls)}
        cfg = cls(**{k: v for k, v in data.items() if k in known and v is not None})
        cfg.github_token = os.environ.get("GITHUB_TOKEN") or cfg.github_token
        cfg.pwc_token = os.environ.get("PWC_API_TOKEN") or cfg.pwc_token
        cfg.cron_secret = os.environ.get("CRON_SECRET") or cfg.cron_secret
        return cfg


# ---------------------------------------------------------------------------
# Singleton metaclass
# ---------------------------------------------------------------------------

class _SettingsMeta(type):
    """Metaclass that enforces a process-wide singleton for *Settings*.

    * First ``Settings(...)`` creates and caches the instance.
    * Later ``Settings(...)`` calls return the cached instance (args ignored).
    """

    _instances: dict[type, Any] = {}

    def __call__(cls, *args: Any, **kwargs: Any) -> Any:
        if cls not in cls._instances:
            cls._instances[cls] = super().__call__(*args, **kwargs)
        return cls._instances[cls]


# ---------------------------------------------------------------------------
# Settings dataclass (singleton)
# ---------------------------------------------------------------------------

@dataclass
class Settings(metaclass=_SettingsMeta):
    """Application settings — singleton with runtime-mutable fields.

    Usage::

        settings = Settings.load()          # first call → create
        settings = Settings.load()          # later → same object
        settings.update(db_path=Path(...))  # runtime change
        settings = Settings.reload()        # re-read from disk
    """

    db_path: Path = Path("papers.db")
    metadata_dir: Path = Path(".metadata")

    # LLM profiles
    llm_profiles: list[LLMProfile] = field(default_factory=list)
    active_llm_id: Optional[str] = None

    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    enrich: EnrichConfig = field(default_factory=EnrichConfig)

    # ── Computed properties ────────────────────────────────────────────

    @property
    def active_llm(self) -> Optional[LLMProfile]:
        """Return the currently active LLM profile, or None."""
        if not self.active_llm_id:
            return None
        return next(
            (p for p in self.llm_profiles if p.id == self.active_llm_id),
            None,
        )

    # ── Runtime helpers ───────────────────────────────────────────────

    def update(self, **kwargs: Any) -> None:
        """Mutate settings fields at runtime.

        >>> Settings.load().update(db_path=Path("/tmp/test.db"))
        """
        for key, value in kwargs.items():
            if not hasattr(self, key):
                raise AttributeError(f"Settings has no field '{key}'")
            setattr(self, key, value)

    # ── Factory / lifecycle ───────────────────────────────────────────

    @classmethod
    def load(cls, base_dir: Optional[Path] = None) -> "Settings":
        """Load or return the singleton Settings instance.

        On first call the singleton is created; subsequent calls return
        the cached instance.  Pass *base_dir* to override the project
        root (defaults to the repository root one level above ``paperpulse/``).

        Raises:
            ConfigError: If ``scoring.yaml`` holds invalid values
        """
        if cls in _SettingsMeta._instances:
            return _SettingsMeta._instances[cls]  # type: ignore[return-value]

        if base_dir is None:
            base_dir = Path(__file__).resolve().parent.parent

        metadata_dir = base_dir / ".metadata"
        cls._ensure_default_files(base_dir, metadata_dir)

        llm_profiles, active_llm_id = _load_llm_profiles(
            metadata_dir / "llm_profiles.yaml"
        )
        scoring = ScoringConfig.from_dict(_load_yaml(metadata_dir / "scoring.yaml"))
        enrich = EnrichConfig.from_dict(_load_yaml(metadata_dir / "enrich.yaml"))

        db_env = os.environ.get("PAPERPULSE_DB")
        return cls(
            db_path=Path(db_env) if db_env else base_dir / "papers.db",
            metadata_dir=metadata_dir,
            llm_profiles=llm_profiles,
            active_llm_id=active_llm_id,
            scoring=scoring,
            enrich=enrich,
        )

    @classmethod
    def reload(cls, base_dir: Optional[Path] = None) -> "Settings":
        """Discard the current singleton and re-load from disk."""
        cls.reset()
        return cls.load(base_dir)

    @classmethod
    def reset(cls) -> None:
        """Discard the singleton so the next ``load()`` re-creates it."""
        _SettingsMeta._instances.pop(cls, None)

    # ── Private ───────────────────────────────────────────────────────

    @staticmethod
    def _ensure_default_files(base_dir: Path, metadata_dir: Path) -> None:
        """Copy ``.metadata.example/`` templates when real files are missing."""
        metadata_dir.mkdir(parents=True, exist_ok=True)

        example_dir = base_dir / ".metadata.example"
        if not example_dir.exists():
            return

        for example_file in example_dir.iterdir():
            if example_file.is_file():
                target = metadata_dir / example_file.name
                if not target.exists():
                    shutil.copy2(example_file, target)
                    logger.info("Created .metadata/%s from template", example_file.name)


# ---------------------------------------------------------------------------
# YAML loaders
# ---------------------------------------------------------------------------

def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping; missing or empty files yield ``{}``.

    Raises:
        ConfigError: If the file exists but is not a mapping
    """
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {path.name}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping")
    return data


def _load_llm_profiles(path: Path) -> tuple[list[LLMProfile], Optional[str]]:
    """Load LLM profiles from ``llm_profiles.yaml``.

    Returns:
        Tuple of (profiles list, active profile id)
    """
    if not path.exists():
        return [], None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            return [], None

        active_id = data.get("active") or None
        raw_profiles = data.get("profiles") or []
        profiles = []
        for p in raw_profiles:
            if isinstance(p, dict) and p.get("id") and p.get("model") and p.get("api_key"):
                profiles.append(
                    LLMProfile(
                        id=str(p["id"]),
                        name=str(p.get("name", p["model"])),
                        model=str(p["model"]),
                        api_key=str(p["api_key"]),
                    )
                )
        return profiles, active_id
    except yaml.YAMLError:
        logger.warning("Ignoring unreadable %s", path.name)
        return [], None


def load_llm_models() -> list[LLMModel]:
    """Load the built-in LLM model registry from ``paperpulse/data/llm_models.yaml``.

    This is **application data** (ships with the package), not user config.
    The extractor resolves a profile's ``model`` to a provider base URL here.
    """
    registry_path = Path(__file__).resolve().parent / "data" / "llm_models.yaml"
    if not registry_path.exists():
        return []
    try:
        with open(registry_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            return []

        models: list[LLMModel] = []
        for provider in data.get("providers") or []:
            pid = provider.get("id", "")
            pname = provider.get("name", "")
            base_url = provider.get("base_url", "")
            for m in provider.get("models") or []:
                models.append(
                    LLMModel(
                        id=str(m["id"]),
                        name=str(m.get("name", m["id"])),
                        provider_id=pid,
                        provider_name=pname,
                        base_url=base_url,
                        context_window=int(m.get("context_window", 0)),
                        max_output=int(m.get("max_output", 0)),
                    )
                )
        return models
    except (yaml.YAMLError, KeyError, TypeError, ValueError):
        logger.warning("LLM model registry is unreadable; no models loaded")
        return []
