"""Run configuration.

Settings come from three layers, later ones winning:
1. Defaults declared on the pydantic models below
2. The YAML file named by PLACEBOT_CONFIG (default: config/placebot.yaml)
3. Environment variables (PLACEBOT_DB_PATH, PLACEBOT_CACHE_DIR,
   GOOGLE_PLACES_API_KEY and the SCORE_* integers)

Usage:
------
settings = load_settings()
api_key = settings.require_google_places_key()   # raises ConfigurationError
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from placebot.core.exceptions import ConfigurationError
from placebot.core.retry import RetryPolicy
from placebot.utils.config_loader import ConfigLoader
from placebot.utils.logger import LoggerManager


DEFAULT_CONFIG_PATH = Path("config/placebot.yaml")

USER_AGENT = "PlaceBot/1.0 (Nature places catalog enrichment)"

GOOGLE_PLACES_KEY_ENV = "GOOGLE_PLACES_API_KEY"

# Integer overrides for the rule table
SCORE_ENV_OVERRIDES = {
    "SCORE_SOURCE_BASE": "source_base",
    "SCORE_ENHANCEMENT_WEBSITE": "has_website",
    "SCORE_ENHANCEMENT_WIKIPEDIA": "encyclopedia_page",
    "SCORE_BUMP_PHOTOS_FETCHED": "photos_fetched_bump",
    "SCORE_BUMP_GENERATED_PLACE_VERIFIED": "generated_place_verified_bump",
}


class HttpSettings(BaseModel):
    model_config = ConfigDict(extra='forbid')

    user_agent: str = USER_AGENT
    timeout: float = Field(default=15.0, gt=0)
    # Minimum seconds between two requests to the same provider
    min_interval: Dict[str, float] = Field(default_factory=lambda: {
        "wikipedia": 0.1,
        "wikimedia": 0.5,
        "google_places": 0.1,
        "nominatim": 1.0,
    })


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra='forbid')

    directory: Path = Path(".cache")
    enabled: bool = True


class EncyclopediaSettings(BaseModel):
    model_config = ConfigDict(extra='forbid')

    primary_language: str = "fr"
    fallback_language: str = "en"
    extract_max_chars: int = 10000
    pageview_days: int = 365


class MediaSettings(BaseModel):
    model_config = ConfigDict(extra='forbid')

    max_photos: int = 5
    geosearch_radius_m: int = 10000
    location_bias_radius_m: float = 5000.0
    photo_max_px: int = 800
    min_place_score: float = 0


class RatingsSettings(BaseModel):
    model_config = ConfigDict(extra='forbid')

    refresh_after_days: int = 182


class VerificationSettings(BaseModel):
    model_config = ConfigDict(extra='forbid')

    country_codes: str = "fr"
    search_limit: int = 10
    min_similarity: float = 50
    default_country: str = "France"


class CleanupSettings(BaseModel):
    model_config = ConfigDict(extra='forbid')

    min_similarity: float = 0.7
    manual_review_similarity: float = 0.3


class Tier(BaseModel):
    """Points awarded when a value reaches `threshold`."""
    model_config = ConfigDict(extra='forbid')

    threshold: float
    points: float


class ScoreRules(BaseModel):
    """The externally configurable rule table."""
    model_config = ConfigDict(extra='forbid')

    # Provenance
    source_base: float = 1
    source_by_type: Dict[str, float] = Field(
        default_factory=lambda: {"national_park": 6, "regional_park": 4}
    )
    verified_generated_place: float = 2

    # Enrichment
    has_website: float = 2
    has_photos: float = 2
    encyclopedia_page: float = 4
    view_tiers: List[Tier] = Field(default_factory=lambda: [
        Tier(threshold=10000, points=3),
        Tier(threshold=1000, points=2),
        Tier(threshold=100, points=1),
    ])
    language_tiers: List[Tier] = Field(default_factory=lambda: [
        Tier(threshold=10, points=3),
        Tier(threshold=5, points=2),
        Tier(threshold=2, points=1),
    ])

    # Rating curve (-2 to 10 before confidence weighting)
    has_rating: float = 1
    rating_tiers: List[Tier] = Field(default_factory=lambda: [
        Tier(threshold=4.7, points=10),
        Tier(threshold=4.4, points=7),
        Tier(threshold=4.1, points=5),
        Tier(threshold=3.8, points=2),
        Tier(threshold=3.5, points=0),
        Tier(threshold=3.2, points=-1),
    ])
    rating_floor: float = -2
    rating_best_count: int = Field(default=1000, ge=1)

    # One-time bumps
    photos_fetched_bump: float = 2
    generated_place_verified_bump: float = 2


class Settings(BaseModel):
    """Everything a batch run needs."""
    model_config = ConfigDict(extra='forbid')

    database_path: Path = Path("data/catalog.db")
    google_places_api_key: Optional[str] = None
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    http: HttpSettings = Field(default_factory=HttpSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    encyclopedia: EncyclopediaSettings = Field(default_factory=EncyclopediaSettings)
    media: MediaSettings = Field(default_factory=MediaSettings)
    ratings: RatingsSettings = Field(default_factory=RatingsSettings)
    verification: VerificationSettings = Field(default_factory=VerificationSettings)
    cleanup: CleanupSettings = Field(default_factory=CleanupSettings)
    scoring: ScoreRules = Field(default_factory=ScoreRules)

    def require_google_places_key(self) -> str:
        """The Google Places key, or ConfigurationError before any work starts."""
        if not self.google_places_api_key:
            raise ConfigurationError.from_missing_credential(
                GOOGLE_PLACES_KEY_ENV, "Google Places"
            )
        return self.google_places_api_key


def _env_overrides(data: Dict[str, Any], environ: Dict[str, str]) -> Dict[str, Any]:
    logger = LoggerManager.get_logger(__name__)

    if environ.get("PLACEBOT_DB_PATH"):
        data["database_path"] = environ["PLACEBOT_DB_PATH"]
    if environ.get("PLACEBOT_CACHE_DIR"):
        data.setdefault("cache", {})["directory"] = environ["PLACEBOT_CACHE_DIR"]
    if environ.get(GOOGLE_PLACES_KEY_ENV):
        data["google_places_api_key"] = environ[GOOGLE_PLACES_KEY_ENV]

    for env_var, field in SCORE_ENV_OVERRIDES.items():
        raw = environ.get(env_var)
        if raw in (None, ""):
            continue
        try:
            data.setdefault("scoring", {})[field] = int(raw)
        except ValueError:
            logger.warning(
                "config.env.invalid_int",
                extra={"extra_data": {"variable": env_var, "value": raw}},
            )
    return data


def load_settings(
    path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None
) -> Settings:
    """Build Settings from the YAML file (when present) and the environment.

    Args:
        path: YAML config path. Defaults to PLACEBOT_CONFIG or config/placebot.yaml
        environ: Environment mapping, defaults to os.environ

    Returns:
        Validated Settings
    """
    environ = dict(os.environ if environ is None else environ)
    config_path = Path(path or environ.get("PLACEBOT_CONFIG") or DEFAULT_CONFIG_PATH)

    data: Dict[str, Any] = {}
    if config_path.exists():
        data = dict(ConfigLoader(config_path).as_dict())
    elif path is not None:
        raise FileNotFoundError(f"Config file not found: {config_path}")

    return Settings(**_env_overrides(data, environ))
