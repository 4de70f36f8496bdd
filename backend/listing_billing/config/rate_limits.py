"""
Rate limit configuration loader.

Loads ceilings and window lengths from config/rate_limits.yml, the single
source of truth for the CTA endpoint's durable limits.

Usage:
    from listing_billing.config.rate_limits import get_rate_limit_loader

    rule = get_rate_limit_loader().get_rule("cta_event_origin")
    rule.ceiling, rule.window_seconds
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

import yaml

from listing_billing.config.billing_settings import get_billing_settings

logger = logging.getLogger(__name__)

CTA_EVENT_ORIGIN = "cta_event_origin"
CTA_EVENT_SUBJECT = "cta_event_subject"


@dataclass(frozen=True)
class RateLimitRule:
    ceiling: int
    window_seconds: int


# Used when the YAML omits a rule
_FALLBACK_RULES = {
    CTA_EVENT_ORIGIN: RateLimitRule(ceiling=60, window_seconds=60),
    CTA_EVENT_SUBJECT: RateLimitRule(ceiling=1000, window_seconds=3600),
}


class RateLimitConfigLoader:
    """
    Thread-safe singleton loader for rate_limits.yml.
    """

    _instance: Optional["RateLimitConfigLoader"] = None
    _lock = Lock()

    def __new__(cls, config_path: Optional[str] = None):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        if self._initialized:
            return

        self._config_path = config_path or get_billing_settings().rate_limits_config_path
        self._raw: Dict[str, Any] = {}
        self._rules: Dict[str, RateLimitRule] = {}
        self._load_lock = Lock()

        self._load()
        self._initialized = True

    def _resolve_path(self) -> Path:
        if self._config_path:
            path = Path(self._config_path)
            if not path.exists():
                raise FileNotFoundError(f"rate limit config not found: {path}")
            return path
        return Path(__file__).parent / "rate_limits.yml"

    def _load(self) -> None:
        with self._load_lock:
            path = self._resolve_path()
            logger.info("Loading rate limit config from %s", path)

            with open(path, "r") as f:
                self._raw = yaml.safe_load(f) or {}

            rules: Dict[str, RateLimitRule] = {}
            for name, cfg in (self._raw.get("limits") or {}).items():
                ceiling = int(cfg["ceiling"])
                window_seconds = int(cfg["window_seconds"])
                if ceiling < 1 or window_seconds < 1:
                    raise ValueError(
                        f"rate limit '{name}' needs positive ceiling and window_seconds"
                    )
                rules[name] = RateLimitRule(ceiling=ceiling, window_seconds=window_seconds)
            self._rules = rules

            logger.info("Loaded %d rate limit rules: %s", len(rules), sorted(rules))

    def reload(self) -> None:
        """Re-read the YAML from disk (e.g. after a config change)."""
        self._load()

    def get_rule(self, name: str) -> RateLimitRule:
        rule = self._rules.get(name) or _FALLBACK_RULES.get(name)
        if rule is None:
            raise KeyError(f"Unknown rate limit rule: {name}")
        return rule

    def get_all(self) -> Dict[str, Dict[str, int]]:
        names = set(_FALLBACK_RULES) | set(self._rules)
        return {
            name: {
                "ceiling": self.get_rule(name).ceiling,
                "window_seconds": self.get_rule(name).window_seconds,
            }
            for name in sorted(names)
        }


def get_rate_limit_loader(config_path: Optional[str] = None) -> RateLimitConfigLoader:
    """Return the singleton RateLimitConfigLoader."""
    return RateLimitConfigLoader(config_path)


def reset_rate_limit_loader() -> None:
    """Reset singleton (for tests only)."""
    RateLimitConfigLoader._instance = None
