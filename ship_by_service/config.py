import logging
import os
import time
import pytz
import threading
from datetime import date
from typing import Dict, List, Optional, Tuple

from .adapters import extract_holiday, extract_shop_setting
from .holidays import WEEKDAY_CODES
from .models import DeliverySource, HolidayConfig, Rule, ShopSetting
from .rules import build_rule
from .sheetCredential import get_sheet_data, parse_to_config
from .validators import DeliveryDateValidator, parse_positive_int

logger = logging.getLogger(__name__)

# Round-trip probe for the configured delivery format
_PROBE_DATE = date(2025, 12, 24)


class ConfigCache:
    """
    Thread-safe configuration cache with TTL

    NOTE: This is a SHARED cache - every calculation in the process reads
    the same snapshot of settings, rules and holidays.
    """

    _cache: Optional[Dict] = None
    _cache_time: Optional[float] = None
    _cache_ttl: int = 600  # 10 minutes in seconds
    _lock = threading.Lock()
    _fetch_in_progress = False

    @classmethod
    def get_config(cls, force_refresh: bool = False) -> Optional[Dict]:
        """
        Get cached configuration or fetch new one if expired

        Args:
            force_refresh: If True, bypass cache and fetch fresh config

        Returns:
            Configuration dictionary or None if unavailable
        """
        with cls._lock:
            current_time = time.time()

            if (not force_refresh and
                    cls._cache is not None and
                    cls._cache_time is not None and
                    (current_time - cls._cache_time) < cls._cache_ttl):
                logger.debug("Using cached configuration (shared)")
                return cls._cache

            # Another thread is fetching, serve the stale cache
            if cls._fetch_in_progress:
                logger.info("Config fetch already in progress, returning stale cache")
                return cls._cache

            cls._fetch_in_progress = True

        # Fetch outside the lock to avoid blocking other threads
        try:
            logger.info("Fetching fresh configuration from Google Sheets")
            sheet_data = get_sheet_data()

            if not sheet_data:
                logger.error("Empty data received from Google Sheets")
                with cls._lock:
                    cls._fetch_in_progress = False
                if cls._cache is not None:
                    logger.warning("Using stale cache due to fetch failure")
                    return cls._cache
                raise ValueError("No configuration data available")

            config = parse_to_config(sheet_data)

            if not cls._validate_config(config):
                logger.error("Configuration validation failed")
                with cls._lock:
                    cls._fetch_in_progress = False
                if cls._cache is not None:
                    logger.warning("Using stale cache due to validation failure")
                    return cls._cache
                raise ValueError("Invalid configuration structure")

            with cls._lock:
                cls._cache = config
                cls._cache_time = current_time
                cls._fetch_in_progress = False
                logger.info("Configuration cache updated successfully (shared)")

            return config

        except Exception as e:
            logger.error(f"Error loading configuration: {str(e)}", exc_info=True)
            with cls._lock:
                cls._fetch_in_progress = False
            if cls._cache is not None:
                logger.warning("Using stale cache due to error")
                return cls._cache
            raise

    @classmethod
    def _validate_config(cls, config: Dict) -> bool:
        """
        Validate configuration structure

        Args:
            config: Configuration dictionary to validate

        Returns:
            True if valid, False otherwise
        """
        required_keys = ["delivery_source", "delivery_key", "timezone"]

        if not all(config.get(key) for key in required_keys):
            logger.error(f"Missing required config keys. Required: {required_keys}")
            return False

        try:
            DeliverySource(config["delivery_source"].lower())
        except (AttributeError, ValueError):
            logger.error(f"Invalid delivery_source: {config.get('delivery_source')}")
            return False

        try:
            pytz.timezone(config["timezone"])
        except pytz.exceptions.UnknownTimeZoneError:
            logger.error(f"Invalid timezone: {config.get('timezone')}")
            return False

        if config.get("delivery_format"):
            if DeliveryDateValidator.parse_date_with_format(
                DeliveryDateValidator.format_date(_PROBE_DATE, config["delivery_format"]),
                config["delivery_format"],
            ) != _PROBE_DATE:
                logger.error(f"Invalid delivery_format: {config['delivery_format']}")
                return False

        if config.get("default_lead_days") and parse_positive_int(config["default_lead_days"]) is None:
            logger.error(f"Invalid default_lead_days: {config['default_lead_days']}")
            return False

        if not isinstance(config.get("shipping_rates"), list):
            logger.error("shipping_rates must be a list")
            return False

        if not isinstance(config.get("shipping_methods"), dict):
            logger.error("shipping_methods must be a dictionary")
            return False

        if not config["shipping_rates"] and not config["shipping_methods"]:
            logger.error("No shipping rates or shipping methods configured")
            return False

        if not isinstance(config.get("rules"), list):
            logger.error("rules must be a list")
            return False

        for rule in config["rules"]:
            if not isinstance(rule, dict) or build_rule(rule) is None:
                logger.error(f"Invalid rule: {rule}")
                return False

        for code in config.get("weekly_holidays", []):
            if code.lower() not in WEEKDAY_CODES:
                logger.error(f"Invalid weekly holiday: {code}")
                return False

        logger.debug("Configuration validation passed")
        return True

    @classmethod
    def get_snapshot(cls, force_refresh: bool = False) -> Tuple[ShopSetting, List[Rule], HolidayConfig]:
        """
        Resolve the cached configuration into calculation inputs

        Returns:
            (shop setting, rules, holiday configuration)
        """
        config = cls.get_config(force_refresh=force_refresh)
        if not config:
            raise ValueError("Configuration is None")
        return snapshot_from_config(config)

    @classmethod
    def clear_cache(cls):
        """Clear the configuration cache (useful for testing)"""
        with cls._lock:
            cls._cache = None
            cls._cache_time = None
            logger.info("Configuration cache cleared")

    @classmethod
    def set_cache_ttl(cls, ttl_seconds: int):
        """
        Set the cache TTL

        Args:
            ttl_seconds: Time to live in seconds
        """
        if ttl_seconds < 0:
            logger.warning(f"Invalid TTL value: {ttl_seconds}, using default")
            return

        with cls._lock:
            cls._cache_ttl = ttl_seconds
            logger.info(f"Cache TTL set to {ttl_seconds} seconds")

    @classmethod
    def load_ttl_from_env(cls, var_name: str = "CONFIG_CACHE_TTL"):
        """
        Apply a cache TTL override from the environment (.env included)

        Args:
            var_name: Environment variable holding the TTL in seconds
        """
        raw = (os.getenv(var_name) or "").strip()
        if not raw:
            return

        try:
            ttl_seconds = int(raw)
        except ValueError:
            logger.warning(f"Invalid {var_name} value '{raw}', keeping {cls._cache_ttl} seconds")
            return

        cls.set_cache_ttl(ttl_seconds)

    @classmethod
    def get_cache_info(cls) -> Dict:
        """
        Get information about the current cache state

        Returns:
            Dictionary with cache information
        """
        with cls._lock:
            if cls._cache is None:
                return {
                    "cached": False,
                    "cache_age": None,
                    "ttl": cls._cache_ttl,
                    "shared": True
                }

            current_time = time.time()
            cache_age = current_time - cls._cache_time if cls._cache_time else None

            return {
                "cached": True,
                "cache_age_seconds": cache_age,
                "ttl_seconds": cls._cache_ttl,
                "is_stale": cache_age > cls._cache_ttl if cache_age else False,
                "rules_count": len(cls._cache.get("rules", [])),
                "shared": True
            }


def snapshot_from_config(config: Dict) -> Tuple[ShopSetting, List[Rule], HolidayConfig]:
    """Convert a validated raw config dictionary into calculation inputs"""
    shop_setting = extract_shop_setting(config)
    rules = [rule for rule in (build_rule(raw) for raw in config.get("rules", [])) if rule]
    holiday_config = extract_holiday(config)
    return shop_setting, rules, holiday_config
