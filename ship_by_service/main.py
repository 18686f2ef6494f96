from fastmcp import FastMCP
from datetime import datetime
import pytz
import logging
import time

from .adapters import coerce_order, parse_order_id
from .calculator import ShipByCalculator
from .config import ConfigCache
from .models import ErrorCode

# LOGGING CONFIGURATION

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# INITIALIZE MCP SERVER

mcp = FastMCP("Ship-By Deadline Service")


def get_current_datetime(timezone: str = "UTC") -> datetime:
    """
    Get current datetime in the shop timezone, UTC if the zone is unknown

    Args:
        timezone: Timezone string (e.g., "Asia/Tokyo")
    """
    try:
        return datetime.now(pytz.timezone(timezone))
    except pytz.exceptions.UnknownTimeZoneError:
        logger.error(f"Unknown timezone: {timezone}, falling back to UTC")
        return datetime.now(pytz.UTC)

# MCP TOOLS

@mcp.tool()
def ship_by_estimate(order: dict) -> dict:
    """
    Calculate the ship-by deadline for an order payload.

    The order is a webhook or API order payload; the requested delivery
    date is read from its metafields or attributes as configured.

    Returns:
        Dictionary containing the ship-by details or error information
    """
    request_id = f"{int(time.time() * 1000)}"

    if not isinstance(order, dict):
        return {
            "error": "Order payload must be an object",
            "error_code": ErrorCode.INVALID_INPUT.value
        }

    order_id = parse_order_id(order.get("id"))
    logger.info(f"[{request_id}] Ship-by request: order={order_id}")

    try:
        # Step 1: Load configuration snapshot
        try:
            config = ConfigCache.get_config()
            if not config:
                raise ValueError("Configuration is None")
            shop_setting, rules, holiday_config = ConfigCache.get_snapshot()
        except Exception as e:
            logger.error(f"[{request_id}] Configuration error: {str(e)}")
            return {
                "error": "Service temporarily unavailable. Please try again later.",
                "error_code": ErrorCode.CONFIG_ERROR.value
            }

        # Step 2: Calculate
        result = ShipByCalculator.calculate_ship_by(
            coerce_order(order),
            rules,
            shop_setting,
            holiday_config
        )

        if not result.ok:
            logger.warning(f"[{request_id}] Order {order_id}: {result.error.value} - {result.message}")
            response = result.to_dict()
            response["order_id"] = order_id
            return response

        # Step 3: Build response
        response = result.value.to_dict()
        response["order_id"] = order_id
        response["calculated_at"] = get_current_datetime(config["timezone"]).strftime('%Y-%m-%d %H:%M:%S %Z')

        logger.info(f"[{request_id}] Ship-by completed: {result.value.ship_by}")

        return response

    except Exception:
        logger.exception(f"[{request_id}] Unexpected error in ship_by_estimate")
        return {
            "error": "An unexpected error occurred",
            "error_code": ErrorCode.INTERNAL_ERROR.value
        }


@mcp.tool()
def health_check() -> dict:
    """
    Health check endpoint for monitoring

    Returns:
        Dictionary with service health status
    """
    try:
        config = ConfigCache.get_config()
        config_status = "ok" if config else "error"

        return {
            "status": "healthy" if config_status == "ok" else "unhealthy",
            "timestamp": datetime.now(pytz.UTC).isoformat(),
            "checks": {
                "configuration": config_status,
                "cache": ConfigCache.get_cache_info()
            }
        }
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return {
            "status": "unhealthy",
            "timestamp": datetime.now(pytz.UTC).isoformat(),
            "error": str(e)
        }


@mcp.tool()
def refresh_config() -> dict:
    """
    Manually refresh configuration cache

    Returns:
        Dictionary with refresh status
    """
    try:
        logger.info("Manual configuration refresh requested")
        config = ConfigCache.get_config(force_refresh=True)

        return {
            "status": "success",
            "message": "Configuration refreshed successfully",
            "timestamp": datetime.now(pytz.UTC).isoformat(),
            "rules": len(config["rules"]) if config else 0
        }
    except Exception as e:
        logger.error(f"Configuration refresh failed: {str(e)}")
        return {
            "status": "error",
            "message": f"Failed to refresh configuration: {str(e)}",
            "timestamp": datetime.now(pytz.UTC).isoformat()
        }


@mcp.tool()
def list_shipping_options() -> dict:
    """
    List configured shipping rates or shipping methods and holidays

    Returns:
        Dictionary with the shipping configuration in use
    """
    try:
        shop_setting, rules, holiday_config = ConfigCache.get_snapshot()

        return {
            "status": "success",
            "mode": "shipping_method" if shop_setting.uses_shipping_methods else "shipping_rate",
            "shipping_rates": [rate.to_dict() for rate in shop_setting.shipping_rates],
            "shipping_methods": {
                key: {"title": method.title, "enabled": method.enabled}
                for key, method in shop_setting.shipping_method_settings.items()
            },
            "default_lead_days": shop_setting.default_lead_days,
            "rules": len(rules),
            "holidays": sorted(holiday_config.holidays),
            "weekly_holidays": sorted(holiday_config.weekly_holidays)
        }

    except Exception as e:
        logger.error(f"Error listing shipping options: {str(e)}")
        return {
            "error": "Unable to retrieve shipping configuration",
            "error_code": ErrorCode.CONFIG_ERROR.value
        }


# ============================================
# RUN SERVER
# ============================================

def run():
    logger.info("Starting Ship-By Deadline Service")

    try:
        ConfigCache.load_ttl_from_env()

        # Preload configuration on startup
        config = ConfigCache.get_config()
        if config:
            logger.info(f"Configuration loaded: {len(config['rules'])} rules available")
        else:
            logger.warning("Failed to load initial configuration")

        mcp.run(transport="http")

    except Exception as e:
        logger.critical(f"Failed to start server: {str(e)}")
        raise


if __name__ == "__main__":
    run()
