import questionary
from config import (
    load_config, validate_config, update_config, reset_to_defaults,
    CONFIG_SCHEMA
)
from utils.logger import log_info, log_error, log_success


CONFIG_CATEGORIES = {
    "Spotify": [
        "spotify_client_id", "spotify_redirect_uri", "spotify_scopes", "credential_store_path",
        "spotify_timeout", "spotify_proactive_refresh", "spotify_single_flight_refresh",
        "spotify_token_skew_seconds",
    ],
    "Search": ["search_debounce_ms", "search_limit"],
    "Workout Playlist": [
        "bpm_lower_bound", "bpm_upper_bound", "default_bpm_min", "default_bpm_max",
        "recommendation_limit", "market", "playlist_name_template", "playlist_public",
    ],
    "Logging": ["log_level", "log_file"],
}


def config_menu(config: dict) -> dict:
    """
    Display the configuration menu and handle user selections.
    Returns the potentially updated config dict.
    """
    while True:
        choice = questionary.select(
            "⚙️ Config Menu — What would you like to do?",
            choices=[
                "View current config",
                "Update a setting",
                "Reset to defaults",
                "Validate configuration",
                "Back"
            ]
        ).ask()

        if choice == "View current config":
            view_config(config)

        elif choice == "Update a setting":
            config = update_setting_menu(config)

        elif choice == "Reset to defaults":
            config = reset_config_menu(config)

        elif choice == "Validate configuration":
            validate_config_menu(config)

        else:
            break

    return config


def view_config(config: dict):
    """Display the current configuration grouped by category."""
    log_info("\n" + "=" * 50)
    log_info("📋 Current Configuration")
    log_info("=" * 50)

    for category, keys in CONFIG_CATEGORIES.items():
        log_info(f"\n{category}:")
        for key in keys:
            if key in config:
                value = config[key]
                if isinstance(value, bool):
                    value = "✓ Enabled" if value else "✗ Disabled"
                elif isinstance(value, list):
                    value = ", ".join(str(v) for v in value)
                log_info(f"  {key}: {value}")

    log_info("\n" + "=" * 50)


def _parse_setting(key: str, schema: dict, current_value):
    """Prompt for a new value of ``key``; returns (ok, value)."""
    if "choices" in schema:
        return True, questionary.select(
            f"Select new value for {key}:",
            choices=schema["choices"]
        ).ask()

    if schema.get("type") == bool:
        return True, questionary.confirm(
            f"Enable {key}?",
            default=current_value if isinstance(current_value, bool) else True
        ).ask()

    if schema.get("type") == list:
        raw = questionary.text(
            f"Enter new values for {key} (comma separated):",
            default=", ".join(current_value) if isinstance(current_value, list) else ""
        ).ask()
        return True, [v.strip() for v in (raw or "").split(",") if v.strip()]

    if schema.get("type") in [int, (int, float)]:
        min_val = schema.get("min", 0)
        max_val = schema.get("max", 9999)
        raw = questionary.text(
            f"Enter new value for {key} ({min_val}-{max_val}):",
            default=str(current_value) if current_value is not None else ""
        ).ask()
        try:
            return True, int(raw) if schema.get("type") == int else float(raw)
        except (TypeError, ValueError):
            log_error("Invalid number format")
            return False, None

    return True, questionary.text(
        f"Enter new value for {key}:",
        default=str(current_value) if current_value is not None else ""
    ).ask()


def update_setting_menu(config: dict) -> dict:
    """Menu to update individual settings."""
    editable_keys = list(CONFIG_SCHEMA.keys())
    editable_keys.append("Back")

    key = questionary.select(
        "Select setting to update:",
        choices=editable_keys
    ).ask()

    if not key or key == "Back":
        return config

    current_value = config.get(key)
    log_info(f"\nCurrent value: {current_value if current_value is not None else 'Not set'}")

    ok, new_value = _parse_setting(key, CONFIG_SCHEMA[key], current_value)
    if not ok or new_value is None:
        return config

    success, message = update_config(key, new_value)

    if success:
        log_success(message)
        config[key] = new_value
    else:
        log_error(message)

    return config


def reset_config_menu(config: dict) -> dict:
    """Menu to reset configuration to defaults."""
    confirm = questionary.confirm(
        "⚠️ Reset all settings to defaults? This cannot be undone.",
        default=False
    ).ask()

    if confirm:
        success, message = reset_to_defaults()

        if success:
            log_success(message)
            config = load_config()
        else:
            log_error(message)

    return config


def validate_config_menu(config: dict):
    """Validate the current configuration and show any errors."""
    is_valid, errors = validate_config(config)

    log_info("\n" + "=" * 50)
    log_info("🔍 Configuration Validation")
    log_info("=" * 50)

    if is_valid:
        log_success("Configuration is valid! ✓")
    else:
        log_error("Configuration has errors:")
        for error in errors:
            log_error(f"  ✗ {error}")

    log_info("=" * 50)
