import json
import os
from typing import Any, Dict

CONFIG_PATH = "config.json"

# Environment variables that override config.json (client id / redirect URI
# are injected per deployment).
ENV_OVERRIDES = {
    "HIITRUNNER_SPOTIFY_CLIENT_ID": "spotify_client_id",
    "HIITRUNNER_SPOTIFY_REDIRECT_URI": "spotify_redirect_uri",
}

# Default configuration values
DEFAULT_CONFIG = {
    # Spotify OAuth (Authorization Code + PKCE)
    "spotify_client_id": "",
    "spotify_redirect_uri": "http://127.0.0.1:3000/spotify/auth-callback",
    "spotify_scopes": [
        "playlist-modify-public",
        "playlist-modify-private",
    ],
    "credential_store_path": "data/spotify_credentials.json",
    "spotify_timeout": 30,
    "spotify_proactive_refresh": False,
    "spotify_single_flight_refresh": True,
    "spotify_token_skew_seconds": 60,

    # Search box
    "search_debounce_ms": 500,
    "search_limit": 3,

    # Workout playlist
    "bpm_lower_bound": 0,
    "bpm_upper_bound": 300,
    "default_bpm_min": 170,
    "default_bpm_max": 180,
    "recommendation_limit": 30,
    "market": "US",
    "playlist_name_template": "HIITRunner: {seed} @ {bpm_min}-{bpm_max} BPM",
    "playlist_public": False,

    # Logging
    "log_level": "INFO",
    "log_file": "",
}

# Validation rules for config fields
CONFIG_SCHEMA = {
    "spotify_client_id": {"type": str, "required": False},
    "spotify_redirect_uri": {"type": str, "required": True},
    "spotify_scopes": {"type": list, "required": False, "element_type": str},
    "credential_store_path": {"type": str, "required": True},
    "spotify_timeout": {"type": (int, float), "required": False, "min": 1, "max": 300},
    "spotify_proactive_refresh": {"type": bool, "required": False},
    "spotify_single_flight_refresh": {"type": bool, "required": False},
    "spotify_token_skew_seconds": {"type": int, "required": False, "min": 0, "max": 600},

    "search_debounce_ms": {"type": int, "required": False, "min": 0, "max": 5000},
    "search_limit": {"type": int, "required": False, "min": 1, "max": 50},

    "bpm_lower_bound": {"type": (int, float), "required": False, "min": 0, "max": 300},
    "bpm_upper_bound": {"type": (int, float), "required": False, "min": 0, "max": 300},
    "default_bpm_min": {"type": (int, float), "required": False, "min": 0, "max": 300},
    "default_bpm_max": {"type": (int, float), "required": False, "min": 0, "max": 300},
    "recommendation_limit": {"type": int, "required": False, "min": 1, "max": 100},
    "market": {"type": str, "required": False},
    "playlist_name_template": {"type": str, "required": False},
    "playlist_public": {"type": bool, "required": False},

    "log_level": {"type": str, "required": False, "choices": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    "log_file": {"type": str, "required": False},
}


def apply_env_overrides(config: Dict[str, Any], environ=None) -> Dict[str, Any]:
    """Overlay deployment-specific values from the environment."""
    environ = os.environ if environ is None else environ
    for env_key, config_key in ENV_OVERRIDES.items():
        value = (environ.get(env_key) or "").strip()
        if value:
            config[config_key] = value
    return config


def load_config(path: str = CONFIG_PATH, environ=None) -> Dict[str, Any]:
    """Load configuration from file, applying defaults for missing fields.

    A missing file is not an error: defaults plus environment overrides are
    enough to run once a client id is provided.
    """
    config: Dict[str, Any] = {}
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
        if not isinstance(config, dict):
            raise ValueError(f"Config file {path} must contain a JSON object.")

    # Apply defaults for missing fields
    for key, value in DEFAULT_CONFIG.items():
        if key not in config:
            config[key] = list(value) if isinstance(value, list) else value

    return apply_env_overrides(config, environ)


def save_config(config: Dict[str, Any], path: str = CONFIG_PATH) -> bool:
    """Save configuration to file."""
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except OSError as e:
        raise IOError(f"Failed to save config: {e}")


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration against schema.
    Returns (is_valid, list_of_errors).
    """
    errors = []

    for key, rules in CONFIG_SCHEMA.items():
        # Check required fields
        if rules.get("required", False) and key not in config:
            errors.append(f"Missing required field: {key}")
            continue

        if key not in config:
            continue

        value = config[key]

        # bool is an int subclass; only accept it where the schema asks for bool
        expected_type = rules.get("type")
        if isinstance(value, bool) and expected_type is not bool:
            errors.append(f"Field '{key}' must not be a boolean")
            continue

        # Type check
        if expected_type and not isinstance(value, expected_type):
            type_names = expected_type.__name__ if not isinstance(expected_type, tuple) else "/".join(t.__name__ for t in expected_type)
            errors.append(f"Field '{key}' must be {type_names}, got {type(value).__name__}")
            continue

        # List element type check (when schema uses: {"type": list, "element_type": ...})
        if isinstance(value, list) and "element_type" in rules:
            elem_type = rules["element_type"]
            bad_elems = [v for v in value if not isinstance(v, elem_type)]
            if bad_elems:
                errors.append(
                    f"Field '{key}' must be a list of {elem_type.__name__}, got invalid elements: {bad_elems}"
                )
                continue

        # Choices check
        if "choices" in rules and value not in rules["choices"]:
            errors.append(f"Field '{key}' must be one of {rules['choices']}, got '{value}'")

        # Range check for numeric values
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if "min" in rules and value < rules["min"]:
                errors.append(f"Field '{key}' must be >= {rules['min']}, got {value}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"Field '{key}' must be <= {rules['max']}, got {value}")

    # Cross-field checks for the BPM range
    lower = config.get("bpm_lower_bound", DEFAULT_CONFIG["bpm_lower_bound"])
    upper = config.get("bpm_upper_bound", DEFAULT_CONFIG["bpm_upper_bound"])
    bpm_min = config.get("default_bpm_min", DEFAULT_CONFIG["default_bpm_min"])
    bpm_max = config.get("default_bpm_max", DEFAULT_CONFIG["default_bpm_max"])
    if all(isinstance(v, (int, float)) for v in (lower, upper, bpm_min, bpm_max)):
        if lower > upper:
            errors.append(f"bpm_lower_bound ({lower}) must be <= bpm_upper_bound ({upper})")
        if bpm_min > bpm_max:
            errors.append(f"default_bpm_min ({bpm_min}) must be <= default_bpm_max ({bpm_max})")
        elif bpm_min < lower or bpm_max > upper:
            errors.append(f"Default BPM range {bpm_min}-{bpm_max} must stay within {lower}-{upper}")

    return len(errors) == 0, errors


def update_config(key: str, value: Any, path: str = CONFIG_PATH) -> tuple[bool, str]:
    """
    Update a single config field with validation.
    Returns (success, message).
    """
    # Skip env overrides so they are not written back to the file
    config = load_config(path, environ={})

    # Check if key is valid
    if key not in CONFIG_SCHEMA:
        return False, f"Unknown config key: {key}"

    # Create temporary config with new value
    test_config = config.copy()
    test_config[key] = value

    # Validate the change
    is_valid, errors = validate_config(test_config)
    if not is_valid:
        return False, f"Validation failed: {', '.join(errors)}"

    # Save the updated config
    config[key] = value
    save_config(config, path)

    return True, f"Updated '{key}' to '{value}'"


def reset_to_defaults(path: str = CONFIG_PATH) -> tuple[bool, str]:
    """Reset configuration to default values."""
    try:
        save_config(DEFAULT_CONFIG.copy(), path)
        return True, "Configuration reset to defaults"
    except IOError as e:
        return False, f"Failed to reset config: {e}"


def get_config_value(key: str, default: Any = None, path: str = CONFIG_PATH) -> Any:
    """Get a single config value with optional default."""
    try:
        config = load_config(path)
        return config.get(key, default)
    except (OSError, ValueError):
        return default
