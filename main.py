import json
import sys

from config import load_config, validate_config
from utils.logger import setup_logging, log_info, log_error, log_warning
from menus.main_menu import main_menu
from menus.auth_menu import sign_in, sign_out, account_status, resume_session
from menus.workout_menu import workout_menu
from menus.config_menu import config_menu


def main() -> int:
    setup_logging()

    try:
        config = load_config()
    except json.JSONDecodeError as e:
        log_error(f"Config file contains invalid JSON: {e}")
        return 1
    except (OSError, ValueError) as e:
        log_error(f"Error loading config: {e}")
        return 1

    setup_logging(config.get("log_level", "INFO"), config.get("log_file") or None)

    is_valid, errors = validate_config(config)
    if not is_valid:
        for error in errors:
            log_warning(f"Config: {error}")

    resume_session(config)

    while True:
        choice = main_menu()

        if choice == "Build a workout playlist":
            workout_menu(config)

        elif choice == "Sign in with Spotify":
            sign_in(config)

        elif choice == "Account status":
            account_status(config)

        elif choice == "Sign out":
            sign_out(config)

        elif choice == "Config Menu":
            config = config_menu(config)

        elif choice == "Exit":
            log_info("Exiting program...")
            return 0

        else:
            log_error("Invalid choice.")


if __name__ == "__main__":
    sys.exit(main())
