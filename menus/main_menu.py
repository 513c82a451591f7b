import questionary


MAIN_MENU_CHOICES = [
    "Build a workout playlist",
    "Sign in with Spotify",
    "Account status",
    "Sign out",
    "Config Menu",
    "Exit",
]


def main_menu() -> str:
    return questionary.select(
        "🏃 HIITRunner — What would you like to do?",
        choices=MAIN_MENU_CHOICES,
    ).ask() or "Exit"
