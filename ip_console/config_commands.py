"""Configuration commands for the IP console CLI."""

from cyclopts import App

from ip_console.config import get_config

config_app = App(name="config", help="Manage configuration")

SECRET_KEYS = frozenset({"notion.token"})


def _shown(key: str, value: str) -> str:
    if key in SECRET_KEYS and value:
        return value[:4] + "…" if len(value) > 8 else "…"
    return str(value)


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Set a configuration setting.

    Args:
        key: Configuration key, e.g. store, user.id or notion.database.alerts
        value: Configuration value
        global_: If True, set in global config. If False, set in local config.
    """
    config = get_config(use_global=global_)
    config.set(key, value)
    scope = "global" if global_ else "local"
    print(f"Set {key} = {_shown(key, value)} ({scope})")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Unset a configuration setting."""
    config = get_config(use_global=global_)
    config.unset(key)
    print(f"Unset {key} ({'global' if global_ else 'local'})")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Get the value of a configuration setting."""
    value = get_config(use_global=global_).get(key)
    if value is None:
        print(f"{key} is not set")
    else:
        print(f"{key} = {_shown(key, value)}")


@config_app.command(name="list")
def list_config(global_: bool = False) -> None:
    """List all configuration settings, secrets shortened."""
    settings = get_config(use_global=global_).list()

    if not settings:
        scope = "global" if global_ else "local"
        print(f"No {scope} configuration settings")
        return

    for key in sorted(settings):
        print(f"{key} = {_shown(key, settings[key])}")
