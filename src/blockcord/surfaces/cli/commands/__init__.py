from .discord import register_discord_commands
from .utils import raise_exit, require_config

__all__ = ["raise_exit", "register_discord_commands", "require_config"]
