from __future__ import annotations

DISCORD_API_BASE_URL = "https://discord.com/api/v10"
DISCORD_GATEWAY_URL = "wss://gateway.discord.gg/?v=10&encoding=json"

# Gateway intents bitflags (https://discord.com/developers/docs/topics/gateway#gateway-intents).
DISCORD_INTENT_GUILDS = 1 << 0

# Interaction types.
INTERACTION_TYPE_PING = 1
INTERACTION_TYPE_APPLICATION_COMMAND = 2
INTERACTION_TYPE_MESSAGE_COMPONENT = 3

# Interaction callback types.
RESPONSE_CHANNEL_MESSAGE = 4
RESPONSE_DEFERRED_CHANNEL_MESSAGE = 5
RESPONSE_DEFERRED_UPDATE_MESSAGE = 6

# Message flags.
MESSAGE_FLAG_EPHEMERAL = 1 << 6

# Application command option types.
OPTION_TYPE_STRING = 3
COMMAND_TYPE_CHAT_INPUT = 1

# Component types.
COMPONENT_TYPE_ACTION_ROW = 1
COMPONENT_TYPE_BUTTON = 2
COMPONENT_TYPE_STRING_SELECT = 3
