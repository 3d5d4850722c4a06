#!/usr/bin/env python3

from __future__ import annotations

import re


# Application version (semantic-ish). Used for the boot banner + /health.
APP_VERSION = "0.3.2"

# Path to the plaintext JSON server configuration file
CONFIG_FILE = "server_config.json"

# Named rooms every client sees on startup.
DEFAULT_ROOM = "general"
DEFAULT_ROOMS = ("general", "random")

# Private rooms are "<a>|<b>" with a <= b. The separator is not a legal
# username character (see USERNAME_RE), so two different pairs can never
# produce the same room id.
PRIVATE_ROOM_SEPARATOR = "|"
USERNAME_RE = re.compile(r"^[^|\x00-\x1f\x7f]{1,32}$")

# Typing indicators
TYPING_SCOPES = ("room", "global")
TYPING_IDLE_SECONDS = 1.0
TYPING_RENEW_SECONDS = 3.0
TYPING_EXPIRY_SECONDS = 5

# Server-side reaction counts: messages tracked before the oldest is dropped.
REACTION_TALLY_MAX_MESSAGES = 10000

# In-line file payloads (base64 inside the event frame)
MAX_FILE_BYTES = 5 * 1024 * 1024
MAX_FRAME_BYTES = 8 * 1024 * 1024

MAX_MESSAGE_LENGTH = 4000
MAX_ROOM_NAME_LENGTH = 64

# Wire event names (inbound)
EV_CONNECT = "connect"
EV_DISCONNECT = "disconnect"
EV_JOIN_CHAT = "join_chat"
EV_JOIN_ROOM = "join_room"
EV_SEND_MESSAGE = "send_message"
EV_PRIVATE_MESSAGE = "private_message"
EV_SEND_FILE = "send_file"
EV_PRIVATE_FILE = "private_file"
EV_REACTION = "reaction"
EV_TYPING = "typing"
EV_STOP_TYPING = "stop_typing"

# Wire event names (outbound)
EV_RECEIVE_MESSAGE = "receive_message"
EV_RECEIVE_PRIVATE_MESSAGE = "receive_private_message"
EV_RECEIVE_FILE = "receive_file"
EV_USER_TYPING = "user_typing"
EV_USER_STOP_TYPING = "user_stop_typing"
EV_ONLINE_USERS = "online_users"
EV_USER_JOINED = "user_joined"
EV_USER_LEFT = "user_left"
EV_ERROR = "error"
