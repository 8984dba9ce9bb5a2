"""User-facing error messages and text for the backend."""

# Authentication messages
AUTH_ERROR = "Authentication error"
AUTH_INVALID_CREDENTIALS = "Invalid credentials"
AUTH_TOKEN_INVALID = "Invalid token"
AUTH_USER_NOT_FOUND_OR_INACTIVE = "User not found or inactive"
AUTH_REFRESH_TOKEN_INVALID = "Invalid refresh token"
AUTH_REFRESH_TOKEN_EXPIRED = "Refresh token expired"
AUTH_TOO_MANY_ATTEMPTS = "Too many login attempts. Try again in 15 minutes."
AUTH_LOGOUT_SUCCESS = "Logged out successfully"
AUTH_NOT_AUTHORIZED = "Not authorized"
AUTH_GOOGLE_NOT_CONFIGURED = "Google sign-in is not configured"

# Registration messages
REG_USER_EXISTS = "User already exists"
REG_USERNAME_TAKEN = "Username already taken"
REG_FAILED = "Registration failed"

# User messages
USER_NOT_FOUND = "User not found"
USER_STATUS_FAILED = "Failed to update status"

# Chat messages
CHAT_SESSION_NOT_FOUND = "Chat session not found"
CHAT_PARTICIPANT_NOT_FOUND = "Participant not found"
CHAT_PARTICIPANT_SELF = "Cannot start a chat session with yourself"
CHAT_MESSAGE_NOT_FOUND = "Message not found"
CHAT_MESSAGE_SEND_FAILED = "Failed to send message"
CHAT_MESSAGE_READ_FAILED = "Failed to mark message as read"
CHAT_SESSION_CREATE_FAILED = "Failed to create chat session"

# Realtime messages
WS_SESSION_NOT_FOUND = "Session not found"
WS_INVALID_JSON = "Invalid JSON format"
WS_UNKNOWN_EVENT = "Unknown event"
WS_INVALID_PAYLOAD = "Invalid payload for {event}"

# AI messages
AI_SESSION_NOT_FOUND = "AI chat session not found"
AI_SERVICE_NOT_CONFIGURED = "AI service not configured"
AI_MESSAGE_FAILED = "Failed to send AI message"
AI_SESSION_DELETED = "AI chat session deleted successfully"
AI_DEFAULT_TITLE = "New AI Chat"
AI_EMPTY_RESPONSE = "No response"

# General error messages
ERROR_INTERNAL_SERVER = "Internal server error"
