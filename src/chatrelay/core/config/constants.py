"""Constant definitions for chatrelay."""

# Backend wire contract
BACKEND_STREAM_PATH = "/v1/chat/stream"
EVENT_STREAM_CONTENT_TYPE = "text/event-stream"
CHUNK_EVENT_NAME = "message_part"
STREAM_END_EVENT_NAME = "stream_end"
CHUNK_TEXT_FIELD = "text_chunk"
FULL_RESPONSE_FIELD = "full_response"

# Hand-off buffer between a decoder task and its consumer
CHUNK_BUFFER_SIZE = 1

# User-visible texts
PLACEHOLDER_MESSAGE = "🤖 Thinking…"
BACKEND_ERROR_MESSAGE = "⚠ Backend error"
# Slack rejects empty message text, so an empty answer is shown as this.
EMPTY_RESPONSE_MESSAGE = "(empty response)"

# Pipeline sizing and pacing
DEFAULT_WORKER_POOL_SIZE = 10
UPDATE_QUEUE_FACTOR = 2
POST_DELAY_SECONDS = 0.05

# Ingress
DEFAULT_PORT = 8001
