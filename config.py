"""Configuration constants for the test HTTP listener and fixture."""

HOST: str = "localhost"
DEFAULT_HTTP_PORT: int = 8000
SERVER_NAME: str = "http-test-fixture/0.1"
READ_CHUNK_SIZE: int = 8192
SOCKET_TIMEOUT_SECS: int = 5
CLIENT_TIMEOUT_SECS: float = 5.0
ACCEPT_POLL_SECS: float = 0.2
STOP_JOIN_TIMEOUT_SECS: float = 2.0
MAX_REQUEST_BYTES: int = 1_048_576
MAX_HEADER_BYTES: int = 16_384
MAX_BODY_BYTES: int = 524_288
MAX_KEEPALIVE_REQUESTS: int = 100
WORKER_COUNT: int = 8
REQUEST_QUEUE_SIZE: int = 64
LISTEN_BACKLOG: int = 128
LOG_FORMAT: str = "plain"
