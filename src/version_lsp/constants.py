"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    EXIT_WARNINGS = 3


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    APP_NAME = "version-lsp"
    USER_AGENT = "version-lsp"

    REGISTRY_URL_NPM = "https://registry.npmjs.org"
    REGISTRY_URL_CRATES = "https://crates.io/api/v1/crates"
    REGISTRY_URL_GO_PROXY = "https://proxy.golang.org"
    REGISTRY_URL_GITHUB = "https://api.github.com"
    REGISTRY_URL_PYPI = "https://pypi.org/pypi"
    REGISTRY_URL_JSR = "https://jsr.io"

    REQUEST_TIMEOUT = 30  # Timeout in seconds for every registry fetch
    GITHUB_RELEASES_PER_PAGE = 100

    DEFAULT_REFRESH_INTERVAL_MS = 24 * 60 * 60 * 1000

    DB_FILE = "versions.db"
    LOG_FILE = "version-lsp.log"
    CONFIG_FILE = "config.yaml"
    LOG_FORMAT = "[%(levelname)s] %(message)s"

    ENV_GITHUB_TOKEN = "GITHUB_TOKEN"
    ENV_LOG_LEVEL = "VERSION_LSP_LOG"
    ENV_CONFIG = "VERSION_LSP_CONFIG"
    ENV_XDG_DATA_HOME = "XDG_DATA_HOME"
    ENV_XDG_CONFIG_HOME = "XDG_CONFIG_HOME"
