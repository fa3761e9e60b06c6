class FalloutError(Exception):
    """Base exception for all application-specific errors."""

    pass


# --- 1. Errors related to loading and parsing the configuration file ---
class ConfigurationError(FalloutError):
    """Base class for errors encountered while finding, reading, or parsing config files."""

    pass


class ConfigFileMissingError(ConfigurationError):
    """Raised when an explicitly requested configuration file cannot be found."""

    pass


class ConfigParsingError(ConfigurationError):
    """Raised when a YAML configuration file is syntactically incorrect."""

    pass


class ConfigValidationError(ConfigurationError):
    """Raised when the configuration fails structural validation (e.g., Pydantic)."""

    pass


# --- 2. Errors related to the log cache ---
class CacheError(FalloutError):
    """Base class for errors raised by the log cache."""

    pass


class InvalidKeyError(CacheError):
    """Raised when an entry identity (builder, origin, timestamp) is malformed."""

    pass


# --- 3. Errors related to searching ---
class SearchError(FalloutError):
    """Base class for errors raised while compiling or running searches."""

    pass


class InvalidQueryError(SearchError):
    """Raised when a query can not be compiled into a context matcher."""

    pass


# --- 4. Errors related to IO operations ---
class FalloutIOError(FalloutError):
    """Base class for IO-related errors."""

    pass


class PathExistsError(FalloutIOError):
    """Raised when a file or directory already exists."""

    pass


class PathNotFoundError(FalloutIOError):
    """Raised when a file or directory is not found."""

    pass


class NotAFileError(FalloutIOError):
    """Raised when a file is expected, but a directory is found."""

    pass


class NotADirError(FalloutIOError):
    """Raised when a directory is expected, but a file is found."""

    pass


class EnumerationError(FalloutIOError):
    """Raised when the cache walker can not list a subtree."""

    pass


class EntryNotFoundError(CacheError, PathNotFoundError):
    """Raised when reading or removing an entry that is not cached."""

    pass
