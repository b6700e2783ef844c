"""Exception hierarchy shared across blockpage modules."""


class BlockPageError(Exception):
    """Base class for every error raised by blockpage."""
    pass


class DefinitionError(BlockPageError):
    """Raised when a page or wizard definition cannot be loaded."""
    pass
