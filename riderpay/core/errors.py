"""
Exceptions raised by the settlement engine.
"""

class FileParseError(ValueError):
    """An uploaded workbook could not be read. Fatal for the whole run."""

    def __init__(self, source_file: str, message: str):
        self.source_file = source_file
        super().__init__(f"{source_file}: {message}")

class PromotionConfigError(ValueError):
    """A stored promotion record cannot be normalized into a usable config."""
