class SheetError(Exception):
    """A workbook could not be opened, or the expected sheet is missing or empty."""


class ImportRequestError(ValueError):
    """An import API payload (or reset confirmation) was rejected before touching the store."""
