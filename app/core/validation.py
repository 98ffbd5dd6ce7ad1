"""Defines constants for database upload and form validation."""

# Allowed database file extensions and size limit
ALLOWED_EXTENSIONS: set[str] = {".txt", ".md", ".csv", ".tsv", ".json"}
MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10 MB

# Encodings tried, in order, when decoding the uploaded database
TEXT_ENCODINGS: tuple[str, ...] = ("utf-8-sig", "latin-1")

MAX_TITLE_CHARS: int = 300
