"""Importers and exporters for third-party flashcard formats."""

from mnemo.io.anki import AnkiImporter, import_from_apkg, validate_apkg
from mnemo.io.container import ContainerReader, FileBackend, MemoryBackend, get_backend
from mnemo.io.phase6 import import_from_csv, import_from_xml, map_phase
from mnemo.io.transfer import (
    export_to_delimited_text,
    export_to_json,
    import_from_delimited_text,
    import_from_json,
)

__all__ = [
    # Anki
    "AnkiImporter",
    "ContainerReader",
    "FileBackend",
    "MemoryBackend",
    "get_backend",
    "import_from_apkg",
    "validate_apkg",
    # Phase6
    "import_from_csv",
    "import_from_xml",
    "map_phase",
    # CSV / JSON
    "export_to_delimited_text",
    "export_to_json",
    "import_from_delimited_text",
    "import_from_json",
]
