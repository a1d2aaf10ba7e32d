"""Storage module for StoryForge persistence.

Provides JSON save files and the plain-text adventure log export.
"""

from storyforge.storage.save_file import (
    LoadedGame,
    SaveData,
    build_save,
    dumps_save,
    export_adventure_log,
    load_save,
    read_save,
    write_save,
)

__all__ = [
    "LoadedGame",
    "SaveData",
    "build_save",
    "dumps_save",
    "export_adventure_log",
    "load_save",
    "read_save",
    "write_save",
]
