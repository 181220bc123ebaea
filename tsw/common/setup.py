import os
from pathlib import Path
from dataclasses import dataclass

# Creates the folder (and its parents) if it isn't there yet.
def ensure_directory(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path

# Resolves the base data folder. TSW_DATA_DIR wins (tests and portable installs), then APPDATA on Windows, then a
# dot folder in the user's home.
def resolve_data_root() -> Path:
    override = os.getenv("TSW_DATA_DIR")
    if override:
        return Path(override).expanduser()
    appdata = os.getenv("APPDATA")
    if appdata:
        return Path(appdata) / "TimerStopwatch"
    return Path.home() / ".timerstopwatch"

# Dataclass for accessing paths across program.
@dataclass(frozen=False)
class ProjectPaths:

    data: Path

    logs: Path
    current: Path

    @property
    def settings_file(self) -> Path:
        return self.data / "settings.json"

    @staticmethod
    def build(root: Path | None = None):
        # Folder for all user-specific state, logs and settings
        data = ensure_directory(root or resolve_data_root())

        # Folders within the data folder
        logs = ensure_directory(data / "logs")
        current = ensure_directory(data / "current")

        return ProjectPaths(
            data = data,
            logs = logs,
            current = current,
        )
PATHS = ProjectPaths.build()
