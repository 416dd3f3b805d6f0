import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Data files
    data_dir: str = os.getenv("LIBRARY_DATA_DIR", ".")
    snapshot_file: str = os.getenv("LIBRARY_SNAPSHOT_FILE", "library_snapshot.json")
    legacy_snapshot_file: str = os.getenv("LIBRARY_LEGACY_SNAPSHOT_FILE", "library_data.json")
    ledger_file: str = os.getenv("LIBRARY_LEDGER_FILE", "borrow_log.bin")
    legacy_ledger_file: str = os.getenv("LIBRARY_LEGACY_LEDGER_FILE", "loan.bin")
    operation_log_file: str = os.getenv("LIBRARY_OPERATION_LOG_FILE", "operation.log")

    # Startup behaviour
    replay_ledger_on_startup: bool = _flag("LIBRARY_REPLAY_LEDGER", "False")

    # Application
    app_name: str = os.getenv("APP_NAME", "Library Ledger")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "WARNING").upper()
    debug: bool = _flag("DEBUG", "False")

    def resolve(self, filename: str) -> str:
        """Place relative file names under the data directory."""
        if os.path.isabs(filename):
            return filename
        return os.path.join(self.data_dir, filename)


settings = Settings()
