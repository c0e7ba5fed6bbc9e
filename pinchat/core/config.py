# pinchat/core/config.py
import os
from dotenv import load_dotenv


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Setup environment variables.
        - DEFAULT_ROOM_ID / DEFAULT_ROOM_NAME the always-present, PIN-free room
        - AUTO_JOIN_DEFAULT_ROOM join the default room right after a name is claimed
        - ALLOW_LEAVE_DEFAULT_ROOM whether "leave" works in the default room
          (when false, users have to switch to another room instead)
        - HISTORY_LIMIT max events kept per room, 0 keeps everything
    """

    # Load environment variables from the .env file
    load_dotenv()

    def __init__(self, **overrides) -> None:
        self.DEFAULT_ROOM_ID: str = os.getenv("DEFAULT_ROOM_ID", "general")
        self.DEFAULT_ROOM_NAME: str = os.getenv("DEFAULT_ROOM_NAME", "General")

        self.AUTO_JOIN_DEFAULT_ROOM: bool = _env_flag("AUTO_JOIN_DEFAULT_ROOM", "false")
        self.ALLOW_LEAVE_DEFAULT_ROOM: bool = _env_flag("ALLOW_LEAVE_DEFAULT_ROOM", "true")

        self.HISTORY_LIMIT: int = int(os.getenv("HISTORY_LIMIT", "0"))

        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = int(os.getenv("PORT", "8000"))

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)


settings = Settings()
