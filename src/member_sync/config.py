import os
import yaml
from pathlib import Path

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "member_sync.yml"
CONFIG_ENV_VAR = "MEMBER_SYNC_CONFIG"


class MSConfig:
    def __init__(self, data):
        self.paths = data.get("paths", {})
        self.logging = data.get("logging", {})
        self.identity = data.get("identity", {})
        self.scheduler = data.get("scheduler", {})
        self.sync = data.get("sync", {})
        self.dependent_defaults = data.get("dependent_defaults", {})
        self.debug = data.get("debug", False)


def config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override) if override else DEFAULT_CONFIG_PATH


def load_config() -> 'MSConfig':
    path = config_path()
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return MSConfig(data)

_config_cache = None

def get_config() -> 'MSConfig':
    global _config_cache
    if _config_cache is None:
        _config_cache = load_config()
    return _config_cache
