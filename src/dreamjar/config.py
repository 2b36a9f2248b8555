"""Configuration management for DreamJar."""

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field


def _find_repo_root(start_dir: Path) -> Path:
    """Find repository root by walking upward looking for .git or pyproject.toml."""
    current_dir = start_dir

    while True:
        if (current_dir / ".git").exists() or (current_dir / "pyproject.toml").exists():
            return current_dir

        parent_dir = current_dir.parent

        # Stop if we reach filesystem root
        if parent_dir == current_dir:
            return start_dir

        current_dir = parent_dir


def _load_repo_config_data(repo_root: Path) -> Optional[dict]:
    """Load repo config data from .dreamjar/config.toml if it exists."""
    config_file = repo_root / ".dreamjar" / "config.toml"

    if not config_file.exists():
        return None

    try:
        with open(config_file, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        # Malformed repo config falls back to env/defaults
        return None


def _get_repo_config_value(data: Optional[dict], keys: list[str]) -> Any:
    """Safely get a nested repo config value."""
    if not data:
        return None
    current: Any = data
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_list(name: str) -> Optional[list[str]]:
    value = os.environ.get(name)
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


class BridgeConfig(BaseModel):
    """Configuration for the settlement/chain bridge collaborator."""

    relayer_url: Optional[str] = Field(default=None)
    timeout_seconds: float = Field(default=10.0)


class DreamJarConfig(BaseModel):
    """Configuration for the DreamJar decision engine."""

    db_path: Path = Field(default_factory=lambda: Path("./dreamjar.sqlite"))
    audit_log_path: Optional[Path] = Field(default=None)
    quorum_threshold: int = Field(default=10, ge=1)
    proposal_quorum_threshold: int = Field(default=10, ge=1)
    proposal_voting_days: int = Field(default=7, ge=0)
    pledger_vote_bonus: int = Field(default=2, ge=0)
    recognized_repo_hosts: list[str] = Field(default_factory=lambda: ["github.com"])
    admin_user_ids: list[str] = Field(default_factory=list)
    unique_proposal_voters: bool = Field(default=True)
    sqlite_timeout_seconds: float = Field(default=5.0)
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)

    model_config = {"frozen": False}

    @classmethod
    def from_env(cls, cli_db_path: Optional[str] = None) -> "DreamJarConfig":
        """Load configuration with precedence CLI > environment > repo config > defaults.

        Args:
            cli_db_path: Database path from CLI --db option (highest precedence)
        """
        repo_config = _load_repo_config_data(_find_repo_root(Path.cwd()))

        def pick(env_name: str, keys: list[str], default: Any) -> Any:
            env_value = os.environ.get(env_name)
            if env_value is not None:
                return env_value
            repo_value = _get_repo_config_value(repo_config, keys)
            if repo_value is not None:
                return repo_value
            return default

        db_path = cli_db_path or pick("DREAMJAR_DB", ["db_path"], "./dreamjar.sqlite")
        audit_log = pick("DREAMJAR_AUDIT_LOG", ["audit_log_path"], None)

        repo_hosts = _get_repo_config_value(repo_config, ["proofs", "recognized_repo_hosts"])
        repo_admins = _get_repo_config_value(repo_config, ["admin_user_ids"])
        repo_unique = _get_repo_config_value(repo_config, ["governance", "unique_proposal_voters"])

        return cls(
            db_path=Path(str(db_path)).expanduser(),
            audit_log_path=Path(str(audit_log)).expanduser() if audit_log else None,
            quorum_threshold=int(pick("DREAMJAR_QUORUM_THRESHOLD", ["verification", "quorum_threshold"], 10)),
            proposal_quorum_threshold=int(
                pick("DREAMJAR_PROPOSAL_QUORUM_THRESHOLD", ["governance", "quorum_threshold"], 10)
            ),
            proposal_voting_days=int(pick("DREAMJAR_PROPOSAL_VOTING_DAYS", ["governance", "voting_days"], 7)),
            pledger_vote_bonus=int(pick("DREAMJAR_PLEDGER_VOTE_BONUS", ["verification", "pledger_vote_bonus"], 2)),
            recognized_repo_hosts=(
                _env_list("DREAMJAR_REPO_HOSTS")
                or (list(repo_hosts) if isinstance(repo_hosts, list) else None)
                or ["github.com"]
            ),
            admin_user_ids=(
                _env_list("DREAMJAR_ADMIN_USERS")
                or (list(repo_admins) if isinstance(repo_admins, list) else None)
                or []
            ),
            unique_proposal_voters=_env_bool(
                "DREAMJAR_UNIQUE_PROPOSAL_VOTERS",
                repo_unique if isinstance(repo_unique, bool) else True,
            ),
            sqlite_timeout_seconds=float(pick("DREAMJAR_SQLITE_TIMEOUT", ["sqlite_timeout_seconds"], 5.0)),
            bridge=BridgeConfig(
                relayer_url=pick("DREAMJAR_RELAYER_URL", ["bridge", "relayer_url"], None),
                timeout_seconds=float(pick("DREAMJAR_RELAYER_TIMEOUT", ["bridge", "timeout_seconds"], 10.0)),
            ),
        )

    def to_toml_str(self) -> str:
        """Generate a .dreamjar/config.toml body reflecting this configuration."""
        hosts = ", ".join(f'"{h}"' for h in self.recognized_repo_hosts)
        admins = ", ".join(f'"{a}"' for a in self.admin_user_ids)
        audit = f'audit_log_path = "{self.audit_log_path}"\n' if self.audit_log_path else ""
        relayer = f'relayer_url = "{self.bridge.relayer_url}"\n' if self.bridge.relayer_url else ""
        return f"""# DreamJar configuration

db_path = "{self.db_path}"
{audit}admin_user_ids = [{admins}]
sqlite_timeout_seconds = {self.sqlite_timeout_seconds}

[verification]
quorum_threshold = {self.quorum_threshold}
pledger_vote_bonus = {self.pledger_vote_bonus}

[proofs]
recognized_repo_hosts = [{hosts}]

[governance]
quorum_threshold = {self.proposal_quorum_threshold}
voting_days = {self.proposal_voting_days}
unique_proposal_voters = {str(self.unique_proposal_voters).lower()}

[bridge]
{relayer}timeout_seconds = {self.bridge.timeout_seconds}
"""
