# agentrun/schemas/settings.py
"""
Typed view over the raw configuration dictionary.

`get_config()` returns whatever config.yaml contained; `AppSettings` is the
validated form that services receive at construction time. Unknown keys are
ignored so that a config file shared with other components stays loadable.
"""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from agentrun.exceptions import ConfigurationError


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AgentSettings(_Section):
    max_steps: int = Field(10, ge=1, description="Maximum tool steps per turn.")
    max_duration_ms: int = Field(
        5 * 60 * 1000, ge=1, description="Wall-clock budget for one turn."
    )
    history_limit: int = Field(
        50, ge=1, description="Most recent messages passed to the model."
    )
    workspace_root: str = Field(
        "/tmp/agentrun-workspaces",
        description="Parent directory of per-session workspaces.",
    )


class PolicySettings(_Section):
    duplicate_cooldown_ms: int = Field(30_000, ge=0)
    rate_window_ms: int = Field(60_000, ge=1)
    default_rate_limit: int = Field(
        10, ge=1, description="Calls of one tool allowed per rate window."
    )
    rate_limits: Dict[str, int] = Field(
        default_factory=lambda: {"web_search": 3, "paper_search": 3}
    )
    discovery_tools: List[str] = Field(
        default_factory=lambda: ["web_search", "paper_search", "browser_navigate"]
    )
    terminal_tools: List[str] = Field(
        default_factory=lambda: ["ppt_generator", "document_generator"]
    )

    def rate_limit_for(self, tool_name: str) -> int:
        return int(self.rate_limits.get(tool_name, self.default_rate_limit))


class SandboxSettings(_Section):
    enabled: bool = False
    image: str = "agentrun-sandbox:latest"
    memory: str = "512MB"
    cpu: str = "1"
    disk_space: str = "1GB"
    network_access: bool = False
    timeout_s: int = Field(60, ge=1, description="Default exec timeout.")
    user: str = "sandbox"
    idle_timeout_s: int = Field(30 * 60, ge=1)
    health_check_interval_s: int = Field(60, ge=1)
    name_prefix: str = "agentrun-sandbox-"
    docker_base_url: Optional[str] = None

    @field_validator("memory", "cpu", "disk_space", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> str:
        # yaml turns `cpu: 1` into an int; the parsers expect text
        return str(v)


class ToolSettings(_Section):
    enabled: List[str] = Field(
        default_factory=list, description="Tool allowlist; empty means all."
    )
    require_approval: List[str] = Field(default_factory=list)
    timeouts_ms: Dict[str, int] = Field(default_factory=dict)
    approval_timeout_ms: int = Field(5 * 60 * 1000, ge=1)
    blocked_commands: List[str] = Field(
        default_factory=lambda: ["rm -rf /", "mkfs", ":(){ :|:& };:", "shutdown", "reboot"]
    )
    max_output_bytes: int = Field(1024 * 1024, ge=1)


class LoggingSettings(_Section):
    level: str = "info"


class AppSettings(_Section):
    agent: AgentSettings = Field(default_factory=AgentSettings)
    policy: PolicySettings = Field(default_factory=PolicySettings)
    sandbox: SandboxSettings = Field(default_factory=SandboxSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_config(cls, raw: Optional[Mapping[str, Any]] = None) -> "AppSettings":
        """Validate a raw config mapping (as returned by `get_config()`).

        :raises ConfigurationError: if a known key holds an invalid value.
        """
        try:
            return cls.model_validate(dict(raw or {}))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
