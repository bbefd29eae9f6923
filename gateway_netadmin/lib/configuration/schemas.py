from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from gateway_netadmin import constants


class NetAdminGeneral(BaseModel):
    data_dir: str = Field(default=constants.DATA_DIR)
    max_snapshots: int = Field(default=constants.MAX_SNAPSHOTS, ge=1)
    loopback_interface: str = Field(default=constants.LOOPBACK_INTERFACE)

    @field_validator("data_dir", "loopback_interface")
    def not_blank(cls, v):  # noqa: N805
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class NetAdminTimeouts(BaseModel):
    commit: float = Field(default=constants.COMMIT_TIMEOUT, gt=0)
    commit_poll_interval: float = Field(default=constants.COMMIT_POLL_INTERVAL, gt=0)
    wifi_connect: float = Field(default=constants.WIFI_CONNECT_TIMEOUT, gt=0)
    wifi_connect_poll_interval: float = Field(
        default=constants.WIFI_CONNECT_POLL_INTERVAL, gt=0
    )
    wifi_mode: float = Field(default=constants.WIFI_MODE_TIMEOUT, gt=0)
    wifi_mode_poll_interval: float = Field(
        default=constants.WIFI_MODE_POLL_INTERVAL, gt=0
    )


class NetAdminPaths(BaseModel):
    daemon_config_dir: str = Field(default=constants.RUN_DIR)
    pid_dir: str = Field(default=constants.RUN_DIR)


class NetAdminConfig(BaseModel):
    General: NetAdminGeneral = Field(default_factory=NetAdminGeneral)
    Timeouts: NetAdminTimeouts = Field(default_factory=NetAdminTimeouts)
    Paths: NetAdminPaths = Field(default_factory=NetAdminPaths)
