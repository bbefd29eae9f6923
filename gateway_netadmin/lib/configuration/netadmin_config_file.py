import logging
import os

from pydantic import ValidationError

from gateway_netadmin.constants import CONFIG_DIR
from gateway_netadmin.lib.configuration.config_file import ConfigFile
from gateway_netadmin.lib.configuration.schemas import NetAdminConfig

NETADMIN_CONFIG_DIR = CONFIG_DIR


class NetAdminConfigFile(ConfigFile):
    def __init__(self):
        super().__init__(
            os.path.join(NETADMIN_CONFIG_DIR, "config.toml"),
            defaults=NetAdminConfig().model_dump(),
        )

    def load_or_create_defaults(self, allow_empty: bool = False):  # type: ignore[override]
        super().load_or_create_defaults(allow_empty=allow_empty)
        # Validate and normalize with schema; fall back to defaults on error
        try:
            cfg = NetAdminConfig(**self.data)
            self.data = cfg.model_dump()
        except ValidationError as e:
            logging.getLogger(__name__).warning(
                f"Invalid settings in {self.config_file}, restoring defaults: {e}"
            )
            self.create_defaults()
            self.save()

    @property
    def settings(self) -> NetAdminConfig:
        return NetAdminConfig(**self.data)
