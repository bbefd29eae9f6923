import copy
import json
import logging
import os
from os import PathLike
from typing import Any, Union

import toml

DECODE_ERRORS = (toml.decoder.TomlDecodeError, json.decoder.JSONDecodeError)


class ConfigFile:
    """
    A TOML or JSON document on disk, chosen by file extension, with a set of
    defaults to fall back on when the file is missing or unreadable.
    """

    def __init__(
        self,
        config_file: Union[str, PathLike] = "config.toml",
        defaults: dict[str, Any] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__} for {config_file}")

        self.config_file = str(config_file)
        self.defaults = defaults if defaults is not None else {}
        self.data: dict[str, Any] = {}

    @property
    def is_toml(self) -> bool:
        return self.config_file.endswith(".toml")

    def load(self):
        try:
            with open(self.config_file, "r") as f:
                self.data = toml.load(f) if self.is_toml else json.load(f)
        except FileNotFoundError as e:
            self.logger.error(f"Failed to load {self.config_file}: {e}")
            raise
        except DECODE_ERRORS as e:
            self.logger.error(f"Unable to decode {self.config_file}. Error: {e.msg}")
            raise
        self.logger.debug(f"Loaded {self.config_file}")

    def save(self):
        """Writes to a temporary file and moves it into place, so readers never see a partial file."""
        directory = os.path.dirname(self.config_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_file = f"{self.config_file}.tmp"
        with open(tmp_file, "w") as f:
            if self.is_toml:
                toml.dump(self.data, f)
            else:
                json.dump(self.data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_file, self.config_file)

    def create_defaults(self):
        self.data = copy.deepcopy(self.defaults)

    def load_or_create_defaults(self, allow_empty: bool = False):
        try:
            self.load()
        except FileNotFoundError:
            self.logger.warning(f"No {self.config_file} yet, using defaults")
            self.create_defaults()
            return
        except DECODE_ERRORS:
            self.logger.warning(f"Using defaults in place of undecodable {self.config_file}")
            self.create_defaults()
            return
        if not self.data and not allow_empty:
            self.logger.warning(f"{self.config_file} is empty, using defaults")
            self.create_defaults()
