from typing import Optional, Sequence

from dynaconf import Dynaconf, Validator

CONFIG_FILES = ["config.yaml", "config.yml"]
PREFIX = "stream2df."


class Config:
    def __init__(self, conf: Dynaconf):
        self.conf = conf

    def get(self, key):
        return self.conf.get(PREFIX + key)


def create(config_files: Optional[Sequence[str]] = None) -> Config:
    settings = Dynaconf(
        settings_files=list(config_files) if config_files else CONFIG_FILES,
        load_dotenv=True,
        envvar_prefix="STREAM2DF",
    )
    settings.validators.register(
        Validator(PREFIX + "console-verbosity", default="warning"),
        Validator(PREFIX + "file-verbosity", default="quiet"),
        Validator(PREFIX + "log-file", default="stream2df.log"),
        Validator(PREFIX + "max-rows", default=1024, is_type_of=int, gt=0),
        Validator(PREFIX + "tabname", default="tab"),
    )
    settings.validators.validate_all()
    return Config(settings)
