import logging
import logging.config
import pathlib

from fast_state.config import Config, Field, FieldHint, check_field, config_class

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _check_level(level: str) -> None:
    if level not in LOG_LEVELS:
        raise ValueError(f"Unknown logging level `{level}`, expected one of {list(LOG_LEVELS)}")


def configure_logging(
    *,
    log_timestamps: bool = True,
    enable_all_loggers: bool = False,
    level: str = "INFO",
    directory: pathlib.Path | str | None = None,
):
    format_ = f"{'%(asctime)s ' if log_timestamps else ''}%(message)s"
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": format_,
            }
        },
        "handlers": {
            "default": {
                "level": level,
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            }
        },
        "loggers": {
            "fast_state": {"level": level},
            "__main__": {"level": level},
        },
        "root": {"handlers": ["default"], "level": level if enable_all_loggers else "WARNING"},
    }
    if directory is not None:
        directory = pathlib.Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        logging_config["handlers"]["file"] = {
            "level": level,
            "formatter": "default",
            "class": "logging.FileHandler",
            "filename": directory / "logs.txt",
        }
        logging_config["root"]["handlers"].append("file")
    logging.config.dictConfig(logging_config)


@config_class()
class LoggingConfig(Config):
    log_timestamps: bool = Field(
        default=True, desc="Add a timestamp to every log.", hint=FieldHint.logging
    )
    enable_all_loggers: bool = Field(
        default=False,
        desc="Enable all existing loggers, including external ones, by setting their level to `level`.",
        hint=FieldHint.logging,
    )
    level: str = Field(
        default="INFO",
        desc="Logging level for the package loggers.",
        hint=FieldHint.logging,
        valid=check_field(_check_level),
    )
    directory: pathlib.Path | None = Field(
        default=None,
        desc="Directory where to save the logs to a file, in addition to stdout.",
        hint=FieldHint.optional,
    )

    def configure(self) -> None:
        configure_logging(
            log_timestamps=self.log_timestamps,
            enable_all_loggers=self.enable_all_loggers,
            level=self.level,
            directory=self.directory,
        )
