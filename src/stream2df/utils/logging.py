import logging
import sys

import coloredlogs

from stream2df.utils.config import create as create_config, Config

NAMESPACE = "stream2df"


def configure(config: Config, logger: logging.Logger):
    fmt = "%(asctime)s %(name)s %(levelname)-7s %(message)s"
    colored_formatter = coloredlogs.ColoredFormatter(fmt)
    plain_formatter = logging.Formatter(fmt)
    if config.get("file-verbosity") != "quiet":
        fh = logging.FileHandler(config.get("log-file"))
        fh_level = logging.getLevelName(config.get("file-verbosity").upper())
        logger.setLevel(fh_level)
        fh.setLevel(fh_level)
        fh.setFormatter(plain_formatter)
        logger.addHandler(fh)
    if config.get("console-verbosity") != "quiet":
        # stdout carries the Arrow stream, so the console handler must stay
        # on stderr.
        ch = logging.StreamHandler(sys.stderr)
        ch_level = logging.getLevelName(config.get("console-verbosity").upper())
        ch.setLevel(ch_level)
        if logger.level > ch_level or logger.level == 0:
            logger.setLevel(ch_level)
        ch.setFormatter(colored_formatter)
        logger.addHandler(ch)

    class ShutdownHandler(logging.Handler):
        """Exit application with CRITICAL logs"""

        def emit(self, _):
            logging.shutdown()
            sys.exit(1)

    sh = ShutdownHandler(level=50)
    sh.setFormatter(plain_formatter)
    logger.addHandler(sh)


def reconfigure(config: Config) -> logging.Logger:
    """Drop the handlers of the stream2df namespace and configure it anew,
    e.g., after the command line selected another configuration file."""
    root = logging.getLogger(NAMESPACE)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)
    configure(config, root)
    return root


def get(name=None):
    """Get a logger instance while ensuring that the stream2df logger namespace
    (loggers with name "stream2df" or "stream2df.*") is properly configured"""
    # The logger "stream2df" is the root of the namespace. All loggers named
    # stream2df.* inherit its settings.
    root = logging.getLogger(NAMESPACE)
    # Setting "propagate" to false disables inheritance from the root logger
    root.propagate = False
    # If the logger has no handlers, it means it hasn't been configured yet.
    if not root.hasHandlers():
        configure(create_config(), root)
    return logging.getLogger(name)
