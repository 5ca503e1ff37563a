import logging.config

from flask import Flask

from .cli import register_cli
from .config import Config
from .services.engine import Engine


def configure_logging(level: str = "INFO"):
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "default"},
        },
        "loggers": {
            "rentcycle": {"handlers": ["console"], "level": level, "propagate": False},
            "apscheduler": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        },
    })


def create_app(config=None, store=None, mailer=None):
    """
    Build the host app: load config, set up logging and the engine.
    The scheduler itself is started by the `scheduler` CLI command.
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    app.config.from_prefixed_env("RENTCYCLE")
    if isinstance(config, dict):
        app.config.update(config)
    elif config is not None:
        app.config.from_object(config)

    configure_logging(app.config["LOG_LEVEL"])
    app.extensions["rentcycle"] = Engine(app.config, store=store, mailer=mailer)
    register_cli(app)

    return app


def get_engine(app) -> Engine:
    return app.extensions["rentcycle"]
