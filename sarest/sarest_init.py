import logging
import os
import sys
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from .request import SARESTRequest
from .config import get_config
import sarest
import flask.app

class SAREST:
    """This class configures the Flask application to serve sarest resources
    :param app: a Flask application.
    :param LOGLEVEL: loglevel configuration variable, values from logging module (0: trace, .. 50: critical)
    """

    # Configuration settings are stored as class variables
    API_VERSION = "0.0.1"
    SWAGGER_VERSION = "1.1"
    BASE_PATH = "http://127.0.0.1:8012/api/v1"
    DOCS_PATH = "/api-docs"
    MAX_PAGE_LIMIT = 100000
    LOGLEVEL = logging.WARNING

    def __init__(self, app: flask.app.Flask, *args, **kwargs) -> None:
        """
        Constructor
        """
        self.app = app
        if app is not None:
            self.init_app(app, *args, **kwargs)

    def init_app(self, app: flask.app.Flask, app_db: SQLAlchemy = None, **kwargs) -> None:
        """
        Application initialization: install the shaping request class and copy the settings
        """
        if not isinstance(app, Flask):  # pragma: no cover
            raise TypeError("'app' should be Flask.")

        if app_db is None:
            app_db = app.extensions.get("sqlalchemy", sarest.DB)

        sarest.DB = self.db = app_db

        app.request_class = SARESTRequest
        app.url_map.strict_slashes = False

        if app.config.get("DEBUG", False):
            log.setLevel(logging.DEBUG)

        for conf_name, conf_val in kwargs.items():
            setattr(SAREST, conf_name, conf_val)

        for conf_name, conf_val in app.config.items():
            setattr(SAREST, conf_name, conf_val)

        # settings may have changed, drop the cached lookups
        get_config.cache_clear()

        # pylint: disable=unused-argument,unused-variable
        @app.teardown_appcontext
        def shutdown_session(exception=None):
            """cfr. http://flask.pocoo.org/docs/0.12/patterns/sqlalchemy/"""
            self.db.session.remove()

    @staticmethod
    def init_logging(loglevel: int = logging.WARNING) -> logging.Logger:
        """
        Specify the log format used in the webserver logs
        """
        log = logging.getLogger(__name__)
        if log.level == logging.NOTSET:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            log.setLevel(loglevel)
            log.addHandler(handler)
        return log


#
# DB and logging initialization
#
DB = SQLAlchemy()

try:
    DEBUG = os.getenv("DEBUG", logging.WARNING)
    LOGLEVEL = int(DEBUG)
except ValueError:  # pragma: no cover
    print(f'Invalid LogLevel in DEBUG Environment Variable! "{DEBUG}"')
    LOGLEVEL = logging.INFO

log = SAREST.init_logging(LOGLEVEL)
