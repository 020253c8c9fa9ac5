from __future__ import annotations

from collections.abc import Mapping

from flasgger import Swagger
from flask import Flask
from flask_cors import CORS

from .config import Config
from .errors import register_error_handlers
from .extensions import db
from .routes import register_routes

SWAGGER_TEMPLATE = {
    "info": {
        "title": "Trainer Marketplace API",
        "description": "Hires, chat, files, reviews and payments between trainers and clients.",
        "version": "1.0.0",
    },
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Bearer token returned by /auth/login",
        }
    },
}


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(Config)
    app.config.from_envvar("APP_SETTINGS", silent=True)
    if isinstance(config_object, Mapping):
        app.config.update(config_object)
    elif config_object:
        app.config.from_object(config_object)

    db.init_app(app)

    # Allow the browser frontend to talk to the API
    origins = app.config.get("CORS_ORIGINS", "*")
    CORS(
        app,
        origins=[origin.strip() for origin in origins.split(",")] if isinstance(origins, str) else origins,
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )

    Swagger(app, template=SWAGGER_TEMPLATE)

    register_error_handlers(app)
    register_routes(app)

    return app
