# kvsettings_app/__init__.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import os
from typing import Optional

from flask import Flask
from config import Config, TestingConfig, StagingConfig, ProductionConfig
from .extensions import db, migrate, init_extensions, register_cli
from .services.cache import init_cache
from .services.settings import init_settings, register_template_helpers
from .cli import register_settings_cli


def create_app(config_object: Optional[type[Config]] = None) -> Flask:
    app = Flask(__name__)
    app_env = os.getenv("APP_ENV", "").lower()

    if config_object is not None:
        app.config.from_object(config_object)
    elif app_env == "testing":
        app.config.from_object(TestingConfig)
    elif app_env == "staging":
        app.config.from_object(StagingConfig)
    elif app_env == "production":
        app.config.from_object(ProductionConfig)
    else:
        app.config.from_object(Config)

    # Extensões (DB/Migrate)
    init_extensions(app)

    # Serviços (cache com tags + gerenciador de settings) — ficam em app.extensions
    init_cache(app)         # app.extensions["settings_cache"]
    init_settings(app)      # app.extensions["settings"]

    # Jinja: {{ settings('app.name', '') }}, {{ has_setting('x') }} ...
    register_template_helpers(app)

    # CLI (ex.: flask init-db, flask settings list)
    register_cli(app)
    register_settings_cli(app)

    return app
