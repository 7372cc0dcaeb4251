# kvsettings_app/models/__init__.py
# -*- coding: utf-8 -*-
from .setting import Setting


__all__ = [
    "Setting",
]
