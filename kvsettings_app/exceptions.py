# kvsettings_app/exceptions.py
# -*- coding: utf-8 -*-
"""
Erros do gerenciador de settings.

- Erros de uso (SettingNotFoundError, InvalidSettingsInputError) são levantados
  na hora e devem ser corrigidos por quem chama; não há retry.
- SettingsOperationError indica falha do banco ou do cache num caminho de escrita.
"""
from __future__ import annotations


class SettingsError(Exception):
    """Base de todos os erros de settings."""


class SettingNotFoundError(SettingsError, LookupError):
    def __init__(self, key: str, group: str):
        self.key = key
        self.group = group
        super().__init__(f"Settings key '{key}' doesn't exist for group '{group}'.")


class InvalidSettingsInputError(SettingsError, ValueError):
    pass


class SettingsOperationError(SettingsError, RuntimeError):
    pass


class CacheBackendError(SettingsError):
    """Backend de cache indisponível ou com erro (ex.: Redis fora do ar)."""
