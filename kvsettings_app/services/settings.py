# kvsettings_app/services/settings.py
# -*- coding: utf-8 -*-
"""
Gerenciador de settings com cache por grupo.

Leitura: o mapa inteiro de um grupo (chave -> valor decodificado) fica no cache
com as tags ``settings`` e ``settings.group.<grupo>``, sem expiração.

Escrita: grava no banco PRIMEIRO e só depois invalida a tag do grupo. Na pior
das hipóteses um leitor concorrente recarrega à toa; nunca sobra valor velho
depois da invalidação.

- set/set_many: falha no banco ou no flush do cache -> SettingsOperationError.
- forget: falha vira ``False`` + log (o cache se corrige no próximo miss).
- flush_cache/flush_all_cache: nunca levantam, devolvem bool.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import (
    CacheBackendError,
    InvalidSettingsInputError,
    SettingNotFoundError,
    SettingsOperationError,
)
from .cache import TaggedCache, get_cache
from .codec import ValueCodec
from .store import SettingStore

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


class SettingsManager:
    DEFAULT_GROUP = "default"
    CACHE_TAG = "settings"
    CACHE_KEY = "data"

    def __init__(
        self,
        store: SettingStore,
        cache: TaggedCache,
        codec: Optional[ValueCodec] = None,
        group: Optional[str] = None,
    ):
        self.store = store
        self.cache = cache
        self.codec = codec or ValueCodec()
        self._group = self._normalize_group(group)

    def __repr__(self) -> str:
        return f"<SettingsManager group={self._group!r}>"

    @classmethod
    def _normalize_group(cls, name: Optional[str]) -> str:
        if name is None:
            return cls.DEFAULT_GROUP
        return str(name).strip() or cls.DEFAULT_GROUP

    @property
    def group_name(self) -> str:
        return self._group

    @property
    def group_tag(self) -> str:
        return f"{self.CACHE_TAG}.group.{self._group}"

    def group(self, name: Optional[str]) -> "SettingsManager":
        """Nova instância com o grupo informado; a original não muda."""
        clone = copy.copy(self)
        clone._group = self._normalize_group(name)
        return clone

    # ------------------------------------------------------------------ leitura

    def _load_group(self) -> Dict[str, Any]:
        try:
            rows = self.store.select_group(self._group)
        except SQLAlchemyError as exc:
            raise SettingsOperationError(
                f"Could not load settings for group '{self._group}'."
            ) from exc
        return {key: self.codec.decode(value) for key, value in rows}

    def all(self) -> Dict[str, Any]:
        try:
            data = self.cache.tags(self.CACHE_TAG, self.group_tag).remember_forever(
                self.CACHE_KEY, self._load_group
            )
        except CacheBackendError as exc:
            logger.warning(
                "Settings cache unavailable for group '%s', reading from database: %s",
                self._group, exc,
            )
            data = self._load_group()
        return copy.deepcopy(data)

    def get(self, key: str, default: Any = UNSET) -> Any:
        data = self.all()
        if key in data:
            return data[key]
        if default is UNSET:
            raise SettingNotFoundError(key, self._group)
        return default

    def get_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        data = self.all()
        keys = list(keys)
        for key in keys:
            if key not in data:
                raise SettingNotFoundError(key, self._group)
        return {key: data[key] for key in keys}

    def has(self, key: str) -> bool:
        return key in self.all()

    def get_all_groups(self) -> List[str]:
        # sem cache: lista de grupos é rara e barata
        try:
            return self.store.select_distinct_groups()
        except SQLAlchemyError as exc:
            raise SettingsOperationError("Could not list settings groups.") from exc

    # ------------------------------------------------------------------ escrita

    @staticmethod
    def _check_key(key: Any) -> None:
        if not isinstance(key, str) or not key.strip():
            raise InvalidSettingsInputError(f"Invalid settings key: {key!r}.")

    def _invalidate_after_write(self) -> None:
        if not self.flush_cache():
            raise SettingsOperationError(
                f"Settings saved but the cache for group '{self._group}' could not be flushed."
            )

    def set(self, key: Union[str, Mapping[str, Any]], value: Any = None) -> bool:
        if isinstance(key, Mapping):
            return self.set_many(key)

        self._check_key(key)
        try:
            self.store.upsert_one(self._group, key, self.codec.encode(value))
        except SQLAlchemyError as exc:
            raise SettingsOperationError(
                f"Failed to save setting '{key}' for group '{self._group}'."
            ) from exc

        self._invalidate_after_write()
        return True

    def set_many(self, values: Mapping[str, Any]) -> bool:
        if not values:
            raise InvalidSettingsInputError("Values array cannot be empty.")
        for key in values:
            self._check_key(key)

        rows = [(self._group, key, self.codec.encode(value)) for key, value in values.items()]
        try:
            self.store.upsert_many(rows)
        except SQLAlchemyError as exc:
            raise SettingsOperationError(
                f"Failed to save {len(rows)} settings for group '{self._group}'."
            ) from exc

        self._invalidate_after_write()
        return True

    def forget(self, key: str) -> bool:
        try:
            deleted = self.store.delete_where(self._group, key)
        except SQLAlchemyError as exc:
            logger.warning("Failed to delete setting '%s' from group '%s': %s", key, self._group, exc)
            return False

        if not deleted:
            return False

        if not self.flush_cache():
            logger.warning(
                "Setting '%s' deleted from group '%s' but its cache could not be flushed",
                key, self._group,
            )
            return False
        return True

    # ------------------------------------------------------------------ cache

    def flush_cache(self) -> bool:
        try:
            return bool(self.cache.tags(self.group_tag).flush())
        except Exception as exc:
            logger.warning("Failed to flush settings cache for group '%s': %s", self._group, exc)
            return False

    def flush_all_cache(self) -> bool:
        try:
            return bool(self.cache.tags(self.CACHE_TAG).flush())
        except Exception as exc:
            logger.warning("Failed to flush settings cache: %s", exc)
            return False


# ---------------------------------------------------------------------------
# Integração com o app Flask
# ---------------------------------------------------------------------------

def _build_manager(app) -> SettingsManager:
    cache = app.extensions.get("settings_cache") or get_cache()
    return SettingsManager(SettingStore(), cache)


def init_settings(app) -> None:
    """Cria o gerenciador padrão; deve rodar DEPOIS de init_cache(app)."""
    with app.app_context():
        app.extensions["settings"] = _build_manager(app)


def get_settings() -> SettingsManager:
    manager = current_app.extensions.get("settings")
    if manager is None:
        manager = _build_manager(current_app)
        current_app.extensions["settings"] = manager
    return manager


def reset_settings(app=None) -> None:
    """Descarta o gerenciador do app (usado nos testes)."""
    (app or current_app).extensions.pop("settings", None)


def settings(key: Optional[str] = None, default: Any = UNSET) -> Any:
    manager = get_settings()
    if key is None:
        return manager
    return manager.get(key, default)


def get_setting(key: str, group: Optional[str] = None, default: Any = UNSET) -> Any:
    return get_settings().group(group).get(key, default)


def set_setting(key: str, value: Any, group: Optional[str] = None) -> bool:
    return get_settings().group(group).set(key, value)


def has_setting(key: str, group: Optional[str] = None) -> bool:
    return get_settings().group(group).has(key)


def register_template_helpers(app) -> None:
    app.add_template_global(settings, "settings")
    app.add_template_global(
        lambda group, key, default=None: get_setting(key, group=group, default=default),
        "settings_for_group",
    )
    app.add_template_global(lambda key: has_setting(key), "has_setting")
    app.add_template_global(lambda group, key: has_setting(key, group=group), "has_setting_for_group")
