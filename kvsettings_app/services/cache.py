# kvsettings_app/services/cache.py
# -*- coding: utf-8 -*-
"""
Cache com tags para os settings.

Cada tag tem uma "versão" guardada no próprio backend. Uma entrada fica numa
chave fixa por conjunto de tags e guarda junto as versões com que foi
carregada; invalidar uma tag é só trocar a versão dela, e qualquer entrada
gravada com a versão antiga vira miss e é regravada no mesmo lugar. Não há
chaves órfãs para enumerar ou apagar.
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from collections import OrderedDict
from typing import Any, Callable, List, Optional

import redis
from flask import current_app

from ..exceptions import CacheBackendError

logger = logging.getLogger(__name__)


class CacheBackend:
    """Interface mínima: get devolve None quando a chave não existe."""

    def get(self, key: str) -> Optional[Any]:  # pragma: no cover - interface only
        raise NotImplementedError

    def set(self, key: str, value: Any) -> bool:  # pragma: no cover - interface only
        raise NotImplementedError

    def add(self, key: str, value: Any) -> bool:  # pragma: no cover - interface only
        """Grava só se a chave ainda não existir."""
        raise NotImplementedError

    def delete(self, key: str) -> bool:  # pragma: no cover - interface only
        raise NotImplementedError


class MemoryCacheBackend(CacheBackend):
    def __init__(self, threshold: int = 500):
        self.threshold = threshold
        self._store: "OrderedDict[str, Any]" = OrderedDict()
        self._lock = threading.Lock()

    def _prune(self) -> None:
        # LRU; perder a versão de uma tag equivale a um flush dela
        while len(self._store) > self.threshold:
            self._store.popitem(last=False)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if key not in self._store:
                return None
            self._store.move_to_end(key)
            return self._store[key]

    def set(self, key: str, value: Any) -> bool:
        with self._lock:
            self._store[key] = value
            self._store.move_to_end(key)
            self._prune()
        return True

    def add(self, key: str, value: Any) -> bool:
        with self._lock:
            if key in self._store:
                return False
            self._store[key] = value
            self._prune()
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._store)


class RedisCacheBackend(CacheBackend):
    def __init__(self, client):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheBackend":
        return cls(redis.from_url(url))

    def get(self, key: str) -> Optional[Any]:
        try:
            payload = self.client.get(key)
        except redis.RedisError as exc:
            raise CacheBackendError(f"redis get failed: {exc}") from exc
        if payload is None:
            return None
        try:
            return json.loads(payload)
        except ValueError:
            logger.warning("Corrupt cache payload at %s, treating as miss", key)
            return None

    def set(self, key: str, value: Any) -> bool:
        try:
            return bool(self.client.set(key, json.dumps(value)))
        except redis.RedisError as exc:
            raise CacheBackendError(f"redis set failed: {exc}") from exc

    def add(self, key: str, value: Any) -> bool:
        try:
            return bool(self.client.set(key, json.dumps(value), nx=True))
        except redis.RedisError as exc:
            raise CacheBackendError(f"redis add failed: {exc}") from exc

    def delete(self, key: str) -> bool:
        try:
            return self.client.delete(key) > 0
        except redis.RedisError as exc:
            raise CacheBackendError(f"redis delete failed: {exc}") from exc


class TaggedCache:
    def __init__(self, backend: CacheBackend, prefix: str = "kvsettings"):
        self.backend = backend
        self.prefix = prefix

    def tags(self, *names: str) -> "TagSet":
        if not names:
            raise ValueError("at least one tag is required")
        return TagSet(self, names)

    def tag_key(self, name: str) -> str:
        return f"{self.prefix}:tag:{name}:version"

    def tag_version(self, name: str) -> str:
        key = self.tag_key(name)
        version = self.backend.get(key)
        if version is None:
            # add() evita que dois leitores criem versões diferentes ao mesmo tempo
            version = uuid.uuid4().hex
            if not self.backend.add(key, version):
                version = self.backend.get(key) or version
        return version

    def reset_tag(self, name: str) -> str:
        version = uuid.uuid4().hex
        self.backend.set(self.tag_key(name), version)
        return version


class TagSet:
    def __init__(self, cache: TaggedCache, names):
        self.cache = cache
        self.names = tuple(names)

    def _versions(self) -> List[str]:
        return [self.cache.tag_version(name) for name in self.names]

    def entry_key(self, key: str) -> str:
        return f"{self.cache.prefix}:{'|'.join(self.names)}:{key}"

    def remember_forever(self, key: str, loader: Callable[[], Any]) -> Any:
        full_key = self.entry_key(key)
        versions = self._versions()
        entry = self.cache.backend.get(full_key)
        if isinstance(entry, dict) and entry.get("versions") == versions:
            return entry["value"]

        value = loader()
        # grava por cima da geração anterior: uma chave por conjunto de tags
        self.cache.backend.set(full_key, {"versions": versions, "value": value})
        return value

    def flush(self) -> bool:
        for name in self.names:
            self.cache.reset_tag(name)
        return True


def build_cache(config) -> TaggedCache:
    backend_name = (config.get("SETTINGS_CACHE_BACKEND") or "memory").lower()
    prefix = config.get("SETTINGS_CACHE_PREFIX", "kvsettings")

    if backend_name == "redis":
        url = config.get("SETTINGS_CACHE_REDIS_URL")
        logger.info("Settings cache: redis backend at %s", url)
        return TaggedCache(RedisCacheBackend.from_url(url), prefix=prefix)

    if backend_name != "memory":
        raise ValueError(f"unknown SETTINGS_CACHE_BACKEND: {backend_name!r}")

    threshold = int(config.get("SETTINGS_CACHE_THRESHOLD", 500))
    logger.info("Settings cache: in-memory backend (threshold=%s)", threshold)
    return TaggedCache(MemoryCacheBackend(threshold=threshold), prefix=prefix)


def init_cache(app) -> None:
    app.extensions["settings_cache"] = build_cache(app.config)


def get_cache() -> TaggedCache:
    cache = current_app.extensions.get("settings_cache")
    if cache is None:
        cache = build_cache(current_app.config)
        current_app.extensions["settings_cache"] = cache
    return cache
