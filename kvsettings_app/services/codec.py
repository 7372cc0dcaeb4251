# kvsettings_app/services/codec.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import json
import re
from typing import Any, Optional

_INT_RE = re.compile(r"^-?[0-9]+$")
_FLOAT_RE = re.compile(r"^[+-]?([0-9]+\.[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?$")


def _reject_constant(name: str):
    # NaN/Infinity não são JSON válido
    raise ValueError(name)


class ValueCodec:
    """
    Converte o texto gravado na coluna ``value`` para tipos nativos e vice-versa.

    decode: "true"/"false" -> bool, "null" -> None, "-12" -> int, "1.5" -> float,
    JSON (objeto, lista, string) -> dict/list/str; qualquer outra coisa volta como str.
    """

    def decode(self, raw: Optional[str]) -> Any:
        if raw is None:
            return None

        value = raw.strip()
        lowered = value.lower()

        if lowered == "true":
            return True
        if lowered == "false":
            return False
        if lowered == "null":
            return None

        if _INT_RE.match(value):
            return int(value)
        if _FLOAT_RE.match(value):
            return float(value)

        if value:
            try:
                return json.loads(value, parse_constant=_reject_constant)
            except ValueError:
                pass

        return value

    def encode(self, value: Any) -> str:
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (dict, list, tuple)):
            return json.dumps(value, ensure_ascii=False)
        return str(value)
