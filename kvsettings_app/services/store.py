# kvsettings_app/services/store.py
# -*- coding: utf-8 -*-
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Tuple

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Setting

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class SettingStore:
    """
    Acesso à tabela ``settings`` via Flask-SQLAlchemy.

    Toda escrita faz commit; em erro faz rollback da sessão e re-levanta o
    SQLAlchemyError para o chamador decidir.
    """

    def upsert_one(self, group: str, key: str, value: str) -> None:
        # ON CONFLICT no banco; SELECT + INSERT quebraria com escritor concorrente
        self.upsert_many([(group, key, value)])

    def upsert_many(self, rows: Iterable[Tuple[str, str, str]]) -> None:
        now = datetime.utcnow()
        data = [
            {"group": g, "key": k, "value": v, "created_at": now, "updated_at": now}
            for g, k, v in rows
        ]
        if not data:
            return

        try:
            insert = _UPSERT_DIALECTS.get(db.session.get_bind().dialect.name)
            if insert is not None:
                stmt = insert(Setting).values(data)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["group", "key"],
                    set_={"value": stmt.excluded["value"], "updated_at": stmt.excluded["updated_at"]},
                )
                db.session.execute(stmt)
            else:
                self._upsert_rows_orm(data)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def _upsert_rows_orm(self, data: List[dict]) -> None:
        # fallback para bancos sem ON CONFLICT; roda na mesma transação
        for row in data:
            s = Setting.query.filter_by(group=row["group"], key=row["key"]).first()
            if not s:
                db.session.add(Setting(**row))
            else:
                s.value = row["value"]
                s.updated_at = row["updated_at"]

    def delete_where(self, group: str, key: str) -> int:
        try:
            deleted = (
                Setting.query.filter_by(group=group, key=key)
                .delete(synchronize_session=False)
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return deleted

    def select_group(self, group: str) -> List[Tuple[str, str]]:
        rows = db.session.execute(
            select(Setting.key, Setting.value)
            .where(Setting.group == group)
            .order_by(Setting.key)
        ).all()
        return [(row.key, row.value) for row in rows]

    def select_distinct_groups(self) -> List[str]:
        return list(
            db.session.execute(select(Setting.group).distinct()).scalars().all()
        )
