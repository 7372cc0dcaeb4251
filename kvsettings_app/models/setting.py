# kvsettings_app/models/setting.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from datetime import datetime
from ..extensions import db

class Setting(db.Model):
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    group = db.Column(db.String(100), index=True, nullable=False, default="default")  # ex: default, mail
    key = db.Column(db.String(191), index=True, nullable=False)
    value = db.Column(db.Text, nullable=True)                     # forma codificada (ver services/codec.py)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("group", "key", name="uq_settings_group_key"),
    )

    def __repr__(self) -> str:
        return f"<Setting {self.group}.{self.key}>"
