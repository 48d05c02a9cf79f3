from __future__ import annotations

from ..extensions import db


class SettingEntry(db.Model):
    """
    Generic key/value configuration (display currency, exchange rate, tax
    rate, low-stock threshold). Writes are upserts; last write wins.
    """
    __tablename__ = "settings"

    key = db.Column(db.String(128), primary_key=True)
    value = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {"key": self.key, "value": self.value}
