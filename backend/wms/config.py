# backend/wms/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the working directory unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///wms.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Tolerance for fractional quantities (kilograms) when comparing totals
    QTY_TOLERANCE = float(os.environ.get("WMS_QTY_TOLERANCE", "0.01"))

    LOG_LEVEL = os.environ.get("WMS_LOG_LEVEL", "INFO")

    ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "WMS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    }
