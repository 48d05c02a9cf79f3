# Overview: Flask extension instances for the embedded database.

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
