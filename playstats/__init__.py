from flask import Flask
from flask_sqlalchemy import SQLAlchemy


db = SQLAlchemy()


def create_app(database_uri: str | None = None, *, ballot_dir: str | None = None):
    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = database_uri or "sqlite:///data.db"
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["BALLOT_DIR"] = ballot_dir or "ballots"
    app.config["BALLOT_REMOTE_ENABLED"] = True
    app.config.from_prefixed_env("PLAYSTATS")

    db.init_app(app)

    from .routes import bp as core_bp

    app.register_blueprint(core_bp)

    with app.app_context():
        db.create_all()

    return app
