from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import sessionmaker

db = SQLAlchemy()


def init_db(app):
    """Bind SQLAlchemy to the Flask app and create all tables."""
    db.init_app(app)
    with app.app_context():
        import models  # noqa: F401
        db.create_all()
        app.logger.info("[DB] All tables created successfully.")


def session_factory(engine):
    """
    Return a factory for short-lived sessions that are independent of the
    request-scoped db.session.

    Reference claims run on these so a claim commits (or rolls back) on its
    own, without flushing or committing whatever the request has pending.
    """
    return sessionmaker(bind=engine, expire_on_commit=False)
