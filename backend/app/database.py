"""
Session PostgreSQL (SQLAlchemy synchrone), une par requête HTTP.

Les contraintes d'unicité de la base (email, salle de visioconférence,
conversation privée active par paire, lecture par message et utilisateur)
arbitrent les écritures concurrentes : les services traduisent l'IntegrityError.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config import settings

engine = create_engine(
    settings.DATABASE_URL,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_recycle=1800,
    pool_pre_ping=True,
    echo=settings.DB_ECHO,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False)

Base = declarative_base()


def get_db():
    """Dépendance FastAPI : session ouverte pour la requête, annulée si elle échoue, puis fermée."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
