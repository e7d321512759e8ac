import os
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from app.core.config import settings

# Base para modelos (lo importa app.main)
Base = declarative_base()

# Ruta absoluta al erp.db (raíz del proyecto)
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
DB_FILE = os.path.join(BASE_DIR, "erp.db")
ABS_URL = "sqlite:///" + DB_FILE.replace("\\", "/")

# Permite override por variable de entorno
SQLALCHEMY_DATABASE_URL = settings.database_url or ABS_URL


def make_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    # Engine con timeout alto (contención ligera)
    eng = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": 60},
        pool_pre_ping=True,
    )

    # PRAGMAs por conexión
    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_conn, _):
        cur = dbapi_conn.cursor()
        try:
            if ":memory:" not in url:
                cur.execute("PRAGMA journal_mode=WAL;")
            cur.execute("PRAGMA busy_timeout=60000;")
            cur.execute("PRAGMA foreign_keys=ON;")
            cur.execute("PRAGMA synchronous=NORMAL;")
        finally:
            cur.close()

    return eng


engine = make_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Dependencia FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
