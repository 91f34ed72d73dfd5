import logging
import time
from urllib.parse import urlparse

import psycopg2

from tourbook.core.config import settings

logger = logging.getLogger("wait_for_db")

DATABASE_URL = settings.DATABASE_URL
timeout_s = int(settings.DB_WAIT_TIMEOUT)

if DATABASE_URL.startswith("postgresql"):
    # SQLAlchemy URL may start with postgresql+psycopg2://
    p = urlparse(DATABASE_URL.replace("postgresql+psycopg2://", "postgresql://"))
    host = p.hostname or "db"
    port = p.port or 5432
    user = p.username or "tourbook"
    password = p.password or "tourbook"
    dbname = (p.path or "/tourbook").lstrip("/") or "tourbook"

    start = time.time()
    logger.info("Waiting for Postgres at %s:%s db=%s user=%s (timeout=%ss)", host, port, dbname, user, timeout_s)
    while True:
        try:
            conn = psycopg2.connect(host=host, port=port, user=user, password=password, dbname=dbname)
            conn.close()
            logger.info("Postgres is ready.")
            break
        except psycopg2.OperationalError as e:
            if time.time() - start > timeout_s:
                logger.error("Timed out waiting for DB. Last error: %s", e)
                raise
            time.sleep(1)
