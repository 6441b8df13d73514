"""
Database initialization script
"""
from futuresync.database import engine, SessionLocal, Base
# Importing the models registers them on Base
from futuresync import models
from futuresync.crud.token import cleanup_expired_tokens

def init_database():
    """Create all tables"""
    print("Initializing database...")

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        removed = cleanup_expired_tokens(db)
    finally:
        db.close()

    print("Database initialized.")
    print("Tables:")
    for table in Base.metadata.sorted_tables:
        print(f"- {table.name}")
    if removed:
        print(f"Removed {removed} expired auth tokens")

if __name__ == "__main__":
    init_database()
