"""Database configuration and initialization."""
from sqlalchemy import create_engine, event, BigInteger, Integer
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# BIGINT in PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY
BigIntId = BigInteger().with_variant(Integer, 'sqlite')

# Global session and engine
engine = None
db_session = None


def _engine_options(app, database_uri: str) -> dict:
    """Engine keyword arguments for the configured backend."""
    options = {'echo': app.config.get('SQLALCHEMY_ECHO', False)}
    if database_uri.startswith('sqlite'):
        # Single shared connection so every session sees the same in-memory database
        options.update(
            poolclass=StaticPool,
            connect_args={'check_same_thread': False},
        )
    else:
        options.update(
            pool_pre_ping=True,  # Enable connection health checks
            pool_size=10,
            max_overflow=20,
        )
    return options


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine = create_engine(database_uri, **_engine_options(app, database_uri))

    if database_uri.startswith('sqlite'):
        @event.listens_for(engine, 'connect')
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.close()

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )

    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create every table registered on Base (used by `flask init-db` and tests)."""
    import app.models  # noqa: F401  (registers the mappers)
    Base.metadata.create_all(bind=engine)


def drop_all():
    """Drop every table registered on Base."""
    import app.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session
