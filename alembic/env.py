from logging.config import fileConfig

from sqlalchemy import create_engine, pool
from alembic import context

from clinicflow.core.config import get_settings
from clinicflow.models.all_models import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# all_models imports every clinic table so autogenerate sees the full schema.
target_metadata = Base.metadata


def get_url() -> str:
    """
    Database URL for this run.

    ``alembic -x db_url=...`` wins over the application's DATABASE_URL, so a
    scratch database can be migrated without touching ``.env``.
    """
    override = context.get_x_argument(as_dictionary=True).get("db_url")
    return override or get_settings().database_url


def _configure_options(url: str) -> dict:
    # SQLite cannot ALTER constraints in place; batch mode rebuilds the table.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit the clinic schema as SQL without connecting."""
    url = get_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a short-lived connection."""
    url = get_url()
    connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options(url))

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
