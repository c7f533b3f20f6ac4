import logging
from logging.config import fileConfig
from pathlib import Path

from flask import current_app
from alembic import context

config = context.config

# alembic.ini may live next to this file or at the repo root; neither is required
_ini = config.config_file_name
_root_ini = Path(__file__).resolve().parents[1] / "alembic.ini"
if _ini and Path(_ini).exists():
    fileConfig(_ini)
elif _root_ini.exists():
    fileConfig(str(_root_ini))
else:
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("alembic.env")

# Flask-SQLAlchemy >= 3.x exposes the engine directly
_db = current_app.extensions["migrate"].db


def _engine_url() -> str:
    return _db.engine.url.render_as_string(hide_password=False).replace("%", "%%")


config.set_main_option("sqlalchemy.url", _engine_url())


def _metadata():
    # Importing the package registers every billing table on the metadata
    import billsync.models  # noqa: F401
    if hasattr(_db, "metadatas"):
        return _db.metadatas[None]
    return _db.metadata


def _skip_empty_revisions(context_, revision, directives):
    if getattr(config.cmd_opts, "autogenerate", False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []
        logger.info("No changes in schema detected.")


def run_migrations_offline():
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=_metadata(),
        literal_binds=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    conf_args = {
        **current_app.extensions["migrate"].configure_args,
        "compare_type": True,
        "target_metadata": _metadata(),
    }
    conf_args.setdefault("process_revision_directives", _skip_empty_revisions)

    with _db.engine.connect() as connection:
        context.configure(connection=connection, **conf_args)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
