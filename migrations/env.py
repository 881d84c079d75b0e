# migrations/env.py
# Run through `flask db ...` (Flask-Migrate), or plain `alembic`, which loads backoffice_api.wsgi.
import logging
from logging.config import fileConfig

from alembic import context
from flask import current_app, has_app_context

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)
log = logging.getLogger("alembic.env")


def _flask_app():
    if has_app_context():
        return current_app._get_current_object(), None
    from backoffice_api.wsgi import app
    ctx = app.app_context()
    ctx.push()
    return app, ctx


app, _pushed_ctx = _flask_app()
db = app.extensions["migrate"].db

config.set_main_option("sqlalchemy.url", str(db.engine.url.render_as_string(hide_password=False)).replace("%", "%%"))
target_metadata = db.metadata


def _configure_kwargs(url: str) -> dict:
    # sqlite needs batch mode to alter tables with constraints
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(url=url, literal_binds=True, **_configure_kwargs(url))
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    def skip_empty(context_, revision, directives):
        # `flask db migrate` with no model change should not write an empty revision
        if getattr(config.cmd_opts, "autogenerate", False):
            script = directives[0]
            if script.upgrade_ops.is_empty():
                directives[:] = []
                log.info("No changes in schema detected.")

    with db.engine.connect() as connection:
        context.configure(
            connection=connection,
            process_revision_directives=skip_empty,
            **_configure_kwargs(str(db.engine.url)),
        )
        with context.begin_transaction():
            context.run_migrations()


try:
    if context.is_offline_mode():
        run_migrations_offline()
    else:
        run_migrations_online()
finally:
    if _pushed_ctx is not None:
        _pushed_ctx.pop()
