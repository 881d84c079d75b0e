# backoffice_api/models/__init__.py
import importlib

# order matters only for readability; relationships resolve lazily by name
MODEL_MODULES = (
    "master",
    "employee",
    "attendance",
    "payroll",
    "audit",
)


def load_all():
    """Import every model module so db.metadata knows all tables (create_all, Alembic autogenerate)."""
    for name in MODEL_MODULES:
        importlib.import_module(f"{__name__}.{name}")
