# Fichier: aura/backend/app/db/base_class.py
from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Noms de contraintes stables : les index et clés générés par ``create_all``
# correspondent à ceux des migrations appliquées sur la base Supabase.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base déclarative des tables de contenu et de progression.

    Le ``RowStore`` retrouve les tables par leur nom dans ``Base.metadata``.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)
