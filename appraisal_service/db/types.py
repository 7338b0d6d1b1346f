import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests / local dev)
JSONType = sa.JSON().with_variant(JSONB(), "postgresql")


def check_in(column: str, values: tuple[str, ...], name: str) -> sa.CheckConstraint:
    allowed = ",".join(f"'{v}'" for v in values)
    return sa.CheckConstraint(f"{column} IN ({allowed})", name=name)
