from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(db: AsyncSession, table):
    """
    INSERT construct supporting on_conflict_do_update for the bound dialect.
    Only PostgreSQL (deployment) and SQLite (tests) are supported.
    """
    dialect_name = db.get_bind().dialect.name
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"upsert is not supported on {dialect_name}")
    return insert(table)
