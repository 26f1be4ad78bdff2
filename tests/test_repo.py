# tests/test_repo.py
from sqlalchemy.dialects import postgresql

from storefront.repo import CatalogRepo


class RecordingSession:
    def __init__(self):
        self.statements = []

    async def execute(self, statement):
        self.statements.append(statement)
        return type("Outcome", (), {"rowcount": 1})()


async def sold_of(sessions, size="M"):
    async with sessions() as session:
        catalog = await CatalogRepo(session).snapshot(["P1"])
    return catalog["P1"].find_size(0, size).sold


async def test_restock_returns_units_and_floors_sold(sessions, stock_of):
    async with sessions() as session, session.begin():
        assert await CatalogRepo(session).decrement("P1", 0, "M", 2)
    assert await sold_of(sessions) == 2

    async with sessions() as session, session.begin():
        assert await CatalogRepo(session).restock("P1", 0, "m", 1)
    assert await stock_of() == 4
    assert await sold_of(sessions) == 1

    async with sessions() as session, session.begin():
        assert await CatalogRepo(session).restock("P1", 0, "M", 50)
    assert await stock_of() == 54
    assert await sold_of(sessions) == 0


async def test_restock_statement_avoids_scalar_max():
    session = RecordingSession()
    await CatalogRepo(session).restock("P1", 0, "M", 1)

    (statement,) = session.statements
    sql = str(statement.compile(dialect=postgresql.dialect())).lower()
    assert "case when" in sql
    assert "max(" not in sql
