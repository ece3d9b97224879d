import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import Base
from models import Category
from schemas import CategoryIn
from services import CategoryService


def test_duplicate_name_differing_in_case_is_rejected() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        categories = CategoryService(session, 1)
        categories.create(CategoryIn(name="Food"))

        with pytest.raises(ValueError):
            categories.create(CategoryIn(name="food"))
        # another user may reuse the name
        CategoryService(session, 2).create(CategoryIn(name="food"))


def test_database_folds_case_when_lookup_is_skipped(monkeypatch) -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        categories = CategoryService(session, 1)
        monkeypatch.setattr(categories, "_name_taken", lambda *args, **kwargs: False)
        categories.create(CategoryIn(name="Food"))
        rent = categories.create(CategoryIn(name="Rent"))

        with pytest.raises(ValueError, match="already exists"):
            categories.create(CategoryIn(name="food"))
        with pytest.raises(ValueError, match="already exists"):
            categories.create(CategoryIn(name="Food"))
        with pytest.raises(ValueError, match="already exists"):
            categories.update(rent.id, CategoryIn(name="FOOD"))

        assert [c.name for c in categories.list_all()] == ["Food", "Rent"]


def test_lower_name_index_applies_to_raw_inserts() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        session.add_all(
            [Category(user_id=1, name="Travel"), Category(user_id=1, name="TRAVEL")]
        )
        with pytest.raises(IntegrityError):
            session.commit()
