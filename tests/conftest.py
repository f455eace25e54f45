from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from bid_leveling.db.models import Base
from bid_leveling.db.repository import SqlLevelingStore


@dataclass(frozen=True)
class SeededProject:
    project_id: str
    electrical_id: str
    plumbing_id: str
    sub_x: str
    sub_y: str
    sub_z: str


@pytest.fixture
def db_session() -> Session:
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture
def store(db_session: Session) -> SqlLevelingStore:
    return SqlLevelingStore(db_session)


@pytest.fixture
def seeded_project(store: SqlLevelingStore) -> SeededProject:
    project = store.create_project("Harbor Tower", due_date=date(2025, 6, 30))
    electrical = store.add_trade(project.id, "Electrical")
    plumbing = store.add_trade(project.id, "Plumbing")

    invited = []
    for index, name in enumerate(("Xeno Electric", "Yellow Power", "Zeta Mechanical"), start=1):
        company_id = store.add_subcontractor(name)
        invited.append(
            store.invite_sub(
                project.id,
                company_id,
                sort_order=index,
                invited_at=datetime(2025, 5, index, 9, 0, 0),
            )
        )

    return SeededProject(
        project_id=project.id,
        electrical_id=electrical.id,
        plumbing_id=plumbing.id,
        sub_x=invited[0].id,
        sub_y=invited[1].id,
        sub_z=invited[2].id,
    )
