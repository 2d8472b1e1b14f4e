from portal.db.base import Base
from portal.db.session import get_engine
from portal.models import entities  # noqa: F401


def init_db() -> None:
    Base.metadata.create_all(bind=get_engine())
