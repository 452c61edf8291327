# leafsync/database/repositories/base_repository.py

from typing import TypeVar, Generic, Type, List

from sqlalchemy.orm import Session

from ...core.logging import SyncLogger


T = TypeVar('T')

class BaseRepository(Generic[T]):
    def __init__(self, model_class: Type[T]):
        self.model_class = model_class
        self.logger = SyncLogger.get_logger(f'database.repository.{model_class.__name__.lower()}')

    def create(self, session: Session, **kwargs) -> T:
        instance = self.model_class(**kwargs)
        session.add(instance)
        session.flush()
        return instance

    def get_all(self, session: Session) -> List[T]:
        return session.query(self.model_class).all()

