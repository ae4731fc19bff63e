from __future__ import annotations

from typing import Generic, TypeVar, Type, Optional, Any
from sqlalchemy.orm import Session

T = TypeVar("T")


class BaseRepository(Generic[T]):
    def __init__(self, session: Session, model: Type[T]) -> None:
        self.session = session
        self.model = model

    def create(self, obj: T, *, commit: bool = True) -> T:
        self.session.add(obj)
        if commit:
            self.session.commit()
            self.session.refresh(obj)
        return obj

    def create_many(self, objs: list[T], *, commit: bool = True) -> list[T]:
        self.session.add_all(objs)
        if commit:
            self.session.commit()
        return objs

    def get_by_id(self, id_: Any) -> Optional[T]:
        return self.session.get(self.model, id_)

    def update(self, obj: T, *, commit: bool = True) -> T:
        obj = self.session.merge(obj)
        if commit:
            self.session.commit()
            self.session.refresh(obj)
        return obj
