from __future__ import annotations

from app.models.user import User, UserDisplay


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_id: dict[str, User] = {}

    def add(self, user: User) -> None:
        if user.id in self._by_id:
            raise ValueError("user already exists")
        self._by_id[user.id] = user

    def get(self, user_id: str) -> User | None:
        return self._by_id.get(user_id)

    def rename(self, user_id: str, name: str) -> None:
        u = self._by_id.get(user_id)
        if u is None:
            raise KeyError("user not found")
        self._by_id[user_id] = User(id=u.id, email=u.email, name=name)

    async def get_user_display(self, user_id: str) -> UserDisplay | None:
        u = self._by_id.get(user_id)
        if u is None:
            return None
        return u.display()

    def clear(self) -> None:
        self._by_id.clear()
