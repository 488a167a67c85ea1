"""
Удалённое хранилище: авторизация и таблицы с CRUD.

Ядро зависит только от контракта (RemoteStore / Table / Auth).
Реализации:
  - MemoryRemoteStore — в памяти процесса, с управляемыми сбоями (тесты, демо);
  - SupabaseRemoteStore — REST API Supabase через httpx.
Любая ошибка удалённой стороны поднимается как RemoteError.
"""

import uuid
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Protocol,
    Tuple,
)

import httpx

from .domain import UserSession
from .logger import get_logger

logger = get_logger("remote")

TABLES = (
    "profiles",
    "addresses",
    "favorites",
    "orders",
    "order_items",
    "newsletter_subscriptions",
)

SessionCallback = Callable[[Optional[UserSession]], Awaitable[None]]
Row = Dict[str, Any]


class RemoteError(Exception):
    """Ошибка сети, авторизации или прав на удалённой стороне"""


# ============ Контракт ============


class Table(Protocol):
    async def select(self, filters: Optional[Row] = None) -> List[Row]: ...

    async def insert(self, rows: Iterable[Row]) -> List[Row]: ...

    async def upsert(self, rows: Iterable[Row], on_conflict: str) -> List[Row]: ...

    async def update(self, filters: Row, values: Row) -> List[Row]: ...

    async def delete(self, filters: Row) -> List[Row]: ...


class Auth(Protocol):
    async def sign_up(
        self, email: str, password: str, full_name: Optional[str] = None
    ) -> Optional[UserSession]: ...

    async def sign_in(self, email: str, password: str) -> UserSession: ...

    async def sign_out(self) -> None: ...

    async def get_session(self) -> Optional[UserSession]: ...

    def on_session_change(self, callback: SessionCallback) -> Callable[[], None]: ...


class RemoteStore(Protocol):
    auth: Auth

    def table(self, name: str) -> Table: ...


class _SessionNotifier:
    """Подписки на смену сессии (вход, выход, обновление токена)"""

    def __init__(self):
        self._callbacks: List[SessionCallback] = []

    def on_session_change(self, callback: SessionCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    async def _notify(self, session: Optional[UserSession]) -> None:
        for callback in tuple(self._callbacks):
            await callback(session)


# ============ Избранное поверх таблицы ============


class FavoritesGateway:
    """favorites(user_id, product_id) с уникальностью пары"""

    ON_CONFLICT = "user_id,product_id"

    def __init__(self, remote: RemoteStore):
        self.table = remote.table("favorites")

    async def list_for_user(self, user_id: str) -> Tuple[str, ...]:
        rows = await self.table.select({"user_id": user_id})
        return tuple(dict.fromkeys(str(r["product_id"]) for r in rows if "product_id" in r))

    async def upsert(self, user_id: str, product_id: str) -> None:
        await self.upsert_many(user_id, (product_id,))

    async def upsert_many(self, user_id: str, product_ids: Iterable[str]) -> None:
        rows = [{"user_id": user_id, "product_id": pid} for pid in product_ids]
        if rows:
            await self.table.upsert(rows, on_conflict=self.ON_CONFLICT)

    async def delete(self, user_id: str, product_id: str) -> None:
        await self.table.delete({"user_id": user_id, "product_id": product_id})


# ============ In-memory реализация ============


def _matches(row: Row, filters: Optional[Row]) -> bool:
    return all(row.get(k) == v for k, v in (filters or {}).items())


class MemoryTable:
    def __init__(self, name: str, remote: "MemoryRemoteStore"):
        self.name = name
        self.rows: List[Row] = []
        self._remote = remote

    async def select(self, filters: Optional[Row] = None) -> List[Row]:
        self._remote._check(f"{self.name}.select")
        return [dict(r) for r in self.rows if _matches(r, filters)]

    async def insert(self, rows: Iterable[Row]) -> List[Row]:
        self._remote._check(f"{self.name}.insert")
        inserted = [{"id": uuid.uuid4().hex, **row} for row in rows]
        self.rows.extend(inserted)
        return [dict(r) for r in inserted]

    async def upsert(self, rows: Iterable[Row], on_conflict: str) -> List[Row]:
        self._remote._check(f"{self.name}.upsert")
        keys = tuple(k.strip() for k in on_conflict.split(","))
        result = []
        for row in rows:
            existing = next(
                (r for r in self.rows if all(r.get(k) == row.get(k) for k in keys)),
                None,
            )
            if existing is None:
                existing = {"id": uuid.uuid4().hex}
                self.rows.append(existing)
            existing.update(row)
            result.append(dict(existing))
        return result

    async def update(self, filters: Row, values: Row) -> List[Row]:
        self._remote._check(f"{self.name}.update")
        updated = []
        for row in self.rows:
            if _matches(row, filters):
                row.update(values)
                updated.append(dict(row))
        return updated

    async def delete(self, filters: Row) -> List[Row]:
        self._remote._check(f"{self.name}.delete")
        removed = [r for r in self.rows if _matches(r, filters)]
        self.rows = [r for r in self.rows if not _matches(r, filters)]
        return removed


class MemoryAuth(_SessionNotifier):
    """confirm_email=True имитирует проект с подтверждением почты"""

    def __init__(self, remote: "MemoryRemoteStore", confirm_email: bool = False):
        super().__init__()
        self._remote = remote
        self.confirm_email = confirm_email
        self.accounts: Dict[str, dict] = {}
        self.session: Optional[UserSession] = None

    async def sign_up(
        self, email: str, password: str, full_name: Optional[str] = None
    ) -> Optional[UserSession]:
        self._remote._check("auth.sign_up")
        if email in self.accounts:
            raise RemoteError("User already registered")
        self.accounts[email] = {
            "id": uuid.uuid4().hex,
            "password": password,
            "name": full_name,
            "confirmed": not self.confirm_email,
        }
        if self.confirm_email:
            return None
        return await self.sign_in(email, password)

    def confirm(self, email: str) -> None:
        self.accounts[email]["confirmed"] = True

    async def sign_in(self, email: str, password: str) -> UserSession:
        self._remote._check("auth.sign_in")
        account = self.accounts.get(email)
        if account is None or account["password"] != password:
            raise RemoteError("Invalid login credentials")
        if not account.get("confirmed", True):
            raise RemoteError("Email not confirmed")
        self.session = UserSession(id=account["id"], email=email, name=account["name"])
        await self._notify(self.session)
        return self.session

    async def sign_out(self) -> None:
        self._remote._check("auth.sign_out")
        self.session = None
        await self._notify(None)

    async def get_session(self) -> Optional[UserSession]:
        self._remote._check("auth.get_session")
        return self.session


class MemoryRemoteStore:
    """
    Удалённое хранилище в памяти.
    fail("favorites.upsert", "...") заставляет операцию бросать RemoteError.
    """

    def __init__(self, confirm_email: bool = False):
        self.auth = MemoryAuth(self, confirm_email)
        self._tables: Dict[str, MemoryTable] = {}
        self._failures: Dict[str, str] = {}

    def table(self, name: str) -> MemoryTable:
        if name not in self._tables:
            self._tables[name] = MemoryTable(name, self)
        return self._tables[name]

    def fail(self, operation: str, message: str = "Network request failed") -> None:
        self._failures[operation] = message

    def heal(self, operation: Optional[str] = None) -> None:
        if operation is None:
            self._failures.clear()
        else:
            self._failures.pop(operation, None)

    def _check(self, operation: str) -> None:
        if operation in self._failures:
            raise RemoteError(self._failures[operation])


# ============ Supabase (REST через httpx) ============


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


def _session_from_user(user: Optional[dict]) -> Optional[UserSession]:
    if not user or not user.get("id"):
        return None
    metadata = user.get("user_metadata") or {}
    return UserSession(
        id=str(user["id"]),
        email=str(user.get("email") or ""),
        name=metadata.get("full_name"),
    )


class _SupabaseHttp:
    def __init__(self, client: httpx.AsyncClient, key: str):
        self.client = client
        self.key = key
        self.access_token: Optional[str] = None
        # вызывается на 401 с токеном пользователя; True, если токен обновлён
        self.on_unauthorized: Optional[Callable[[], Awaitable[bool]]] = None

    def headers(self, extra: Optional[dict] = None) -> dict:
        return {
            "apikey": self.key,
            "Authorization": f"Bearer {self.access_token or self.key}",
            **(extra or {}),
        }

    async def request(self, method: str, path: str, retry: bool = True, **kwargs) -> Any:
        extra = kwargs.pop("headers", None)
        try:
            response = await self.client.request(
                method, path, headers=self.headers(extra), **kwargs
            )
        except httpx.HTTPError as e:
            logger.error(f"Supabase {method} {path} failed: {e}")
            raise RemoteError(str(e) or "Network request failed") from e

        if (
            response.status_code == 401
            and retry
            and self.access_token
            and self.on_unauthorized is not None
            and await self.on_unauthorized()
        ):
            return await self.request(method, path, retry=False, headers=extra, **kwargs)

        if response.is_error:
            message = _error_message(response)
            logger.error(f"Supabase {method} {path} -> {response.status_code}: {message}")
            raise RemoteError(message)
        if not response.content:
            return None
        return response.json()


class SupabaseTable:
    def __init__(self, http: _SupabaseHttp, name: str):
        self.http = http
        self.path = f"/rest/v1/{name}"

    @staticmethod
    def _params(filters: Optional[Row]) -> dict:
        return {k: f"eq.{v}" for k, v in (filters or {}).items()}

    async def select(self, filters: Optional[Row] = None) -> List[Row]:
        params = {"select": "*", **self._params(filters)}
        return await self.http.request("GET", self.path, params=params) or []

    async def insert(self, rows: Iterable[Row]) -> List[Row]:
        return (
            await self.http.request(
                "POST",
                self.path,
                json=list(rows),
                headers={"Prefer": "return=representation"},
            )
            or []
        )

    async def upsert(self, rows: Iterable[Row], on_conflict: str) -> List[Row]:
        return (
            await self.http.request(
                "POST",
                self.path,
                json=list(rows),
                params={"on_conflict": on_conflict},
                headers={
                    "Prefer": "resolution=merge-duplicates,return=representation"
                },
            )
            or []
        )

    async def update(self, filters: Row, values: Row) -> List[Row]:
        return (
            await self.http.request(
                "PATCH",
                self.path,
                json=values,
                params=self._params(filters),
                headers={"Prefer": "return=representation"},
            )
            or []
        )

    async def delete(self, filters: Row) -> List[Row]:
        return (
            await self.http.request(
                "DELETE",
                self.path,
                params=self._params(filters),
                headers={"Prefer": "return=representation"},
            )
            or []
        )


class SupabaseAuth(_SessionNotifier):
    def __init__(self, http: _SupabaseHttp):
        super().__init__()
        self.http = http
        self.refresh_token: Optional[str] = None
        http.on_unauthorized = self._refresh_after_401

    async def _accept(self, body: Optional[dict]) -> Optional[UserSession]:
        """
        Сессия есть только при выданном access_token.
        Регистрация с подтверждением почты возвращает пользователя без токена:
        это не вход, результат None.
        """
        body = body or {}
        if not body.get("access_token"):
            return None
        session = _session_from_user(body.get("user"))
        if session is None:
            return None
        self.http.access_token = body["access_token"]
        self.refresh_token = body.get("refresh_token")
        await self._notify(session)
        return session

    async def _drop(self) -> None:
        self.http.access_token = None
        self.refresh_token = None
        await self._notify(None)

    async def sign_up(
        self, email: str, password: str, full_name: Optional[str] = None
    ) -> Optional[UserSession]:
        payload = {"email": email, "password": password}
        if full_name:
            payload["data"] = {"full_name": full_name}
        return await self._accept(
            await self.http.request("POST", "/auth/v1/signup", json=payload)
        )

    async def sign_in(self, email: str, password: str) -> UserSession:
        body = await self.http.request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = await self._accept(body)
        if session is None:
            raise RemoteError("Invalid login credentials")
        return session

    async def refresh(self) -> Optional[UserSession]:
        if not self.refresh_token:
            return None
        body = await self.http.request(
            "POST",
            "/auth/v1/token",
            retry=False,
            params={"grant_type": "refresh_token"},
            json={"refresh_token": self.refresh_token},
        )
        return await self._accept(body)

    async def _refresh_after_401(self) -> bool:
        """Истёкший токен: одна попытка обновления, иначе выход"""
        try:
            session = await self.refresh()
        except RemoteError as e:
            logger.warning(f"Токен не обновлён: {e}")
            session = None
        if session is None:
            await self._drop()
            return False
        return True

    async def sign_out(self) -> None:
        if self.http.access_token:
            await self.http.request("POST", "/auth/v1/logout", retry=False)
        await self._drop()

    async def get_session(self) -> Optional[UserSession]:
        if not self.http.access_token:
            return None
        return _session_from_user(await self.http.request("GET", "/auth/v1/user"))


class SupabaseRemoteStore:
    """
    RemoteStore поверх Supabase REST.
    Владение строками (row-level security) проверяет сам Supabase.
    """

    def __init__(
        self,
        url: str,
        key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        if not url or not key:
            logger.warning("SUPABASE_URL or SUPABASE_KEY not set")
        self.client = httpx.AsyncClient(
            base_url=url,
            headers={"Content-Type": "application/json"},
            transport=transport,
            timeout=timeout,
        )
        self._http = _SupabaseHttp(self.client, key)
        self.auth = SupabaseAuth(self._http)

    def table(self, name: str) -> SupabaseTable:
        return SupabaseTable(self._http, name)

    async def aclose(self) -> None:
        await self.client.aclose()
