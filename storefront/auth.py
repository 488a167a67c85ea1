from typing import Optional

from .domain import UserSession
from .ftypes import Either
from .remote import RemoteError, RemoteStore
from .store import Store, auth_set, auth_sign_out, toast_show
from .logger import get_logger

logger = get_logger("auth")

MIN_PASSWORD_LENGTH = 6
MIN_NAME_LENGTH = 2


def valid_credentials(email: str, password: str, full_name: Optional[str] = None) -> bool:
    """Минимальная проверка формы входа/регистрации"""
    if "@" not in email.strip():
        return False
    if full_name is not None and len(full_name.strip()) < MIN_NAME_LENGTH:
        return False
    return len(password.strip()) >= MIN_PASSWORD_LENGTH


async def sign_up(
    store: Store, remote: RemoteStore, email: str, password: str, full_name: str
) -> Either[str, Optional[UserSession]]:
    """Регистрация; None в Right — требуется подтверждение по почте"""
    if not valid_credentials(email, password, full_name):
        store.dispatch(toast_show("Please check your details and try again."))
        return Either.left("invalid credentials")

    result = await Either.attempt(
        lambda: remote.auth.sign_up(email.strip(), password.strip(), full_name.strip()),
        catch=(RemoteError,),
        default_message="Auth failed. Try again.",
    )
    if result.is_left:
        store.dispatch(toast_show(result.value))
    elif result.value is None:
        store.dispatch(toast_show("Check your email to confirm your account."))
    else:
        logger.info(f"Зарегистрирован пользователь {result.value.id}")
        store.dispatch(auth_set(result.value))
        store.dispatch(toast_show("Welcome to Lumière. Your account is ready."))
    return result


async def sign_in(
    store: Store, remote: RemoteStore, email: str, password: str
) -> Either[str, UserSession]:
    if not valid_credentials(email, password):
        store.dispatch(toast_show("Please check your details and try again."))
        return Either.left("invalid credentials")

    result = await Either.attempt(
        lambda: remote.auth.sign_in(email.strip(), password.strip()),
        catch=(RemoteError,),
        default_message="Auth failed. Try again.",
    )
    if result.is_left:
        store.dispatch(toast_show(result.value))
        return result

    # сессия уже могла прийти через подписку; повтор auth/set безопасен
    store.dispatch(auth_set(result.value))
    store.dispatch(toast_show("Signed in."))
    return result


async def sign_out(store: Store, remote: RemoteStore) -> Either[str, None]:
    result = await Either.attempt(
        remote.auth.sign_out, catch=(RemoteError,), default_message="Sign out failed."
    )
    if result.is_left:
        store.dispatch(toast_show(result.value))
        return result

    store.dispatch(auth_sign_out())
    store.dispatch(toast_show("Signed out."))
    return result
