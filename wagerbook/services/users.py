from wagerbook.core.exceptions import NotFoundError, UnauthorizedError
from wagerbook.core.logging import get_logger
from wagerbook.core.security import hash_password, issue_token, verify_password
from wagerbook.db.init import Datastore
from wagerbook.models.account import Account
from wagerbook.services import accounts as accounts_service

log = get_logger(__name__)

INVALID_LOGIN = "Invalid username or password"


async def register(
    datastore: Datastore,
    username: str,
    password: str,
    email: str | None = None,
    phone_number: str | None = None,
) -> tuple[Account, str]:
    """Create the account and return it with a fresh identity token."""
    password_hash = await hash_password(password)
    account = await accounts_service.create_account(datastore, username, password_hash, email, phone_number)
    return account, issue_token(str(account.id))


async def login(username: str, password: str) -> str:
    """Check credentials and return an identity token. Unknown user and wrong password look the same."""
    try:
        account = await accounts_service.find_by_username(username)
    except NotFoundError:
        log.info("login_failed", username=username, reason="unknown_username")
        raise UnauthorizedError(INVALID_LOGIN, code="INVALID_LOGIN") from None
    if not await verify_password(password, account.password_hash):
        log.info("login_failed", username=username, reason="password_mismatch")
        raise UnauthorizedError(INVALID_LOGIN, code="INVALID_LOGIN")
    log.info("login_succeeded", user_id=str(account.id))
    return issue_token(str(account.id))
