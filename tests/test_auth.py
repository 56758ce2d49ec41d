import pytest

from config import DEFAULT_PROFILE_PIC
from feed.errors import AuthError
from services.auth import AuthService, check_password, hash_password
from services.session import SIGNED_IN, SIGNED_OUT


@pytest.fixture
def auth(db):
    service = AuthService()
    service.events = []
    service.on_session_change(lambda *e: service.events.append(e))
    return service


def test_password_hashing():
    stored = hash_password("secret1")
    assert stored != hash_password("secret1")          # salted
    assert check_password("secret1", stored)
    assert not check_password("secret2", stored)


async def test_sign_up_links_telegram(auth):
    identity = await auth.sign_up(" Tiger@Example.com ", "secret1", "Tiger Woods", "coach",
                                  telegram_id=42)
    assert identity.email == "tiger@example.com"
    assert identity.role == "coach" and identity.avatar_url == DEFAULT_PROFILE_PIC
    assert await auth.restore(42) == identity
    assert auth.events == [(SIGNED_IN, 42, identity)]


@pytest.mark.parametrize("email, password, name, role, message", [
    ("", "secret1", "A", "student", "fill in all fields"),
    ("a@b.co", "secret1", "  ", "student", "fill in all fields"),
    ("not-an-email", "secret1", "A", "student", "invalid format"),
    ("a@b.co", "12345", "A", "student", "at least 6"),
    ("a@b.co", "secret1", "A", "caddie", "student or coach"),
])
async def test_sign_up_validation(auth, email, password, name, role, message):
    with pytest.raises(AuthError, match=message):
        await auth.sign_up(email, password, name, role)
    assert auth.events == []


async def test_duplicate_email(auth):
    await auth.sign_up("a@b.co", "secret1", "Ann", "student")
    with pytest.raises(AuthError, match="already registered"):
        await auth.sign_up("A@B.co", "secret2", "Other", "student")


async def test_sign_in(auth):
    await auth.sign_up("a@b.co", "secret1", "Ann", "student")
    identity = await auth.sign_in("a@b.co", "secret1", telegram_id=7)
    assert identity.full_name == "Ann"
    assert (await auth.restore(7)).id == identity.id


@pytest.mark.parametrize("email, password", [("a@b.co", "wrong!!"), ("nobody@b.co", "secret1")])
async def test_invalid_credentials(auth, email, password):
    await auth.sign_up("a@b.co", "secret1", "Ann", "student")
    with pytest.raises(AuthError, match="Invalid login credentials"):
        await auth.sign_in(email, password, telegram_id=7)


async def test_sign_in_elsewhere_signs_out_old_chat(auth):
    await auth.sign_up("a@b.co", "secret1", "Ann", "student", telegram_id=1)
    auth.events.clear()

    identity = await auth.sign_in("a@b.co", "secret1", telegram_id=2)
    assert auth.events == [(SIGNED_OUT, 1, None), (SIGNED_IN, 2, identity)]
    assert await auth.restore(1) is None
    assert await auth.restore(2) == identity


async def test_telegram_moves_between_accounts(auth):
    first = await auth.sign_up("a@b.co", "secret1", "Ann", "student", telegram_id=5)
    second = await auth.sign_up("c@d.co", "secret1", "Cid", "coach", telegram_id=5)
    assert (await auth.restore(5)).id == second.id

    await auth.sign_in("a@b.co", "secret1", telegram_id=5)
    assert (await auth.restore(5)).id == first.id


async def test_sign_out(auth):
    await auth.sign_up("a@b.co", "secret1", "Ann", "student", telegram_id=9)
    await auth.sign_out(9)
    assert await auth.restore(9) is None
    assert auth.events[-1] == (SIGNED_OUT, 9, None)
