"""Tests for authentication and registration policy."""

import asyncio

import httpx
import pytest

from hmytodo.auth import (
    AuthForm,
    AuthMode,
    AuthProvider,
    GoogleIdentityResolver,
    OAuthIdentity,
    PasswordHasher,
    Role,
)
from hmytodo.auth.oauth import GOOGLE_TOKENINFO_URL
from hmytodo.auth.policy import claim_role, validate_email
from hmytodo.auth.types import FIRST_ADMIN_DOC, META_COLLECTION, USERS_COLLECTION
from hmytodo.config.models import AuthConfig
from hmytodo.errors import AuthError, StoreError, ValidationError
from hmytodo.store import InMemoryDocumentStore
from tests.conftest import FAST_HASHER, T0

CLIENT_ID = "client-123.apps.googleusercontent.com"


def tokeninfo_transport(claims: dict | None = None, status: int = 200):
    """Fake tokeninfo endpoint returning the given claims."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = {
            "aud": CLIENT_ID,
            "iss": "https://accounts.google.com",
            "email": "carol@gmail.com",
            "email_verified": "true",
            "name": "Carol",
        }
        body.update(claims or {})
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler), seen


class UsersWriteFailsStore(InMemoryDocumentStore):
    """Store that rejects writes to the users collection while ``fail`` is set."""

    def __init__(self):
        super().__init__()
        self.fail = True

    async def create(self, collection, record):
        if self.fail and collection == USERS_COLLECTION:
            raise StoreError("store unavailable")
        return await super().create(collection, record)


class StaticResolver:
    """Identity resolver returning a fixed identity."""

    provider = "google"

    def __init__(self, email: str, display_name: str = ""):
        self.identity = OAuthIdentity("google", email, display_name)

    async def resolve(self, credential):
        return self.identity


class TestPasswordHasher:
    """Tests for PasswordHasher."""

    def test_round_trip(self):
        hasher = PasswordHasher(iterations=1_000)
        encoded = hasher.hash("secret-pass")
        assert encoded.startswith("pbkdf2_sha256$1000$")
        assert hasher.verify("secret-pass", encoded)
        assert not hasher.verify("wrong-pass", encoded)

    def test_salted(self):
        hasher = PasswordHasher(iterations=1_000)
        assert hasher.hash("same") != hasher.hash("same")

    @pytest.mark.parametrize("encoded", [None, "", "plain", "md5$1$a$b", "a$b$c"])
    def test_malformed_hash_never_verifies(self, encoded):
        assert not PasswordHasher(iterations=1_000).verify("x", encoded)


class TestEmailPolicy:
    """Tests for validate_email()."""

    def test_normalizes(self):
        assert validate_email("  Alice@Gmail.COM ", AuthConfig()) == "alice@gmail.com"

    def test_non_gmail_rejected(self):
        with pytest.raises(ValidationError, match="Please use a Gmail address"):
            validate_email("alice@example.com", AuthConfig())

    @pytest.mark.parametrize(
        "email", ["", "alice", "alice@", "@gmail.com", "a b@gmail.com"]
    )
    def test_malformed_rejected(self, email):
        with pytest.raises(ValidationError, match="valid email"):
            validate_email(email, AuthConfig())

    def test_custom_domains(self):
        config = AuthConfig(allowed_email_domains=["Example.com", "@corp.io"])
        assert validate_email("a@corp.io", config) == "a@corp.io"
        with pytest.raises(ValidationError, match="example.com, corp.io"):
            validate_email("a@gmail.com", config)

    def test_empty_domain_list_allows_any(self):
        config = AuthConfig(allowed_email_domains=[])
        assert validate_email("a@anything.net", config) == "a@anything.net"


class TestFirstAdmin:
    """Role assignment for the first registrant."""

    async def test_first_user_is_admin_second_is_user(self, auth):
        first = await auth.sign_up("alice@gmail.com", "secret-pass", "Alice")
        second = await auth.sign_up("bob@gmail.com", "secret-pass", "Bob")
        assert first.role == Role.ADMIN
        assert second.role == Role.USER

    async def test_concurrent_registrations_yield_one_admin(self, store):
        auth = AuthProvider(store, hasher=FAST_HASHER)
        users = await asyncio.gather(
            *(auth.sign_up(f"user{i}@gmail.com", "secret-pass") for i in range(5))
        )
        assert sum(1 for u in users if u.is_admin) == 1

    async def test_claim_role_records_claim(self, store):
        assert await claim_role(store, "a@gmail.com", T0) == Role.ADMIN
        assert await claim_role(store, "b@gmail.com", T0) == Role.USER
        doc = await store.get(META_COLLECTION, FIRST_ADMIN_DOC)
        assert doc.data["email"] == "a@gmail.com"


class TestSignUp:
    """Tests for AuthProvider.sign_up()."""

    async def test_sets_current_user(self, auth):
        user = await auth.sign_up("alice@gmail.com", "secret-pass", " Alice ")
        assert auth.current_user == user
        assert user.display_name == "Alice"
        assert user.label == "Alice"

    async def test_label_falls_back_to_email(self, auth):
        user = await auth.sign_up("alice@gmail.com", "secret-pass")
        assert user.label == "alice@gmail.com"

    async def test_non_gmail_rejected(self, auth, store):
        with pytest.raises(ValidationError, match="Gmail"):
            await auth.sign_up("alice@example.com", "secret-pass")
        assert await auth.list_users() == []

    async def test_short_password_rejected(self, auth):
        with pytest.raises(ValidationError, match="at least 6 characters"):
            await auth.sign_up("alice@gmail.com", "123")

    async def test_duplicate_email_rejected(self, auth, admin):
        with pytest.raises(AuthError, match="already exists"):
            await auth.sign_up("ALICE@gmail.com", "other-pass")
        assert len(await auth.list_users()) == 1

    async def test_store_failure_releases_claims(self):
        failing = UsersWriteFailsStore()
        auth = AuthProvider(failing, hasher=FAST_HASHER)
        with pytest.raises(StoreError):
            await auth.sign_up("alice@gmail.com", "secret-pass")
        assert await failing.get(META_COLLECTION, FIRST_ADMIN_DOC) is None

        failing.fail = False
        user = await auth.sign_up("alice@gmail.com", "secret-pass")
        assert user.email == "alice@gmail.com"
        assert user.role == Role.ADMIN


class TestSignIn:
    """Tests for AuthProvider.sign_in()."""

    async def test_valid_credentials(self, auth, admin):
        await auth.sign_out()
        user = await auth.sign_in("Alice@Gmail.com", "secret-pass")
        assert user == admin
        assert auth.current_user == admin

    async def test_wrong_password(self, auth, admin):
        await auth.sign_out()
        with pytest.raises(AuthError, match="Invalid email or password"):
            await auth.sign_in("alice@gmail.com", "nope-nope")
        assert auth.current_user is None

    async def test_unknown_email(self, auth):
        with pytest.raises(AuthError, match="Invalid email or password"):
            await auth.sign_in("ghost@gmail.com", "secret-pass")

    async def test_restore(self, store, admin):
        fresh = AuthProvider(store, hasher=FAST_HASHER)
        assert await fresh.restore(admin.id) == admin
        assert fresh.current_user == admin
        assert await fresh.restore("missing") is None


class TestOAuth:
    """Tests for OAuth sign-in."""

    async def test_unconfigured_provider(self, auth):
        with pytest.raises(AuthError, match="not configured"):
            await auth.sign_in_with_oauth("google", "token")

    async def test_first_time_identity_is_registered(self, auth):
        auth.register_resolver(StaticResolver("carol@gmail.com", "Carol"))
        user = await auth.sign_in_with_oauth("google", "token")
        assert user.email == "carol@gmail.com"
        assert user.display_name == "Carol"
        assert user.role == Role.ADMIN

        again = await auth.sign_in_with_oauth("google", "token")
        assert again.id == user.id
        assert len(await auth.list_users()) == 1

    async def test_identity_outside_allowed_domains_rejected(self, auth):
        transport, _ = tokeninfo_transport({"email": "someone@example.com"})
        async with httpx.AsyncClient(transport=transport) as client:
            auth.register_resolver(
                GoogleIdentityResolver(CLIENT_ID, http_client=client)
            )
            with pytest.raises(ValidationError, match="Gmail"):
                await auth.sign_in_with_oauth("google", "tok")

        assert auth.current_user is None
        assert await auth.list_users() == []
        user = await auth.sign_up("alice@gmail.com", "secret-pass")
        assert user.role == Role.ADMIN

    async def test_oauth_user_cannot_password_sign_in(self, auth):
        auth.register_resolver(StaticResolver("carol@gmail.com"))
        await auth.sign_in_with_oauth("google", "token")
        with pytest.raises(AuthError):
            await auth.sign_in("carol@gmail.com", "")

    async def test_google_resolver_verifies_token(self):
        transport, seen = tokeninfo_transport()
        async with httpx.AsyncClient(transport=transport) as client:
            resolver = GoogleIdentityResolver(CLIENT_ID, http_client=client)
            identity = await resolver.resolve("id-token-xyz")

        assert identity == OAuthIdentity("google", "carol@gmail.com", "Carol")
        assert str(seen[0].url).startswith(GOOGLE_TOKENINFO_URL)
        assert seen[0].url.params["id_token"] == "id-token-xyz"

    @pytest.mark.parametrize(
        ("claims", "message"),
        [
            ({"aud": "someone-else"}, "different client"),
            ({"iss": "evil.example.com"}, "unexpected issuer"),
            ({"email_verified": "false"}, "not verified"),
            ({"email": ""}, "no email"),
        ],
    )
    async def test_google_resolver_rejects_bad_claims(self, claims, message):
        transport, _ = tokeninfo_transport(claims)
        async with httpx.AsyncClient(transport=transport) as client:
            resolver = GoogleIdentityResolver(CLIENT_ID, http_client=client)
            with pytest.raises(AuthError, match=message):
                await resolver.resolve("id-token")

    async def test_google_resolver_rejected_token(self):
        transport, _ = tokeninfo_transport(status=400)
        async with httpx.AsyncClient(transport=transport) as client:
            resolver = GoogleIdentityResolver(CLIENT_ID, http_client=client)
            with pytest.raises(AuthError, match="rejected"):
                await resolver.resolve("id-token")

    async def test_google_resolver_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            resolver = GoogleIdentityResolver(CLIENT_ID, http_client=client)
            with pytest.raises(AuthError, match="Google sign-in failed"):
                await resolver.resolve("id-token")

    async def test_google_resolver_requires_token(self):
        resolver = GoogleIdentityResolver(CLIENT_ID)
        with pytest.raises(AuthError, match="requires an ID token"):
            await resolver.resolve(None)


class TestAuthChange:
    """Tests for on_auth_change()."""

    async def test_listener_called_immediately_and_on_change(self, auth):
        seen = []
        unsubscribe = await auth.on_auth_change(seen.append)
        assert seen == [None]

        user = await auth.sign_up("alice@gmail.com", "secret-pass")
        await auth.sign_out()
        assert seen == [None, user, None]

        unsubscribe()
        await auth.sign_in("alice@gmail.com", "secret-pass")
        assert len(seen) == 3

    async def test_async_listener_awaited(self, auth):
        seen = []

        async def listener(user):
            await asyncio.sleep(0)
            seen.append(user)

        await auth.on_auth_change(listener)
        await auth.sign_up("alice@gmail.com", "secret-pass")
        assert [u.email if u else None for u in seen] == [None, "alice@gmail.com"]

    async def test_sign_out_when_signed_out_is_noop(self, auth):
        seen = []
        await auth.on_auth_change(seen.append)
        await auth.sign_out()
        assert seen == [None]


class TestAuthForm:
    """Tests for the two-mode auth form."""

    def test_defaults_to_sign_in(self):
        form = AuthForm()
        assert form.mode is AuthMode.SIGN_IN
        assert form.title == "Sign in"

    def test_switch_clears_mode_specific_fields(self):
        form = AuthForm(
            mode=AuthMode.REGISTER,
            email="alice@gmail.com",
            password="secret-pass",
            display_name="Alice",
        )
        form.switch()
        assert form.mode is AuthMode.SIGN_IN
        assert form.email == "alice@gmail.com"
        assert form.password == ""
        assert form.display_name == ""

    def test_switch_to_same_mode_keeps_fields(self):
        form = AuthForm(mode=AuthMode.REGISTER, password="secret-pass")
        form.switch(AuthMode.REGISTER)
        assert form.password == "secret-pass"

    async def test_submit_register_then_sign_in(self, auth):
        form = AuthForm(
            mode=AuthMode.REGISTER,
            email="alice@gmail.com",
            password="secret-pass",
            display_name="Alice",
        )
        registered = await form.submit(auth)
        assert registered.display_name == "Alice"
        assert form.password == ""

        await auth.sign_out()
        form.switch(AuthMode.SIGN_IN)
        form.password = "secret-pass"
        assert await form.submit(auth) == registered
