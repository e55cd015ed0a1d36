"""
Service wiring. Each getter builds its object once, backed by Supabase or by
process memory depending on STORAGE_BACKEND, and is used as a FastAPI
dependency so tests can swap it through app.dependency_overrides.
"""

from supabase import Client, create_client

from odtrack.core.config import settings
from odtrack.models.user import Role, UserRef
from odtrack.services.auto_forward import AutoForwardSweeper
from odtrack.services.identity import IdentityResolver, InMemoryIdentityResolver, SupabaseIdentityResolver
from odtrack.services.letters import ODLetterGenerator
from odtrack.services.notifications import EmailJSNotifier, NotificationDispatcher
from odtrack.services.store import InMemoryRequestStore, RequestStore, SupabaseRequestStore
from odtrack.services.system_settings import (
    SupabaseSystemSettingsProvider, SystemSettings, SystemSettingsProvider,
)
from odtrack.services.workflow import ODWorkflow

# Demo directory for STORAGE_BACKEND=memory; log in with "mock-<email>".
DEMO_USERS = [
    UserRef(id="u-admin", role=Role.ADMIN, name="Admin", email="admin@odtrack.local"),
    UserRef(id="u-hod-cse", role=Role.HOD, name="CSE HOD", email="hod.cse@odtrack.local", department="CSE"),
    UserRef(id="u-fa-cse", role=Role.FACULTY, name="CSE Advisor", email="advisor.cse@odtrack.local",
            department="CSE"),
    UserRef(id="u-student-1", role=Role.STUDENT, name="Demo Student", email="student@odtrack.local",
            department="CSE", year="3", register_no="REG001", faculty_advisor="u-fa-cse"),
]

_supabase_client: Client | None = None
_store: RequestStore | None = None
_identity: IdentityResolver | None = None
_system_settings: SystemSettingsProvider | None = None
_notifier: NotificationDispatcher | None = None
_letters: ODLetterGenerator | None = None
_workflow: ODWorkflow | None = None
_sweeper: AutoForwardSweeper | None = None


def get_supabase() -> Client:
    global _supabase_client
    if _supabase_client is None:
        if not settings.SUPABASE_URL:
            raise RuntimeError("STORAGE_BACKEND is 'supabase' but SUPABASE_URL is not configured")
        _supabase_client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY,
        )
    return _supabase_client


def get_store() -> RequestStore:
    global _store
    if _store is None:
        if settings.STORAGE_BACKEND == "supabase":
            _store = SupabaseRequestStore(get_supabase())
        else:
            _store = InMemoryRequestStore()
    return _store


def get_identity() -> IdentityResolver:
    global _identity
    if _identity is None:
        if settings.STORAGE_BACKEND == "supabase":
            _identity = SupabaseIdentityResolver(get_supabase())
        else:
            _identity = InMemoryIdentityResolver(DEMO_USERS)
    return _identity


def get_system_settings() -> SystemSettingsProvider:
    global _system_settings
    if _system_settings is None:
        defaults = SystemSettings.from_config(settings)
        if settings.STORAGE_BACKEND == "supabase":
            _system_settings = SupabaseSystemSettingsProvider(get_supabase(), defaults)
        else:
            _system_settings = SystemSettingsProvider(defaults)
    return _system_settings


def get_notifier() -> NotificationDispatcher:
    global _notifier
    if _notifier is None:
        _notifier = EmailJSNotifier(settings)
    return _notifier


def get_letters() -> ODLetterGenerator:
    global _letters
    if _letters is None:
        _letters = ODLetterGenerator(settings.LETTER_DIR, settings.INSTITUTION_NAME)
    return _letters


def get_workflow() -> ODWorkflow:
    global _workflow
    if _workflow is None:
        _workflow = ODWorkflow(
            store=get_store(),
            identity=get_identity(),
            notifier=get_notifier(),
            letters=get_letters(),
            system_settings=get_system_settings(),
        )
    return _workflow


def get_sweeper() -> AutoForwardSweeper:
    global _sweeper
    if _sweeper is None:
        _sweeper = AutoForwardSweeper(
            get_workflow(),
            get_system_settings(),
            interval_seconds=settings.AUTO_FORWARD_SWEEP_INTERVAL_SECONDS,
        )
    return _sweeper
