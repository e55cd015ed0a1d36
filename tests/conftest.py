"""
OD Tracker - Test Configuration and Fixtures
"""
import os
import threading
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport

os.environ['AUTH_MODE'] = 'mock'
os.environ['STORAGE_BACKEND'] = 'memory'
os.environ['AUTO_FORWARD_SWEEP_ON_STARTUP'] = 'false'
os.environ['EMAILJS_SERVICE_ID'] = ''

from odtrack.core.exceptions import NotifyError, RenderError
from odtrack.models.od_request import Decision, ODRequest
from odtrack.models.user import Actor, Role, UserRef
from odtrack.schemas.workflow import ODApply
from odtrack.services.auto_forward import AutoForwardSweeper
from odtrack.services.identity import InMemoryIdentityResolver
from odtrack.services.letters import ODLetterGenerator
from odtrack.services.notifications import NotificationDispatcher
from odtrack.services.store import InMemoryRequestStore
from odtrack.services.system_settings import SystemSettings, SystemSettingsProvider
from odtrack.services.workflow import ODWorkflow


STUDENT = UserRef(id='s1', role=Role.STUDENT, name='Asha', email='asha@college.edu',
                  department='CSE', year='3', register_no='21CS001', faculty_advisor='f1')
OTHER_STUDENT = UserRef(id='s2', role=Role.STUDENT, name='Ravi', email='ravi@college.edu',
                        department='CSE', year='3', register_no='21CS002', faculty_advisor='f1')
NO_ADVISOR_STUDENT = UserRef(id='s3', role=Role.STUDENT, name='Meena', email='meena@college.edu',
                             department='CSE', year='2', register_no='22CS010')
NO_HOD_STUDENT = UserRef(id='s4', role=Role.STUDENT, name='Karthik', email='karthik@college.edu',
                         department='MECH', year='1', register_no='23ME004', faculty_advisor='f1')
ADVISOR = UserRef(id='f1', role=Role.FACULTY, name='Dr. Priya', email='priya@college.edu', department='CSE')
OTHER_FACULTY = UserRef(id='f2', role=Role.FACULTY, name='Dr. Arun', email='arun@college.edu', department='CSE')
HOD = UserRef(id='h1', role=Role.HOD, name='Prof. Lakshmi', email='hod.cse@college.edu', department='CSE')
OTHER_HOD = UserRef(id='h2', role=Role.HOD, name='Prof. Vijay', email='hod.ece@college.edu', department='ECE')
ADMIN = UserRef(id='a1', role=Role.ADMIN, name='Office', email='admin@college.edu')

ALL_USERS = [STUDENT, OTHER_STUDENT, NO_ADVISOR_STUDENT, NO_HOD_STUDENT,
             ADVISOR, OTHER_FACULTY, HOD, OTHER_HOD, ADMIN]

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def actor(user: UserRef) -> Actor:
    return Actor(user_id=user.id, role=user.role, name=user.name, email=user.email)


def token(user: UserRef) -> dict:
    return {'Authorization': f'Bearer mock-{user.email}'}


class Clock:
    """Manually advanced clock"""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier(NotificationDispatcher):
    def __init__(self):
        self.sent = []
        self.fail = False

    async def notify(self, kind, recipients, payload):
        if self.fail:
            raise NotifyError('smtp down', kind=kind.value)
        self.sent.append((kind, list(recipients), payload))

    def kinds(self):
        return [kind for kind, _, _ in self.sent]


class FakeLetterGenerator:
    def __init__(self):
        self.rendered = []
        self.threads = []
        self.fail = False

    def generate_letter(self, record: ODRequest, student=None) -> str:
        if self.fail:
            raise RenderError('font missing', od_id=record.id)
        self.rendered.append((record.id, record.status))
        self.threads.append(threading.get_ident())
        return f'uploads/od_letters/OD_Letter_{record.id}.pdf'


def _comparable(value):
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return value
    return value


class FakeResult:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Records the postgrest-style chain and runs it against in-memory rows."""

    def __init__(self, db: 'FakeSupabase', table: str):
        self.db = db
        self.table = table
        self.chain = []
        self.action = None
        self.payload = None
        self.columns = '*'
        self.filters = []
        self.ordering = None
        self.row_limit = None

    def _record(self, method, *args, **kwargs):
        self.chain.append((method, args, kwargs))
        return self

    def select(self, columns='*'):
        self.action, self.columns = 'select', columns
        return self._record('select', columns)

    def insert(self, row):
        self.action, self.payload = 'insert', dict(row)
        return self._record('insert', row)

    def update(self, payload):
        self.action, self.payload = 'update', dict(payload)
        return self._record('update', payload)

    def upsert(self, row):
        self.action, self.payload = 'upsert', dict(row)
        return self._record('upsert', row)

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self._record('eq', column, value)

    def lt(self, column, value):
        self.filters.append(
            lambda row: row.get(column) is not None and _comparable(row[column]) < _comparable(value)
        )
        return self._record('lt', column, value)

    def in_(self, column, values):
        self.filters.append(lambda row: row.get(column) in values)
        return self._record('in_', column, values)

    def order(self, column, desc=False):
        self.ordering = (column, desc)
        return self._record('order', column, desc=desc)

    def limit(self, count):
        self.row_limit = count
        return self._record('limit', count)

    def _matching(self):
        return [row for row in self.db.tables.setdefault(self.table, []) if all(f(row) for f in self.filters)]

    def execute(self) -> FakeResult:
        self.db.queries.append(self)
        rows = self.db.tables.setdefault(self.table, [])

        if self.action == 'insert':
            rows.append(dict(self.payload))
            return FakeResult([dict(self.payload)])

        if self.action == 'upsert':
            for row in rows:
                if row.get('id') == self.payload.get('id'):
                    row.update(self.payload)
                    return FakeResult([dict(row)])
            rows.append(dict(self.payload))
            return FakeResult([dict(self.payload)])

        if self.action == 'update':
            matched = self._matching()
            for row in matched:
                row.update(self.payload)
            return FakeResult([dict(row) for row in matched])

        matched = self._matching()
        if self.ordering:
            column, desc = self.ordering
            matched.sort(key=lambda row: _comparable(row.get(column)), reverse=desc)
        if self.row_limit is not None:
            matched = matched[:self.row_limit]
        if self.columns != '*':
            wanted = [c.strip() for c in self.columns.split(',')]
            matched = [{c: row.get(c) for c in wanted} for row in matched]
        return FakeResult([dict(row) for row in matched])


class FakeSupabase:
    """Just enough of the supabase client for the table-backed services."""

    def __init__(self):
        self.tables = {}
        self.queries = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def last(self, action: str) -> FakeQuery:
        return [q for q in self.queries if q.action == action][-1]


def user_row(user: UserRef, is_active: bool = True) -> dict:
    return {**user.model_dump(mode='json'), 'is_active': is_active}


@pytest.fixture
def fake_db() -> FakeSupabase:
    db = FakeSupabase()
    db.tables['users'] = [user_row(u) for u in ALL_USERS]
    return db


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def identity() -> InMemoryIdentityResolver:
    return InMemoryIdentityResolver(ALL_USERS)


@pytest.fixture
def store() -> InMemoryRequestStore:
    return InMemoryRequestStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def letters() -> FakeLetterGenerator:
    return FakeLetterGenerator()


@pytest.fixture
def system_settings() -> SystemSettingsProvider:
    return SystemSettingsProvider(SystemSettings(auto_forward_timeout_minutes=30))


@pytest.fixture
def workflow(store, identity, notifier, letters, system_settings, clock) -> ODWorkflow:
    return ODWorkflow(
        store=store,
        identity=identity,
        notifier=notifier,
        letters=letters,
        system_settings=system_settings,
        clock=clock,
    )


@pytest.fixture
def sweeper(workflow, system_settings, clock) -> AutoForwardSweeper:
    return AutoForwardSweeper(workflow, system_settings, interval_seconds=60, clock=clock)


@pytest.fixture
def apply_body() -> ODApply:
    return ODApply(
        event_name='National Hackathon',
        event_date=date(2026, 3, 10),
        start_date=date(2026, 3, 10),
        end_date=date(2026, 3, 11),
        reason='Representing the department at the national hackathon',
        brochure_url='uploads/brochures/hackathon.pdf',
    )


@pytest.fixture
def student():
    return actor(STUDENT)


@pytest.fixture
def advisor():
    return actor(ADVISOR)


@pytest.fixture
def hod():
    return actor(HOD)


@pytest.fixture
def admin():
    return actor(ADMIN)


@pytest.fixture
async def pending_request(workflow, student, apply_body) -> ODRequest:
    return await workflow.create_request(student, apply_body)


@pytest.fixture
async def advisor_approved(workflow, pending_request, advisor) -> ODRequest:
    return await workflow.advisor_decision(advisor, pending_request.id, Decision.APPROVE, 'Go ahead')


@pytest.fixture
async def hod_approved(workflow, advisor_approved, hod) -> ODRequest:
    return await workflow.hod_decision(hod, advisor_approved.id, Decision.APPROVE, 'Approved')


@pytest.fixture
async def proof_submitted(workflow, hod_approved, student) -> ODRequest:
    return await workflow.submit_proof(student, hod_approved.id, 'uploads/proofs/certificate.pdf')


@pytest.fixture
def api_workflow(store, identity, notifier, system_settings, clock, tmp_path) -> ODWorkflow:
    return ODWorkflow(
        store=store,
        identity=identity,
        notifier=notifier,
        letters=ODLetterGenerator(str(tmp_path / 'letters'), 'Test Institute of Technology', clock=clock),
        system_settings=system_settings,
        clock=clock,
    )


@pytest.fixture
async def client(api_workflow, identity, system_settings, clock) -> AsyncGenerator[AsyncClient, None]:
    """Test client with in-memory services"""
    from odtrack.main import app
    from odtrack.core.dependencies import get_identity, get_sweeper, get_system_settings, get_workflow

    sweeper = AutoForwardSweeper(api_workflow, system_settings, clock=clock)
    app.dependency_overrides[get_workflow] = lambda: api_workflow
    app.dependency_overrides[get_identity] = lambda: identity
    app.dependency_overrides[get_system_settings] = lambda: system_settings
    app.dependency_overrides[get_sweeper] = lambda: sweeper

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()
