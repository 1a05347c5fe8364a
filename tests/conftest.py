"""Shared pytest fixtures: a file-backed store per test and a fake handicap registry."""

import pytest
import requests

from app import app as tournament_app, init_services
from config import HcpSyncSettings
from hcp_sync import HandicapSync
from models import Player
from store import Store

MARKER = 'Aktuální hendikepový index'


def token_page(n):
    return f'''
    <html><body><form method="post" action="./HcpCheck.aspx">
        <input type="hidden" name="__VIEWSTATE" id="__VIEWSTATE" value="vs-{n}" />
        <input type="hidden" name="__VIEWSTATEGENERATOR" id="__VIEWSTATEGENERATOR" value="gen-{n}" />
        <input type="hidden" name="__EVENTVALIDATION" id="__EVENTVALIDATION" value="ev-{n}" />
        <input name="tbMemberNumber" id="tbMemberNumber" />
        <input name="tbSurname" id="tbSurname" />
        <input name="tbCaptcha" id="tbCaptcha" />
    </form></body></html>
    '''


FORM_PAGE = token_page('again')

BROKEN_PAGE = '<html><body><p>Maintenance</p></body></html>'


def result_page(value):
    return f'''
    <html><body><table class="result">
        <tr><td>Jméno</td><td><strong>Jan Novák</strong></td></tr>
        <tr><td>{MARKER}</td><td><strong>{value}</strong></td></tr>
    </table></body></html>
    '''


class FakeResponse:
    """Served as UTF-8 without a charset header, so ``text`` decodes like requests would."""

    def __init__(self, html, status_code=200):
        self.content = html.encode('utf-8')
        self.text = self.content.decode('iso-8859-1')
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class FakeSession:

    def __init__(self, registry):
        self.registry = registry
        self.headers = {}

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.registry.sessions_closed += 1
        return False

    def get(self, url, timeout=None):
        self.registry.gets.append(url)
        if self.registry.broken_form:
            return FakeResponse(BROKEN_PAGE)
        return FakeResponse(token_page(len(self.registry.gets)))

    def post(self, url, data=None, timeout=None):
        self.registry.posts.append(dict(data))
        answer = self.registry.answers.pop(0) if self.registry.answers else FORM_PAGE
        if isinstance(answer, Exception):
            raise answer
        return FakeResponse(answer)


class FakeRegistry:
    """Stands in for the handicap check site.

    Every GET hands out numbered tokens; POSTs answer from ``answers`` in
    order and fall back to the input form once the queue is empty.
    """

    def __init__(self, answers=(), broken_form=False):
        self.answers = list(answers)
        self.broken_form = broken_form
        self.gets = []
        self.posts = []
        self.sessions_closed = 0

    def session(self):
        return FakeSession(self)


class SleepRecorder:

    def __init__(self, on_sleep=None):
        self.calls = []
        self.on_sleep = on_sleep

    def __call__(self, seconds):
        self.calls.append(seconds)
        if self.on_sleep:
            self.on_sleep(seconds)


@pytest.fixture
def store(tmp_path):
    store = Store(tmp_path / "tournament.db")
    store.init_db()
    return store


@pytest.fixture
def add_player(store):
    def _add(name='Jan', surname='Novák', reg_num='', handicap=None, gender='M'):
        with store.transaction() as conn:
            return store.insert_player(conn, Player(
                name=name, surname=surname, reg_num=reg_num, handicap=handicap, gender=gender
            ))
    return _add


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def settings():
    return HcpSyncSettings(url='https://registry.test/HcpCheck.aspx', retry_delay=0.3, player_delay=1.0)


@pytest.fixture
def make_sync(store, settings, sleeps):
    def _make(registry):
        return HandicapSync(store, settings=settings, session_factory=registry.session, sleep=sleeps)
    return _make


@pytest.fixture
def app(store):
    init_services(store=store, hcp_sync=HandicapSync(store, session_factory=FakeRegistry().session, sleep=lambda s: None))
    tournament_app.config.update(TESTING=True)
    yield tournament_app
    tournament_app.extensions.pop('tournament', None)


@pytest.fixture
def client(app):
    return app.test_client()
