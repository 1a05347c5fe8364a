"""Backfill missing handicaps from the federation's public handicap check form.

The form is an ASP.NET page. Every lookup is a GET for fresh
``__VIEWSTATE``/``__EVENTVALIDATION``/``__VIEWSTATEGENERATOR`` values followed
by a POST that echoes them together with the member number, surname and the
verification code. When the answer is not the result page the whole
GET + POST cycle is repeated, up to ``max_attempts`` times per player.

There is no API contract behind any of this: a change to the form, its field
names or the accepted verification code makes every lookup fail. The batch
summary calls that case out separately from single players not being found.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional

import requests
from bs4 import BeautifulSoup

from config import HcpSyncSettings
from errors import StoreError
from models import Player, SyncReport

logger = logging.getLogger(__name__)

TOKEN_FIELDS = ('__VIEWSTATE', '__EVENTVALIDATION', '__VIEWSTATEGENERATOR')

COMMON_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36",
}

# Failure reasons
NO_RESULT       = 'no_result'       # form page came back, e.g. verification code rejected or unknown member
NO_TOKENS       = 'no_tokens'       # session page lacks the hidden form fields
UNPARSEABLE     = 'unparseable'     # result page found but the value is not a number
NOT_POSITIVE    = 'not_positive'    # parsed, but zero or below means "unset" here
TRANSPORT       = 'transport'       # connection error, timeout or HTTP error status
STORE           = 'store'           # lookup worked, writing it back did not

# Reasons that point at the form itself rather than at one player's data
FORM_LEVEL_REASONS = {NO_TOKENS, NO_RESULT}


class LookupFailure(Exception):

    def __init__(self, reason, message):
        super().__init__(message)
        self.reason = reason


def page_text(response) -> str:
    # The registry serves UTF-8 without a charset; requests would fall back to ISO-8859-1
    return response.content.decode('utf-8', errors='replace')


def extract_form_tokens(html: str) -> Dict[str, str]:
    soup = BeautifulSoup(html, "html.parser")
    tokens = {}
    for field in TOKEN_FIELDS:
        tag = soup.find("input", id=field)
        if tag is None or tag.get("value") is None:
            raise LookupFailure(NO_TOKENS, f"Session page has no {field} field")
        tokens[field] = tag["value"]
    return tokens


def parse_handicap(html: str, marker: str) -> Optional[float]:
    """Return the handicap index from a result page, or None for any other page.

    The value sits in the first <strong> of the table row labelled with the
    marker; the registry writes decimals with a comma.
    """
    if marker not in html:
        return None

    soup = BeautifulSoup(html, "html.parser")
    value = ''
    # Nested tables match on the outer row too; the innermost row comes last
    for row in soup.select("table tr"):
        if marker in row.get_text():
            strong = row.find("strong")
            value = strong.get_text(strip=True) if strong else ''

    value = value.replace(',', '.')
    try:
        return float(value)
    except ValueError:
        raise LookupFailure(UNPARSEABLE, f"Could not parse handicap value {value!r}")


class HandicapSync:

    def __init__(
            self,
            store,
            settings: Optional[HcpSyncSettings] = None,
            session_factory: Callable[[], requests.Session] = requests.Session,
            sleep: Callable[[float], None] = time.sleep
        ):
        self.store = store
        self.settings = settings or HcpSyncSettings()
        self.session_factory = session_factory
        self.sleep = sleep

    def candidates(self):
        with self.store.read() as conn:
            return self.store.list_players_missing_handicap(conn)

    def run(self, cancel: Optional[threading.Event] = None) -> SyncReport:
        """Look up every player without a handicap, one after another.

        A failed lookup leaves that player untouched and moves on. Each
        handicap found is written immediately, so an interrupted batch can
        simply be run again. Only a failure to select candidates escapes.
        """
        players = self.candidates()
        if not players:
            logger.info("No players to fetch handicap for")
            return SyncReport(status='nothing_to_do')

        report = SyncReport(candidates=len(players))
        logger.info(f"Starting handicap fetch for {len(players)} players")

        for i, player in enumerate(players, start=1):
            if i > 1:
                self.sleep(self.settings.player_delay)
            if cancel is not None and cancel.is_set():
                logger.warning(f"Handicap fetch cancelled before player {i}/{len(players)}")
                report.status = 'cancelled'
                break

            logger.info(f"[{i}/{len(players)}] Fetching handicap for {player.name} {player.surname} ({player.reg_num})...")
            try:
                handicap = self.fetch_handicap(player, cancel)
            except LookupFailure as e:
                logger.warning(f"Failed to fetch handicap for {player.name} {player.surname}: {e}")
                report.failed[player.id] = e.reason
                continue

            if handicap is None:
                # Cancelled between attempts
                report.status = 'cancelled'
                break

            if handicap <= 0:
                logger.warning(f"Registry returned handicap {handicap} for {player.name} {player.surname}, not storing it")
                report.failed[player.id] = NOT_POSITIVE
                continue

            try:
                with self.store.transaction() as conn:
                    self.store.set_handicap(conn, player.id, handicap)
            except StoreError as e:
                logger.error(f"Could not save handicap {handicap:.1f} for player {player.id}: {e}")
                report.failed[player.id] = STORE
                continue

            logger.info(f"Successfully fetched handicap {handicap:.1f} for {player.name} {player.surname}")
            report.updated[player.id] = handicap

        self._log_summary(report)
        return report

    def fetch_handicap(self, player: Player, cancel: Optional[threading.Event] = None) -> Optional[float]:
        """Run the GET + POST cycle until a handicap is parsed or attempts run out.

        Any parsed value ends the loop and is returned as is, zero included.
        Returns None only when cancelled; exhausting the attempts raises
        LookupFailure carrying the last attempt's reason.
        """
        max_attempts = max(1, self.settings.max_attempts)
        last_failure = None
        with self.session_factory() as session:
            session.headers.update(COMMON_HEADERS)
            for attempt in range(max_attempts):
                if attempt > 0:
                    self.sleep(self.settings.retry_delay)
                    if cancel is not None and cancel.is_set():
                        return None
                    logger.info(f"  - Retry {attempt}/{max_attempts - 1} for {player.reg_num}...")
                try:
                    return self._attempt(session, player)
                except LookupFailure as e:
                    logger.debug(f"  - Attempt {attempt + 1} for {player.reg_num} failed: {e}")
                    last_failure = e

        raise LookupFailure(
            last_failure.reason,
            f"failed after {max_attempts} attempts ({last_failure})"
        )

    def _attempt(self, session: requests.Session, player: Player) -> float:
        s = self.settings
        try:
            # Step 1: session page with the hidden form tokens
            response = session.get(s.url, timeout=s.request_timeout)
            response.raise_for_status()
            tokens = extract_form_tokens(page_text(response))

            # Step 2: submit the lookup echoing the tokens
            payload = dict(tokens)
            payload.update({
                "tbMemberNumber":   player.reg_num,
                "tbSurname":        player.surname,
                "tbCaptcha":        s.captcha_code,
                "btnCheck":         s.submit_label,
            })
            response = session.post(s.url, data=payload, timeout=s.request_timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise LookupFailure(TRANSPORT, str(e)) from e

        handicap = parse_handicap(page_text(response), s.result_marker)
        if handicap is None:
            raise LookupFailure(NO_RESULT, "Registry answered without a result page")
        return handicap

    @staticmethod
    def _log_summary(report: SyncReport):
        logger.info(
            f"Handicap fetch {report.status}: {len(report.updated)} updated, "
            f"{len(report.failed)} failed out of {report.candidates} candidates"
        )
        if report.updated or not report.failed:
            return

        reasons = set(report.failed.values())
        if reasons == {NO_TOKENS}:
            logger.error("Every lookup failed to find the session tokens; the registry form has probably changed")
        elif len(report.failed) > 1 and reasons <= FORM_LEVEL_REASONS:
            logger.error(
                "No lookup reached a result page for any player; the registry form "
                "or the accepted verification code has probably changed"
            )


def main():
    from config import DATABASE
    from store import Store
    from utils import setup_logging

    setup_logging()
    store = Store(DATABASE)
    store.init_db()
    report = HandicapSync(store).run()
    print(f"Handicap fetch {report.status}: {len(report.updated)} updated, {len(report.failed)} failed")


if __name__ == '__main__':
    main()
