# config.py

import os
from dataclasses import dataclass

DATABASE                = os.environ.get('TOURNAMENT_DATABASE', 'tournament.db')
SECRET_KEY              = os.environ.get('FLASK_SECRET_KEY', 'dev-secret-key')
PORT                    = int(os.environ.get('PORT', 8080))

LOG_LEVEL               = os.environ.get('LOG_LEVEL', 'INFO')   # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_FILE                = os.environ.get('LOG_FILE')            # None logs to console only

FLIGHT_CAPACITY         = 4         # Players per flight
MAX_STROKES             = 11        # Strokes above this are stored as this value
HOLE_COUNT              = 18

# Handicap registry lookup
HCP_CHECK_URL           = os.environ.get('HCP_CHECK_URL', 'https://server.cgf.cz/HcpCheck.aspx')
HCP_CAPTCHA_CODE        = os.environ.get('HCP_CAPTCHA_CODE', 'z999d')     # Accepted by the registry's verification field
HCP_RESULT_MARKER       = 'Aktuální hendikepový index'
HCP_SUBMIT_LABEL        = 'Ověřit'
HCP_MAX_ATTEMPTS        = int(os.environ.get('HCP_MAX_ATTEMPTS', 5))
HCP_RETRY_DELAY         = float(os.environ.get('HCP_RETRY_DELAY', 0.3))   # Seconds between attempts for one player
HCP_PLAYER_DELAY        = float(os.environ.get('HCP_PLAYER_DELAY', 1.0))  # Seconds between players
HCP_REQUEST_TIMEOUT     = float(os.environ.get('HCP_REQUEST_TIMEOUT', 30))


@dataclass(frozen=True)
class HcpSyncSettings:
    url:                str     = HCP_CHECK_URL
    captcha_code:       str     = HCP_CAPTCHA_CODE
    result_marker:      str     = HCP_RESULT_MARKER
    submit_label:       str     = HCP_SUBMIT_LABEL
    max_attempts:       int     = HCP_MAX_ATTEMPTS
    retry_delay:        float   = HCP_RETRY_DELAY
    player_delay:       float   = HCP_PLAYER_DELAY
    request_timeout:    float   = HCP_REQUEST_TIMEOUT
