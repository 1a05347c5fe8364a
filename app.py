from flask import Flask, Response, jsonify, render_template, request

from config import DATABASE, PORT, SECRET_KEY
from errors import NotFoundError, TournamentError, ValidationError
from hcp_sync import HandicapSync
from leaderboard import Leaderboard
from ledger import ScoreLedger
from models import Hole, Player
from roster import FlightRoster
from store import Store
from utils import read_course_csv, read_players_csv, safe_float, setup_logging, write_course_csv

app = Flask(__name__)
app.secret_key = SECRET_KEY


def init_services(store=None, hcp_sync=None):
    """Create the schema and wire the roster, ledger, leaderboard and sync job to one store."""
    if store is None:
        store = Store(DATABASE)
    store.init_db()

    app.extensions['tournament'] = {
        'store': store,
        'roster': FlightRoster(store),
        'ledger': ScoreLedger(store),
        'leaderboard': Leaderboard(store),
        'hcp_sync': hcp_sync or HandicapSync(store),
    }
    return app.extensions['tournament']


def _service(name):
    services = app.extensions.get('tournament') or init_services()
    return services[name]


# --- request helpers ---

def _json_body(kind=dict):
    data = request.get_json(silent=True)
    if not isinstance(data, kind):
        raise ValidationError('Invalid JSON body')
    return data


def _require_int(data, key):
    value = data.get(key)
    if value is None or value == '' or isinstance(value, bool):
        raise ValidationError(f'Missing {key}')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {key}: {value!r}')


def _optional_int(data, key, default=0):
    if data.get(key) in (None, ''):
        return default
    return _require_int(data, key)


def _uploaded_file():
    upload = request.files.get('file')
    if upload is None:
        raise ValidationError('Missing file')
    return upload.read()


@app.after_request
def add_no_cache_headers(response):
    response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
    response.headers['Pragma'] = 'no-cache'
    response.headers['Expires'] = '0'
    return response


@app.errorhandler(TournamentError)
def handle_tournament_error(error):
    if error.status_code >= 500:
        app.logger.error(f"{request.method} {request.path} failed: {error.message}")
    return Response(error.message, status=error.status_code, mimetype='text/plain')


# --- pages ---

@app.route('/')
@app.route('/adminpage')
def index():
    store = _service('store')
    with store.read() as conn:
        players = store.list_players(conn)
        flights = store.list_flights(conn)
    return render_template('index.html', players=players, flights=flights)


@app.route('/adminscorepage')
def leaderboard_page():
    return render_template('leaderboard.html', standings=_service('leaderboard').rank())


@app.route('/score/<token>')
def scorecard_page(token):
    flight = _service('roster').flight_by_token(token)
    if flight is None:
        raise NotFoundError('Invalid or expired link.')
    store = _service('store')
    with store.read() as conn:
        holes = store.list_holes(conn)
        scores = {p.id: store.scores_for_player(conn, p.id) for p in flight.players}
    return render_template('scorecard.html', flight=flight, holes=holes, scores=scores)


# --- players ---

@app.route('/api/players', methods=['GET', 'POST'])
def players():
    store = _service('store')
    if request.method == 'GET':
        with store.read() as conn:
            return jsonify([p.to_dict() for p in store.list_players(conn)])

    data = _json_body()
    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError('Missing name')
    player = Player(
        id=_optional_int(data, 'id') or None,
        name=name,
        surname=(data.get('surname') or '').strip(),
        reg_num=str(data.get('reg_num') or '').strip(),
        handicap=safe_float(data['handicap']) if data.get('handicap') not in (None, '') else None,
        gender=data.get('gender') or '',
    )

    with store.transaction() as conn:
        if player.id:
            if not store.update_player(conn, player):
                raise NotFoundError(f'Player {player.id} not found')
            return jsonify(player.to_dict()), 200
        player.id = store.insert_player(conn, player)
    app.logger.info(f"Added player {player.id} {player.name} {player.surname}")
    return jsonify(player.to_dict()), 201


@app.route('/api/players/delete', methods=['POST'])
def delete_player():
    player_id = _require_int(_json_body(), 'id')
    store = _service('store')
    with store.transaction() as conn:
        store.delete_player(conn, player_id)
    return '', 200


@app.route('/api/players/import', methods=['POST'])
def import_players():
    players, skipped = read_players_csv(_uploaded_file())
    store = _service('store')
    with store.transaction() as conn:
        for player in players:
            store.insert_player(conn, player)
    app.logger.info(f"Imported {len(players)} players, skipped {skipped} rows")
    return jsonify({'imported': len(players), 'skipped': skipped})


@app.route('/api/players/fetch-hcp', methods=['POST'])
def fetch_handicaps():
    # Runs the whole batch before answering
    report = _service('hcp_sync').run()
    if report.nothing_to_do:
        return '', 204
    return jsonify(report.to_dict()), 200


# --- flights ---

@app.route('/api/flights', methods=['GET', 'POST', 'DELETE'])
def flights():
    roster = _service('roster')
    if request.method == 'GET':
        return jsonify([f.to_dict() for f in roster.flights()])

    data = _json_body()
    if request.method == 'DELETE':
        roster.delete_flight(_require_int(data, 'id'))
        return '', 200

    flight = roster.create_flight((data.get('name') or '').strip(), data.get('starting_hole'))
    return jsonify({'id': flight.id, 'token': flight.token, 'starting_hole': flight.starting_hole})


@app.route('/api/flights/update', methods=['POST'])
def update_flight():
    data = _json_body()
    _service('roster').update_flight(
        _require_int(data, 'id'),
        (data.get('name') or '').strip(),
        data.get('starting_hole'),
    )
    return '', 200


@app.route('/api/flights/assign', methods=['POST'])
def assign_player():
    data = _json_body()
    _service('roster').assign(_require_int(data, 'flight_id'), _require_int(data, 'player_id'))
    return '', 200


@app.route('/api/flights/unassign', methods=['POST'])
def unassign_player():
    _service('roster').unassign(_require_int(_json_body(), 'player_id'))
    return '', 200


@app.route('/api/flights/<token>')
def flight_by_token(token):
    flight = _service('roster').flight_by_token(token)
    if flight is None:
        raise NotFoundError('Flight not found')
    ledger = _service('ledger')
    data = flight.to_dict()
    for player in data['players']:
        player['scores'] = ledger.scores_for(player['id'])
    return jsonify(data)


# --- scores ---

@app.route('/api/scores', methods=['GET', 'POST'])
def scores():
    ledger = _service('ledger')
    if request.method == 'GET':
        player_id = _require_int(request.args, 'player_id')
        return jsonify(ledger.scores_for(player_id))

    data = _json_body()
    ledger.submit(
        _require_int(data, 'player_id'),
        _require_int(data, 'hole_number'),
        _require_int(data, 'strokes'),
    )
    return '', 200


@app.route('/api/results')
def results():
    return jsonify([s.to_dict() for s in _service('leaderboard').rank()])


# --- course ---

def _apply_holes(holes):
    store = _service('store')
    with store.transaction() as conn:
        for hole in holes:
            store.update_hole(conn, hole)


@app.route('/api/course', methods=['GET', 'POST'])
def course():
    store = _service('store')
    if request.method == 'GET':
        with store.read() as conn:
            return jsonify([h.to_dict() for h in store.list_holes(conn)])

    data = _json_body(kind=list)
    holes = []
    for item in data:
        if not isinstance(item, dict):
            raise ValidationError('Expected a list of holes')
        holes.append(Hole(
            hole_number=_require_int(item, 'hole_number'),
            par=_require_int(item, 'par'),
            length_yellow=_optional_int(item, 'length_yellow'),
            length_red=_optional_int(item, 'length_red'),
        ))
    _apply_holes(holes)
    return '', 200


@app.route('/api/course/import', methods=['POST'])
def import_course():
    _apply_holes(read_course_csv(_uploaded_file()))
    return '', 200


@app.route('/api/course/export')
def export_course():
    store = _service('store')
    with store.read() as conn:
        holes = store.list_holes(conn)
    return Response(
        write_course_csv(holes),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment;filename=course_config.csv'},
    )


if __name__ == '__main__':
    setup_logging()
    init_services()
    app.run(debug=True, host='0.0.0.0', port=PORT)
