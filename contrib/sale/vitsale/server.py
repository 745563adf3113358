"""
VIT Token Sale SDK Server - REST API over a ContributionLedger

Endpoints:
  GET  /health                     - Liveness
  GET  /api/sale                   - Sale summary (phase, totals, times)
  GET  /api/participants/<addr>    - Participant record
  GET  /api/events                 - Events (?kind=&since=&until=)
  POST /api/contribute             - {participant, wei_amount}
  POST /api/claim                  - {participant, amount?}  (all when omitted)
  POST /api/refund                 - {participant, wei_amount?}  (all when omitted)
  POST /api/finalize               - {}
  POST /api/finalize_refunds       - {}
  POST /api/caps                   - {caller, participants, cap}
"""

import argparse
import logging
import os
import time
from typing import Callable, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from .errors import AlreadyFinalized, AlreadyFinalizedRefund, NotOwner, SaleError
from .ledger import ContributionLedger

log = logging.getLogger(__name__)

ERROR_STATUS = {
    NotOwner: 403,
    AlreadyFinalized: 409,
    AlreadyFinalizedRefund: 409,
}


class BadRequest(Exception):
    """Malformed request body."""


def _status_for(error: SaleError) -> int:
    for kind, status in ERROR_STATUS.items():
        if isinstance(error, kind):
            return status
    return 400


def _int_field(data: dict, name: str, required: bool = True) -> Optional[int]:
    value = data.get(name)
    if value is None:
        if required:
            raise BadRequest(f"Missing {name}")
        return None
    if isinstance(value, bool):
        raise BadRequest(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{name} must be an integer")


def _str_field(data: dict, name: str) -> str:
    value = data.get(name)
    if not value or not isinstance(value, str):
        raise BadRequest(f"Missing {name}")
    return value


def create_app(ledger: ContributionLedger, clock: Callable[[], float] = time.time,
               storage_path: Optional[str] = None) -> Flask:
    """
    Build the Flask app.

    Args:
        ledger: Ledger served by the API
        clock: Returns the current unix time (injected in tests)
        storage_path: JSON snapshot written after every change (optional)
    """
    app = Flask(__name__)
    CORS(app)  # Allow cross-origin for the sale frontend

    def now() -> int:
        return int(clock())

    def body() -> dict:
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise BadRequest("JSON object expected")
        return data

    def persist():
        if storage_path:
            ledger.save(storage_path)

    @app.errorhandler(SaleError)
    def handle_sale_error(e: SaleError):
        log.debug(f"{request.path} rejected: {e.code} {e.message}")
        return jsonify({'error': e.code, 'message': e.message}), _status_for(e)

    @app.errorhandler(BadRequest)
    def handle_bad_request(e: BadRequest):
        return jsonify({'error': 'bad_request', 'message': str(e)}), 400

    @app.route('/health')
    def health():
        return jsonify({'ok': True, 'timestamp': now()})

    @app.route('/api/sale')
    def sale():
        return jsonify(ledger.sale_info(now()))

    @app.route('/api/participants/<address>')
    def participant(address):
        return jsonify(ledger.participant_info(address))

    @app.route('/api/events')
    def events():
        kind = request.args.get('kind') or None
        since = _int_field(request.args, 'since', required=False)
        until = _int_field(request.args, 'until', required=False)
        found = ledger.get_events(kind=kind, since=since, until=until)
        return jsonify({'events': [e.to_dict() for e in found], 'count': len(found)})

    @app.route('/api/contribute', methods=['POST'])
    def contribute():
        data = body()
        event = ledger.contribute(_str_field(data, 'participant'),
                                  _int_field(data, 'wei_amount'), now())
        persist()
        return jsonify(event.to_dict())

    @app.route('/api/claim', methods=['POST'])
    def claim():
        data = body()
        participant = _str_field(data, 'participant')
        amount = _int_field(data, 'amount', required=False)
        if amount is None:
            event = ledger.claim_all_tokens(participant, now())
        else:
            event = ledger.claim_tokens(participant, amount, now())
        persist()
        return jsonify(event.to_dict())

    @app.route('/api/refund', methods=['POST'])
    def refund():
        data = body()
        participant = _str_field(data, 'participant')
        amount = _int_field(data, 'wei_amount', required=False)
        if amount is None:
            event = ledger.refund_all_ether(participant, now())
        else:
            event = ledger.refund_ether(participant, amount, now())
        persist()
        return jsonify(event.to_dict())

    @app.route('/api/finalize', methods=['POST'])
    def finalize():
        event = ledger.finalize(now())
        persist()
        return jsonify(event.to_dict())

    @app.route('/api/finalize_refunds', methods=['POST'])
    def finalize_refunds():
        event = ledger.finalize_refunds(now())
        persist()
        return jsonify(event.to_dict())

    @app.route('/api/caps', methods=['POST'])
    def caps():
        data = body()
        participants = data.get('participants')
        if not isinstance(participants, list):
            raise BadRequest("participants must be a list")
        updated = ledger.set_restricted_participation_cap(
            _str_field(data, 'caller'), participants, _int_field(data, 'cap'), now=now())
        persist()
        return jsonify({'success': True, 'updated': updated})

    return app


def main(argv=None):
    from .config import config_from_env, load_sale_config

    config = config_from_env()

    parser = argparse.ArgumentParser(description="VIT token sale ledger server")
    parser.add_argument("--sale-config", default=config.sale_config_path,
                        help="JSON file with sale parameters")
    parser.add_argument("--storage", default=config.storage_path, help="Ledger snapshot file")
    parser.add_argument("--owner", default=config.owner, help="Sale owner address")
    parser.add_argument("--host", default=config.http_host)
    parser.add_argument("--port", type=int, default=config.http_port)
    parser.add_argument("--log-level", default=config.log_level)
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format='%(asctime)s [%(levelname)s] %(message)s')

    if os.path.exists(args.storage):
        log.info(f"Loading ledger from {args.storage}")
        ledger = ContributionLedger.load(args.storage)
    else:
        if not args.owner:
            log.error("--owner (or VITSALE_OWNER) is required for a new ledger")
            return 1
        sale_config = load_sale_config(args.sale_config)
        ledger = ContributionLedger(sale_config, owner=args.owner, now=int(time.time()))
        ledger.save(args.storage)
        log.info(f"New ledger saved to {args.storage}")

    app = create_app(ledger, storage_path=args.storage)
    log.info(f"Starting VIT sale server on {args.host}:{args.port}")
    app.run(host=args.host, port=args.port, threaded=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
