"""Flask JSON API for the P2P portfolio tracker.

Each browser session gets its own portfolio, stored under a per-session user
token. Every mutating endpoint saves the portfolio and answers with the fully
recomputed portfolio figures so the front end can redraw everything at once.
"""

import logging
from datetime import date
from typing import Callable, Optional
from uuid import uuid4

from flask import Flask, jsonify, request, session

from p2p_tracker import config
from p2p_tracker.engine import (
    category_breakdown,
    compute_loan_metrics,
    compute_platform_stats,
    upcoming_payments,
)
from p2p_tracker.exceptions import (
    LoanNotFoundError,
    PlatformNotFoundError,
    StoreError,
    TrackerError,
    ValidationError,
)
from p2p_tracker.portfolio import PortfolioManager, get_platform
from p2p_tracker.serialization import loan_to_record, portfolio_from_dict, portfolio_to_dict
from p2p_tracker.store import PortfolioStore, create_store_from_env

logger = logging.getLogger(__name__)


def _json_number(value):
    return float(value) if value is not None else None


def _serialize_stats(stats) -> dict:
    """Convert a stats dataclass into JSON-serialisable numbers."""
    payload = {}
    for key, value in vars(stats).items():
        if key == "platforms":
            payload[key] = {name: _serialize_stats(s) for name, s in value.items()}
        elif key == "as_of":
            payload[key] = value.isoformat()
        elif isinstance(value, int):
            payload[key] = value
        else:
            payload[key] = _json_number(value)
    return payload


def _serialize_loan(loan) -> dict:
    record = loan_to_record(loan)
    record["kind"] = loan.schedule.kind
    record["metrics"] = _serialize_stats(compute_loan_metrics(loan))
    return record


def create_app(store: Optional[PortfolioStore] = None, clock: Callable[[], date] = date.today) -> Flask:
    """Build the Flask application.

    Parameters
    ----------
    store: Optional[PortfolioStore]
        Where portfolios are kept. Defaults to the store named by
        ``P2P_TRACKER_DATABASE_URL``.
    clock: Callable[[], date]
        Returns "today" for the time-windowed figures.
    """
    app = Flask(__name__)
    app.secret_key = config.secret_key()
    app.config["CURRENCY"] = config.currency()
    portfolio_store = store or create_store_from_env()

    def _ensure_user_token() -> str:
        token = session.get("user_token")
        if not token:
            token = uuid4().hex
            session["user_token"] = token
            session.modified = True
        return token

    def _manager() -> PortfolioManager:
        return PortfolioManager(portfolio_store, key=_ensure_user_token(), clock=clock)

    def _portfolio_response(manager: PortfolioManager, status: int = 200):
        return jsonify(_serialize_stats(manager.stats())), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return jsonify({"error": exc.message, "field": exc.field}), 400

    @app.errorhandler(PlatformNotFoundError)
    @app.errorhandler(LoanNotFoundError)
    def handle_not_found(exc: TrackerError):
        return jsonify({"error": exc.message}), 404

    @app.errorhandler(StoreError)
    def handle_store_error(exc: StoreError):
        logger.error("Store failure: %s", exc)
        return jsonify({"error": exc.message}), 500

    @app.get("/api/portfolio")
    def portfolio_summary():
        manager = _manager()
        payload = _serialize_stats(manager.stats())
        payload["categories"] = {k: float(v) for k, v in category_breakdown(manager.portfolio).items()}
        payload["currency"] = app.config["CURRENCY"]
        return jsonify(payload)

    @app.delete("/api/portfolio")
    def reset_portfolio():
        manager = _manager()
        manager.reset()
        return _portfolio_response(manager)

    @app.get("/api/platforms")
    def list_platforms():
        stats = _manager().stats()
        search = request.args.get("search", "").lower()
        return jsonify(
            {name: _serialize_stats(s) for name, s in stats.platforms.items() if search in name.lower()}
        )

    @app.post("/api/platforms")
    def add_platform():
        data = request.get_json(silent=True) or {}
        manager = _manager()
        manager.add_platform(data.get("name", ""))
        return _portfolio_response(manager, 201)

    @app.get("/api/platforms/<name>")
    def show_platform(name: str):
        manager = _manager()
        stats = compute_platform_stats(manager.portfolio, name)
        search = request.args.get("search", "").lower()
        loans = [
            _serialize_loan(loan)
            for loan in get_platform(manager.portfolio, name).loans
            if search in loan.description.lower()
        ]
        return jsonify({"name": name, "stats": _serialize_stats(stats), "loans": loans})

    @app.delete("/api/platforms/<name>")
    def delete_platform(name: str):
        manager = _manager()
        manager.delete_platform(name)
        return _portfolio_response(manager)

    @app.post("/api/platforms/<name>/loans")
    def add_loan(name: str):
        manager = _manager()
        loan = manager.add_loan(name, request.get_json(silent=True) or {})
        return jsonify(_serialize_loan(loan)), 201

    @app.put("/api/platforms/<name>/loans/<int:loan_id>")
    def edit_loan(name: str, loan_id: int):
        manager = _manager()
        loan = manager.edit_loan(name, loan_id, request.get_json(silent=True) or {})
        return jsonify(_serialize_loan(loan))

    @app.delete("/api/platforms/<name>/loans/<int:loan_id>")
    def delete_loan(name: str, loan_id: int):
        manager = _manager()
        manager.delete_loan(name, loan_id)
        return _portfolio_response(manager)

    @app.get("/api/dues")
    def dues():
        window = request.args.get("days", config.UPCOMING_PAYMENT_WINDOW_DAYS, type=int)
        payments = upcoming_payments(_manager().portfolio, clock(), window_days=window)
        return jsonify(
            [
                {
                    "platform": p.platform,
                    "loanId": p.loan_id,
                    "description": p.description,
                    "daysUntilDue": p.days_until_due,
                    "amount": float(p.amount),
                }
                for p in payments
            ]
        )

    @app.get("/api/export")
    def export_portfolio():
        response = jsonify(portfolio_to_dict(_manager().portfolio))
        filename = f"p2p-lending-data-{clock().isoformat()}.json"
        response.headers["Content-Disposition"] = f"attachment; filename={filename}"
        return response

    @app.post("/api/import")
    def import_portfolio():
        mode = request.args.get("mode", "merge")
        if mode not in ("merge", "replace"):
            raise ValidationError("mode must be 'merge' or 'replace'", field="mode")
        imported = portfolio_from_dict(request.get_json(silent=True))
        manager = _manager()
        manager.import_portfolio(imported, replace=mode == "replace")
        return _portfolio_response(manager)

    return app


def main() -> None:
    config.configure_logging()
    app = create_app()
    print("Starting P2P portfolio tracker API...")
    app.run(port=8710)


if __name__ == "__main__":
    main()
