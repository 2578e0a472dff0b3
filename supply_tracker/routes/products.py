"""
Product Tracking API Routes
===========================

REST API endpoints over the tracker session.

Endpoints:
- Product list with search and status filter
- Product detail with status history
- Reload from the ledger
- Product registration and status transitions
- Network statistics
- Signing identity changes
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from supply_tracker.errors import (
    ConflictError,
    ConnectivityError,
    MalformedHistoryError,
    NotFoundError,
    TrackerError,
    TransactionRejectedError,
    UnauthorizedError,
    ValidationError,
)
from supply_tracker.models import ProductStatus, SigningIdentity
from supply_tracker.services.ledger import SimulatedLedgerGateway
from supply_tracker.services.tracking import StatusFilter

logger = logging.getLogger(__name__)

# Create Blueprint
products_bp = Blueprint('products', __name__)

ERROR_STATUS_CODES = {
    ValidationError: 400,
    UnauthorizedError: 401,
    NotFoundError: 404,
    ConflictError: 409,
    TransactionRejectedError: 422,
    MalformedHistoryError: 502,
    ConnectivityError: 503,
}


def _run_async(coro):
    """Run async coroutine on the app's shared event loop."""
    return current_app.extensions["tracker_runner"].run(coro)


def _session():
    return current_app.extensions["tracker_session"]


def _error_response(e: TrackerError):
    status_code = 500
    for error_type, code in ERROR_STATUS_CODES.items():
        if isinstance(e, error_type):
            status_code = code
            break

    if e.integrity_fault:
        logger.error(f"Data integrity fault: {e.user_message}")
    else:
        logger.warning(f"{e.category}: {e.user_message}")

    body = {'success': False}
    body.update(e.to_dict())
    return jsonify(body), status_code


def _parse_status(value) -> ProductStatus:
    """Accept a ledger code (1), a name ("IN_TRANSIT") or a label ("In Transit")."""
    if isinstance(value, bool):
        raise ValidationError(f"Unknown product status: {value!r}")
    if isinstance(value, int):
        try:
            return ProductStatus(value)
        except ValueError:
            raise ValidationError(f"Unknown product status: {value!r}")

    if value is None or not str(value).strip():
        raise ValidationError("status is required")

    status = StatusFilter.parse(value).status
    if status is None:
        raise ValidationError(f"Unknown product status: {value!r}")
    return status


# ================== Products ==================

@products_bp.route('/products', methods=['GET'])
def list_products():
    """
    List cached products.

    Query Parameters:
        search: Name substring (case-insensitive) or exact id
        status: All, Created, InTransit / In Transit, Delivered

    Returns:
        Filtered products in id order
    """
    try:
        session = _session()
        search = request.args.get('search', '')
        status_filter = request.args.get('status', 'All')

        products = session.query(search=search, status_filter=status_filter)

        return jsonify({
            'success': True,
            'data': {
                'generation': session.repository.generation,
                'count': len(products),
                'updating': sorted(session.transitions.in_flight()),
                'products': [p.to_dict() for p in products]
            }
        })

    except TrackerError as e:
        return _error_response(e)
    except Exception as e:
        logger.error(f"Error listing products: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@products_bp.route('/products/<int:product_id>', methods=['GET'])
def get_product(product_id):
    """Get one cached product with its full history."""
    try:
        product = _session().get(product_id)
        if product is None:
            raise NotFoundError(f"Product not found: {product_id}", product_id=product_id)

        return jsonify({
            'success': True,
            'data': product.to_dict()
        })

    except TrackerError as e:
        return _error_response(e)
    except Exception as e:
        logger.error(f"Error getting product {product_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@products_bp.route('/products/reload', methods=['POST'])
def reload_products():
    """Re-read every product from the ledger."""
    try:
        snapshot = _run_async(_session().reload())

        return jsonify({
            'success': True,
            'data': {
                'generation': snapshot.generation,
                'count': len(snapshot)
            }
        })

    except TrackerError as e:
        return _error_response(e)
    except Exception as e:
        logger.error(f"Error reloading products: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@products_bp.route('/products', methods=['POST'])
def register_product():
    """
    Register a new product on the ledger.

    Request Body:
        name: Product name
        origin: Origin location

    Returns:
        Confirmed transaction receipt
    """
    try:
        data = request.get_json(silent=True) or {}
        receipt = _run_async(_session().register_product(
            str(data.get('name') or ''),
            str(data.get('origin') or '')
        ))

        return jsonify({
            'success': True,
            'message': 'Product created successfully',
            'data': receipt.to_dict()
        }), 201

    except TrackerError as e:
        return _error_response(e)
    except Exception as e:
        logger.error(f"Error registering product: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@products_bp.route('/products/<int:product_id>/status', methods=['POST'])
def update_status(product_id):
    """
    Move a product to a new status.

    Request Body:
        status: Ledger code (0-2), name or display label

    Returns:
        Receipt and the product as now cached
    """
    try:
        data = request.get_json(silent=True) or {}
        new_status = _parse_status(data.get('status'))

        session = _session()
        receipt = _run_async(session.request_transition(product_id, new_status))
        product = session.get(product_id)

        return jsonify({
            'success': True,
            'data': {
                'receipt': receipt.to_dict(),
                'product': product.to_dict() if product else None
            }
        })

    except TrackerError as e:
        return _error_response(e)
    except Exception as e:
        logger.error(f"Error updating status of product {product_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ================== Statistics ==================

@products_bp.route('/stats', methods=['GET'])
def get_stats():
    """Network statistics over the cached products."""
    try:
        return jsonify({
            'success': True,
            'data': _session().summary()
        })

    except Exception as e:
        logger.error(f"Error getting stats: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ================== Identity ==================

@products_bp.route('/identity', methods=['GET'])
def get_identity():
    """Current signing identity (null when read-only)."""
    identity = _session().identity
    return jsonify({
        'success': True,
        'data': identity.to_dict() if identity else None
    })


@products_bp.route('/identity', methods=['PUT'])
def set_identity():
    """
    Attach or replace the signing identity.

    Request Body:
        address: Account address
        private_key: Optional key for local signing
    """
    try:
        data = request.get_json(silent=True) or {}
        address = str(data.get('address') or '').strip()
        if not address:
            raise ValidationError("address is required")

        identity = SigningIdentity(address=address, private_key=data.get('private_key'))
        _session().on_identity_changed(identity)

        return jsonify({
            'success': True,
            'data': identity.to_dict()
        })

    except TrackerError as e:
        return _error_response(e)


@products_bp.route('/identity', methods=['DELETE'])
def remove_identity():
    """Drop the signing identity; the session becomes read-only."""
    _session().on_identity_changed(None)
    return jsonify({'success': True, 'data': None})


# ================== Health ==================

@products_bp.route('/health', methods=['GET'])
def health():
    """Liveness with ledger backend details."""
    session = _session()
    data = {
        'status': 'healthy',
        'ledger': session.gateway.name,
        'generation': session.repository.generation,
        'read_only': session.read_only
    }

    if isinstance(session.gateway, SimulatedLedgerGateway):
        chain_valid, issues = session.gateway.verify_chain_integrity()
        data['chain_valid'] = chain_valid
        data['chain_issues'] = issues

    return jsonify(data)
