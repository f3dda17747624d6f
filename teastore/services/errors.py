# teastore/services/errors.py
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from ..utils.api import api_error

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "order processing failed"


class StoreError(Exception):
    status_code = 400
    public = True

    def __init__(self, message, data=None):
        super().__init__(message)
        self.message = message
        self.data = data


class InvalidInput(StoreError, ValueError):
    """Malformed cart line, customer data or out-of-range percentage."""
    status_code = 400


class ProductNotFound(StoreError, LookupError):
    status_code = 404

    def __init__(self, product_id, message=None):
        super().__init__(message or f"product {product_id} not found", {"product_id": product_id})
        self.product_id = product_id


class OrderNotFound(StoreError, LookupError):
    status_code = 404

    def __init__(self, order_id):
        super().__init__("order not found", {"order_id": order_id})
        self.order_id = order_id


class NegativeTotal(StoreError):
    """Clamping failed somewhere upstream. Always a bug."""
    status_code = 500
    public = False


class DiscountAlreadyConsumed(StoreError):
    status_code = 409


class OrderStateConflict(StoreError):
    status_code = 409


def register_error_handlers(app):
    @app.errorhandler(StoreError)
    def handle_store_error(e):
        if e.public:
            r = jsonify(api_error(e.message, e.data))
        else:
            logger.error("internal error: %s", e.message)
            r = jsonify(api_error(GENERIC_FAILURE))
        r.status_code = e.status_code
        return r

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            r = jsonify(api_error(e.description or e.name))
            r.status_code = e.code
            return r
        logger.exception("unhandled error")
        r = jsonify(api_error(GENERIC_FAILURE))
        r.status_code = 500
        return r
