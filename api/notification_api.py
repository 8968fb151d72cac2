"""
Notification receiver API.

Accepts Midtrans HTTP notifications and exposes a small payment API
on top of MidtransGateway.
"""

import logging
from typing import Any, Awaitable, Callable, List

from aiohttp import web

from models.errors import ValidationError
from models.notification import Notification
from models.result import GatewayResult
from services.gateway import MidtransGateway

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[Notification], Awaitable[Any]]


def _error_response(result: GatewayResult) -> web.Response:
    """Relay a failed gateway call; network failures become 502."""
    error = result.error
    status = error.status_code if error.status_code >= 400 else 502
    return web.json_response(error.to_dict(), status=status)


class NotificationAPI:
    """
    REST API for notifications and payments.

    Endpoints:
    - POST /api/notifications - Receive a Midtrans notification
    - POST /api/payments - Create a payment
    - GET /api/payments/{order_id}/status - Transaction status
    - POST /api/payments/{order_id}/cancel - Cancel a transaction
    - GET /api/payment-methods - Supported payment methods
    - GET /api/health - Health check
    - GET /api/config - Non-secret gateway configuration
    """

    def __init__(self, gateway: MidtransGateway, service_name: str = 'MidtransGateway'):
        """
        Initialize the API.

        Args:
            gateway: Gateway used for verification and payment calls
            service_name: Name reported by the health check
        """
        self.gateway = gateway
        self.service_name = service_name
        self._callbacks: List[NotificationCallback] = []

    def on_notification(self, callback: NotificationCallback) -> None:
        """
        Register a callback for verified notifications.

        Args:
            callback: Async function called with the Notification
        """
        self._callbacks.append(callback)
        logger.debug(f"Registered notification callback: {callback.__name__}")

    def setup_routes(self, app: web.Application) -> None:
        """
        Set up API routes.

        Args:
            app: aiohttp web application
        """
        app.router.add_post('/api/notifications', self.receive_notification)
        app.router.add_post('/api/payments', self.create_payment)
        app.router.add_get('/api/payments/{order_id}/status', self.get_payment_status)
        app.router.add_post('/api/payments/{order_id}/cancel', self.cancel_payment)
        app.router.add_get('/api/payment-methods', self.get_payment_methods)
        app.router.add_get('/api/health', self.health_check)
        app.router.add_get('/api/config', self.get_config)

    async def receive_notification(self, request: web.Request) -> web.Response:
        """
        Receive a transaction notification.

        Responds 401 when the signature does not verify. Callback
        failures are logged and never change the response.
        """
        try:
            data = await request.json()
        except ValueError:
            return web.json_response(
                {"error": "Invalid JSON body"},
                status=400
            )

        if not isinstance(data, dict):
            return web.json_response(
                {"error": "Notification body must be a JSON object"},
                status=400
            )

        notification = Notification.from_dict(data)
        verdict = self.gateway.validate_notification(notification)

        if not verdict['valid']:
            logger.warning(f"Rejected notification with invalid signature: order_id={notification.order_id}")
            return web.json_response(
                {"error": "Invalid signature", "order_id": notification.order_id},
                status=401
            )

        logger.info(
            f"Notification for order {notification.order_id}: "
            f"{notification.transaction_status} ({notification.payment_type})"
        )

        for callback in self._callbacks:
            try:
                await callback(notification)
            except Exception as e:
                logger.error(f"Error in notification callback: {e}", exc_info=True)

        return web.json_response({
            "success": True,
            "notification": verdict
        })

    async def create_payment(self, request: web.Request) -> web.Response:
        """
        Create a payment.

        Request body:
        {
            "method": "gopay" | "bca_va" | "snap" | ...,
            "transaction_details": {"order_id": "...", "gross_amount": 10000},
            "customer_details": {...}
        }
        """
        try:
            data = await request.json()
        except ValueError:
            return web.json_response(
                {"error": "Invalid JSON body"},
                status=400
            )

        try:
            result = await self.gateway.create_payment(data)
        except ValidationError as e:
            return web.json_response({"error": str(e)}, status=400)

        if not result.ok:
            return _error_response(result)

        return web.json_response({
            "success": True,
            "data": result.data
        }, status=201)

    async def get_payment_status(self, request: web.Request) -> web.Response:
        order_id = request.match_info['order_id']
        try:
            result = await self.gateway.get_payment_status(order_id)
        except ValidationError as e:
            return web.json_response({"error": str(e)}, status=400)

        if not result.ok:
            return _error_response(result)
        return web.json_response({"success": True, "data": result.data})

    async def cancel_payment(self, request: web.Request) -> web.Response:
        order_id = request.match_info['order_id']
        try:
            result = await self.gateway.cancel_payment(order_id)
        except ValidationError as e:
            return web.json_response({"error": str(e)}, status=400)

        if not result.ok:
            return _error_response(result)

        logger.info(f"Cancelled payment {order_id}")
        return web.json_response({"success": True, "data": result.data})

    async def get_payment_methods(self, request: web.Request) -> web.Response:
        return web.json_response({
            "payment_methods": self.gateway.get_available_payment_methods()
        })

    async def health_check(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({
            "status": "healthy",
            "service": self.service_name,
            "environment": self.gateway.config.environment
        })

    async def get_config(self, request: web.Request) -> web.Response:
        return web.json_response(self.gateway.get_config())


NOTIFICATION_API_KEY = web.AppKey('notification_api', NotificationAPI)


def create_app(
    gateway: MidtransGateway,
    service_name: str = 'MidtransGateway'
) -> web.Application:
    """
    Create and configure the aiohttp web application.

    The NotificationAPI instance is stored under NOTIFICATION_API_KEY
    so callers can register on_notification callbacks.

    Args:
        gateway: Midtrans gateway
        service_name: Name reported by the health check

    Returns:
        Configured aiohttp Application
    """
    app = web.Application()

    api = NotificationAPI(gateway=gateway, service_name=service_name)
    api.setup_routes(app)
    app[NOTIFICATION_API_KEY] = api

    # Add CORS middleware
    @web.middleware
    async def cors_middleware(request, handler):
        if request.method == "OPTIONS":
            response = web.Response()
        else:
            response = await handler(request)

        response.headers['Access-Control-Allow-Origin'] = '*'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type, Authorization'
        return response

    app.middlewares.append(cors_middleware)

    # Error handling middleware
    @web.middleware
    async def error_middleware(request, handler):
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except Exception as e:
            logger.error(f"Unhandled error: {e}", exc_info=True)
            return web.json_response(
                {"error": "Internal server error"},
                status=500
            )

    app.middlewares.append(error_middleware)

    return app
