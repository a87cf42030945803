import uvicorn
import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import List
from urllib.parse import urlencode

from order_service.auth import require_roles
from order_service.config import Settings
from order_service.database import build_engine, build_session_factory, init_db
from order_service.errors import (
    InvalidConfirmationTokenError,
    InvalidOrderIdError,
    InvalidStatusTransitionError,
    OrderNotFoundError,
    OrderServiceError,
    OrderValidationError,
)
from order_service.logging_config import configure_logging
from order_service.messaging import MessageBroker
from order_service.notifier import EventNotifier
from order_service.schemas import OrderActionResponse, OrderCreate, OrderRead, format_validation_errors
from order_service.service import OrderLifecycleService
from order_service.store import OrderStore

logger = structlog.get_logger(__name__)

ERROR_STATUS_CODES = {
    OrderValidationError: 400,
    InvalidOrderIdError: 400,
    InvalidStatusTransitionError: 400,
    InvalidConfirmationTokenError: 400,
    OrderNotFoundError: 404,
}

ADMIN_ROLES = ("admin",)


def get_order_service(request: Request) -> OrderLifecycleService:
    return request.app.state.order_service


def create_app(service: OrderLifecycleService = None, settings: Settings = None) -> FastAPI:
    settings = settings or (service.settings if service is not None else Settings.from_env())
    app = FastAPI(title="WearFlare Order Service")
    app.state.settings = settings
    app.state.order_service = service
    app.state.engine = None
    app.state.broker = None

    @app.on_event("startup")
    async def startup_event():
        if app.state.order_service is not None:
            return
        configure_logging(settings.log_level, settings.log_format)
        engine = build_engine(settings.database_url)
        await init_db(engine)
        broker = MessageBroker(settings.rabbitmq_url)
        try:
            await broker.connect()
        except Exception as e:
            # Orders are still accepted; every notification fails and is logged
            logger.error("rabbitmq_setup_failed", error=str(e))
        app.state.engine = engine
        app.state.broker = broker
        app.state.order_service = OrderLifecycleService(
            OrderStore(build_session_factory(engine)), EventNotifier(broker), settings
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.broker is not None:
            await app.state.broker.close()
        if app.state.engine is not None:
            await app.state.engine.dispose()

    @app.exception_handler(OrderServiceError)
    async def order_error_handler(request: Request, exc: OrderServiceError) -> JSONResponse:
        status_code = ERROR_STATUS_CODES.get(type(exc), 500)
        content = {"message": str(exc)}
        if isinstance(exc, OrderValidationError):
            content["errors"] = exc.errors
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = format_validation_errors(exc.errors())
        return JSONResponse(
            status_code=400,
            content={"message": f"Validation Error: {'. '.join(errors)}", "errors": errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", path=request.url.path)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/api/orders", response_model=OrderActionResponse, status_code=201)
    async def create_order(order_data: OrderCreate, service: OrderLifecycleService = Depends(get_order_service)):
        order = await service.create(order_data)
        if settings.require_customer_confirmation:
            message = "Order initiated. Please check your email to confirm."
        else:
            message = "Order placed successfully."
        return OrderActionResponse(message=message, order=OrderRead.from_order(order))

    @app.get("/api/orders", response_model=List[OrderRead], status_code=200)
    async def get_orders(
        service: OrderLifecycleService = Depends(get_order_service),
        user=Depends(require_roles(*ADMIN_ROLES)),
    ):
        orders = await service.list_orders()
        return [OrderRead.from_order(order) for order in orders]

    @app.get("/api/orders/confirm/{token}")
    async def confirm_order_by_customer(token: str, service: OrderLifecycleService = Depends(get_order_service)):
        base = f"{settings.frontend_url.rstrip('/')}/order-confirmation-status"
        try:
            order = await service.confirm_by_customer(token)
        except InvalidConfirmationTokenError as e:
            return RedirectResponse(f"{base}?{urlencode({'status': 'failed', 'message': str(e)})}")
        except Exception:
            # The customer lands on the storefront either way
            logger.exception("customer_confirmation_failed", token_prefix=token[:10])
            message = "An error occurred while confirming your order. Please contact support."
            return RedirectResponse(f"{base}?{urlencode({'status': 'error', 'message': message})}")
        return RedirectResponse(f"{base}?{urlencode({'status': 'success', 'orderId': order.short_ref})}")

    @app.patch("/api/orders/{order_id}/confirm", response_model=OrderActionResponse)
    async def confirm_order(
        order_id: str,
        service: OrderLifecycleService = Depends(get_order_service),
        user=Depends(require_roles(*ADMIN_ROLES)),
    ):
        order = await service.confirm(order_id)
        return OrderActionResponse(message="Order confirmed successfully by admin!", order=OrderRead.from_order(order))

    @app.patch("/api/orders/{order_id}/cancel", response_model=OrderActionResponse)
    async def cancel_order(
        order_id: str,
        service: OrderLifecycleService = Depends(get_order_service),
        user=Depends(require_roles(*ADMIN_ROLES)),
    ):
        order = await service.cancel(order_id)
        return OrderActionResponse(message="Order cancelled successfully by admin!", order=OrderRead.from_order(order))

    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
