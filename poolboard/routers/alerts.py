"""Alerts router - /api/alerts/* subscription management."""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from starlette.requests import Request

from ..deps import envelope, get_server, paginated
from ..models import AlertTestRequest, SubscribeRequest, UpdateSubscriptionRequest

router = APIRouter(prefix="/api/alerts")


@router.post("/subscribe")
async def subscribe(request: Request, body: SubscribeRequest):
    srv = get_server(request)
    sub = await srv.subscriptions.subscribe(
        email=body.email, alert_type=body.alert_type,
        pool_id=body.pool_id, threshold=body.threshold,
    )
    return JSONResponse(
        status_code=201,
        content=envelope(sub, message="Alert subscription created successfully"),
    )


@router.get("/manage/{email}")
async def manage(request: Request, email: str):
    srv = get_server(request)
    return envelope(await srv.subscriptions.list_for_email(email))


@router.get("/history/{email}")
async def history(
    request: Request,
    email: str,
    limit: int = Query(default=50, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
):
    srv = get_server(request)
    items, total = await srv.subscriptions.history_for_email(email, limit=limit, offset=offset)
    return paginated(items, total=total, limit=limit, offset=offset,
                     message=f"Found {len(items)} alert history records")


@router.post("/test")
async def test_alert(request: Request, body: AlertTestRequest):
    srv = get_server(request)
    result = await srv.subscriptions.send_test(
        email=body.email, alert_type=body.alert_type, message=body.message,
        production=srv.settings.is_production,
    )
    return envelope(result, message="Test alert sent successfully")


@router.put("/{sub_id}")
async def update_subscription(request: Request, sub_id: str, body: UpdateSubscriptionRequest):
    srv = get_server(request)
    fields = {name: getattr(body, name) for name in body.model_fields_set}
    sub = await srv.subscriptions.update(sub_id, fields)
    return envelope(sub, message="Alert subscription updated successfully")


@router.delete("/{sub_id}")
async def delete_subscription(request: Request, sub_id: str):
    srv = get_server(request)
    await srv.subscriptions.delete(sub_id)
    return envelope(None, message="Alert subscription deleted successfully")
